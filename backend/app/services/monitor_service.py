"""
Lucid Monitor Service
Owns one monitoring session: the two aggregators, the fusion engine and the
latest assessment. Both tick loops run as tasks on the asyncio event loop, so
aggregator state is only ever touched from the loop thread.
"""

import asyncio
import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional

from fatigue_model import (
    BackspaceErrorDetector,
    FaceObservation,
    FaceSource,
    FacialMetricsAggregator,
    FacialSnapshot,
    FatigueAssessment,
    FatigueFactors,
    FatigueFusionEngine,
    FatigueLevel,
    SensorUnavailableError,
    SimulatedErrorDetector,
    SimulatedFaceSource,
    TypingMetricsAggregator,
    TypingSnapshot,
)

logger = logging.getLogger("lucid.monitor.service")

Listener = Callable[[Dict[str, Any]], None]

# Shown until the first recomputation
PLACEHOLDER_ASSESSMENT = FatigueAssessment(
    level=FatigueLevel.FOCUSED,
    confidence_percent=85,
    factors=FatigueFactors(facial_alertness=85, typing_performance=90, overall=87),
    recommendations=("Keep up the good work!", "Stay hydrated"),
    overall_score=13,
)


def format_duration(seconds: float) -> str:
    """m:ss, as shown on the dashboard clock."""
    total = max(0, int(seconds))
    return f"{total // 60}:{total % 60:02d}"


class MonitorService:
    """
    Session controller between the raw-signal collaborators and the presentation layer.

    - start()/stop() open and release the face source and run the tick loops.
    - handle_keystroke()/handle_buffer() feed the typing aggregator.
    - Every recomputation is pushed to subscribed listeners as a plain dict.
    """

    def __init__(
        self,
        face_source_factory: Callable[[], FaceSource],
        typing_aggregator: Optional[TypingMetricsAggregator] = None,
        facial_aggregator: Optional[FacialMetricsAggregator] = None,
        engine: Optional[FatigueFusionEngine] = None,
        keyboard_source_factory: Optional[Callable[[Callable], Any]] = None,
        facial_tick_hz: float = 10.0,
        typing_tick_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
    ):
        self.face_source_factory = face_source_factory
        self.keyboard_source_factory = keyboard_source_factory
        self.typing = typing_aggregator or TypingMetricsAggregator(clock=clock)
        self.facial = facial_aggregator or FacialMetricsAggregator(clock=clock)
        self.engine = engine or FatigueFusionEngine()
        self.facial_interval = 1.0 / facial_tick_hz
        self.typing_interval = typing_tick_seconds
        self.clock = clock

        self.session_start = clock()
        self.monitoring = False
        self.facial_snapshot: Optional[FacialSnapshot] = None
        self.typing_snapshot: Optional[TypingSnapshot] = None
        self.assessment: FatigueAssessment = PLACEHOLDER_ASSESSMENT
        self.facial_status: Dict[str, str] = {"state": "stopped", "message": ""}
        self.typing_status: Dict[str, str] = {"state": "stopped", "message": ""}

        self._face_source: Optional[FaceSource] = None
        self._keyboard_source = None
        self._tasks: List[asyncio.Task] = []
        self._listeners: List[Listener] = []
        # Bumped on every typing reset; keyboard events from an older generation are dropped
        self._typing_generation = 0
        self._lifecycle_lock: Optional[asyncio.Lock] = None
        self._lifecycle_loop: Optional[asyncio.AbstractEventLoop] = None

    # ──────────────────────────────────────────────────────
    # Subscribers
    # ──────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, message: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as e:
                logger.warning(f"Listener failed: {e}")

    # ──────────────────────────────────────────────────────
    # Fusion
    # ──────────────────────────────────────────────────────

    def recompute(self) -> FatigueAssessment:
        previous = self.assessment
        self.assessment = self.engine.assess(self.facial_snapshot, self.typing_snapshot)
        if self.assessment.level != previous.level:
            logger.info(
                "Fatigue level %s -> %s (overall %.1f)",
                previous.level.value, self.assessment.level.value, self.assessment.overall_score,
            )
        self._publish(self.assessment_message())
        return self.assessment

    def assessment_message(self) -> Dict[str, Any]:
        return {
            "type": "assessment",
            "data": self.assessment.to_dict(),
            "facial": self.facial_snapshot.to_dict() if self.facial_snapshot else None,
            "typing": self.typing_snapshot.to_dict() if self.typing_snapshot else None,
        }

    # ──────────────────────────────────────────────────────
    # Typing collaborator input
    # ──────────────────────────────────────────────────────

    def handle_keystroke(self, buffer: str, key: Optional[str] = None,
                         timestamp: Optional[float] = None) -> Optional[FatigueAssessment]:
        if not self.monitoring:
            return None
        self.typing.update(buffer, keystroke=timestamp if timestamp is not None else self.clock(), key=key)
        return self._push_typing()

    def handle_buffer(self, buffer: str) -> Optional[FatigueAssessment]:
        if not self.monitoring:
            return None
        self.typing.update(buffer)
        return self._push_typing()

    def refresh_typing(self) -> Optional[FatigueAssessment]:
        self.typing.snapshot()
        return self._push_typing()

    def _push_typing(self) -> Optional[FatigueAssessment]:
        if not self.typing.has_data:
            return None
        self.typing_snapshot = self.typing.latest
        return self.recompute()

    def _keyboard_event(self, generation: int, buffer: str, key: str, timestamp: float) -> None:
        if generation != self._typing_generation:
            logger.debug("Dropping keystroke queued before typing reset")
            return
        self.handle_keystroke(buffer, key, timestamp)

    def reset_typing(self) -> FatigueAssessment:
        self._typing_generation += 1
        self.typing.reset()
        if self._keyboard_source is not None:
            self._keyboard_source.clear()
        self.typing_snapshot = None
        logger.info("Typing statistics reset")
        return self.recompute()

    # ──────────────────────────────────────────────────────
    # Facial collaborator input
    # ──────────────────────────────────────────────────────

    def apply_face_observation(self, observation: Optional[FaceObservation]) -> FatigueAssessment:
        self.facial_snapshot = self.facial.apply(observation)
        return self.recompute()

    def _set_status(self, stream: str, state: str, message: str = "") -> None:
        status = {"state": state, "message": message}
        setattr(self, f"{stream}_status", status)
        self._publish({"type": "status", "stream": stream, **status})

    def _face_failed(self, message: str) -> None:
        logger.warning(f"Facial stream unavailable: {message}")
        self._set_status("facial", "error", message)
        self.facial_snapshot = None
        self.recompute()

    # ──────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────

    def _lock(self) -> asyncio.Lock:
        """Lifecycle lock, bound to the loop that is currently running the service."""
        loop = asyncio.get_running_loop()
        if self._lifecycle_lock is None or self._lifecycle_loop is not loop:
            self._lifecycle_lock = asyncio.Lock()
            self._lifecycle_loop = loop
        return self._lifecycle_lock

    async def start(self) -> None:
        async with self._lock():
            await self._start()

    async def stop(self) -> None:
        async with self._lock():
            await self._stop()

    async def _start(self) -> None:
        if self.monitoring:
            return
        self.monitoring = True
        loop = asyncio.get_running_loop()
        logger.info("Monitoring started")

        await self._open_face_source(loop)
        self._open_keyboard_source(loop)

        self._tasks.append(loop.create_task(self._typing_loop(), name="typing-refresh"))
        if self._face_source is not None:
            self._tasks.append(loop.create_task(self._facial_loop(self._face_source), name="facial-tick"))

        self.recompute()

    async def _open_face_source(self, loop: asyncio.AbstractEventLoop) -> None:
        self._set_status("facial", "starting")
        source = None
        try:
            source = self.face_source_factory()
            await loop.run_in_executor(None, source.open)
        except (SensorUnavailableError, ImportError) as e:
            if source is not None:
                source.close()
            self._face_failed(str(e))
            return
        self._face_source = source
        self._set_status("facial", "active", source.name)

    def _open_keyboard_source(self, loop: asyncio.AbstractEventLoop) -> None:
        if self.keyboard_source_factory is None:
            self._set_status("typing", "active", "text input")
            return

        def forward(buffer: str, timestamp: float, key: str) -> None:
            loop.call_soon_threadsafe(self._keyboard_event, self._typing_generation, buffer, key, timestamp)

        try:
            self._keyboard_source = self.keyboard_source_factory(forward)
            self._keyboard_source.open()
        except (SensorUnavailableError, ImportError) as e:
            logger.warning(f"Keyboard capture unavailable: {e}")
            self._keyboard_source = None
            self._set_status("typing", "error", str(e))
            return
        self._set_status("typing", "active", "keyboard capture")

    async def _stop(self) -> None:
        if not self.monitoring:
            return
        self.monitoring = False

        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        if self._face_source is not None:
            self._face_source.close()
            self._face_source = None
        if self._keyboard_source is not None:
            self._keyboard_source.close()
            self._keyboard_source = None

        self.facial_snapshot = None
        self._set_status("facial", "stopped")
        self._set_status("typing", "stopped")
        logger.info("Monitoring stopped")
        self.recompute()

    async def _facial_loop(self, source: FaceSource) -> None:
        loop = asyncio.get_running_loop()
        pending: Optional[asyncio.Future] = None
        try:
            while True:
                pending = loop.run_in_executor(None, source.observe)
                try:
                    observation = await asyncio.shield(pending)
                except Exception as e:
                    pending = None
                    self._face_failed(str(e))
                    return
                pending = None
                self.apply_face_observation(observation)
                await asyncio.sleep(self.facial_interval)
        finally:
            # A cancelled read keeps running on its worker thread; let it finish before release
            if pending is not None:
                try:
                    await pending
                except Exception as e:
                    logger.debug(f"Read in flight at shutdown failed: {e}")
            source.close()

    async def _typing_loop(self) -> None:
        while True:
            await asyncio.sleep(self.typing_interval)
            self.refresh_typing()

    # ──────────────────────────────────────────────────────
    # Presentation helpers
    # ──────────────────────────────────────────────────────

    def session_overview(self) -> Dict[str, Any]:
        elapsed = self.clock() - self.session_start
        typing = self.typing_snapshot
        facial = self.facial_snapshot
        return {
            "monitoring": self.monitoring,
            "session_duration": format_duration(elapsed),
            "session_seconds": int(max(0, elapsed)),
            "words_per_minute": typing.words_per_minute if typing else 0,
            "accuracy_percent": typing.accuracy_percent if typing else 100,
            "blink_rate_per_minute": round(facial.blink_rate_per_minute, 1) if facial else 0,
            "facial_status": dict(self.facial_status),
            "typing_status": dict(self.typing_status),
        }


# ── Factory from settings ────────────────────────────────

def build_monitor_service(settings) -> MonitorService:
    rng = random.Random(settings.SIMULATION_SEED)
    clock = time.time

    def face_source_factory() -> FaceSource:
        if settings.FACE_SOURCE == "camera":
            from fatigue_model.camera_source import CameraFaceSource
            return CameraFaceSource(camera_index=settings.CAMERA_INDEX)
        return SimulatedFaceSource(rng=rng)

    if settings.ERROR_DETECTOR == "backspace":
        error_detector = BackspaceErrorDetector()
    else:
        error_detector = SimulatedErrorDetector(rng=rng)

    keyboard_source_factory = None
    if settings.KEYBOARD_CAPTURE:
        def keyboard_source_factory(callback):
            from fatigue_model.keyboard_source import KeyboardSource
            return KeyboardSource(callback)

    return MonitorService(
        face_source_factory=face_source_factory,
        typing_aggregator=TypingMetricsAggregator(error_detector=error_detector, clock=clock),
        facial_aggregator=FacialMetricsAggregator(clock=clock),
        keyboard_source_factory=keyboard_source_factory,
        facial_tick_hz=settings.FACIAL_TICK_HZ,
        typing_tick_seconds=settings.TYPING_TICK_SECONDS,
        clock=clock,
    )


# ── Singleton accessor ───────────────────────────────────

_monitor_service: Optional[MonitorService] = None


def get_monitor_service() -> MonitorService:
    global _monitor_service
    if _monitor_service is None:
        from app.core.config import settings
        _monitor_service = build_monitor_service(settings)
    return _monitor_service


def set_monitor_service(service: Optional[MonitorService]) -> None:
    global _monitor_service
    _monitor_service = service

"""Tests for MonitorService session handling."""

import asyncio
import threading
import time

import pytest

from conftest import FakeClock, ScriptedFaceSource
from app.services.monitor_service import (
    PLACEHOLDER_ASSESSMENT,
    MonitorService,
    build_monitor_service,
    format_duration,
)
from fatigue_model import (
    FaceObservation,
    FacialMetricsAggregator,
    FatigueLevel,
    SimulatedErrorDetector,
    TypingMetricsAggregator,
)

DROWSY = FaceObservation(blink=False, eye_openness=0.5, head_pose_degrees=25)


def make_service(clock, source=None, **kwargs):
    source = source or ScriptedFaceSource(fail_on_open=True)
    return MonitorService(
        face_source_factory=lambda: source,
        typing_aggregator=TypingMetricsAggregator(error_detector=SimulatedErrorDetector(0.0), clock=clock),
        facial_aggregator=FacialMetricsAggregator(clock=clock),
        typing_tick_seconds=kwargs.pop("typing_tick_seconds", 3600),
        facial_tick_hz=kwargs.pop("facial_tick_hz", 200),
        clock=clock,
        **kwargs,
    )


def run_session(service, body):
    """Start the service, run body(service) inside the loop, then stop."""
    async def scenario():
        await service.start()
        try:
            result = body(service)
            if asyncio.iscoroutine(result):
                await result
        finally:
            await service.stop()
    asyncio.run(scenario())


def test_placeholder_before_first_recompute(clock):
    service = make_service(clock)
    assert service.assessment is PLACEHOLDER_ASSESSMENT
    assert service.assessment.confidence_percent == 85


def test_typing_ignored_while_stopped(clock):
    service = make_service(clock)
    clock.advance(1)
    assert service.handle_keystroke("a", key="a") is None
    assert service.typing.total_keystrokes == 0


def test_camera_failure_is_reported_and_stream_absent(clock):
    source = ScriptedFaceSource(fail_on_open=True)
    service = make_service(clock, source)
    seen = {}

    def body(svc):
        seen["status"] = dict(svc.facial_status)
        seen["facial"] = svc.facial_snapshot
        seen["level"] = svc.assessment.level
        seen["monitoring"] = svc.monitoring

    run_session(service, body)

    assert seen["status"] == {"state": "error", "message": "Unable to access webcam. Please check permissions."}
    assert seen["facial"] is None
    assert seen["level"] == FatigueLevel.FOCUSED
    assert seen["monitoring"] is True
    assert source.closed


def test_keystrokes_produce_typing_snapshot(clock):
    service = make_service(clock)
    seen = {}

    def body(svc):
        clock.advance(1)
        svc.handle_keystroke("h", key="h")
        clock.advance(0.25)
        seen["assessment"] = svc.handle_keystroke("hi", key="i")
        seen["typing"] = svc.typing_snapshot

    run_session(service, body)

    assert seen["typing"].total_keystrokes == 2
    assert seen["typing"].accuracy_percent == 100
    assert seen["assessment"] is not None


def test_reset_typing_blanks_typing_stream(clock):
    service = make_service(clock)
    seen = {}

    def body(svc):
        clock.advance(1)
        svc.handle_keystroke("a", key="a")
        assert svc.typing_snapshot is not None
        seen["assessment"] = svc.reset_typing()
        seen["typing"] = svc.typing_snapshot
        seen["keystrokes"] = svc.typing.total_keystrokes

    run_session(service, body)

    assert seen["typing"] is None
    assert seen["keystrokes"] == 0
    assert seen["assessment"].confidence_percent == 60


def test_face_observation_drives_assessment(clock):
    service = make_service(clock)
    clock.advance(1)
    result = service.apply_face_observation(DROWSY)

    # eyes 40 + head 30, typing absent
    assert result.overall_score == 35
    assert result.level == FatigueLevel.SLIGHTLY_TIRED


def test_listeners_receive_every_recompute(clock):
    service = make_service(clock)
    messages = []
    service.subscribe(messages.append)

    service.apply_face_observation(DROWSY)
    service.recompute()
    service.unsubscribe(messages.append)
    service.recompute()

    assessments = [m for m in messages if m["type"] == "assessment"]
    assert len(assessments) == 2
    assert assessments[0]["data"]["level"] == "slightly-tired"
    assert assessments[0]["facial"]["eye_openness"] == 0.5
    assert assessments[0]["typing"] is None


def test_failing_listener_does_not_break_recompute(clock):
    service = make_service(clock)

    def broken(message):
        raise RuntimeError("boom")

    service.subscribe(broken)
    assert service.recompute().level == FatigueLevel.FOCUSED


def test_facial_loop_ticks_and_stop_releases_source():
    clock = FakeClock()
    source = ScriptedFaceSource([DROWSY])
    service = make_service(clock, source)
    seen = {}

    async def body(svc):
        for _ in range(100):
            if svc.facial_snapshot is not None:
                break
            await asyncio.sleep(0.01)
        seen["status"] = svc.facial_status["state"]
        seen["facial"] = svc.facial_snapshot

    run_session(service, body)

    assert source.opened
    assert seen["status"] == "active"
    assert seen["facial"].eye_openness == 0.5
    assert source.closed
    assert service.facial_snapshot is None
    assert service.facial_status["state"] == "stopped"
    assert not service.monitoring


def test_stream_failure_mid_session_marks_facial_absent():
    clock = FakeClock()
    source = ScriptedFaceSource([DROWSY], fail_after=1)
    service = make_service(clock, source)
    seen = {}

    async def body(svc):
        for _ in range(100):
            if svc.facial_status["state"] == "error":
                break
            await asyncio.sleep(0.01)
        seen["status"] = dict(svc.facial_status)
        seen["facial"] = svc.facial_snapshot
        seen["closed"] = source.closed

    run_session(service, body)

    assert seen["status"] == {"state": "error", "message": "Camera stream ended"}
    assert seen["facial"] is None
    assert seen["closed"]


class SlowOpenSource(ScriptedFaceSource):
    def open(self) -> None:
        time.sleep(0.2)
        super().open()


class SlowObserveSource(ScriptedFaceSource):
    """Flags a close() that lands while a read is still on the worker thread."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.reading = threading.Event()
        self.in_observe = False
        self.closed_during_observe = False

    def observe(self):
        self.in_observe = True
        self.reading.set()
        time.sleep(0.3)
        self.in_observe = False
        return super().observe()

    def close(self) -> None:
        if self.in_observe:
            self.closed_during_observe = True
        super().close()


def test_stop_during_slow_open_still_releases_source(clock):
    source = SlowOpenSource([DROWSY])
    service = make_service(clock, source)

    async def scenario():
        starting = asyncio.ensure_future(service.start())
        await asyncio.sleep(0.05)
        await service.stop()
        await starting

    asyncio.run(scenario())

    assert source.opened
    assert source.closed
    assert not service.monitoring
    assert service._tasks == []
    assert service.facial_status["state"] == "stopped"


def test_stop_waits_for_in_flight_read_before_close(clock):
    source = SlowObserveSource([DROWSY])
    service = make_service(clock, source)

    async def body(svc):
        while not source.reading.is_set():
            await asyncio.sleep(0.01)

    run_session(service, body)

    assert source.closed
    assert not source.closed_during_observe


class FakeKeyboard:
    """Stands in for KeyboardSource; the test drives the captured callback."""

    instances = []

    def __init__(self, callback):
        self.callback = callback
        self.closed = False
        self.cleared = 0
        FakeKeyboard.instances.append(self)

    def open(self):
        pass

    def close(self):
        self.closed = True

    def clear(self):
        self.cleared += 1


def test_keyboard_source_events_are_forwarded(clock):
    service = make_service(clock, keyboard_source_factory=FakeKeyboard)
    seen = {}

    async def body(svc):
        keyboard = FakeKeyboard.instances[-1]
        clock.advance(1)
        keyboard.callback("a", clock(), "a")
        await asyncio.sleep(0)
        seen["keystrokes"] = svc.typing.total_keystrokes
        seen["status"] = svc.typing_status["message"]

    run_session(service, body)

    assert seen["keystrokes"] == 1
    assert seen["status"] == "keyboard capture"


def test_keystrokes_queued_before_reset_are_dropped(clock):
    service = make_service(clock, keyboard_source_factory=FakeKeyboard)
    seen = {}

    async def body(svc):
        keyboard = FakeKeyboard.instances[-1]
        clock.advance(1)
        keyboard.callback("stale text", clock(), "t")
        svc.reset_typing()
        await asyncio.sleep(0)
        seen["after_reset"] = (svc.typing.total_keystrokes, svc.typing_snapshot)

        clock.advance(1)
        keyboard.callback("n", clock(), "n")
        await asyncio.sleep(0)
        seen["keystrokes"] = svc.typing.total_keystrokes
        seen["cleared"] = keyboard.cleared

    run_session(service, body)

    assert seen["after_reset"] == (0, None)
    assert seen["keystrokes"] == 1
    assert seen["cleared"] == 1


def test_session_overview(clock):
    service = make_service(clock)
    clock.advance(75)
    overview = service.session_overview()

    assert overview["session_duration"] == "1:15"
    assert overview["session_seconds"] == 75
    assert overview["words_per_minute"] == 0
    assert overview["accuracy_percent"] == 100
    assert overview["blink_rate_per_minute"] == 0
    assert overview["monitoring"] is False


@pytest.mark.parametrize("seconds, text", [(0, "0:00"), (9, "0:09"), (61, "1:01"), (3600, "60:00"), (-5, "0:00")])
def test_format_duration(seconds, text):
    assert format_duration(seconds) == text


def test_build_from_settings():
    class StubSettings:
        SIMULATION_SEED = 1
        FACE_SOURCE = "simulated"
        CAMERA_INDEX = 0
        ERROR_DETECTOR = "backspace"
        KEYBOARD_CAPTURE = False
        FACIAL_TICK_HZ = 10.0
        TYPING_TICK_SECONDS = 1.0

    service = build_monitor_service(StubSettings())

    assert service.face_source_factory().name == "simulated"
    assert service.typing.error_detector.is_error("Backspace")
    assert service.keyboard_source_factory is None
    assert service.facial_interval == pytest.approx(0.1)

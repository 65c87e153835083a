"""
Typing Metrics Aggregator
Turns keystroke timing events and the current text buffer into TypingSnapshots.
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from .config import DEFAULT_CONFIG, FatigueConfig
from .snapshots import TypingSnapshot

logger = logging.getLogger("fatigue_model.typing")


# ============================================================================
# ERROR DETECTION - Strategy pattern, swappable per deployment
# ============================================================================

class ErrorDetector(ABC):
    """Decides whether a single keystroke counts as a typing error"""

    @abstractmethod
    def is_error(self, key: Optional[str]) -> bool:
        pass


class SimulatedErrorDetector(ErrorDetector):
    """Flags a fixed share of keystrokes at random. Placeholder for a real signal."""

    def __init__(self, probability: float = DEFAULT_CONFIG.SIMULATED_ERROR_PROBABILITY,
                 rng: Optional[random.Random] = None):
        self.probability = probability
        self.rng = rng or random.Random()

    def is_error(self, key: Optional[str]) -> bool:
        return self.rng.random() < self.probability


class BackspaceErrorDetector(ErrorDetector):
    """Counts every correction keystroke as an error."""

    CORRECTION_KEYS = frozenset({"Backspace", "Delete"})

    def is_error(self, key: Optional[str]) -> bool:
        return key in self.CORRECTION_KEYS


# ============================================================================
# AGGREGATOR
# ============================================================================

class TypingMetricsAggregator:
    """
    Accumulates keystroke timestamps, errors and pauses since the last reset.

    snapshot() recomputes the metrics. When no keystroke has been recorded or no
    time has elapsed it returns the previous snapshot object unchanged.
    """

    def __init__(
        self,
        config: Optional[FatigueConfig] = None,
        error_detector: Optional[ErrorDetector] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or DEFAULT_CONFIG
        self.error_detector = error_detector or SimulatedErrorDetector(
            self.config.SIMULATED_ERROR_PROBABILITY
        )
        self.clock = clock
        self.reset()

    def reset(self) -> None:
        """Clear every accumulator and start a fresh session."""
        self._keystrokes: List[float] = []
        self._pauses_ms: List[float] = []
        self._errors = 0
        self._buffer = ""
        self._last_keystroke: Optional[float] = None
        self._start_time = self.clock()
        self._snapshot = TypingSnapshot()
        logger.debug("Typing session reset")

    @property
    def total_keystrokes(self) -> int:
        return len(self._keystrokes)

    @property
    def has_data(self) -> bool:
        return bool(self._keystrokes)

    @property
    def latest(self) -> TypingSnapshot:
        return self._snapshot

    def record_keystroke(self, timestamp: Optional[float] = None, key: Optional[str] = None) -> None:
        now = self.clock() if timestamp is None else timestamp

        if self._last_keystroke is not None:
            gap_ms = (now - self._last_keystroke) * 1000.0
            if gap_ms > self.config.PAUSE_THRESHOLD_MS:
                self._pauses_ms.append(gap_ms)

        self._keystrokes.append(now)
        if self.error_detector.is_error(key):
            self._errors += 1
        self._last_keystroke = now

    def update(self, buffer: str, keystroke: Optional[float] = None, key: Optional[str] = None) -> None:
        """
        Record a buffer change, plus a keystroke when one is given, then refresh.
        `keystroke` is the event timestamp in seconds.
        """
        if keystroke is not None or key is not None:
            self.record_keystroke(keystroke, key)
        self._buffer = buffer
        self.snapshot()

    def snapshot(self) -> TypingSnapshot:
        keystrokes = len(self._keystrokes)
        elapsed = self.clock() - self._start_time

        if keystrokes == 0 or elapsed <= 0:
            return self._snapshot

        words = len(self._buffer) / self.config.CHARS_PER_WORD
        minutes = elapsed / 60.0
        error_rate = self._errors / keystrokes * 100.0
        avg_pause = sum(self._pauses_ms) / len(self._pauses_ms) if self._pauses_ms else 0.0

        self._snapshot = TypingSnapshot(
            words_per_minute=round(words / minutes),
            accuracy_percent=round(max(0.0, 100.0 - error_rate)),
            error_rate_percent=round(error_rate, 1),
            avg_pause_ms=round(avg_pause),
            total_keystrokes=keystrokes,
            elapsed_seconds=round(elapsed),
        )
        return self._snapshot

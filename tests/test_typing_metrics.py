"""Tests for TypingMetricsAggregator."""

import random

import pytest

from conftest import FakeClock
from fatigue_model import (
    BackspaceErrorDetector,
    ErrorDetector,
    SimulatedErrorDetector,
    TypingMetricsAggregator,
    TypingSnapshot,
)


class NeverError(ErrorDetector):
    def is_error(self, key):
        return False


class EveryNth(ErrorDetector):
    def __init__(self, n):
        self.n = n
        self.count = 0

    def is_error(self, key):
        self.count += 1
        return self.count % self.n == 0


def make_aggregator(clock, detector=None):
    return TypingMetricsAggregator(error_detector=detector or NeverError(), clock=clock)


def type_text(aggregator, clock, text, gap=0.25):
    buffer = ""
    for char in text:
        clock.advance(gap)
        buffer += char
        aggregator.update(buffer, keystroke=clock(), key=char)
    return buffer


class TestDegenerateInputs:
    def test_no_keystrokes_returns_previous_snapshot(self, clock):
        aggregator = make_aggregator(clock)
        before = aggregator.snapshot()

        clock.advance(120)
        after = aggregator.snapshot()

        assert after is before
        assert after == TypingSnapshot()

    def test_zero_elapsed_returns_previous_snapshot(self, clock):
        aggregator = make_aggregator(clock)
        before = aggregator.latest

        aggregator.update("a", keystroke=clock(), key="a")

        assert aggregator.total_keystrokes == 1
        assert aggregator.snapshot() is before

    def test_buffer_change_without_keystroke_keeps_previous(self, clock):
        aggregator = make_aggregator(clock)
        before = aggregator.latest

        clock.advance(5)
        aggregator.update("pasted text")

        assert aggregator.latest is before
        assert not aggregator.has_data


class TestMetrics:
    def test_words_per_minute_uses_buffer_length(self, clock):
        aggregator = make_aggregator(clock)
        aggregator.update("x" * 49, keystroke=clock.advance(1), key="x")
        clock.advance(59)
        aggregator.update("x" * 50)

        snapshot = aggregator.snapshot()
        assert snapshot.words_per_minute == 10
        assert snapshot.elapsed_seconds == 60
        assert snapshot.total_keystrokes == 1

    def test_error_rate_and_accuracy(self, clock):
        aggregator = make_aggregator(clock, EveryNth(4))
        type_text(aggregator, clock, "abcdefgh")

        snapshot = aggregator.snapshot()
        assert snapshot.total_keystrokes == 8
        assert snapshot.error_rate_percent == 25.0
        assert snapshot.accuracy_percent == 75
        assert snapshot.accuracy_percent + snapshot.error_rate_percent == 100

    def test_pauses_only_count_long_gaps(self, clock):
        aggregator = make_aggregator(clock)
        aggregator.update("a", keystroke=clock.advance(10), key="a")    # first keystroke, no pause
        aggregator.update("ab", keystroke=clock.advance(0.25), key="b")  # below threshold
        aggregator.update("abc", keystroke=clock.advance(1.0), key="c")  # 1000 ms
        aggregator.update("abcd", keystroke=clock.advance(3.0), key="d")  # 3000 ms

        assert aggregator.snapshot().avg_pause_ms == 2000

    def test_pause_exactly_at_threshold_is_ignored(self, clock):
        aggregator = make_aggregator(clock)
        aggregator.update("a", keystroke=clock.advance(1), key="a")
        aggregator.update("ab", keystroke=clock.advance(0.5), key="b")

        assert aggregator.snapshot().avg_pause_ms == 0

    def test_keystroke_without_timestamp_uses_clock(self, clock):
        aggregator = make_aggregator(clock)
        clock.advance(2)
        aggregator.record_keystroke(key="a")
        clock.advance(1)
        aggregator.record_keystroke(key="b")

        assert aggregator.total_keystrokes == 2
        assert aggregator.snapshot().avg_pause_ms == 1000


class TestReset:
    def test_reset_gives_clean_slate(self, clock):
        aggregator = make_aggregator(clock, EveryNth(2))
        type_text(aggregator, clock, "hello world", gap=1.0)
        assert aggregator.latest.total_keystrokes == 11

        aggregator.reset()

        assert aggregator.snapshot() == TypingSnapshot()
        assert aggregator.total_keystrokes == 0
        assert not aggregator.has_data

    def test_reset_restarts_elapsed_time(self, clock):
        aggregator = make_aggregator(clock)
        type_text(aggregator, clock, "abc", gap=10)
        aggregator.reset()

        type_text(aggregator, clock, "xy", gap=1)

        snapshot = aggregator.snapshot()
        assert snapshot.elapsed_seconds == 2
        assert snapshot.total_keystrokes == 2
        assert snapshot.avg_pause_ms == 1000


class TestErrorDetectors:
    def test_backspace_detector(self):
        detector = BackspaceErrorDetector()
        assert detector.is_error("Backspace")
        assert detector.is_error("Delete")
        assert not detector.is_error("a")
        assert not detector.is_error(None)

    @pytest.mark.parametrize("probability, expected", [(0.0, False), (1.0, True)])
    def test_simulated_detector_extremes(self, probability, expected):
        detector = SimulatedErrorDetector(probability, rng=random.Random(7))
        assert all(detector.is_error("a") is expected for _ in range(50))

    def test_simulated_detector_is_seedable(self):
        first = SimulatedErrorDetector(0.5, rng=random.Random(42))
        second = SimulatedErrorDetector(0.5, rng=random.Random(42))
        assert [first.is_error(None) for _ in range(20)] == [second.is_error(None) for _ in range(20)]

    def test_backspace_errors_feed_accuracy(self):
        clock = FakeClock()
        aggregator = make_aggregator(clock, BackspaceErrorDetector())
        aggregator.update("a", keystroke=clock.advance(0.2), key="a")
        aggregator.update("", keystroke=clock.advance(0.2), key="Backspace")
        aggregator.update("b", keystroke=clock.advance(0.2), key="b")
        aggregator.update("bc", keystroke=clock.advance(0.2), key="c")

        snapshot = aggregator.snapshot()
        assert snapshot.error_rate_percent == 25.0
        assert snapshot.accuracy_percent == 75

"""
Fatigue Fusion Engine
Combines the facial and typing snapshots into a single FatigueAssessment.

The engine is a pure function of its two inputs and the fixed thresholds in
FatigueConfig: no counters, no smoothing, no dwell time. Either snapshot may be
None, in which case that stream contributes a tiredness score of 0.
"""

import logging
from typing import Dict, Optional, Tuple

from .config import DEFAULT_CONFIG, FatigueConfig
from .snapshots import (
    FacialSnapshot,
    FatigueAssessment,
    FatigueFactors,
    FatigueLevel,
    TypingSnapshot,
)

logger = logging.getLogger("fatigue_model.fusion")


RECOMMENDATIONS: Dict[FatigueLevel, Tuple[str, ...]] = {
    FatigueLevel.FOCUSED: (
        "Great focus! Keep it up",
        "Maintain good posture",
        "Stay hydrated",
    ),
    FatigueLevel.SLIGHTLY_TIRED: (
        "Consider taking a short break",
        "Do some eye exercises",
        "Check your lighting",
        "Adjust your posture",
    ),
    FatigueLevel.VERY_TIRED: (
        "Take a 10-15 minute break",
        "Get some fresh air",
        "Do stretching exercises",
        "Consider ending your session",
    ),
}


class FatigueFusionEngine:
    """
    Scores each stream independently (0 = rested, 100 = exhausted),
    averages the two sub-scores and classifies the result.
    """

    def __init__(self, config: Optional[FatigueConfig] = None):
        self.config = config or DEFAULT_CONFIG

    # ──────────────────────────────────────────────────────
    # Sub-scores
    # ──────────────────────────────────────────────────────

    def facial_score(self, facial: Optional[FacialSnapshot]) -> float:
        """Additive tiredness score from blink rate, eye openness and head pose."""
        if facial is None:
            return 0.0
        c = self.config
        score = 0.0

        # Frequent blinking
        if facial.blink_rate_per_minute > c.BLINK_RATE_HIGH:
            score += c.BLINK_RATE_HIGH_POINTS
        elif facial.blink_rate_per_minute > c.BLINK_RATE_ELEVATED:
            score += c.BLINK_RATE_ELEVATED_POINTS

        # Drooping eyelids
        if facial.eye_openness < c.EYE_OPENNESS_LOW:
            score += c.EYE_OPENNESS_LOW_POINTS
        elif facial.eye_openness < c.EYE_OPENNESS_REDUCED:
            score += c.EYE_OPENNESS_REDUCED_POINTS

        # Head tilt, either direction
        head = abs(facial.head_pose_degrees)
        if head > c.HEAD_POSE_SEVERE_DEG:
            score += c.HEAD_POSE_SEVERE_POINTS
        elif head > c.HEAD_POSE_MILD_DEG:
            score += c.HEAD_POSE_MILD_POINTS

        return min(score, 100.0)

    def typing_score(self, typing: Optional[TypingSnapshot]) -> float:
        """Additive tiredness score from speed, errors, pauses and accuracy."""
        if typing is None:
            return 0.0
        c = self.config
        score = 0.0

        # Slow typing only counts once there is enough input to judge speed
        if typing.total_keystrokes > c.MIN_KEYSTROKES_FOR_SPEED:
            if typing.words_per_minute < c.WPM_SLOW:
                score += c.WPM_SLOW_POINTS
            elif typing.words_per_minute < c.WPM_REDUCED:
                score += c.WPM_REDUCED_POINTS

        if typing.error_rate_percent > c.ERROR_RATE_HIGH:
            score += c.ERROR_RATE_HIGH_POINTS
        elif typing.error_rate_percent > c.ERROR_RATE_ELEVATED:
            score += c.ERROR_RATE_ELEVATED_POINTS

        if typing.avg_pause_ms > c.PAUSE_LONG_MS:
            score += c.PAUSE_LONG_POINTS
        elif typing.avg_pause_ms > c.PAUSE_EXTENDED_MS:
            score += c.PAUSE_EXTENDED_POINTS

        if typing.accuracy_percent < c.ACCURACY_LOW:
            score += c.ACCURACY_LOW_POINTS
        elif typing.accuracy_percent < c.ACCURACY_REDUCED:
            score += c.ACCURACY_REDUCED_POINTS

        return min(score, 100.0)

    # ──────────────────────────────────────────────────────
    # Combination
    # ──────────────────────────────────────────────────────

    def combine(self, facial_score: float, typing_score: float,
                facial_present: bool = True, typing_present: bool = True) -> float:
        if self.config.exclude_absent_streams:
            present = [s for s, ok in ((facial_score, facial_present), (typing_score, typing_present)) if ok]
            return sum(present) / len(present) if present else 0.0
        return (facial_score + typing_score) / 2

    def classify(self, overall: float) -> FatigueLevel:
        if overall < self.config.SLIGHTLY_TIRED_THRESHOLD:
            return FatigueLevel.FOCUSED
        if overall < self.config.VERY_TIRED_THRESHOLD:
            return FatigueLevel.SLIGHTLY_TIRED
        return FatigueLevel.VERY_TIRED

    def confidence(self, overall: float) -> float:
        """Peaks at the scoring midpoint, never drops below the floor."""
        c = self.config
        return max(c.CONFIDENCE_FLOOR, 100.0 - abs(overall - c.CONFIDENCE_PEAK_SCORE))

    def assess(self, facial: Optional[FacialSnapshot],
               typing: Optional[TypingSnapshot]) -> FatigueAssessment:
        facial_score = self.facial_score(facial)
        typing_score = self.typing_score(typing)
        overall = self.combine(facial_score, typing_score,
                               facial is not None, typing is not None)
        level = self.classify(overall)

        logger.debug(
            "facial=%.1f typing=%.1f overall=%.1f level=%s",
            facial_score, typing_score, overall, level.value,
        )

        return FatigueAssessment(
            level=level,
            confidence_percent=self.confidence(overall),
            factors=FatigueFactors(
                facial_alertness=max(0.0, 100.0 - facial_score),
                typing_performance=max(0.0, 100.0 - typing_score),
                overall=max(0.0, 100.0 - overall),
            ),
            recommendations=RECOMMENDATIONS[level],
            overall_score=overall,
        )


_default_engine = FatigueFusionEngine()


def assess(facial: Optional[FacialSnapshot],
           typing: Optional[TypingSnapshot]) -> FatigueAssessment:
    """Assess with the default thresholds."""
    return _default_engine.assess(facial, typing)

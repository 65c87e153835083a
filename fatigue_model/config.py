"""
Fatigue Model Configuration
Centralized thresholds for the aggregators and the fusion engine.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FatigueConfig:
    """Immutable thresholds shared by the aggregators and the fusion engine"""

    # Typing aggregation
    PAUSE_THRESHOLD_MS: float = 500.0
    CHARS_PER_WORD: int = 5
    SIMULATED_ERROR_PROBABILITY: float = 0.02

    # Blink tracking
    BLINK_REFRACTORY_MS: float = 200.0
    BLINK_RATE_CAP: float = 20.0
    BLINK_DECAY_WINDOW_SECONDS: float = 5.0
    BLINK_DECAY_STEP: float = 0.1
    SIMULATED_BLINK_PROBABILITY: float = 0.02

    # Facial scoring
    BLINK_RATE_HIGH: float = 20.0
    BLINK_RATE_ELEVATED: float = 15.0
    BLINK_RATE_HIGH_POINTS: int = 30
    BLINK_RATE_ELEVATED_POINTS: int = 15
    EYE_OPENNESS_LOW: float = 0.6
    EYE_OPENNESS_REDUCED: float = 0.8
    EYE_OPENNESS_LOW_POINTS: int = 40
    EYE_OPENNESS_REDUCED_POINTS: int = 20
    HEAD_POSE_SEVERE_DEG: float = 20.0
    HEAD_POSE_MILD_DEG: float = 10.0
    HEAD_POSE_SEVERE_POINTS: int = 30
    HEAD_POSE_MILD_POINTS: int = 15

    # Typing scoring
    MIN_KEYSTROKES_FOR_SPEED: int = 20
    WPM_SLOW: float = 20.0
    WPM_REDUCED: float = 30.0
    WPM_SLOW_POINTS: int = 25
    WPM_REDUCED_POINTS: int = 15
    ERROR_RATE_HIGH: float = 10.0
    ERROR_RATE_ELEVATED: float = 5.0
    ERROR_RATE_HIGH_POINTS: int = 30
    ERROR_RATE_ELEVATED_POINTS: int = 15
    PAUSE_LONG_MS: float = 3000.0
    PAUSE_EXTENDED_MS: float = 2000.0
    PAUSE_LONG_POINTS: int = 25
    PAUSE_EXTENDED_POINTS: int = 15
    ACCURACY_LOW: float = 80.0
    ACCURACY_REDUCED: float = 90.0
    ACCURACY_LOW_POINTS: int = 20
    ACCURACY_REDUCED_POINTS: int = 10

    # Classification
    SLIGHTLY_TIRED_THRESHOLD: float = 30.0
    VERY_TIRED_THRESHOLD: float = 60.0
    CONFIDENCE_FLOOR: float = 60.0
    CONFIDENCE_PEAK_SCORE: float = 50.0

    # When True, an absent stream is dropped from the averaging denominator
    # instead of contributing a zero score.
    exclude_absent_streams: bool = False


DEFAULT_CONFIG = FatigueConfig()

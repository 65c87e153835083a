"""
Value types passed between the aggregators, the fusion engine and the presentation layer.
Snapshots and assessments are immutable and are replaced wholesale on every tick.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple


class FatigueLevel(str, Enum):
    """Categorical fatigue levels"""
    FOCUSED = "focused"
    SLIGHTLY_TIRED = "slightly-tired"
    VERY_TIRED = "very-tired"

    @property
    def label(self) -> str:
        return self.value.replace("-", " ")


@dataclass(frozen=True)
class TypingSnapshot:
    """Keystroke-timing summary produced by the typing aggregator"""
    words_per_minute: float = 0.0
    accuracy_percent: float = 100.0
    error_rate_percent: float = 0.0
    avg_pause_ms: float = 0.0
    total_keystrokes: int = 0
    elapsed_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "words_per_minute": self.words_per_minute,
            "accuracy_percent": self.accuracy_percent,
            "error_rate_percent": self.error_rate_percent,
            "avg_pause_ms": self.avg_pause_ms,
            "total_keystrokes": self.total_keystrokes,
            "elapsed_seconds": self.elapsed_seconds,
        }


@dataclass(frozen=True)
class FacialSnapshot:
    """Facial/ocular summary produced by the facial aggregator"""
    blink_rate_per_minute: float = 0.0
    eye_openness: float = 1.0
    head_pose_degrees: float = 0.0
    last_blink_timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blink_rate_per_minute": round(self.blink_rate_per_minute, 1),
            "eye_openness": round(self.eye_openness, 3),
            "head_pose_degrees": round(self.head_pose_degrees, 1),
            "last_blink_timestamp": self.last_blink_timestamp,
        }


@dataclass(frozen=True)
class FatigueFactors:
    """Wellness factors (100 = best), the complement of the tiredness sub-scores"""
    facial_alertness: float
    typing_performance: float
    overall: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "facial_alertness": self.facial_alertness,
            "typing_performance": self.typing_performance,
            "overall": self.overall,
        }


@dataclass(frozen=True)
class FatigueAssessment:
    """The fusion engine's output"""
    level: FatigueLevel
    confidence_percent: float
    factors: FatigueFactors
    recommendations: Tuple[str, ...] = field(default_factory=tuple)
    overall_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "confidence_percent": round(self.confidence_percent),
            "factors": self.factors.to_dict(),
            "recommendations": list(self.recommendations),
            "overall_score": self.overall_score,
        }

"""
Lucid Fatigue Model Package
Fuses facial/ocular metrics and keystroke timing into a fatigue assessment.

Usage:
    import time

    from fatigue_model import (
        FacialMetricsAggregator, SimulatedFaceSource,
        TypingMetricsAggregator, FatigueFusionEngine,
    )

    facial = FacialMetricsAggregator(SimulatedFaceSource())
    typing = TypingMetricsAggregator()
    engine = FatigueFusionEngine()

    typing.update("hello", keystroke=time.time(), key="o")
    assessment = engine.assess(facial.tick(), typing.snapshot())
    print(assessment.to_dict())

Hardware sources live in fatigue_model.camera_source (OpenCV + MediaPipe) and
fatigue_model.keyboard_source (pynput); import them explicitly.
"""

from .config import DEFAULT_CONFIG, FatigueConfig
from .errors import FatigueModelError, SensorUnavailableError
from .facial_metrics import FaceObservation, FaceSource, FacialMetricsAggregator, SimulatedFaceSource
from .fusion import RECOMMENDATIONS, FatigueFusionEngine, assess
from .snapshots import FacialSnapshot, FatigueAssessment, FatigueFactors, FatigueLevel, TypingSnapshot
from .typing_metrics import (
    BackspaceErrorDetector,
    ErrorDetector,
    SimulatedErrorDetector,
    TypingMetricsAggregator,
)

__all__ = [
    "DEFAULT_CONFIG",
    "FatigueConfig",
    "FatigueModelError",
    "SensorUnavailableError",
    "FaceObservation",
    "FaceSource",
    "FacialMetricsAggregator",
    "SimulatedFaceSource",
    "RECOMMENDATIONS",
    "FatigueFusionEngine",
    "assess",
    "FacialSnapshot",
    "FatigueAssessment",
    "FatigueFactors",
    "FatigueLevel",
    "TypingSnapshot",
    "BackspaceErrorDetector",
    "ErrorDetector",
    "SimulatedErrorDetector",
    "TypingMetricsAggregator",
]

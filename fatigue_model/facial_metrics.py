"""
Facial Metrics Aggregator
Turns per-frame face observations into FacialSnapshots with a refractory-limited,
decaying blink rate.
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from .config import DEFAULT_CONFIG, FatigueConfig
from .snapshots import FacialSnapshot

logger = logging.getLogger("fatigue_model.facial")


@dataclass(frozen=True)
class FaceObservation:
    """What a face source reports for a single frame"""
    blink: bool
    eye_openness: float
    head_pose_degrees: float


# ============================================================================
# FACE SOURCES
# ============================================================================

class FaceSource(ABC):
    """
    A stream of per-frame face observations.
    observe() returns None when no face is visible in the current frame.
    """

    name = "face"

    def open(self) -> None:
        """Acquire the underlying device. Raises SensorUnavailableError."""

    @abstractmethod
    def observe(self) -> Optional[FaceObservation]:
        pass

    def close(self) -> None:
        """Release every acquired handle. Safe to call more than once."""

    def __enter__(self) -> "FaceSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SimulatedFaceSource(FaceSource):
    """Random stand-in for a camera pipeline."""

    name = "simulated"

    def __init__(self, blink_probability: float = DEFAULT_CONFIG.SIMULATED_BLINK_PROBABILITY,
                 rng: Optional[random.Random] = None):
        self.blink_probability = blink_probability
        self.rng = rng or random.Random()

    def observe(self) -> Optional[FaceObservation]:
        return FaceObservation(
            blink=self.rng.random() < self.blink_probability,
            eye_openness=0.7 + self.rng.random() * 0.3,
            head_pose_degrees=(self.rng.random() - 0.5) * 20,
        )


# ============================================================================
# AGGREGATOR
# ============================================================================

class FacialMetricsAggregator:
    """
    Keeps the last blink time and a blink rate bounded to [0, BLINK_RATE_CAP].

    A blink only counts when BLINK_REFRACTORY_MS have passed since the previous
    counted blink, so one eye closure spanning several frames increments once.
    With no blink for BLINK_DECAY_WINDOW_SECONDS the rate decays by
    BLINK_DECAY_STEP per tick.
    """

    def __init__(
        self,
        source: Optional[FaceSource] = None,
        config: Optional[FatigueConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.source = source
        self.config = config or DEFAULT_CONFIG
        self.clock = clock
        self.reset()

    def reset(self) -> None:
        self.blink_rate = 0.0
        self.last_blink = self.clock()
        self._snapshot = FacialSnapshot(last_blink_timestamp=self.last_blink)

    @property
    def latest(self) -> FacialSnapshot:
        return self._snapshot

    def tick(self) -> FacialSnapshot:
        """Sample the source once and fold the observation in."""
        if self.source is None:
            raise ValueError("FacialMetricsAggregator.tick() needs a face source")
        return self.apply(self.source.observe())

    def apply(self, observation: Optional[FaceObservation]) -> FacialSnapshot:
        now = self.clock()
        c = self.config

        if observation is not None and observation.blink:
            since_blink_ms = (now - self.last_blink) * 1000.0
            if since_blink_ms >= c.BLINK_REFRACTORY_MS:
                self.last_blink = now
                self.blink_rate = min(self.blink_rate + 1, c.BLINK_RATE_CAP)
                logger.debug("Blink registered (rate %.1f/min)", self.blink_rate)

        if now - self.last_blink > c.BLINK_DECAY_WINDOW_SECONDS:
            self.blink_rate = max(0.0, self.blink_rate - c.BLINK_DECAY_STEP)

        previous = self._snapshot
        if observation is not None:
            eye_openness = min(max(observation.eye_openness, 0.0), 1.0)
            head_pose = observation.head_pose_degrees
        else:
            eye_openness = previous.eye_openness
            head_pose = previous.head_pose_degrees

        self._snapshot = FacialSnapshot(
            blink_rate_per_minute=self.blink_rate,
            eye_openness=eye_openness,
            head_pose_degrees=head_pose,
            last_blink_timestamp=self.last_blink,
        )
        return self._snapshot

import os

# Service settings are read at import time; keep the test app headless.
os.environ.setdefault("AUTO_START", "false")
os.environ.setdefault("FACE_SOURCE", "simulated")
os.environ.setdefault("KEYBOARD_CAPTURE", "false")

from typing import List, Optional

import pytest

from fatigue_model import FaceObservation, FaceSource, SensorUnavailableError


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class ScriptedFaceSource(FaceSource):
    """Replays a fixed list of observations, then keeps returning the last one."""

    name = "scripted"

    def __init__(self, observations: Optional[List[Optional[FaceObservation]]] = None,
                 fail_on_open: bool = False, fail_after: Optional[int] = None):
        self.observations = list(observations or [None])
        self.fail_on_open = fail_on_open
        self.fail_after = fail_after
        self.calls = 0
        self.opened = False
        self.closed = False

    def open(self) -> None:
        if self.fail_on_open:
            raise SensorUnavailableError("scripted", "Unable to access webcam. Please check permissions.")
        self.opened = True

    def observe(self) -> Optional[FaceObservation]:
        if self.fail_after is not None and self.calls >= self.fail_after:
            raise SensorUnavailableError("scripted", "Camera stream ended")
        index = min(self.calls, len(self.observations) - 1)
        self.calls += 1
        return self.observations[index]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()

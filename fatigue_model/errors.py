"""Exceptions raised by the fatigue model package."""


class FatigueModelError(Exception):
    """Base class for fatigue model errors"""


class SensorUnavailableError(FatigueModelError):
    """A raw-signal source could not be acquired or stopped producing data."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(message)

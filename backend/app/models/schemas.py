"""
Pydantic Schemas for API request/response validation
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from fatigue_model import FacialSnapshot, TypingSnapshot


# ── Snapshot Schemas ─────────────────────────────────────
class TypingSnapshotSchema(BaseModel):
    words_per_minute: float = Field(default=0.0, ge=0)
    accuracy_percent: float = Field(default=100.0, ge=0, le=100)
    error_rate_percent: float = Field(default=0.0, ge=0, le=100)
    avg_pause_ms: float = Field(default=0.0, ge=0)
    total_keystrokes: int = Field(default=0, ge=0)
    elapsed_seconds: float = Field(default=0.0, ge=0)

    def to_snapshot(self) -> TypingSnapshot:
        return TypingSnapshot(**self.model_dump())


class FacialSnapshotSchema(BaseModel):
    blink_rate_per_minute: float = Field(default=0.0, ge=0)
    eye_openness: float = Field(default=1.0, ge=0, le=1)
    head_pose_degrees: float = 0.0
    last_blink_timestamp: float = 0.0

    def to_snapshot(self) -> FacialSnapshot:
        return FacialSnapshot(**self.model_dump())


# ── Request Schemas ──────────────────────────────────────
class AssessRequest(BaseModel):
    facial: Optional[FacialSnapshotSchema] = None
    typing: Optional[TypingSnapshotSchema] = None


class TypingInput(BaseModel):
    buffer: str
    key: Optional[str] = None
    keystroke: bool = True


# ── Response Schemas ─────────────────────────────────────
class FactorsResponse(BaseModel):
    facial_alertness: float
    typing_performance: float
    overall: float


class AssessmentResponse(BaseModel):
    level: str
    confidence_percent: int = Field(ge=60, le=100)
    factors: FactorsResponse
    recommendations: List[str]
    overall_score: float


class StreamStatus(BaseModel):
    state: str
    message: str = ""


class SessionOverview(BaseModel):
    monitoring: bool
    session_duration: str
    session_seconds: int
    words_per_minute: float
    accuracy_percent: float
    blink_rate_per_minute: float
    facial_status: StreamStatus
    typing_status: StreamStatus

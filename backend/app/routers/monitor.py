"""
Monitor Router
REST surface for the presentation layer: current assessment, session overview,
monitoring control and typing input.
"""

import logging

from fastapi import APIRouter, Depends

from fatigue_model import FatigueFusionEngine
from app.models.schemas import AssessmentResponse, AssessRequest, SessionOverview, TypingInput
from app.services.monitor_service import MonitorService, get_monitor_service

logger = logging.getLogger("lucid.monitor.router")

router = APIRouter(prefix="/api/monitor", tags=["Monitor"])

_engine = FatigueFusionEngine()


@router.get("/assessment", response_model=AssessmentResponse)
async def current_assessment(service: MonitorService = Depends(get_monitor_service)):
    """Latest fatigue assessment"""
    return service.assessment.to_dict()


@router.get("/session", response_model=SessionOverview)
async def session_overview(service: MonitorService = Depends(get_monitor_service)):
    return service.session_overview()


@router.get("/snapshots")
async def latest_snapshots(service: MonitorService = Depends(get_monitor_service)):
    """Latest per-stream snapshots; null when a stream is absent"""
    return {
        "facial": service.facial_snapshot.to_dict() if service.facial_snapshot else None,
        "typing": service.typing_snapshot.to_dict() if service.typing_snapshot else None,
    }


@router.post("/start", response_model=SessionOverview)
async def start_monitoring(service: MonitorService = Depends(get_monitor_service)):
    await service.start()
    return service.session_overview()


@router.post("/stop", response_model=SessionOverview)
async def stop_monitoring(service: MonitorService = Depends(get_monitor_service)):
    await service.stop()
    return service.session_overview()


@router.post("/typing", response_model=AssessmentResponse)
async def typing_input(body: TypingInput, service: MonitorService = Depends(get_monitor_service)):
    """Record a text-buffer change, with a keystroke unless keystroke=false"""
    if body.keystroke:
        service.handle_keystroke(body.buffer, key=body.key)
    else:
        service.handle_buffer(body.buffer)
    return service.assessment.to_dict()


@router.post("/typing/reset", response_model=AssessmentResponse)
async def reset_typing(service: MonitorService = Depends(get_monitor_service)):
    return service.reset_typing().to_dict()


@router.post("/assess", response_model=AssessmentResponse)
def assess_snapshots(body: AssessRequest):
    """Score the supplied snapshots without touching the live session"""
    facial = body.facial.to_snapshot() if body.facial else None
    typing = body.typing.to_snapshot() if body.typing else None
    return _engine.assess(facial, typing).to_dict()

"""Availability router - FastAPI endpoints for availability search and commitments"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...database import get_db
from .errors import AvailabilityError, CommitmentNotFound, SubjectNotFound
from .repository import DatabaseSubjectDirectory
from .schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    CommitmentCreate,
    CommitmentUpdate,
    DaySlotsRequest,
    MutualAvailabilityRequest,
    OpenWindowsResponse,
    RatedSlot,
    RecurringCommitment,
    RelationshipPairRequest,
    SchedulingPreferences,
    SuggestionsResponse,
)
from .service import AvailabilityOrchestrator, PreferenceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["Availability"])

OWNER_TYPES = {"relationship", "user"}


def get_orchestrator(request: Request, db: Session = Depends(get_db)) -> AvailabilityOrchestrator:
    """Dependency injection for AvailabilityOrchestrator"""
    return AvailabilityOrchestrator(
        registry=request.app.state.provider_registry,
        directory=DatabaseSubjectDirectory(db),
    )


def get_preference_service(db: Session = Depends(get_db)) -> PreferenceService:
    """Dependency injection for PreferenceService"""
    return PreferenceService(DatabaseSubjectDirectory(db))


def to_http_exception(error: AvailabilityError) -> HTTPException:
    status_code = 404 if isinstance(error, (SubjectNotFound, CommitmentNotFound)) else 400
    logger.info(f"ℹ️ Responding {status_code} {error.code}: {error.message}")
    return HTTPException(
        status_code=status_code,
        detail={
            "code": error.code,
            "message": error.message,
            "recovery_suggestion": error.recovery_suggestion,
        },
    )


def owner_key(owner_type: str, owner_id: str) -> str:
    if owner_type not in OWNER_TYPES:
        raise HTTPException(status_code=404, detail="Unknown preference owner type")
    return f"{owner_type}:{owner_id}"


# ============================================================================
# AVAILABILITY SEARCH
# ============================================================================


@router.post("/search", response_model=AvailabilityResponse)
async def search_availability(
    data: AvailabilityRequest,
    orchestrator: AvailabilityOrchestrator = Depends(get_orchestrator),
):
    """Rated open slots per day for a user, relationship or user list"""
    try:
        result = await orchestrator.get_availability(
            data.subject, data.start_date, data.end_date, data.duration_minutes, data.preferences
        )
    except AvailabilityError as e:
        raise to_http_exception(e) from None
    return AvailabilityResponse.from_result(result)


@router.post("/day", response_model=list[RatedSlot])
async def slots_for_day(
    data: DaySlotsRequest,
    orchestrator: AvailabilityOrchestrator = Depends(get_orchestrator),
):
    """Rated open slots for a single date"""
    try:
        return await orchestrator.get_slots_for_day(
            data.subject, data.day, data.duration_minutes, data.preferences
        )
    except AvailabilityError as e:
        raise to_http_exception(e) from None


@router.post("/mutual", response_model=AvailabilityResponse)
async def mutual_availability(
    data: MutualAvailabilityRequest,
    orchestrator: AvailabilityOrchestrator = Depends(get_orchestrator),
):
    """Slots when every listed user is free"""
    try:
        result = await orchestrator.find_mutual_availability(
            data.user_ids, data.start_date, data.end_date, data.duration_minutes, data.preferences
        )
    except AvailabilityError as e:
        raise to_http_exception(e) from None
    return AvailabilityResponse.from_result(result)


@router.post("/relationships", response_model=AvailabilityResponse)
async def relationship_pair_availability(
    data: RelationshipPairRequest,
    orchestrator: AvailabilityOrchestrator = Depends(get_orchestrator),
):
    """Slots that suit two couples"""
    first, second = data.relationship_ids
    try:
        result = await orchestrator.find_mutual_availability_for_relationships(
            first, second, data.start_date, data.end_date, data.duration_minutes
        )
    except AvailabilityError as e:
        raise to_http_exception(e) from None
    return AvailabilityResponse.from_result(result)


@router.post("/suggestions", response_model=SuggestionsResponse)
async def suggestions(
    data: AvailabilityRequest,
    orchestrator: AvailabilityOrchestrator = Depends(get_orchestrator),
):
    """Alternative slots: shorter duration, then the following two weeks"""
    try:
        slots = await orchestrator.suggest_alternatives(
            data.subject, data.start_date, data.end_date, data.duration_minutes, data.preferences
        )
    except AvailabilityError as e:
        raise to_http_exception(e) from None
    return SuggestionsResponse(slots=slots)


@router.post("/open-windows", response_model=OpenWindowsResponse)
async def open_windows(
    data: AvailabilityRequest,
    orchestrator: AvailabilityOrchestrator = Depends(get_orchestrator),
):
    """Free stretches inside preference windows (duration is ignored)"""
    try:
        days = await orchestrator.get_open_windows(
            data.subject, data.start_date, data.end_date, data.preferences
        )
    except AvailabilityError as e:
        raise to_http_exception(e) from None
    return OpenWindowsResponse(days=days)


# ============================================================================
# PREFERENCES & RECURRING COMMITMENTS
# ============================================================================


@router.get("/preferences/{owner_type}/{owner_id}", response_model=SchedulingPreferences)
async def get_preferences(
    owner_type: str,
    owner_id: str,
    service: PreferenceService = Depends(get_preference_service),
):
    return service.get_preferences(owner_key(owner_type, owner_id))


@router.put("/preferences/{owner_type}/{owner_id}", response_model=SchedulingPreferences)
async def put_preferences(
    owner_type: str,
    owner_id: str,
    data: SchedulingPreferences,
    service: PreferenceService = Depends(get_preference_service),
):
    return service.save_preferences(owner_key(owner_type, owner_id), data)


@router.post(
    "/preferences/{owner_type}/{owner_id}/commitments",
    response_model=RecurringCommitment,
    status_code=201,
)
async def add_commitment(
    owner_type: str,
    owner_id: str,
    data: CommitmentCreate,
    service: PreferenceService = Depends(get_preference_service),
):
    try:
        return service.add_commitment(owner_key(owner_type, owner_id), data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.patch(
    "/preferences/{owner_type}/{owner_id}/commitments/{commitment_id}",
    response_model=RecurringCommitment,
)
async def update_commitment(
    owner_type: str,
    owner_id: str,
    commitment_id: str,
    data: CommitmentUpdate,
    service: PreferenceService = Depends(get_preference_service),
):
    try:
        return service.update_commitment(owner_key(owner_type, owner_id), commitment_id, data)
    except AvailabilityError as e:
        raise to_http_exception(e) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.delete("/preferences/{owner_type}/{owner_id}/commitments/{commitment_id}")
async def delete_commitment(
    owner_type: str,
    owner_id: str,
    commitment_id: str,
    service: PreferenceService = Depends(get_preference_service),
):
    try:
        service.delete_commitment(owner_key(owner_type, owner_id), commitment_id)
    except AvailabilityError as e:
        raise to_http_exception(e) from None
    return {"message": "Commitment deleted"}

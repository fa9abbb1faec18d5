"""Registration, room allocation and document review API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from yatra.db.models import DocumentStatus, RoomStatus
from yatra.db.repository import get_store
from yatra.db.session import get_db
from yatra.schemas.allocation import (
    AssignRequest, DraftAllocation, DraftCommitRequest, FailureKind, OperationResult,
)
from yatra.schemas.registration import (
    CancelRequest, Registration as RegistrationSchema, RegistrationCreate, RegistrationList, RejectRequest,
)
from yatra.services.allocation import AllocationEngine
from yatra.services.audit import AuditService
from yatra.services.document_review import DocumentReviewService
from yatra.services.store import AllocationStore
from yatra.core.security import get_current_user

router = APIRouter()
audit_service = AuditService()


FAILURE_STATUS = {
    FailureKind.ROOM_UNAVAILABLE: status.HTTP_409_CONFLICT,
    FailureKind.REGISTRATION_NOT_ELIGIBLE: status.HTTP_409_CONFLICT,
    FailureKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    FailureKind.ROOM_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.REGISTRATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.ROOM_AMBIGUOUS: status.HTTP_400_BAD_REQUEST,
    FailureKind.REASON_REQUIRED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.CAPACITY_EXCEEDED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.EMPTY_SELECTION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.BED_NOT_FOUND: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.PERSON_ALREADY_PLACED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.COMMIT_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _raise_for_failure(result: OperationResult) -> None:
    if not result.ok:
        raise HTTPException(
            status_code=FAILURE_STATUS[result.failure],
            detail={"failure": result.failure.value, "message": result.message}
        )


def _finish(
    action: str,
    before: Optional[RegistrationSchema],
    result: OperationResult,
    db: Session
) -> OperationResult:
    """Raise for a refused operation, otherwise audit it and hand it back."""
    _raise_for_failure(result)
    if result.changeset is not None:
        audit_service.log_action(
            action=action,
            trip_id=result.registration.trip_id,
            registration_id=result.registration.id,
            user=get_current_user(),
            before_state=before.model_dump(mode="json") if before else None,
            after_state=result.registration.model_dump(mode="json"),
            metadata={
                "occupied_rooms": result.occupied_rooms,
                "freed_rooms": result.freed_rooms,
            },
            db=db,
        )
    return result


@router.post("/registrations", response_model=RegistrationSchema, status_code=status.HTTP_201_CREATED)
async def create_registration(
    registration: RegistrationCreate,
    store: AllocationStore = Depends(get_store)
):
    """Record a registration submitted by the public registration flow."""
    return store.add_registration(registration)


@router.get("/registrations", response_model=RegistrationList)
async def list_registrations(
    trip_id: Optional[str] = Query(None, description="Filter by yatra"),
    room_status: Optional[RoomStatus] = Query(None, description="Filter by room status"),
    document_status: Optional[DocumentStatus] = Query(None, description="Filter by document status"),
    store: AllocationStore = Depends(get_store)
):
    """List registrations of a yatra."""
    registrations = store.list_registrations(trip_id, room_status)
    if document_status is not None:
        registrations = [r for r in registrations if r.document_status == document_status]
    return RegistrationList(registrations=registrations, total=len(registrations))


@router.get("/registrations/{registration_id}", response_model=RegistrationSchema)
async def get_registration(
    registration_id: str,
    store: AllocationStore = Depends(get_store)
):
    """Get a specific registration by ID."""
    registration = store.get_registration(registration_id)
    if not registration:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Registration {registration_id} not found"
        )
    return registration


@router.post("/registrations/{registration_id}/assign", response_model=OperationResult)
async def assign_room(
    registration_id: str,
    request: AssignRequest,
    store: AllocationStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    """Assign a free room to a registration."""
    before = store.get_registration(registration_id)
    result = AllocationEngine(store).assign(registration_id, request.room_number, request.hotel_id)
    return _finish("assign", before, result, db)


@router.post("/registrations/{registration_id}/reassign", response_model=OperationResult)
async def reassign_room(
    registration_id: str,
    request: AssignRequest,
    store: AllocationStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    """Move a registration to another room, freeing the rooms it held."""
    before = store.get_registration(registration_id)
    result = AllocationEngine(store).reassign(registration_id, request.room_number, request.hotel_id)
    return _finish("reassign", before, result, db)


@router.post("/registrations/{registration_id}/unassign", response_model=OperationResult)
async def unassign_room(
    registration_id: str,
    store: AllocationStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    """Free every room a registration holds."""
    before = store.get_registration(registration_id)
    result = AllocationEngine(store).unassign(registration_id)
    return _finish("unassign", before, result, db)


@router.post("/registrations/{registration_id}/rooms", response_model=OperationResult)
async def commit_rooms(
    registration_id: str,
    request: DraftCommitRequest,
    store: AllocationStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    """Assign several rooms at once, with optional per-bed passenger placement."""
    before = store.get_registration(registration_id)
    if before is None:
        _raise_for_failure(OperationResult.failed(FailureKind.REGISTRATION_NOT_FOUND))
    hotel = store.get_hotel(request.hotel_id)
    if hotel is None:
        _raise_for_failure(OperationResult.failed(FailureKind.ROOM_NOT_FOUND, "Unknown hotel."))

    # Replay the operator's selection so every toggle rule applies
    draft = DraftAllocation.start(before, hotel.id)
    for room_number in request.room_numbers:
        room = hotel.find_room(room_number)
        if room is None:
            _raise_for_failure(OperationResult.failed(FailureKind.ROOM_NOT_FOUND, f"Room {room_number}."))
        _raise_for_failure(draft.toggle_room(room, hotel.id))
    for bed in request.beds:
        if bed.person_index is not None and bed.person_index >= draft.party_size:
            _raise_for_failure(OperationResult.failed(FailureKind.BED_NOT_FOUND, "Unknown passenger."))
        _raise_for_failure(draft.toggle_bed(bed.room_number, bed.bed_index, bed.person_index))

    result = AllocationEngine(store).commit_draft(draft)
    return _finish("commit_draft", before, result, db)


@router.post("/registrations/{registration_id}/approve", response_model=OperationResult)
async def approve_documents(
    registration_id: str,
    store: AllocationStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    """Approve uploaded documents."""
    before = store.get_registration(registration_id)
    result = DocumentReviewService(store).approve(registration_id)
    return _finish("approve", before, result, db)


@router.post("/registrations/{registration_id}/reject", response_model=OperationResult)
async def reject_documents(
    registration_id: str,
    request: RejectRequest,
    store: AllocationStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    """Reject uploaded documents with a reason."""
    before = store.get_registration(registration_id)
    result = DocumentReviewService(store).reject(registration_id, request.reason)
    return _finish("reject", before, result, db)


@router.post("/registrations/{registration_id}/cancel", response_model=OperationResult)
async def cancel_registration(
    registration_id: str,
    request: CancelRequest,
    store: AllocationStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    """Cancel a registration; it can no longer be assigned rooms."""
    before = store.get_registration(registration_id)
    result = DocumentReviewService(store).cancel(registration_id, request.reason)
    return _finish("cancel", before, result, db)

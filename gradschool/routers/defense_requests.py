import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from gradschool.db import get_db
from gradschool.route_logging import EndpointNameRoute
from gradschool.domain.defense_workflow import (
    DefenseWorkflowError,
    InvalidTransitionError,
    PanelSchedulingConflictError,
    UnresolvedCoordinatorError,
)
from gradschool.schemas import AaStatusUpdateRequest, DefenseRequestSubmitRequest, WorkflowTransitionRequest
from gradschool.services.aa_verification_service import update_aa_status
from gradschool.services.defense_workflow_service import (
    apply_workflow_action,
    get_defense_request_status,
    submit_defense_request,
)
from gradschool.services.rate_service import RateNotFoundError
from gradschool.services.student_record_sync_service import SyncTransactionFailure, sync_defense_to_student_record


router = APIRouter(prefix='/defense-requests', tags=['Defense Requests'], route_class=EndpointNameRoute)
logger = logging.getLogger(__name__)


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, UnresolvedCoordinatorError):
        return HTTPException(status_code=409, detail=exc.as_detail())
    if isinstance(exc, PanelSchedulingConflictError):
        return HTTPException(status_code=409, detail=exc.as_detail())
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, RateNotFoundError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, DefenseWorkflowError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, SyncTransactionFailure):
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=404, detail=str(exc))


@router.post('')
def submit(payload: DefenseRequestSubmitRequest, db: Session = Depends(get_db)):
    try:
        request = submit_defense_request(db, **payload.model_dump())
    except ValueError as exc:
        raise _http_error(exc) from exc
    return get_defense_request_status(db, request.id)


@router.get('/{defense_request_id}')
def defense_request_status(defense_request_id: int, db: Session = Depends(get_db)):
    try:
        return get_defense_request_status(db, defense_request_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post('/{defense_request_id}/transitions')
def transition(defense_request_id: int, payload: WorkflowTransitionRequest, db: Session = Depends(get_db)):
    changes = payload.changes.model_dump(exclude_none=True) if payload.changes else None
    try:
        return apply_workflow_action(
            db,
            defense_request_id,
            payload.action,
            actor_user_id=payload.actor_user_id,
            comment=payload.comment,
            changes=changes,
            coordinator_user_id=payload.coordinator_user_id,
        )
    except ValueError as exc:
        raise _http_error(exc) from exc


@router.post('/{defense_request_id}/aa-verification')
def aa_verification(defense_request_id: int, payload: AaStatusUpdateRequest, db: Session = Depends(get_db)):
    try:
        return update_aa_status(
            db,
            defense_request_id,
            payload.status,
            actor_user_id=payload.actor_user_id,
            remarks=payload.remarks,
        )
    except (ValueError, RateNotFoundError) as exc:
        raise _http_error(exc) from exc


@router.post('/{defense_request_id}/sync')
def sync(defense_request_id: int, db: Session = Depends(get_db)):
    try:
        return sync_defense_to_student_record(db, defense_request_id)
    except (ValueError, SyncTransactionFailure) as exc:
        raise _http_error(exc) from exc

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gradschool.core.defense_terms import normalize_defense_type
from gradschool.core.time_provider import TimeProvider, default_time_provider
from gradschool.domain.defense_workflow import (
    DefenseSnapshot,
    DefenseWorkflowError,
    NotifyEffect,
    PanelPolicy,
    Recipient,
    SyncStudentRecordsEffect,
    WorkflowAction,
    plan_workflow_transition,
)
from gradschool.models import (
    AaPaymentVerification,
    DefenseRequest,
    DefenseWorkflowEntry,
    User,
    WorkflowState,
)
from gradschool.services.coordinator_service import resolve_coordinator_id
from gradschool.services.defense_conflict_service import find_panel_scheduling_conflicts
from gradschool.services.notification_service import dispatch_notifications
from gradschool.services.rate_service import resolve_program_level
from gradschool.services.student_record_sync_service import SyncTransactionFailure, sync_defense_to_student_record


logger = logging.getLogger(__name__)


def _load_request(db: Session, defense_request_id: int, *, for_update: bool = False) -> DefenseRequest:
    query = db.query(DefenseRequest).filter(DefenseRequest.id == int(defense_request_id))
    if for_update:
        query = query.with_for_update()
    request = query.first()
    if not request:
        raise ValueError('Defense request not found')
    return request


def run_sync_effects(db: Session, defense_request_id: int, effects, *, time_provider: TimeProvider) -> dict | None:
    if not any(isinstance(effect, SyncStudentRecordsEffect) for effect in effects):
        return None
    try:
        return sync_defense_to_student_record(db, defense_request_id, time_provider=time_provider)
    except SyncTransactionFailure as exc:
        # The transition is already committed; the sync is retried separately.
        logger.error(
            'student_record_sync_deferred',
            extra={'defense_request_id': defense_request_id, 'error': str(exc)},
        )
        return {'defense_request_id': defense_request_id, 'synced': False, 'reason': 'sync_failed'}


def submit_defense_request(
    db: Session,
    *,
    school_id: str,
    first_name: str,
    last_name: str,
    program: str,
    defense_type: str,
    thesis_title: str = '',
    middle_name: str = '',
    defense_mode: str = 'face-to-face',
    submitted_by: int | None = None,
    adviser_user_id: int | None = None,
    defense_adviser: str = '',
    time_provider: TimeProvider = default_time_provider,
) -> DefenseRequest:
    normalized_type = normalize_defense_type(defense_type)
    if normalized_type is None:
        raise DefenseWorkflowError(f'Unknown defense type: {defense_type!r}')

    adviser_name = (defense_adviser or '').strip()
    if adviser_user_id and not adviser_name:
        adviser = db.query(User).filter(User.id == int(adviser_user_id)).first()
        adviser_name = adviser.name if adviser else ''

    now = time_provider.naive_now()
    request = DefenseRequest(
        submitted_by=submitted_by,
        first_name=first_name.strip(),
        middle_name=(middle_name or '').strip(),
        last_name=last_name.strip(),
        school_id=school_id.strip(),
        program=program.strip(),
        thesis_title=(thesis_title or '').strip(),
        defense_type=normalized_type.value,
        defense_mode=defense_mode,
        defense_adviser=adviser_name,
        adviser_user_id=adviser_user_id,
        workflow_state=WorkflowState.PENDING.value,
        submitted_at=now,
    )
    db.add(request)
    db.flush()
    db.add(DefenseWorkflowEntry(
        defense_request_id=request.id,
        action='submitted',
        from_state='',
        to_state=WorkflowState.PENDING.value,
        actor_user_id=submitted_by,
        created_at=now,
    ))
    db.commit()
    db.refresh(request)
    logger.info('defense_request_submitted', extra={'defense_request_id': request.id, 'defense_type': request.defense_type})
    dispatch_notifications(db, request, [NotifyEffect('defense_submitted', Recipient.ADVISER)])
    return request


def apply_workflow_action(
    db: Session,
    defense_request_id: int,
    action: WorkflowAction | str,
    *,
    actor_user_id: int | None = None,
    comment: str = '',
    changes: dict | None = None,
    coordinator_user_id: int | None = None,
    panel_policy: PanelPolicy | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    action = WorkflowAction(action)
    request = _load_request(db, defense_request_id, for_update=True)
    verification = (
        db.query(AaPaymentVerification)
        .filter(AaPaymentVerification.defense_request_id == request.id)
        .first()
    )
    snapshot = DefenseSnapshot.from_request(
        request,
        aa_status=verification.status if verification else None,
        honoraria_materialized=bool(verification and verification.honoraria_materialized_at),
    )

    resolved_coordinator_id = None
    scheduling_conflicts = []
    if action is WorkflowAction.APPROVE and snapshot.workflow_state is WorkflowState.ADVISER_REVIEW:
        resolved_coordinator_id = resolve_coordinator_id(db, request, explicit_coordinator_id=coordinator_user_id)
    elif action is WorkflowAction.APPROVE and snapshot.workflow_state is WorkflowState.COORDINATOR_REVIEW:
        scheduling_conflicts = find_panel_scheduling_conflicts(db, snapshot.with_changes(changes))

    try:
        plan = plan_workflow_transition(
            snapshot,
            action,
            program_level=resolve_program_level(db, request.program),
            resolved_coordinator_id=resolved_coordinator_id,
            changes=changes,
            comment=(comment or '').strip(),
            panel_policy=panel_policy,
            scheduling_conflicts=scheduling_conflicts,
        )
    except DefenseWorkflowError as exc:
        db.rollback()
        logger.warning(
            'defense_transition_rejected',
            extra={
                'defense_request_id': int(defense_request_id),
                'action': action.value,
                'error_type': type(exc).__name__,
                'error': str(exc),
            },
        )
        raise

    now = time_provider.naive_now()
    for key, value in plan.updates.items():
        setattr(request, key, value)
    request.last_status_updated_at = now
    request.last_status_updated_by = actor_user_id
    db.add(DefenseWorkflowEntry(
        defense_request_id=request.id,
        action=plan.action,
        from_state=plan.from_state,
        to_state=plan.to_state,
        comment=(comment or '').strip(),
        actor_user_id=actor_user_id,
        created_at=now,
    ))
    db.commit()
    db.refresh(request)
    logger.info(
        'defense_transition_applied',
        extra={
            'defense_request_id': request.id,
            'action': plan.action,
            'from_state': plan.from_state,
            'to_state': plan.to_state,
        },
    )

    sync_result = run_sync_effects(db, request.id, plan.effects, time_provider=time_provider)
    db.refresh(request)
    notifications = dispatch_notifications(db, request, plan.effects)
    return {
        'defense_request_id': request.id,
        'action': plan.action,
        'from_state': plan.from_state,
        'to_state': plan.to_state,
        'workflow_state': request.workflow_state,
        'adviser_status': request.adviser_status,
        'coordinator_status': request.coordinator_status,
        'coordinator_user_id': request.coordinator_user_id,
        'notifications_sent': notifications,
        'sync': sync_result,
    }


def get_defense_request_status(db: Session, defense_request_id: int) -> dict:
    request = _load_request(db, defense_request_id)
    verification = request.aa_verification
    return {
        'defense_request_id': request.id,
        'student_name': request.student_name,
        'school_id': request.school_id,
        'program': request.program,
        'defense_type': request.defense_type,
        'workflow_state': request.workflow_state,
        'adviser_status': request.adviser_status,
        'coordinator_status': request.coordinator_status,
        'coordinator_user_id': request.coordinator_user_id,
        'scheduled_date': str(request.scheduled_date) if request.scheduled_date else None,
        'amount': request.amount,
        'aa_status': verification.status if verification else None,
        'history': [
            {
                'action': entry.action,
                'from_state': entry.from_state,
                'to_state': entry.to_state,
                'comment': entry.comment,
                'actor_user_id': entry.actor_user_id,
                'created_at': entry.created_at.isoformat() if entry.created_at else None,
            }
            for entry in request.workflow_entries
        ],
    }

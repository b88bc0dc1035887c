from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from gradschool.core.time_provider import TimeProvider, default_time_provider
from gradschool.domain.defense_workflow import (
    DefenseSnapshot,
    DefenseWorkflowError,
    MaterializeHonorariaEffect,
    plan_aa_transition,
)
from gradschool.models import AaPaymentVerification, AaStatus, DefenseRequest
from gradschool.services.defense_workflow_service import run_sync_effects
from gradschool.services.honorarium_service import materialize_honoraria
from gradschool.services.notification_service import dispatch_notifications
from gradschool.services.rate_service import RateNotFoundError, RateResolver


logger = logging.getLogger(__name__)


def get_or_create_verification(
    db: Session,
    defense_request_id: int,
    *,
    assigned_to: int | None = None,
) -> AaPaymentVerification:
    verification = (
        db.query(AaPaymentVerification)
        .filter(AaPaymentVerification.defense_request_id == int(defense_request_id))
        .with_for_update()
        .first()
    )
    if verification is None:
        verification = AaPaymentVerification(
            defense_request_id=int(defense_request_id),
            status=AaStatus.PENDING.value,
            assigned_to=assigned_to,
            remarks='',
        )
        db.add(verification)
        db.flush()
    return verification


def compare_and_set_status(
    db: Session,
    verification_id: int,
    *,
    expected: str,
    new_status: str,
    values: dict | None = None,
) -> bool:
    """Move the row to ``new_status`` only if it still holds ``expected``."""
    result = db.execute(
        update(AaPaymentVerification)
        .where(
            AaPaymentVerification.id == int(verification_id),
            AaPaymentVerification.status == expected,
        )
        .values(status=new_status, **(values or {}))
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0) == 1


def update_aa_status(
    db: Session,
    defense_request_id: int,
    new_status: AaStatus | str,
    *,
    actor_user_id: int | None = None,
    remarks: str | None = None,
    resolver: RateResolver | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    """Record an AA verification status change.

    Honoraria are materialized on the first entry into ``ready_for_finance``
    only; the status change and the payment rows commit together.  Saving the
    current status again changes nothing and emits nothing.
    """
    request = (
        db.query(DefenseRequest)
        .filter(DefenseRequest.id == int(defense_request_id))
        .with_for_update()
        .first()
    )
    if not request:
        raise ValueError('Defense request not found')

    verification = get_or_create_verification(db, request.id, assigned_to=actor_user_id)
    previous = verification.status
    snapshot = DefenseSnapshot.from_request(
        request,
        aa_status=previous,
        honoraria_materialized=verification.honoraria_materialized_at is not None,
    )
    try:
        plan = plan_aa_transition(snapshot, new_status)
    except DefenseWorkflowError:
        db.rollback()
        raise

    base = {
        'defense_request_id': request.id,
        'from_status': plan.from_state,
        'to_status': plan.to_state,
    }
    if plan.noop:
        if remarks is not None and remarks != (verification.remarks or ''):
            verification.remarks = remarks
        db.commit()
        logger.info('aa_status_unchanged', extra={'defense_request_id': request.id, 'status': previous})
        return {**base, 'noop': True, 'honoraria': None, 'sync': None, 'notifications_sent': 0}

    now = time_provider.naive_now()
    values = {'updated_at': now}
    if remarks is not None:
        values['remarks'] = remarks
    if actor_user_id and not verification.assigned_to:
        values['assigned_to'] = int(actor_user_id)

    if not compare_and_set_status(db, verification.id, expected=previous, new_status=plan.to_state, values=values):
        db.rollback()
        logger.info(
            'aa_status_race_lost',
            extra={'defense_request_id': request.id, 'expected': previous, 'requested': plan.to_state},
        )
        return {**base, 'noop': True, 'honoraria': None, 'sync': None, 'notifications_sent': 0}

    db.expire(verification)

    honoraria = None
    try:
        if any(isinstance(effect, MaterializeHonorariaEffect) for effect in plan.effects):
            honoraria = materialize_honoraria(db, request, resolver=resolver, time_provider=time_provider)
            verification.honoraria_materialized_at = now
        db.commit()
    except RateNotFoundError as exc:
        db.rollback()
        logger.error(
            'aa_status_rolled_back',
            extra={
                'defense_request_id': int(defense_request_id),
                'requested': plan.to_state,
                'program_level': exc.program_level,
                'defense_type': exc.defense_type,
                'role': exc.role,
            },
        )
        raise

    logger.info(
        'aa_status_updated',
        extra={
            'defense_request_id': request.id,
            'from_status': plan.from_state,
            'to_status': plan.to_state,
            'honoraria_materialized': honoraria is not None,
        },
    )
    sync_result = run_sync_effects(db, request.id, plan.effects, time_provider=time_provider)
    db.refresh(request)
    notifications = dispatch_notifications(db, request, plan.effects)
    return {
        **base,
        'noop': False,
        'honoraria': honoraria,
        'sync': sync_result,
        'notifications_sent': notifications,
    }

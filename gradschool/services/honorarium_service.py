from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gradschool.core.time_provider import TimeProvider, default_time_provider
from gradschool.models import DefenseRequest, HonorariumPayment, Panelist
from gradschool.services.rate_service import RateResolver, SqlPaymentRateRepository, resolve_program_level


logger = logging.getLogger(__name__)


def _find_panelist_id(db: Session, name: str) -> int | None:
    row = db.query(Panelist.id).filter(Panelist.name == name).order_by(Panelist.id.asc()).first()
    return int(row[0]) if row else None


def materialize_honoraria(
    db: Session,
    request: DefenseRequest,
    *,
    resolver: RateResolver | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    """Create one HonorariumPayment per filled committee slot.

    Runs inside the caller's transaction and only flushes.  Every slot is
    priced before any row is written, so a missing rate leaves nothing behind.
    Slots that already have a payment are left untouched.
    """
    resolver = resolver or RateResolver(SqlPaymentRateRepository(db))
    resolved = resolver.resolve(
        request.program,
        request.defense_type,
        program_level=resolve_program_level(db, request.program),
    )

    priced = [(role, name, resolved.amount_for(role)) for role, name in request.committee_slots()]

    existing_roles = {
        role
        for (role,) in db.query(HonorariumPayment.role)
        .filter(HonorariumPayment.defense_request_id == request.id)
        .all()
    }
    payment_date = request.payment_date or time_provider.today()
    created = 0
    unresolved: list[str] = []

    for role, name, amount in priced:
        if role.value in existing_roles:
            logger.info(
                'honorarium_payment_exists',
                extra={'defense_request_id': request.id, 'role': role.value},
            )
            continue
        panelist_id = _find_panelist_id(db, name)
        if panelist_id is None:
            unresolved.append(name)
            logger.warning(
                'honorarium_panelist_unresolved',
                extra={'defense_request_id': request.id, 'role': role.value, 'panelist_name': name},
            )
        db.add(HonorariumPayment(
            defense_request_id=request.id,
            panelist_id=panelist_id,
            panelist_name=name,
            role=role.value,
            amount=amount,
            payment_status='pending',
            payment_date=payment_date,
            defense_date=request.scheduled_date,
            student_name=request.student_name,
            program=request.program,
            defense_type=resolved.defense_type.value,
        ))
        created += 1

    db.flush()
    total = sum(
        float(amount or 0)
        for (amount,) in db.query(HonorariumPayment.amount)
        .filter(HonorariumPayment.defense_request_id == request.id)
        .all()
    )
    request.amount = total
    db.flush()

    logger.info(
        'honorarium_payments_created',
        extra={
            'defense_request_id': request.id,
            'program_level': resolved.program_level.value,
            'defense_type': resolved.defense_type.value,
            'payments_created': created,
            'total_amount': total,
        },
    )
    return {
        'defense_request_id': request.id,
        'program_level': resolved.program_level.value,
        'defense_type': resolved.defense_type.value,
        'payments_created': created,
        'unresolved_panelists': unresolved,
        'total_amount': total,
    }

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from gradschool.core.defense_terms import classify_program_level
from gradschool.core.program_catalog import catalog_entry
from gradschool.core.time_provider import TimeProvider, default_time_provider, school_year_for
from gradschool.domain.defense_workflow import FINANCE_RELEASED_STATUSES
from gradschool.models import (
    AaPaymentVerification,
    CommitteeRole,
    DefenseRequest,
    HonorariumPayment,
    PanelistRecord,
    PanelistStudentRecord,
    Panelist,
    PaymentRecord,
    ProgramRecord,
    StudentRecord,
    WorkflowState,
)
from gradschool.route_logging import bind_defense_request
from gradschool.services.rate_service import ROLE_ORDER


logger = logging.getLogger(__name__)

DEFENSE_STATUS_COMPLETED = 'completed'


class SyncTransactionFailure(RuntimeError):
    def __init__(self, defense_request_id: int, cause: Exception | None = None):
        self.defense_request_id = defense_request_id
        self.cause = cause
        detail = f': {cause}' if cause else ''
        super().__init__(f'Student record sync rolled back for defense request {defense_request_id}{detail}')


class OrphanPanelistWarning(UserWarning):
    def __init__(self, *, honorarium_payment_id: int, panelist_id: int, panelist_name: str):
        self.honorarium_payment_id = honorarium_payment_id
        self.panelist_id = panelist_id
        self.panelist_name = panelist_name
        super().__init__(
            f'Honorarium payment {honorarium_payment_id} references missing panelist {panelist_id}; '
            f'using recorded name {panelist_name!r}'
        )


def _role_rank(role: str) -> int:
    try:
        return ROLE_ORDER[CommitteeRole(role)]
    except ValueError:
        return len(ROLE_ORDER)


def _upsert_program_record(db: Session, program: str, *, time_provider: TimeProvider) -> ProgramRecord:
    name = (program or '').strip()
    record = db.query(ProgramRecord).filter(ProgramRecord.name == name).first()
    entry = catalog_entry(name)
    if record is None:
        if entry:
            _, abbreviation, level = entry
        else:
            abbreviation, level = '', classify_program_level(name)
        record = ProgramRecord(
            name=name,
            program=abbreviation,
            category=level.category,
            program_level=level.value,
            date_edited=time_provider.today(),
        )
        db.add(record)
        db.flush()
        logger.info('program_record_created', extra={'program_record_id': record.id, 'program_level': level.value})
    elif not record.category and entry:
        record.category = entry[2].category
        record.program_level = entry[2].value
        db.flush()
    return record


def _upsert_student_record(
    db: Session,
    request: DefenseRequest,
    program_record: ProgramRecord,
    *,
    school_year: str,
) -> StudentRecord:
    record = (
        db.query(StudentRecord)
        .filter(StudentRecord.defense_request_id == request.id)
        .first()
    )
    if record is None:
        record = StudentRecord(student_id=request.school_id, defense_request_id=request.id)
        db.add(record)
    record.student_id = request.school_id
    record.program_record_id = program_record.id
    record.first_name = request.first_name or ''
    record.middle_name = request.middle_name or ''
    record.last_name = request.last_name or ''
    record.program = request.program or ''
    record.school_year = school_year
    record.defense_date = request.scheduled_date
    record.defense_type = request.defense_type or ''
    record.or_number = request.or_number or ''
    record.payment_date = request.payment_date
    db.flush()
    return record


def _upsert_panelist_record(db: Session, name: str, program_record_id: int, received_date) -> PanelistRecord:
    record = (
        db.query(PanelistRecord)
        .filter(PanelistRecord.name == name, PanelistRecord.program_record_id == program_record_id)
        .first()
    )
    if record is None:
        record = PanelistRecord(name=name, program_record_id=program_record_id, received_date=received_date)
        db.add(record)
        db.flush()
    elif received_date and not record.received_date:
        record.received_date = received_date
    return record


def _upsert_pivot(db: Session, panelist_record_id: int, student_record_id: int, role: str) -> bool:
    pivot = (
        db.query(PanelistStudentRecord)
        .filter(
            PanelistStudentRecord.panelist_record_id == panelist_record_id,
            PanelistStudentRecord.student_record_id == student_record_id,
        )
        .first()
    )
    if pivot is None:
        db.add(PanelistStudentRecord(
            panelist_record_id=panelist_record_id,
            student_record_id=student_record_id,
            role=role,
        ))
        db.flush()
        return True
    pivot.role = role
    return False


def _upsert_payment_record(
    db: Session,
    *,
    defense_request_id: int,
    student_record_id: int,
    panelist_record_id: int,
    amount: float,
    payment_date,
    school_year: str,
) -> bool:
    record = (
        db.query(PaymentRecord)
        .filter(
            PaymentRecord.student_record_id == student_record_id,
            PaymentRecord.panelist_record_id == panelist_record_id,
            PaymentRecord.defense_request_id == defense_request_id,
        )
        .first()
    )
    if record is None:
        db.add(PaymentRecord(
            student_record_id=student_record_id,
            panelist_record_id=panelist_record_id,
            defense_request_id=defense_request_id,
            amount=amount,
            payment_date=payment_date,
            school_year=school_year,
            defense_status=DEFENSE_STATUS_COMPLETED,
        ))
        db.flush()
        return True
    record.amount = amount
    record.payment_date = payment_date
    record.school_year = school_year
    return False


def _group_by_panelist(payments: list[HonorariumPayment]) -> list[dict]:
    # A person holding two slots on one committee gets one pivot (first role) and one summed payment.
    grouped: dict[str, dict] = {}
    for payment in sorted(payments, key=lambda p: (_role_rank(p.role), p.id)):
        name = (payment.panelist_name or '').strip()
        if name not in grouped:
            grouped[name] = {
                'name': name,
                'role': payment.role,
                'amount': 0.0,
                'payment_date': payment.payment_date,
                'payments': [],
            }
        grouped[name]['amount'] += float(payment.amount or 0)
        grouped[name]['payments'].append(payment)
    return list(grouped.values())


def _orphan_warnings(db: Session, payments: list[HonorariumPayment]) -> list[OrphanPanelistWarning]:
    warnings = []
    for payment in payments:
        if payment.panelist_id is None:
            continue
        exists = db.query(Panelist.id).filter(Panelist.id == payment.panelist_id).first()
        if exists:
            continue
        warning = OrphanPanelistWarning(
            honorarium_payment_id=payment.id,
            panelist_id=payment.panelist_id,
            panelist_name=payment.panelist_name,
        )
        logger.warning(
            'orphan_panelist',
            extra={
                'honorarium_payment_id': payment.id,
                'panelist_id': payment.panelist_id,
                'panelist_name': payment.panelist_name,
            },
        )
        warnings.append(warning)
    return warnings


def honoraria_materialized(db: Session, defense_request_id: int) -> bool:
    verification = (
        db.query(AaPaymentVerification)
        .filter(AaPaymentVerification.defense_request_id == defense_request_id)
        .first()
    )
    return bool(verification and verification.honoraria_materialized_at is not None)


def sync_defense_to_student_record(
    db: Session,
    defense_request_id: int,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    """Project a completed defense and its honoraria into the reporting tables.

    Safe to call repeatedly: every row is upserted on its natural key, so a
    second run updates in place instead of inserting.  The whole projection
    commits or rolls back as one unit.
    """
    request = db.query(DefenseRequest).filter(DefenseRequest.id == int(defense_request_id)).first()
    if not request:
        raise ValueError('Defense request not found')
    request_id = int(request.id)

    if request.workflow_state != WorkflowState.COMPLETED.value:
        logger.warning(
            'student_record_sync_skipped',
            extra={'defense_request_id': request_id, 'reason': 'defense_not_completed', 'workflow_state': request.workflow_state},
        )
        return {'defense_request_id': request_id, 'synced': False, 'reason': 'defense_not_completed'}
    if not honoraria_materialized(db, request_id):
        logger.warning(
            'student_record_sync_skipped',
            extra={'defense_request_id': request_id, 'reason': 'honoraria_not_materialized'},
        )
        return {'defense_request_id': request_id, 'synced': False, 'reason': 'honoraria_not_materialized'}

    logger.info('student_record_sync_start', extra={'defense_request_id': request_id})
    try:
        payments = (
            db.query(HonorariumPayment)
            .filter(HonorariumPayment.defense_request_id == request_id)
            .all()
        )
        warnings = _orphan_warnings(db, payments)
        reference_date = request.payment_date or request.scheduled_date or time_provider.today()
        school_year = school_year_for(reference_date)

        program_record = _upsert_program_record(db, request.program, time_provider=time_provider)
        student_record = _upsert_student_record(db, request, program_record, school_year=school_year)

        panelist_ids = []
        pivots_created = 0
        payments_created = 0
        for group in _group_by_panelist(payments):
            panelist_record = _upsert_panelist_record(
                db,
                group['name'],
                program_record.id,
                group['payment_date'],
            )
            panelist_ids.append(panelist_record.id)
            if _upsert_pivot(db, panelist_record.id, student_record.id, group['role']):
                pivots_created += 1
            if _upsert_payment_record(
                db,
                defense_request_id=request_id,
                student_record_id=student_record.id,
                panelist_record_id=panelist_record.id,
                amount=group['amount'],
                payment_date=group['payment_date'] or reference_date,
                school_year=school_year,
            ):
                payments_created += 1

        result = {
            'defense_request_id': request_id,
            'synced': True,
            'program_record_id': program_record.id,
            'student_record_id': student_record.id,
            'panelist_record_ids': panelist_ids,
            'pivots_created': pivots_created,
            'payment_records_created': payments_created,
            'warnings': [str(w) for w in warnings],
        }
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception('student_record_sync_failed', extra={'defense_request_id': request_id})
        raise SyncTransactionFailure(request_id, exc) from exc

    logger.info(
        'student_record_sync_complete',
        extra={
            'defense_request_id': request_id,
            'student_record_id': result['student_record_id'],
            'payment_records_created': payments_created,
            'orphan_panelists': len(warnings),
        },
    )
    return result


def sync_pending_defense_records(
    db: Session,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    """Retry the sync for every finance-released defense that has no student record yet."""
    synced_ids = select(StudentRecord.defense_request_id)
    candidates = (
        db.query(DefenseRequest.id)
        .join(AaPaymentVerification, AaPaymentVerification.defense_request_id == DefenseRequest.id)
        .filter(
            DefenseRequest.workflow_state == WorkflowState.COMPLETED.value,
            AaPaymentVerification.status.in_([status.value for status in FINANCE_RELEASED_STATUSES]),
            AaPaymentVerification.honoraria_materialized_at.is_not(None),
            DefenseRequest.id.not_in(synced_ids),
        )
        .order_by(DefenseRequest.id.asc())
        .all()
    )
    synced, failed = [], []
    for (defense_request_id,) in candidates:
        try:
            with bind_defense_request(defense_request_id):
                result = sync_defense_to_student_record(db, defense_request_id, time_provider=time_provider)
        except SyncTransactionFailure:
            failed.append(defense_request_id)
            continue
        if result.get('synced'):
            synced.append(defense_request_id)
    return {'candidates': len(candidates), 'synced': synced, 'failed': failed}

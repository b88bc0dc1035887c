import logging

from sqlalchemy.orm import Session

from gradschool.config import settings
from gradschool.core.program_catalog import PROGRAM_CATALOG
from gradschool.core.time_provider import default_time_provider
from gradschool.models import CommitteeRole, DefenseType, PaymentRate, ProgramLevel, ProgramRecord


logger = logging.getLogger(__name__)

_PANEL_MEMBERS = (
    CommitteeRole.PANEL_MEMBER_1,
    CommitteeRole.PANEL_MEMBER_2,
    CommitteeRole.PANEL_MEMBER_3,
    CommitteeRole.PANEL_MEMBER_4,
)


def _committee_rates(adviser: float, chair: float, member: float) -> dict[CommitteeRole, float]:
    rates = {CommitteeRole.ADVISER: adviser, CommitteeRole.PANEL_CHAIR: chair}
    rates.update({role: member for role in _PANEL_MEMBERS})
    return rates


DEFAULT_PAYMENT_RATES: dict[tuple[ProgramLevel, DefenseType], dict[CommitteeRole, float]] = {
    (ProgramLevel.MASTERAL, DefenseType.PROPOSAL): _committee_rates(3000, 2000, 1200),
    (ProgramLevel.MASTERAL, DefenseType.PRE_FINAL): _committee_rates(3700, 2500, 1500),
    (ProgramLevel.MASTERAL, DefenseType.FINAL): _committee_rates(1000, 1000, 1000),
    (ProgramLevel.DOCTORATE, DefenseType.PROPOSAL): _committee_rates(4000, 2800, 1800),
    (ProgramLevel.DOCTORATE, DefenseType.PRE_FINAL): _committee_rates(5000, 3500, 2100),
    (ProgramLevel.DOCTORATE, DefenseType.FINAL): _committee_rates(1000, 1000, 1000),
}


def _seed_payment_rates_if_needed(db: Session) -> dict:
    if db.query(PaymentRate).count() > 0:
        return {'seeded': False, 'reason': 'payment_rates_not_empty'}
    created = 0
    for (level, defense_type), rates in DEFAULT_PAYMENT_RATES.items():
        for role, amount in rates.items():
            db.add(PaymentRate(
                program_level=level.value,
                defense_type=defense_type.value,
                role=role.value,
                amount=float(amount),
            ))
            created += 1
    db.commit()
    logger.info('payment_rates_seeded count=%s', created)
    return {'seeded': True, 'count': created}


def _seed_program_records_if_needed(db: Session) -> dict:
    if db.query(ProgramRecord).count() > 0:
        return {'seeded': False, 'reason': 'program_records_not_empty'}
    today = default_time_provider.today()
    for name, abbreviation, level in PROGRAM_CATALOG:
        db.add(ProgramRecord(
            name=name,
            program=abbreviation,
            category=level.category,
            program_level=level.value,
            date_edited=today,
        ))
    db.commit()
    logger.info('program_records_seeded count=%s', len(PROGRAM_CATALOG))
    return {'seeded': True, 'count': len(PROGRAM_CATALOG)}


def run_bootstrap(db: Session) -> dict:
    if not settings.seed_reference_data:
        return {'ran': False, 'reason': 'seed_reference_data_disabled'}
    return {
        'ran': True,
        'payment_rates': _seed_payment_rates_if_needed(db),
        'program_records': _seed_program_records_if_needed(db),
    }

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, Protocol

from sqlalchemy.orm import Session

from gradschool.core.defense_terms import classify_program_level, normalize_defense_type
from gradschool.models import CommitteeRole, DefenseType, PaymentRate, ProgramLevel, ProgramRecord


logger = logging.getLogger(__name__)

ROLE_ORDER = {role: index for index, role in enumerate(CommitteeRole)}


class RateNotFoundError(LookupError):
    def __init__(self, *, program_level: str, defense_type: str, role: str | None = None):
        self.program_level = program_level
        self.defense_type = defense_type
        self.role = role
        target = f'{program_level} / {defense_type}'
        if role:
            target = f'{target} / {role}'
        super().__init__(f'No payment rate configured for {target}')


@dataclass(frozen=True)
class RateEntry:
    program_level: ProgramLevel
    defense_type: DefenseType
    role: CommitteeRole
    amount: float


@dataclass(frozen=True)
class ResolvedRates:
    program_level: ProgramLevel
    defense_type: DefenseType
    rates: tuple[tuple[CommitteeRole, float], ...]

    @property
    def total(self) -> float:
        return sum(amount for _, amount in self.rates)

    def amount_for(self, role: CommitteeRole) -> float:
        for rate_role, amount in self.rates:
            if rate_role is role:
                return amount
        raise RateNotFoundError(
            program_level=self.program_level.value,
            defense_type=self.defense_type.value,
            role=role.value,
        )


class PaymentRateRepository(Protocol):
    def rates_for(self, program_level: ProgramLevel, defense_type: DefenseType) -> list[RateEntry]:
        ...


class SqlPaymentRateRepository:
    def __init__(self, db: Session):
        self.db = db

    def rates_for(self, program_level: ProgramLevel, defense_type: DefenseType) -> list[RateEntry]:
        rows = (
            self.db.query(PaymentRate)
            .filter(
                PaymentRate.program_level == program_level.value,
                PaymentRate.defense_type == defense_type.value,
            )
            .all()
        )
        entries = []
        for row in rows:
            try:
                role = CommitteeRole(row.role)
            except ValueError:
                logger.warning('payment_rate_unknown_role', extra={'payment_rate_id': row.id, 'role': row.role})
                continue
            entries.append(RateEntry(program_level, defense_type, role, float(row.amount or 0)))
        return entries


class InMemoryPaymentRateRepository:
    def __init__(self, entries: Iterable[RateEntry] = ()):
        self._entries = list(entries)

    @classmethod
    def from_rows(cls, rows: Iterable[tuple[str, str, str, float]]) -> 'InMemoryPaymentRateRepository':
        return cls(
            RateEntry(ProgramLevel(level), DefenseType(defense_type), CommitteeRole(role), float(amount))
            for level, defense_type, role, amount in rows
        )

    def rates_for(self, program_level: ProgramLevel, defense_type: DefenseType) -> list[RateEntry]:
        return [
            entry
            for entry in self._entries
            if entry.program_level is program_level and entry.defense_type is defense_type
        ]


class RateResolver:
    """Resolves honorarium rates for a defense from the rate table."""

    def __init__(self, repository: PaymentRateRepository):
        self.repository = repository

    def resolve(
        self,
        program: str,
        defense_type: str,
        *,
        program_level: ProgramLevel | None = None,
    ) -> ResolvedRates:
        level = program_level or classify_program_level(program)
        normalized = normalize_defense_type(defense_type)
        if normalized is None:
            raise RateNotFoundError(program_level=level.value, defense_type=str(defense_type or ''))

        entries = self.repository.rates_for(level, normalized)
        if not entries:
            logger.error(
                'payment_rates_missing',
                extra={'program': program, 'program_level': level.value, 'defense_type': normalized.value},
            )
            raise RateNotFoundError(program_level=level.value, defense_type=normalized.value)

        ordered = sorted(entries, key=lambda entry: ROLE_ORDER[entry.role])
        return ResolvedRates(
            program_level=level,
            defense_type=normalized,
            rates=tuple((entry.role, entry.amount) for entry in ordered),
        )


def resolve_program_level(db: Session, program: str) -> ProgramLevel:
    """Stored ProgramRecord level first; keyword heuristic for unknown programs."""
    record = db.query(ProgramRecord).filter(ProgramRecord.name == (program or '').strip()).first()
    if record and record.program_level:
        try:
            return ProgramLevel(record.program_level)
        except ValueError:
            logger.warning('program_record_invalid_level', extra={'program_record_id': record.id})
    return classify_program_level(program)


def resolve_rates_for_program(db: Session, program: str, defense_type: str) -> ResolvedRates:
    resolver = RateResolver(SqlPaymentRateRepository(db))
    return resolver.resolve(program, defense_type, program_level=resolve_program_level(db, program))

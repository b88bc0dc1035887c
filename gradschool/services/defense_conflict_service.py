from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gradschool.domain.defense_workflow import DefenseSnapshot, ScheduleConflict, committee_name_key
from gradschool.models import CommitteeRole, DefenseRequest, WorkflowState


logger = logging.getLogger(__name__)


def _time_key(value: str | None) -> str:
    return ''.join(str(value or '').split()).lower()


def find_panel_scheduling_conflicts(db: Session, candidate: DefenseSnapshot) -> list[ScheduleConflict]:
    """Panel members of ``candidate`` already sitting on another scheduled defense in the same slot.

    A slot is the scheduled date plus start time. Without both there is
    nothing to compare and no conflicts are reported.
    """
    time_key = _time_key(candidate.scheduled_time)
    if candidate.scheduled_date is None or not time_key:
        return []

    selected: dict[str, tuple[CommitteeRole, str]] = {}
    for role, name in candidate.panel_members():
        selected.setdefault(committee_name_key(name), (role, name))
    if not selected:
        return []

    others = (
        db.query(DefenseRequest)
        .filter(
            DefenseRequest.id != candidate.id,
            DefenseRequest.scheduled_date == candidate.scheduled_date,
            DefenseRequest.workflow_state == WorkflowState.SCHEDULED.value,
        )
        .order_by(DefenseRequest.id.asc())
        .all()
    )

    conflicts: list[ScheduleConflict] = []
    for other in others:
        if _time_key(other.scheduled_time) != time_key:
            continue
        matched: set[str] = set()
        for other_role, other_name in other.committee_slots():
            key = committee_name_key(other_name)
            if other_role is CommitteeRole.ADVISER or key in matched or key not in selected:
                continue
            matched.add(key)
            role, name = selected[key]
            conflicts.append(ScheduleConflict(
                person=name,
                role=role.value,
                conflicting_role=other_role.value,
                defense_request_id=int(other.id),
                student_name=other.student_name,
            ))

    if conflicts:
        logger.info(
            'panel_schedule_conflicts_found',
            extra={
                'defense_request_id': candidate.id,
                'scheduled_date': str(candidate.scheduled_date),
                'conflicts': len(conflicts),
            },
        )
    return conflicts

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gradschool.models import AdviserCoordinator, AdviserStudent, DefenseRequest, User, UserRole


logger = logging.getLogger(__name__)


def _is_coordinator(db: Session, user_id: int | None) -> bool:
    if not user_id:
        return False
    row = db.query(User.id).filter(User.id == int(user_id), User.role == UserRole.COORDINATOR.value).first()
    return row is not None


def resolve_coordinator_id(
    db: Session,
    request: DefenseRequest,
    *,
    explicit_coordinator_id: int | None = None,
) -> int | None:
    """Coordinator who should review ``request`` once the adviser endorses it.

    Priority: the coordinator picked by the adviser, then the coordinator who
    assigned this student to the adviser, then the first coordinator linked
    to the adviser.  ``None`` means the endorsement cannot proceed.
    """
    if explicit_coordinator_id:
        if _is_coordinator(db, explicit_coordinator_id):
            return int(explicit_coordinator_id)
        logger.warning(
            'explicit_coordinator_rejected',
            extra={'defense_request_id': request.id, 'coordinator_id': explicit_coordinator_id},
        )

    adviser_id = int(request.adviser_user_id or 0)
    if adviser_id <= 0:
        return None

    if request.submitted_by:
        assignment = (
            db.query(AdviserStudent)
            .filter(
                AdviserStudent.adviser_id == adviser_id,
                AdviserStudent.student_id == int(request.submitted_by),
            )
            .first()
        )
        if assignment and _is_coordinator(db, assignment.requested_by):
            return int(assignment.requested_by)

    link = (
        db.query(AdviserCoordinator)
        .join(User, User.id == AdviserCoordinator.coordinator_id)
        .filter(
            AdviserCoordinator.adviser_id == adviser_id,
            User.role == UserRole.COORDINATOR.value,
        )
        .order_by(AdviserCoordinator.id.asc())
        .first()
    )
    if link:
        return int(link.coordinator_id)

    logger.info('coordinator_unresolved', extra={'defense_request_id': request.id, 'adviser_id': adviser_id})
    return None

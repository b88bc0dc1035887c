"""Transition planning for defense requests and AA payment verification.

Both planners are pure: they take a snapshot of the persisted state plus the
requested change and return a plan (target state, column updates and the
effects to run).  Nothing here touches the database, so edge-triggering and
idempotence can be exercised without a session.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any

from gradschool.config import settings
from gradschool.models import AaStatus, ApprovalStatus, CommitteeRole, ProgramLevel, WorkflowState


class WorkflowAction(str, Enum):
    RECEIVE = 'receive'
    APPROVE = 'approve'
    REJECT = 'reject'
    COMPLETE = 'complete'
    RESUBMIT = 'resubmit'
    CANCEL = 'cancel'


class Recipient(str, Enum):
    STUDENT = 'student'
    ADVISER = 'adviser'
    COORDINATOR = 'coordinator'
    PANEL = 'panel'
    AA = 'aa'


FORWARD_STATES = (
    WorkflowState.PENDING,
    WorkflowState.ADVISER_REVIEW,
    WorkflowState.COORDINATOR_REVIEW,
    WorkflowState.SCHEDULED,
    WorkflowState.COMPLETED,
)
TERMINAL_STATES = frozenset({WorkflowState.COMPLETED, WorkflowState.CANCELLED})
REVIEW_STATES = frozenset({WorkflowState.ADVISER_REVIEW, WorkflowState.COORDINATOR_REVIEW})

AA_STATUS_ORDER = (
    AaStatus.PENDING,
    AaStatus.READY_FOR_FINANCE,
    AaStatus.IN_PROGRESS,
    AaStatus.PAID,
    AaStatus.COMPLETED,
)
FINANCE_RELEASED_STATUSES = frozenset(AA_STATUS_ORDER[1:])

SCHEDULING_FIELDS = frozenset({
    'defense_chairperson',
    'defense_panelist1',
    'defense_panelist2',
    'defense_panelist3',
    'defense_panelist4',
    'scheduled_date',
    'scheduled_time',
    'defense_mode',
    'defense_venue',
})

PANEL_FIELDS = (
    ('defense_chairperson', CommitteeRole.PANEL_CHAIR),
    ('defense_panelist1', CommitteeRole.PANEL_MEMBER_1),
    ('defense_panelist2', CommitteeRole.PANEL_MEMBER_2),
    ('defense_panelist3', CommitteeRole.PANEL_MEMBER_3),
    ('defense_panelist4', CommitteeRole.PANEL_MEMBER_4),
)


def committee_name_key(name: str | None) -> str:
    """Comparison key for free-text committee names: collapsed whitespace, case-folded."""
    return ' '.join(str(name or '').split()).casefold()


class DefenseWorkflowError(ValueError):
    pass


class InvalidTransitionError(DefenseWorkflowError):
    def __init__(self, from_state: str, to_state: str, message: str | None = None):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(message or f'Cannot move defense request from {from_state} to {to_state}')


class TransitionRequirementError(DefenseWorkflowError):
    pass


@dataclass(frozen=True)
class ScheduleConflict:
    person: str
    role: str
    conflicting_role: str
    defense_request_id: int
    student_name: str = ''


class PanelSchedulingConflictError(TransitionRequirementError):
    def __init__(self, conflicts):
        self.conflicts = tuple(conflicts)
        people = sorted({conflict.person for conflict in self.conflicts})
        super().__init__(f'Already sitting on another defense at this schedule: {", ".join(people)}')

    def as_detail(self) -> dict:
        return {
            'error': 'panel_schedule_conflict',
            'message': str(self),
            'conflicts': [
                {
                    'person': conflict.person,
                    'role': conflict.role,
                    'conflicting_role': conflict.conflicting_role,
                    'defense_request_id': conflict.defense_request_id,
                    'student_name': conflict.student_name,
                }
                for conflict in self.conflicts
            ],
        }


class UnresolvedCoordinatorError(DefenseWorkflowError):
    def __init__(self, *, adviser_id: int | None, adviser_name: str, program: str):
        self.adviser_id = adviser_id
        self.adviser_name = adviser_name
        self.program = program
        super().__init__(
            f'Adviser {adviser_name or "?"} (id={adviser_id}) has no linked coordinator for program {program or "?"}'
        )

    def as_detail(self) -> dict:
        return {
            'error': 'unresolved_coordinator',
            'message': str(self),
            'adviser_id': self.adviser_id,
            'adviser_name': self.adviser_name,
            'program': self.program,
        }


@dataclass(frozen=True)
class PanelPolicy:
    enforce: bool = True
    masteral_minimum: int = 4
    doctorate_minimum: int = 5

    @classmethod
    def from_settings(cls) -> 'PanelPolicy':
        return cls(
            enforce=bool(settings.enforce_panel_size),
            masteral_minimum=int(settings.min_panel_size_masteral),
            doctorate_minimum=int(settings.min_panel_size_doctorate),
        )

    def minimum_for(self, level: ProgramLevel) -> int:
        if level is ProgramLevel.DOCTORATE:
            return self.doctorate_minimum
        return self.masteral_minimum


@dataclass(frozen=True)
class NotifyEffect:
    event_type: str
    recipient: Recipient


@dataclass(frozen=True)
class MaterializeHonorariaEffect:
    defense_request_id: int


@dataclass(frozen=True)
class SyncStudentRecordsEffect:
    defense_request_id: int


@dataclass(frozen=True)
class DefenseSnapshot:
    id: int
    workflow_state: WorkflowState
    program: str = ''
    adviser_user_id: int | None = None
    defense_adviser: str = ''
    coordinator_user_id: int | None = None
    defense_chairperson: str = ''
    defense_panelist1: str = ''
    defense_panelist2: str = ''
    defense_panelist3: str = ''
    defense_panelist4: str = ''
    scheduled_date: date | None = None
    scheduled_time: str = ''
    defense_mode: str = ''
    defense_venue: str = ''
    aa_status: AaStatus | None = None
    honoraria_materialized: bool = False

    @classmethod
    def from_request(cls, request, *, aa_status: str | None = None, honoraria_materialized: bool = False) -> 'DefenseSnapshot':
        return cls(
            id=int(request.id),
            workflow_state=WorkflowState(request.workflow_state or WorkflowState.PENDING.value),
            program=request.program or '',
            adviser_user_id=request.adviser_user_id,
            defense_adviser=request.defense_adviser or '',
            coordinator_user_id=request.coordinator_user_id,
            defense_chairperson=request.defense_chairperson or '',
            defense_panelist1=request.defense_panelist1 or '',
            defense_panelist2=request.defense_panelist2 or '',
            defense_panelist3=request.defense_panelist3 or '',
            defense_panelist4=request.defense_panelist4 or '',
            scheduled_date=request.scheduled_date,
            scheduled_time=request.scheduled_time or '',
            defense_mode=request.defense_mode or '',
            defense_venue=request.defense_venue or '',
            aa_status=AaStatus(aa_status) if aa_status else None,
            honoraria_materialized=honoraria_materialized,
        )

    def with_changes(self, changes: dict[str, Any] | None) -> 'DefenseSnapshot':
        allowed = {key: value for key, value in (changes or {}).items() if key in SCHEDULING_FIELDS}
        return replace(self, **allowed) if allowed else self

    def panel_members(self) -> list[tuple[CommitteeRole, str]]:
        members = []
        for field_name, role in PANEL_FIELDS:
            name = (getattr(self, field_name) or '').strip()
            if name:
                members.append((role, name))
        return members

    @property
    def panel_size(self) -> int:
        # Distinct people: a chair who also fills a panelist slot counts once.
        return len({committee_name_key(name) for _, name in self.panel_members()})

    def duplicate_panelists(self) -> list[str]:
        seen: dict[str, str] = {}
        duplicates = []
        for role, name in self.panel_members():
            if role is CommitteeRole.PANEL_CHAIR:
                continue
            key = committee_name_key(name)
            if key in seen and seen[key] not in duplicates:
                duplicates.append(seen[key])
            seen.setdefault(key, name)
        return duplicates


@dataclass(frozen=True)
class TransitionPlan:
    action: str
    from_state: str
    to_state: str
    updates: dict[str, Any] = field(default_factory=dict)
    effects: tuple = ()
    noop: bool = False


def assert_legal_transition(from_state: WorkflowState, to_state: WorkflowState) -> None:
    if from_state in TERMINAL_STATES:
        raise InvalidTransitionError(from_state.value, to_state.value, f'Defense request is already {from_state.value}')
    if to_state is WorkflowState.CANCELLED:
        return
    if to_state is WorkflowState.REVISION_PENDING:
        if from_state not in REVIEW_STATES:
            raise InvalidTransitionError(from_state.value, to_state.value)
        return
    if from_state is WorkflowState.REVISION_PENDING:
        if to_state is not WorkflowState.PENDING:
            raise InvalidTransitionError(from_state.value, to_state.value)
        return
    if to_state not in FORWARD_STATES:
        raise InvalidTransitionError(from_state.value, to_state.value)
    if FORWARD_STATES.index(to_state) != FORWARD_STATES.index(from_state) + 1:
        raise InvalidTransitionError(from_state.value, to_state.value)


def _target_state(action: WorkflowAction, current: WorkflowState) -> WorkflowState:
    if action is WorkflowAction.RECEIVE:
        return WorkflowState.ADVISER_REVIEW
    if action is WorkflowAction.APPROVE:
        if current is WorkflowState.ADVISER_REVIEW:
            return WorkflowState.COORDINATOR_REVIEW
        if current is WorkflowState.COORDINATOR_REVIEW:
            return WorkflowState.SCHEDULED
        raise InvalidTransitionError(current.value, 'approved', f'Nothing to approve while {current.value}')
    if action is WorkflowAction.COMPLETE:
        return WorkflowState.COMPLETED
    if action is WorkflowAction.REJECT:
        return WorkflowState.REVISION_PENDING
    if action is WorkflowAction.RESUBMIT:
        return WorkflowState.PENDING
    return WorkflowState.CANCELLED


def plan_workflow_transition(
    snapshot: DefenseSnapshot,
    action: WorkflowAction | str,
    *,
    program_level: ProgramLevel,
    resolved_coordinator_id: int | None = None,
    changes: dict[str, Any] | None = None,
    comment: str = '',
    panel_policy: PanelPolicy | None = None,
    scheduling_conflicts: tuple[ScheduleConflict, ...] | list[ScheduleConflict] = (),
) -> TransitionPlan:
    action = WorkflowAction(action)
    policy = panel_policy or PanelPolicy.from_settings()
    current = snapshot.workflow_state

    extra = dict(changes or {})
    unknown = set(extra) - SCHEDULING_FIELDS
    if unknown:
        raise TransitionRequirementError(f'Fields cannot be changed by a transition: {", ".join(sorted(unknown))}')
    if extra and action not in (WorkflowAction.APPROVE, WorkflowAction.COMPLETE):
        raise TransitionRequirementError('Scheduling details can only be set when approving or completing')

    target = _target_state(action, current)
    assert_legal_transition(current, target)

    candidate = snapshot.with_changes(extra)
    updates: dict[str, Any] = dict(extra)
    updates['workflow_state'] = target.value
    effects: list = []

    if target is WorkflowState.ADVISER_REVIEW:
        updates['adviser_status'] = ApprovalStatus.PENDING.value
        effects.append(NotifyEffect('adviser_review_started', Recipient.STUDENT))

    elif target is WorkflowState.COORDINATOR_REVIEW:
        if not candidate.adviser_user_id:
            raise TransitionRequirementError('An adviser must be linked before coordinator review')
        if not resolved_coordinator_id:
            raise UnresolvedCoordinatorError(
                adviser_id=candidate.adviser_user_id,
                adviser_name=candidate.defense_adviser,
                program=candidate.program,
            )
        updates['adviser_status'] = ApprovalStatus.APPROVED.value
        updates['coordinator_status'] = ApprovalStatus.PENDING.value
        updates['coordinator_user_id'] = int(resolved_coordinator_id)
        if comment:
            updates['adviser_comments'] = comment
        effects.append(NotifyEffect('adviser_approved', Recipient.STUDENT))
        effects.append(NotifyEffect('assigned_to_coordinator', Recipient.COORDINATOR))

    elif target is WorkflowState.SCHEDULED:
        if not (candidate.defense_chairperson or '').strip():
            raise TransitionRequirementError('A panel chair is required before scheduling')
        duplicates = candidate.duplicate_panelists()
        if duplicates:
            raise TransitionRequirementError(
                f'The same person cannot hold more than one panelist slot: {", ".join(duplicates)}'
            )
        minimum = policy.minimum_for(program_level)
        if policy.enforce and candidate.panel_size < minimum:
            raise TransitionRequirementError(
                f'{program_level.value} defenses need at least {minimum} panel members including the chair '
                f'(have {candidate.panel_size})'
            )
        if scheduling_conflicts:
            raise PanelSchedulingConflictError(scheduling_conflicts)
        updates['coordinator_status'] = ApprovalStatus.APPROVED.value
        if comment:
            updates['coordinator_comments'] = comment
        effects.append(NotifyEffect('defense_scheduled', Recipient.STUDENT))
        effects.append(NotifyEffect('defense_scheduled', Recipient.ADVISER))
        effects.append(NotifyEffect('panel_invitation', Recipient.PANEL))

    elif target is WorkflowState.COMPLETED:
        if candidate.scheduled_date is None:
            raise TransitionRequirementError('A scheduled date is required before completing a defense')
        effects.append(NotifyEffect('defense_completed', Recipient.STUDENT))
        effects.append(NotifyEffect('defense_completed', Recipient.AA))
        if candidate.honoraria_materialized and candidate.aa_status in FINANCE_RELEASED_STATUSES:
            effects.append(SyncStudentRecordsEffect(snapshot.id))

    elif target is WorkflowState.REVISION_PENDING:
        if current is WorkflowState.ADVISER_REVIEW:
            updates['adviser_status'] = ApprovalStatus.REJECTED.value
            updates['adviser_comments'] = comment
            effects.append(NotifyEffect('adviser_rejected', Recipient.STUDENT))
        else:
            updates['coordinator_status'] = ApprovalStatus.REJECTED.value
            updates['coordinator_comments'] = comment
            effects.append(NotifyEffect('coordinator_rejected', Recipient.STUDENT))
            effects.append(NotifyEffect('coordinator_rejected', Recipient.ADVISER))

    elif target is WorkflowState.PENDING:
        updates['adviser_status'] = ApprovalStatus.PENDING.value
        updates['coordinator_status'] = ApprovalStatus.PENDING.value
        effects.append(NotifyEffect('defense_resubmitted', Recipient.ADVISER))

    else:
        effects.append(NotifyEffect('defense_cancelled', Recipient.STUDENT))
        effects.append(NotifyEffect('defense_cancelled', Recipient.ADVISER))

    return TransitionPlan(
        action=action.value,
        from_state=current.value,
        to_state=target.value,
        updates=updates,
        effects=tuple(effects),
    )


def plan_aa_transition(
    snapshot: DefenseSnapshot,
    new_status: AaStatus | str,
) -> TransitionPlan:
    """Plan an AA verification status change.

    Re-saving the current status yields a ``noop`` plan with no effects.
    Otherwise the status may only advance to the next step.  First entry into
    ``ready_for_finance`` materializes honoraria, and also syncs student
    records when the defense itself is already completed.
    """
    target = AaStatus(new_status)
    current = snapshot.aa_status or AaStatus.PENDING

    if target is current:
        return TransitionPlan(action='aa_status', from_state=current.value, to_state=target.value, noop=True)

    if AA_STATUS_ORDER.index(target) != AA_STATUS_ORDER.index(current) + 1:
        raise InvalidTransitionError(current.value, target.value)

    effects: list = []
    if target is AaStatus.READY_FOR_FINANCE and not snapshot.honoraria_materialized:
        effects.append(MaterializeHonorariaEffect(snapshot.id))
        if snapshot.workflow_state is WorkflowState.COMPLETED:
            effects.append(SyncStudentRecordsEffect(snapshot.id))
    effects.append(NotifyEffect(f'aa_{target.value}', Recipient.STUDENT))

    return TransitionPlan(
        action='aa_status',
        from_state=current.value,
        to_state=target.value,
        updates={'status': target.value},
        effects=tuple(effects),
    )

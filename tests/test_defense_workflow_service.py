import tempfile
import unittest
from datetime import date
from pathlib import Path

from freezegun import freeze_time
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gradschool.db import Base
from gradschool.domain.defense_workflow import (
    DefenseWorkflowError,
    InvalidTransitionError,
    PanelPolicy,
    PanelSchedulingConflictError,
    TransitionRequirementError,
    UnresolvedCoordinatorError,
)
from gradschool.models import (
    AaPaymentVerification,
    AdviserCoordinator,
    AdviserStudent,
    DefenseRequest,
    DefenseWorkflowEntry,
    HonorariumPayment,
    Panelist,
    PanelistRecord,
    PanelistStudentRecord,
    PaymentRate,
    PaymentRecord,
    ProgramRecord,
    StudentRecord,
    User,
)
from gradschool.services.aa_verification_service import update_aa_status
from gradschool.services.bootstrap_service import run_bootstrap
from gradschool.services.defense_workflow_service import (
    apply_workflow_action,
    get_defense_request_status,
    submit_defense_request,
)
from gradschool.services.notification_service import NotificationDispatcher, set_notification_dispatcher


POLICY = PanelPolicy(enforce=True, masteral_minimum=4, doctorate_minimum=5)

SCHEDULE = {
    'defense_chairperson': 'Dr. Cruz',
    'defense_panelist1': 'Dr. Santos',
    'defense_panelist2': 'Dr. Lim',
    'defense_panelist3': 'Dr. Tan',
    'scheduled_date': date(2026, 3, 14),
    'scheduled_time': '09:00',
    'defense_venue': 'GS Conference Room',
}


class RecordingDispatcher(NotificationDispatcher):
    def __init__(self):
        self.sent = []

    def dispatch(self, event_type, defense_request, recipient):
        self.sent.append((event_type, recipient.role, recipient.user_id))


class DefenseWorkflowServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_defense_workflow_service.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.dispatcher = RecordingDispatcher()
        self._previous_dispatcher = set_notification_dispatcher(self.dispatcher)
        db = self._session_factory()
        try:
            for table in (
                PaymentRecord,
                PanelistStudentRecord,
                PanelistRecord,
                StudentRecord,
                ProgramRecord,
                HonorariumPayment,
                AaPaymentVerification,
                DefenseWorkflowEntry,
                DefenseRequest,
                PaymentRate,
                Panelist,
                AdviserStudent,
                AdviserCoordinator,
                User,
            ):
                db.query(table).delete()
            db.commit()
            run_bootstrap(db)

            student = User(name='Ana Santos', role='student', email='ana@example.edu')
            adviser = User(name='Dr. Reyes', role='faculty', email='reyes@example.edu')
            coordinator = User(name='Prof. Garcia', role='coordinator', email='garcia@example.edu')
            lonely_adviser = User(name='Dr. Alone', role='faculty')
            db.add_all([student, adviser, coordinator, lonely_adviser])
            db.commit()
            db.add(AdviserCoordinator(adviser_id=adviser.id, coordinator_id=coordinator.id))
            db.commit()
            self.student_id = int(student.id)
            self.adviser_id = int(adviser.id)
            self.coordinator_id = int(coordinator.id)
            self.lonely_adviser_id = int(lonely_adviser.id)
        finally:
            db.close()

    def tearDown(self):
        set_notification_dispatcher(self._previous_dispatcher)

    def _submit(self, db, *, adviser_id=None, defense_type='Pre-final') -> int:
        request = submit_defense_request(
            db,
            school_id='2020-00123',
            first_name='Ana',
            last_name='Santos',
            program='Master in Information Technology',
            thesis_title='Edge caching for rural schools',
            defense_type=defense_type,
            submitted_by=self.student_id,
            adviser_user_id=adviser_id or self.adviser_id,
        )
        return int(request.id)

    def test_submit_normalizes_type_and_fills_adviser_name(self):
        db = self._session_factory()
        try:
            request_id = self._submit(db, defense_type='PRE-FINAL')
            status = get_defense_request_status(db, request_id)
        finally:
            db.close()
        self.assertEqual(status['defense_type'], 'Pre-final')
        self.assertEqual(status['workflow_state'], 'pending')
        self.assertEqual(status['history'][0]['action'], 'submitted')
        self.assertIn(('defense_submitted', 'adviser', self.adviser_id), self.dispatcher.sent)

        db = self._session_factory()
        try:
            self.assertEqual(db.query(DefenseRequest).one().defense_adviser, 'Dr. Reyes')
        finally:
            db.close()

    def test_submit_rejects_unknown_type(self):
        db = self._session_factory()
        try:
            with self.assertRaises(DefenseWorkflowError):
                self._submit(db, defense_type='Colloquium')
            self.assertEqual(db.query(DefenseRequest).count(), 0)
        finally:
            db.close()

    @freeze_time('2026-03-20 02:00:00')
    def test_full_lifecycle_through_student_records(self):
        db = self._session_factory()
        try:
            request_id = self._submit(db)
            apply_workflow_action(db, request_id, 'receive', actor_user_id=self.adviser_id, panel_policy=POLICY)
            endorsed = apply_workflow_action(db, request_id, 'approve', actor_user_id=self.adviser_id, panel_policy=POLICY)
            self.assertEqual(endorsed['workflow_state'], 'coordinator-review')
            self.assertEqual(endorsed['coordinator_user_id'], self.coordinator_id)
            self.assertIn(('assigned_to_coordinator', 'coordinator', self.coordinator_id), self.dispatcher.sent)

            scheduled = apply_workflow_action(
                db,
                request_id,
                'approve',
                actor_user_id=self.coordinator_id,
                changes=SCHEDULE,
                panel_policy=POLICY,
            )
            self.assertEqual(scheduled['workflow_state'], 'scheduled')

            aa = update_aa_status(db, request_id, 'ready_for_finance')
            self.assertEqual(aa['honoraria']['payments_created'], 5)
            self.assertIsNone(aa['sync'])
            self.assertEqual(db.query(StudentRecord).count(), 0)

            completed = apply_workflow_action(db, request_id, 'complete', actor_user_id=self.coordinator_id, panel_policy=POLICY)
            self.assertEqual(completed['workflow_state'], 'completed')
            self.assertTrue(completed['sync']['synced'])

            record = db.query(StudentRecord).one()
            self.assertEqual(record.defense_type, 'Pre-final')
            self.assertEqual(record.school_year, '2025-2026')
            self.assertEqual(db.query(PaymentRecord).count(), 5)

            status = get_defense_request_status(db, request_id)
            self.assertEqual(
                [entry['action'] for entry in status['history']],
                ['submitted', 'receive', 'approve', 'approve', 'complete'],
            )
            self.assertEqual(status['amount'], 3700 + 2500 + 3 * 1500)
            self.assertEqual(status['aa_status'], 'ready_for_finance')
        finally:
            db.close()

    def test_unresolved_coordinator_keeps_adviser_review(self):
        db = self._session_factory()
        try:
            request_id = self._submit(db, adviser_id=self.lonely_adviser_id)
            apply_workflow_action(db, request_id, 'receive', panel_policy=POLICY)
            with self.assertRaises(UnresolvedCoordinatorError) as ctx:
                apply_workflow_action(db, request_id, 'approve', panel_policy=POLICY)
            self.assertEqual(ctx.exception.adviser_id, self.lonely_adviser_id)
            self.assertEqual(get_defense_request_status(db, request_id)['workflow_state'], 'adviser-review')
        finally:
            db.close()

    def test_skipping_states_is_rejected(self):
        db = self._session_factory()
        try:
            request_id = self._submit(db)
            with self.assertRaises(InvalidTransitionError):
                apply_workflow_action(db, request_id, 'complete', panel_policy=POLICY)
            self.assertEqual(get_defense_request_status(db, request_id)['workflow_state'], 'pending')
        finally:
            db.close()

    def test_short_panel_cannot_be_scheduled(self):
        db = self._session_factory()
        try:
            request_id = self._submit(db)
            apply_workflow_action(db, request_id, 'receive', panel_policy=POLICY)
            apply_workflow_action(db, request_id, 'approve', panel_policy=POLICY)
            with self.assertRaises(TransitionRequirementError):
                apply_workflow_action(
                    db,
                    request_id,
                    'approve',
                    changes={'defense_chairperson': 'Dr. Cruz', 'scheduled_date': date(2026, 3, 14)},
                    panel_policy=POLICY,
                )
            status = get_defense_request_status(db, request_id)
            self.assertEqual(status['workflow_state'], 'coordinator-review')
            self.assertIsNone(status['scheduled_date'])
        finally:
            db.close()

    def _add_scheduled_defense(self, db, *, chair, scheduled_time) -> int:
        other = DefenseRequest(
            first_name='Ben',
            last_name='Cruz',
            school_id='2019-00077',
            program='Master in Information Technology',
            defense_type='Final',
            workflow_state='scheduled',
            defense_chairperson=chair,
            defense_panelist1='Dr. Uy',
            defense_panelist2='Dr. Go',
            defense_panelist3='Dr. Ong',
            scheduled_date=SCHEDULE['scheduled_date'],
            scheduled_time=scheduled_time,
        )
        db.add(other)
        db.commit()
        return int(other.id)

    def _to_coordinator_review(self, db) -> int:
        request_id = self._submit(db)
        apply_workflow_action(db, request_id, 'receive', panel_policy=POLICY)
        apply_workflow_action(db, request_id, 'approve', panel_policy=POLICY)
        return request_id

    def test_panel_member_booked_in_same_slot_blocks_scheduling(self):
        db = self._session_factory()
        try:
            other_id = self._add_scheduled_defense(db, chair='dr. lim', scheduled_time='09:00')
            request_id = self._to_coordinator_review(db)
            with self.assertRaises(PanelSchedulingConflictError) as ctx:
                apply_workflow_action(db, request_id, 'approve', changes=SCHEDULE, panel_policy=POLICY)
            conflict = ctx.exception.conflicts[0]
            self.assertEqual(conflict.person, 'Dr. Lim')
            self.assertEqual(conflict.role, 'Panel Member 2')
            self.assertEqual(conflict.conflicting_role, 'Panel Chair')
            self.assertEqual(conflict.defense_request_id, other_id)
            self.assertEqual(conflict.student_name, 'Ben Cruz')

            status = get_defense_request_status(db, request_id)
            self.assertEqual(status['workflow_state'], 'coordinator-review')
            self.assertIsNone(status['scheduled_date'])
        finally:
            db.close()

    def test_same_panel_member_in_another_slot_is_allowed(self):
        db = self._session_factory()
        try:
            self._add_scheduled_defense(db, chair='Dr. Lim', scheduled_time='13:00')
            request_id = self._to_coordinator_review(db)
            scheduled = apply_workflow_action(db, request_id, 'approve', changes=SCHEDULE, panel_policy=POLICY)
            self.assertEqual(scheduled['workflow_state'], 'scheduled')
        finally:
            db.close()

    def test_reject_and_resubmit(self):
        db = self._session_factory()
        try:
            request_id = self._submit(db)
            apply_workflow_action(db, request_id, 'receive', panel_policy=POLICY)
            rejected = apply_workflow_action(db, request_id, 'reject', comment='Fix the abstract', panel_policy=POLICY)
            self.assertEqual(rejected['workflow_state'], 'revision-pending')
            self.assertEqual(rejected['adviser_status'], 'Rejected')
            resubmitted = apply_workflow_action(db, request_id, 'resubmit', panel_policy=POLICY)
            self.assertEqual(resubmitted['workflow_state'], 'pending')
            self.assertEqual(resubmitted['adviser_status'], 'Pending')
        finally:
            db.close()

    def test_cancelled_request_is_final(self):
        db = self._session_factory()
        try:
            request_id = self._submit(db)
            apply_workflow_action(db, request_id, 'cancel', panel_policy=POLICY)
            with self.assertRaises(InvalidTransitionError):
                apply_workflow_action(db, request_id, 'receive', panel_policy=POLICY)
        finally:
            db.close()


if __name__ == '__main__':
    unittest.main()

import tempfile
import unittest
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gradschool.db import Base, get_db
from gradschool.models import (
    AaPaymentVerification,
    AdviserCoordinator,
    DefenseRequest,
    DefenseWorkflowEntry,
    HonorariumPayment,
    PaymentRate,
    ProgramRecord,
    User,
)
from gradschool.routers import defense_requests, payment_rates
from gradschool.services.bootstrap_service import run_bootstrap
from gradschool.services.notification_service import LogNotificationDispatcher, set_notification_dispatcher


class DefenseRequestRouterTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_routers.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)
        cls._previous_dispatcher = set_notification_dispatcher(LogNotificationDispatcher())

        app = FastAPI()
        app.include_router(defense_requests.router)
        app.include_router(payment_rates.router)

        def override_get_db():
            db = cls._session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        set_notification_dispatcher(cls._previous_dispatcher)
        cls.client.close()
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        db = self._session_factory()
        try:
            for table in (
                HonorariumPayment,
                AaPaymentVerification,
                DefenseWorkflowEntry,
                DefenseRequest,
                PaymentRate,
                ProgramRecord,
                AdviserCoordinator,
                User,
            ):
                db.query(table).delete()
            db.commit()
            run_bootstrap(db)
            adviser = User(name='Dr. Reyes', role='faculty')
            db.add(adviser)
            db.commit()
            self.adviser_id = int(adviser.id)
        finally:
            db.close()

    def _submit(self, **overrides) -> dict:
        payload = {
            'school_id': '2020-00123',
            'first_name': 'Ana',
            'last_name': 'Santos',
            'program': 'Doctor in Business Management',
            'defense_type': 'prefinal',
            'adviser_user_id': self.adviser_id,
        }
        payload.update(overrides)
        response = self.client.post('/defense-requests', json=payload)
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def test_submit_and_fetch(self):
        created = self._submit()
        self.assertEqual(created['defense_type'], 'Pre-final')
        self.assertEqual(created['workflow_state'], 'pending')

        response = self.client.get(f"/defense-requests/{created['defense_request_id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['student_name'], 'Ana Santos')

    def test_unknown_defense_type_is_422(self):
        response = self.client.post('/defense-requests', json={
            'school_id': '2020-00123',
            'first_name': 'Ana',
            'last_name': 'Santos',
            'program': 'Doctor in Business Management',
            'defense_type': 'Colloquium',
        })
        self.assertEqual(response.status_code, 422)

    def test_missing_request_is_404(self):
        self.assertEqual(self.client.get('/defense-requests/999999').status_code, 404)
        response = self.client.post('/defense-requests/999999/transitions', json={'action': 'receive'})
        self.assertEqual(response.status_code, 404)

    def test_illegal_transition_is_409(self):
        created = self._submit()
        response = self.client.post(
            f"/defense-requests/{created['defense_request_id']}/transitions",
            json={'action': 'complete'},
        )
        self.assertEqual(response.status_code, 409)

    def test_unresolved_coordinator_detail(self):
        created = self._submit()
        path = f"/defense-requests/{created['defense_request_id']}/transitions"
        self.assertEqual(self.client.post(path, json={'action': 'receive'}).status_code, 200)
        response = self.client.post(path, json={'action': 'approve'})
        self.assertEqual(response.status_code, 409)
        detail = response.json()['detail']
        self.assertEqual(detail['error'], 'unresolved_coordinator')
        self.assertEqual(detail['adviser_id'], self.adviser_id)
        self.assertEqual(detail['program'], 'Doctor in Business Management')

    def test_aa_status_skip_is_409_and_repeat_is_noop(self):
        created = self._submit(defense_adviser='Dr. Reyes')
        path = f"/defense-requests/{created['defense_request_id']}/aa-verification"
        self.assertEqual(self.client.post(path, json={'status': 'paid'}).status_code, 409)

        first = self.client.post(path, json={'status': 'ready_for_finance'})
        self.assertEqual(first.status_code, 200, first.text)
        self.assertEqual(first.json()['honoraria']['payments_created'], 1)
        second = self.client.post(path, json={'status': 'ready_for_finance'})
        self.assertTrue(second.json()['noop'])

    def test_sync_before_completion_reports_reason(self):
        created = self._submit()
        response = self.client.post(f"/defense-requests/{created['defense_request_id']}/sync")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['reason'], 'defense_not_completed')

    def test_rate_preview(self):
        response = self.client.get('/payment-rates/resolve', params={
            'program': 'Doctor in Business Management',
            'defense_type': 'Pre-Final',
        })
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['program_level'], 'Doctorate')
        self.assertEqual(body['total'], 5000 + 3500 + 4 * 2100)
        self.assertEqual(body['rates'][0], {'role': 'Adviser', 'amount': 5000})

    def test_rate_preview_unknown_type_is_422(self):
        response = self.client.get('/payment-rates/resolve', params={
            'program': 'Doctor in Business Management',
            'defense_type': 'Colloquium',
        })
        self.assertEqual(response.status_code, 422)


if __name__ == '__main__':
    unittest.main()

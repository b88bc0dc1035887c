import time
import unittest
from types import SimpleNamespace
from unittest.mock import patch

from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

import gradschool.db as db_module
from gradschool.route_logging import (
    EndpointNameRoute,
    bind_defense_request,
    current_defense_request,
    current_endpoint,
)


class EndpointNameRouteTests(unittest.TestCase):
    def setUp(self):
        router = APIRouter(route_class=EndpointNameRoute)

        @router.get('/defense-requests/{defense_request_id}/labels')
        async def labels(defense_request_id: int):
            return {'endpoint': current_endpoint.get(), 'defense_request': current_defense_request.get()}

        @router.get('/health-labels')
        async def health_labels():
            return {'endpoint': current_endpoint.get(), 'defense_request': current_defense_request.get()}

        app = FastAPI()
        app.include_router(router)
        self.client = TestClient(app)

    def test_route_binds_endpoint_and_defense_id(self):
        response = self.client.get('/defense-requests/17/labels')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {'endpoint': 'GET /defense-requests/{defense_request_id}/labels', 'defense_request': 17},
        )

    def test_route_without_defense_id(self):
        self.assertEqual(
            self.client.get('/health-labels').json(),
            {'endpoint': 'GET /health-labels', 'defense_request': None},
        )
        self.assertEqual(current_endpoint.get(), 'offline')
        self.assertIsNone(current_defense_request.get())


class SlowQueryLogTests(unittest.TestCase):
    def test_slow_query_names_the_bound_defense(self):
        context = SimpleNamespace(_query_start_time=time.perf_counter())
        with patch.object(db_module, '_SLOW_QUERY_MS', 0):
            with bind_defense_request(42):
                with self.assertLogs('gradschool.db.slow_query', level='WARNING') as captured:
                    db_module._after_cursor_execute(None, None, 'SELECT 1', (), context, False)
        self.assertIn('defense_request=42', captured.output[0])
        self.assertIn('endpoint=offline', captured.output[0])
        self.assertIsNone(current_defense_request.get())


if __name__ == '__main__':
    unittest.main()

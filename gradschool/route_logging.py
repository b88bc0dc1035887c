from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar

from fastapi.routing import APIRoute
from starlette.requests import Request


# Outside a request (scheduler jobs, scripts) queries are attributed to 'offline'.
current_endpoint: ContextVar[str] = ContextVar('current_endpoint', default='offline')
current_defense_request: ContextVar[int | None] = ContextVar('current_defense_request', default=None)


@contextmanager
def bind_defense_request(defense_request_id: int | None):
    """Attribute queries issued inside the block to one defense request."""
    token = current_defense_request.set(int(defense_request_id) if defense_request_id is not None else None)
    try:
        yield
    finally:
        current_defense_request.reset(token)


def _path_defense_request_id(request: Request) -> int | None:
    raw = request.path_params.get('defense_request_id')
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


class EndpointNameRoute(APIRoute):
    """Tags every query issued while serving a route with ``METHOD /path`` and the defense id in the path."""

    def get_route_handler(self):
        original_handler = super().get_route_handler()

        async def labelled_handler(request: Request):
            token = current_endpoint.set(f'{request.method} {self.path}')
            try:
                with bind_defense_request(_path_defense_request_id(request)):
                    return await original_handler(request)
            finally:
                current_endpoint.reset(token)

        return labelled_handler

"""
Request ID middleware.

Every request gets an ID (the client's X-Request-ID if supplied, else a new
UUID). It is stored on request.state, echoed in the response headers and
stamped on every log record emitted while the request is being handled.
"""

import contextvars
import logging
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("request_id", default=None)
_factory_installed = False


def _install_record_factory():
    """Wraps the log record factory once per process."""
    global _factory_installed
    if _factory_installed:
        return

    old_factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):
        record = old_factory(*args, **kwargs)
        request_id = _request_id_var.get()
        if request_id is not None:
            record.request_id = request_id
        return record

    logging.setLogRecordFactory(record_factory)
    _factory_installed = True


class RequestIDMiddleware(BaseHTTPMiddleware):

    def __init__(self, app):
        super().__init__(app)
        _install_record_factory()

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        token = _request_id_var.set(request_id)
        try:
            response: Response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _request_id_var.reset(token)


from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from typing import Iterable
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("principal_id", default=None)
logger = logging.getLogger("stockledger.request")

QUIET_PATHS = ("/health", "/metrics")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with a correlation id and log one line when it ends.

    Client errors log at WARNING, unhandled exceptions at ERROR with the
    traceback; liveness and scrape endpoints are not logged at all.
    """

    def __init__(self, app, header_name: str = "X-Request-ID", quiet_paths: Iterable[str] = QUIET_PATHS) -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name
        self.quiet_paths = frozenset(quiet_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or uuid4().hex
        token = request_id_ctx_var.set(request_id)
        principal_token = principal_ctx_var.set(None)
        request.state.request_id = request_id
        start = time.perf_counter()
        fields = {"method": request.method, "path": request.url.path}
        try:
            response = await call_next(request)
        except Exception:
            fields["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
            logger.exception("request.failed", extra={"extra_data": fields})
            raise
        else:
            fields["status"] = response.status_code
            fields["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
            principal = principal_ctx_var.get()
            if principal:
                fields["principal"] = principal
            response.headers[self.header_name] = request_id
            if request.url.path not in self.quiet_paths:
                level = logging.WARNING if response.status_code >= 400 else logging.INFO
                logger.log(level, "request.completed", extra={"extra_data": fields})
            return response
        finally:
            request_id_ctx_var.reset(token)
            principal_ctx_var.reset(principal_token)

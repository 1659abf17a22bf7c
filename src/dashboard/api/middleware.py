"""Request context middleware for dashboard API.

Every request gets a request ID (taken from ``X-Request-ID`` when the
caller supplies a well-formed one) and, on patient routes, the patient UID
from the path. Both are attached to the request's log records and the ID
is echoed back on the response, including the generic 500 returned for an
unhandled error.

Security Impact:
    - Caller-supplied request IDs are only trusted when they match
      ``REQUEST_ID_PATTERN``, so log lines cannot be forged through the header
    - Error responses never include exception text or record contents
"""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")
PATIENT_PATH_PATTERN = re.compile(r"^/api/patients/([^/]+)/")


def resolve_request_id(request: Request) -> str:
    """Reuse the caller's request ID when well-formed, otherwise mint one."""
    supplied = request.headers.get(REQUEST_ID_HEADER, "")
    if REQUEST_ID_PATTERN.match(supplied):
        return supplied
    return uuid.uuid4().hex


def request_log_context(request: Request, request_id: str) -> dict[str, str]:
    """Build the ``extra=`` log context for one request.

    Returns:
        dict: ``request_id`` and ``endpoint``, plus ``patient_uid`` on
        ``/api/patients/{uid}/...`` routes
    """
    path = request.url.path
    context = {"request_id": request_id, "endpoint": path}
    match = PATIENT_PATH_PATTERN.match(path)
    if match:
        context["patient_uid"] = match.group(1)
    return context


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag, time and log each request; turn unhandled errors into a 500."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Run the request with its log context.

        Parameters:
            request: Incoming HTTP request
            call_next: Next middleware or route handler

        Returns:
            Response: Route response (or a generic 500) with X-Process-Time
            and X-Request-ID headers
        """
        started = time.perf_counter()
        request_id = resolve_request_id(request)
        context = request_log_context(request, request_id)

        try:
            response = await call_next(request)
        except Exception:
            logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=True, extra=context)
            response = JSONResponse(
                status_code=500,
                content={"detail": "Internal server error", "request_id": request_id},
            )

        elapsed = time.perf_counter() - started
        response.headers["X-Process-Time"] = f"{elapsed:.3f}"
        response.headers[REQUEST_ID_HEADER] = request_id

        logger.info(
            f"{request.method} {request.url.path} {response.status_code} ({elapsed * 1000:.1f}ms)",
            extra=context,
        )
        return response


def setup_middleware(app) -> None:
    """Setup application middleware.

    Parameters:
        app: FastAPI application instance
    """
    app.add_middleware(RequestContextMiddleware)

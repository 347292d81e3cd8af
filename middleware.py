import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from config import settings
from exceptions import StrataError
from ingest.results import elapsed_ms
from schemas import ErrorResponse
from utils.logging import request_id_var


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request ID propagation and request timing.

    Order of operations per request:
    1. Inject request ID (incoming X-Request-ID or a fresh UUID)
    2. Record the start time for processingTime in error bodies
    3. Expose the ID to log records via the logging context var
    4. Process request
    5. Add X-Request-ID to response
    """

    async def dispatch(self, request: Request, call_next):
        # 1. Request ID
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        # 2. Timing
        request.state.started_at = time.monotonic()

        # 3. Log context
        token = request_id_var.set(request_id)

        try:
            # 4. Process request
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        # 5. Request ID header
        response.headers["X-Request-ID"] = request_id
        return response


def error_response(exc: StrataError, started_at: float, detail: str | None = None) -> JSONResponse:
    """Render a StrataError as the failure body.

    `details` (exception detail or traceback) is included only outside
    production. A `retry_after` detail becomes the Retry-After header.
    """
    body = ErrorResponse(
        error=exc.error_code,
        message=exc.message,
        processingTime=elapsed_ms(started_at),
    ).model_dump(exclude_none=True)
    if not settings.is_production:
        body["details"] = detail or str(jsonable_details(exc.details) or exc.message)
    headers = {}
    if "retry_after" in exc.details:
        headers["Retry-After"] = str(exc.details["retry_after"])
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


def jsonable_details(details: dict) -> dict:
    return {k: v for k, v in details.items() if isinstance(v, (str, int, float, bool, list, dict))}

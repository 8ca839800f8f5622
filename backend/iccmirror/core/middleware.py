"""
FastAPI middleware tagging each request with its id, trace and ICC store
"""
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from iccmirror.core.logging_config import LoggingConfig
from iccmirror.core.metrics import icc_api_requests_total
from iccmirror.core.tracing import add_span_attributes, get_current_trace_id

logger = LoggingConfig.get_logger(__name__)

STORE_PATH_PREFIX = "/api/sms/"


def store_segment(path: str) -> Optional[str]:
    """Store segment of an ICC store path (``/api/sms/icc1/3`` -> ``icc1``)"""
    if not path.startswith(STORE_PATH_PREFIX):
        return None
    segment = path[len(STORE_PATH_PREFIX):].split("/", 1)[0]
    return segment or None


class LoggingContextMiddleware(BaseHTTPMiddleware):
    """Attach request context to every log line emitted while serving a request"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        store = store_segment(request.url.path)

        LoggingConfig.set_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        if store:
            LoggingConfig.set_context(store=store)

        trace_id = get_current_trace_id()
        if trace_id:
            LoggingConfig.set_context(trace_id=trace_id)
            add_span_attributes(request_id=request_id, icc_store=store)
        elif request.headers.get("traceparent"):
            LoggingConfig.set_context(trace_id=request.headers["traceparent"])

        started = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "Request failed",
                exc_info=True,
                extra={"duration_ms": int((time.monotonic() - started) * 1000)},
            )
            if store:
                icc_api_requests_total.labels(store=store, method=request.method, status="500").inc()
            raise
        else:
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.info(
                "Request completed",
                extra={"status_code": response.status_code, "duration_ms": duration_ms},
            )
            if store:
                icc_api_requests_total.labels(
                    store=store, method=request.method, status=str(response.status_code)
                ).inc()
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            LoggingConfig.clear_context()

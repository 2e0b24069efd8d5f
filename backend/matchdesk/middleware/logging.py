"""
backend/matchdesk/middleware/logging.py

Purpose:
    One JSON log line per HTTP request (request id, route, sport, cache
    bypass flag, status, latency, hashed client address) and the process-wide
    logging setup used by the app lifespan.

Dependencies:
    - starlette
    - matchdesk.config
"""

import hashlib
import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from matchdesk.config import settings

logger = logging.getLogger("matchdesk.http")

_QUIET_PATHS = frozenset({"/health"})


def _client_hash(request: Request) -> str | None:
    if request.client is None:
        return None
    return hashlib.sha256((request.client.host or "").encode()).hexdigest()[:12]


def _level_for(path: str, status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.DEBUG if path in _QUIET_PATHS else logging.INFO


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)

        path = request.url.path
        entry = {
            "request_id": request_id,
            "method": request.method,
            "path": path,
            "sport": request.path_params.get("sport"),
            "force": request.query_params.get("force", "").lower() in ("1", "true"),
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            "client": _client_hash(request),
        }
        logger.log(_level_for(path, response.status_code), json.dumps(entry))

        response.headers["X-Request-ID"] = request_id
        return response


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    # APScheduler logs every job execution at INFO.
    logging.getLogger("apscheduler.executors").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

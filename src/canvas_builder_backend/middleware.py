import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs one line per request: method, path, status code and duration.
    The request origin is included when present to help debug CORS setups.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        origin = request.headers.get("origin")
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.exception(f"{request.method} {request.url.path} failed after {elapsed_ms:.1f}ms")
            raise

        elapsed_ms = (time.perf_counter() - start) * 1000
        suffix = f" origin={origin}" if origin else ""
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms){suffix}")
        return response

"""
Request Logging Middleware.

One line per call to the /dwv endpoints: pipeline runs, auth tests,
public page scrapes and status polls. A failed run answers 500, so
those lines are raised to WARNING.
"""

import time

from fastapi import FastAPI, Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

request_log = logger.bind(module="Request")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log each scraper API call with its outcome and duration."""

    async def dispatch(self, request: Request, call_next):
        """
        Log method, path, status and duration.

        A pipeline run can take minutes; the duration shows how long the
        caller waited. CORS preflights from the dashboard are logged at
        DEBUG.
        """
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        if response.status_code >= 500:
            level = "WARNING"
        elif request.method == "OPTIONS":
            level = "DEBUG"
        else:
            level = "INFO"
        request_log.log(
            level,
            f"{request.method} {request.url.path} {response.status_code} ({duration_ms:.0f}ms)",
        )

        return response


def setup_logging(app: FastAPI) -> None:
    """
    Register request logging for the scraper API.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(LoggingMiddleware)

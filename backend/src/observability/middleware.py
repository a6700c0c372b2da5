"""FastAPI middleware for observability.

Provides correlation ID generation and logging for all HTTP requests.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .request_id import generate_correlation_id, set_correlation_id, reset_correlation_id
from .logging_config import get_logger

logger = get_logger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to generate and inject correlation IDs."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with a correlation ID.

        Args:
            request: Incoming HTTP request
            call_next: Next middleware/handler in chain

        Returns:
            Response: HTTP response with X-Correlation-ID header
        """
        correlation_id = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        token = set_correlation_id(correlation_id)

        start_time = time.time()
        logger.info(
            f"{request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
            }
        )

        try:
            response = await call_next(request)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                f"Request completed: {response.status_code}",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            )

            response.headers["X-Correlation-ID"] = correlation_id
            return response

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {str(e)}",
                exc_info=True,
                extra={"duration_ms": round(duration_ms, 2)}
            )
            raise

        finally:
            reset_correlation_id(token)

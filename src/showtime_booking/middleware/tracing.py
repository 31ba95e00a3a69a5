"""
Request tracing middleware
"""
import time
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from showtime_booking.core.logging_config import set_trace_id, generate_trace_id
from showtime_booking.core.metrics import http_requests_total, http_request_duration_seconds

logger = logging.getLogger(__name__)


class TracingMiddleware(BaseHTTPMiddleware):
    """Middleware to add trace ID and request metrics to all requests"""

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get('X-Trace-ID') or generate_trace_id()
        set_trace_id(trace_id)

        start_time = time.time()
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {path}",
                extra={
                    'method': request.method,
                    'path': path,
                    'duration_ms': round(duration_ms, 2),
                    'error': str(e)
                },
                exc_info=True
            )
            raise

        duration = time.time() - start_time
        # Label by route template so per-id paths don't explode cardinality
        route = request.scope.get('route')
        endpoint = getattr(route, 'path', path)
        http_requests_total.labels(method=request.method, endpoint=endpoint, status=str(response.status_code)).inc()
        http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(duration)

        logger.info(
            f"Request completed: {request.method} {path}",
            extra={
                'method': request.method,
                'path': path,
                'status_code': response.status_code,
                'duration_ms': round(duration * 1000, 2)
            }
        )

        response.headers['X-Trace-ID'] = trace_id
        return response

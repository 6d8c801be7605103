"""Correlation id middleware using ContextVar.

Takes the caller's webhook id from the X-Webhook-Id header (or generates
one) and stores it in the logging ContextVar, so every log line written
while serving the request can be tied back to the caller's delivery.
"""

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from hub.log import reset_correlation_id, set_correlation_id

CORRELATION_HEADER = "X-Webhook-Id"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id to the request's context.

    Priority:
    1. X-Webhook-Id header (set by the caller)
    2. A fresh UUID
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        token = set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response
        finally:
            reset_correlation_id(token)

"""Per-request access log and correlation id.

The id comes from an inbound ``X-Request-ID`` header when the upstream proxy
sets one, otherwise it is generated here. It is stored on ``request.state``
(read by ``success_response``) and echoed on the response.

    INFO  POST /api/v1/orders/checkout 201 23ms req_a1b2c3d4e5f6
    WARNING  POST /api/v1/wallet/withdraw 400 4ms req_...
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("cm.request")

REQUEST_ID_HEADER = "X-Request-ID"


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id

        started = time.monotonic()
        response = await call_next(request)
        took_ms = int((time.monotonic() - started) * 1000)

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.log(
            _level_for(response.status_code),
            "%s %s %d %dms %s",
            request.method,
            request.url.path,
            response.status_code,
            took_ms,
            request_id,
        )
        return response

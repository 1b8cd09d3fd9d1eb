"""Bearer-token authentication middleware.

Resolves the ``Authorization`` header into ``request.state.user_id``. The
middleware never rejects a request itself; route dependencies decide whether
authentication is required.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from edutrack.exceptions import AuthenticationError
from edutrack.services.auth import decode_access_token, get_bearer_token

logger = logging.getLogger(__name__)


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request.state.user_id = None
        request.state.auth_error = None

        token = get_bearer_token(request.headers)
        if token:
            try:
                request.state.user_id = decode_access_token(token)
            except AuthenticationError as e:
                logger.warning("Rejected bearer token on %s: %s", request.url.path, e)
                request.state.auth_error = str(e)

        return await call_next(request)

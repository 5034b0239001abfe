"""
Authentication middleware for the Posts service.
"""

import base64
import binascii
import secrets
from typing import Iterable, Optional, Tuple, TYPE_CHECKING

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.logging import get_logger
from shared.errors import AuthInvalidError, AuthMalformedError, AuthRequiredError, PostsServiceException

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class BasicAuthMiddleware:
    """HTTP Basic credential check against a single configured identity."""

    def __init__(
        self,
        username: str,
        password: str,
        realm: str,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self._username = username.encode("utf-8")
        self._password = password.encode("utf-8")
        self.realm = realm
        self.metrics = metrics
        self.logger = get_logger("posts.auth_middleware")

    async def authenticate_request(self, request: Request) -> str:
        """Authenticate the request and return the username it presented."""
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            self._record_failure("missing")
            raise AuthRequiredError(self.realm)

        user, password = self._decode_credentials(auth_header)

        user_ok = secrets.compare_digest(user.encode("utf-8"), self._username)
        password_ok = secrets.compare_digest(password.encode("utf-8"), self._password)
        if not (user_ok and password_ok):
            self._record_failure("invalid")
            self.logger.warning("Invalid credentials", user=user)
            raise AuthInvalidError(self.realm)

        request.state.user = user
        return user

    def _decode_credentials(self, auth_header: str) -> Tuple[str, str]:
        """Split ``Basic <base64(user:password)>`` into its two parts."""
        scheme, _, token = auth_header.strip().partition(" ")
        if scheme.lower() != "basic":
            self._record_failure("invalid")
            self.logger.warning("Unsupported authorization scheme", scheme=scheme)
            raise AuthInvalidError(self.realm)

        token = token.strip()
        if not token:
            self._record_failure("malformed")
            raise AuthMalformedError()

        try:
            decoded = base64.b64decode(token, validate=True).decode("utf-8")
        except (binascii.Error, ValueError):
            self._record_failure("malformed")
            raise AuthMalformedError()

        user, separator, password = decoded.partition(":")
        if not separator:
            self._record_failure("malformed")
            raise AuthMalformedError()

        return user, password

    def _record_failure(self, reason: str) -> None:
        if self.metrics:
            self.metrics.record_auth_failure(reason)


class CredentialCheckMiddleware(BaseHTTPMiddleware):
    """Runs the credential check in front of every path except ``exempt_paths``.

    Unmatched paths and the generated API docs are gated the same way as
    the post routes.
    """

    def __init__(self, app, authenticator: BasicAuthMiddleware, *, exempt_paths: Iterable[str] = ()):
        super().__init__(app)
        self.authenticator = authenticator
        self.exempt_paths = frozenset(exempt_paths)

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        try:
            await self.authenticator.authenticate_request(request)
        except PostsServiceException as exc:
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump(),
                headers=exc.headers or None
            )

        return await call_next(request)

"""
Identity Sync Middleware

Reconciles the caller's identity token with an internal user record before
the request reaches any router.

Sequence per request:
1. No Bearer token → forward unchanged
2. Read token claims (no signature verification at this layer)
3. Effective user id = X-User-ID header if supplied, else token subject
4. Validate the user exists; not-found means "register"
5. Register if missing (outcome never affects the request)
6. Forward with X-User-ID set to the effective id

Identity sync is a best-effort side channel, not a gate: every failure in
steps 2-5 is logged and the request still proceeds.
"""
import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.config import settings
from core.security import IdentityClaim, extract_bearer_token, parse_identity_claim
from services.user_directory import RegistrationOutcome, UserDirectory, ValidationOutcome

logger = logging.getLogger(__name__)


def _set_header(request: Request, name: str, value: str) -> None:
    """Replace a request header in the ASGI scope seen by downstream handlers."""
    key = name.lower().encode("latin-1")
    headers = [(k, v) for k, v in request.scope["headers"] if k.lower() != key]
    headers.append((key, value.encode("latin-1")))
    request.scope["headers"] = headers


class IdentitySyncMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        directory: UserDirectory,
        user_id_header: str = "X-User-ID",
        placeholder_password: Optional[str] = None,
    ):
        super().__init__(app)
        self.directory = directory
        self.user_id_header = user_id_header
        self.placeholder_password = placeholder_password or settings.PLACEHOLDER_PASSWORD

    async def dispatch(self, request: Request, call_next) -> Response:
        token = extract_bearer_token(request.headers.get("authorization"))
        if token is None:
            logger.warning("No valid Bearer token found. Continuing request without identity sync.")
            return await call_next(request)

        try:
            claim = parse_identity_claim(token)
        except ValueError as e:
            logger.error(f"Failed to extract user details from token: {e}")
            return await call_next(request)

        user_id = request.headers.get(self.user_id_header) or claim.subject

        try:
            await self._reconcile(user_id, claim)
        except Exception as e:
            logger.error(f"Error validating or registering user: {e}", exc_info=True)

        try:
            _set_header(request, self.user_id_header, user_id)
        except UnicodeEncodeError:
            logger.warning(f"User id {user_id!r} is not a valid header value; forwarding without it")
        return await call_next(request)

    async def _reconcile(self, user_id: str, claim: IdentityClaim) -> None:
        outcome = await self.directory.validate(user_id)

        if outcome is ValidationOutcome.FOUND:
            logger.debug("User already exists, skipping registration.")
            return
        if outcome is ValidationOutcome.TRANSPORT_ERROR:
            logger.warning(f"User service unreachable; forwarding {user_id} without registration")
            return

        logger.info(f"User does not exist. Registering new user: {claim.email}")
        result = await self.directory.register(claim, self.placeholder_password)
        if result is RegistrationOutcome.FAILED:
            logger.warning(f"Registration failed for subject {claim.subject}; request continues")
        elif result is RegistrationOutcome.DUPLICATE_IGNORED:
            logger.info(f"Registration for subject {claim.subject} resolved to an existing user")

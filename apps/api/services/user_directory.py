"""
User directory collaborators for the edge identity filter.

Two implementations share one contract:
- HttpUserDirectory talks to a remote user service over HTTP
- LocalUserDirectory goes straight to the UserStore in this process

Lookups return explicit outcomes instead of raising, so the filter can tell
"user not found" apart from "user service unreachable".
"""
import logging
from enum import Enum
from typing import Optional, Protocol
from urllib.parse import quote

import httpx
from starlette.concurrency import run_in_threadpool

from core.security import IdentityClaim
from services.user_store import UserStore

logger = logging.getLogger(__name__)


class ValidationOutcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"


class RegistrationOutcome(str, Enum):
    CREATED = "created"
    DUPLICATE_IGNORED = "duplicate_ignored"
    FAILED = "failed"


class UserDirectory(Protocol):
    async def validate(self, user_id: str) -> ValidationOutcome: ...

    async def register(self, claim: IdentityClaim, password: str) -> RegistrationOutcome: ...


class HttpUserDirectory:
    """Calls GET /api/users/{id}/validate and POST /api/users/register."""

    def __init__(self, base_url: str, timeout_s: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_s, transport=self._transport)

    async def validate(self, user_id: str) -> ValidationOutcome:
        logger.info(f"Calling User Validation API for userId: {user_id}")
        try:
            async with self._client() as client:
                r = await client.get(f"/api/users/{quote(user_id, safe='')}/validate")
        except httpx.HTTPError as e:
            logger.error(f"Validation failed: {e}")
            return ValidationOutcome.TRANSPORT_ERROR

        if r.status_code == 404:
            return ValidationOutcome.NOT_FOUND
        if r.is_error:
            logger.error(f"Validation failed: HTTP {r.status_code}")
            return ValidationOutcome.TRANSPORT_ERROR

        try:
            exists = r.json()
        except ValueError:
            logger.error(f"Validation returned a non-JSON body: {r.text[:100]}")
            return ValidationOutcome.TRANSPORT_ERROR
        return ValidationOutcome.FOUND if exists is True else ValidationOutcome.NOT_FOUND

    async def register(self, claim: IdentityClaim, password: str) -> RegistrationOutcome:
        logger.info(f"Calling User Registration API for email: {claim.email}")
        body = {
            "keycloak_id": claim.subject,
            "email": claim.email,
            "password": password,
            "first_name": claim.first_name,
            "last_name": claim.last_name,
        }
        try:
            async with self._client() as client:
                r = await client.post("/api/users/register", json=body)
        except httpx.HTTPError as e:
            logger.error(f"User registration failed: {e}")
            return RegistrationOutcome.FAILED

        if r.is_error and r.status_code != 409:
            logger.error(f"User registration failed: HTTP {r.status_code}")
            return RegistrationOutcome.FAILED
        # 201 = new record; 200 (existing record returned) or 409 = duplicate.
        if r.status_code == 201:
            return RegistrationOutcome.CREATED
        return RegistrationOutcome.DUPLICATE_IGNORED


class LocalUserDirectory:
    """Same contract, backed by the in-process UserStore."""

    def __init__(self, store: UserStore):
        self.store = store

    async def validate(self, user_id: str) -> ValidationOutcome:
        try:
            exists = await run_in_threadpool(self.store.exists, user_id)
        except Exception as e:
            logger.error(f"Validation failed: {e}")
            return ValidationOutcome.TRANSPORT_ERROR
        return ValidationOutcome.FOUND if exists else ValidationOutcome.NOT_FOUND

    async def register(self, claim: IdentityClaim, password: str) -> RegistrationOutcome:
        try:
            _, created = await run_in_threadpool(self.store.register, claim, password)
        except Exception as e:
            logger.error(f"User registration failed: {e}")
            return RegistrationOutcome.FAILED
        return RegistrationOutcome.CREATED if created else RegistrationOutcome.DUPLICATE_IGNORED

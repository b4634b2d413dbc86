"""
Security utilities for the edge identity filter and the user store.

Provides:
- Password hashing (bcrypt)
- Bearer token extraction
- Identity claim parsing from an externally issued JWT

Token signatures are NOT verified here. Trust in the issuer is established
upstream; this module only reads the asserted claims.
"""
from dataclasses import dataclass
from typing import Optional
from jose import JWTError, jwt
import bcrypt

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class IdentityClaim:
    """Attributes asserted by the caller's token. Lives for one request."""
    subject: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return bcrypt.checkpw(
        plain_password.encode('utf-8'),
        hashed_password.encode('utf-8')
    )


def get_password_hash(password: str) -> str:
    """Hash a password."""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the raw token from an Authorization header, or None."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def parse_identity_claim(token: str) -> IdentityClaim:
    """
    Read sub/email/given_name/family_name from a JWT without verifying it.

    Raises ValueError if the token cannot be decoded or carries no subject.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError as e:
        raise ValueError(f"Malformed token: {e}") from e

    subject = claims.get("sub")
    if not subject or not isinstance(subject, str):
        raise ValueError("Token has no subject claim")

    return IdentityClaim(
        subject=subject,
        email=claims.get("email"),
        first_name=claims.get("given_name"),
        last_name=claims.get("family_name"),
    )

"""
core/security.py
----------------
Password hashing and JWT token utilities.

Design decisions:
  - bcrypt work factor 12.
  - JWT payload carries sub (user_id), role and company_id. That is the
    caller's *identity* only. Permission grants are never put in the token;
    they are re-read from the users table on every request so a revoked
    grant stops working on the very next call.
  - Tokens are signed with HS256; swap to RS256 for multi-service setups.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from vault.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)


# ── Password Utilities ────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the plain-text password."""
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """Constant-time comparison of plain password against stored hash."""
    return pwd_context.verify(plain, hashed)


# ── JWT Utilities ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Identity:
    """Who the bearer token says the caller is."""

    id: str
    role: str
    company_id: Optional[str]


def create_access_token(
    subject: str,
    role: str,
    company_id: Optional[str],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Mint a JWT access token.

    Args:
        subject: User UUID (stored in 'sub' claim).
        role: 'master_admin' | 'company_super_admin' | 'company_user'
        company_id: Company UUID, or None for the platform master admin.
        expires_delta: Optional custom expiry; defaults to settings value.

    Returns:
        Signed JWT string.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload: Dict[str, Any] = {
        "sub": subject,
        "role": role,
        "company_id": company_id,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Raises:
        JWTError: If the token is invalid, expired, or tampered with.

    Returns:
        Raw payload dict.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def identity_from_token(token: str) -> Identity:
    """
    Decode a token into an Identity.

    Raises:
        JWTError: On a bad token or when required claims are missing.
    """
    payload = decode_access_token(token)
    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or not role:
        raise JWTError("Token is missing required claims")
    return Identity(id=user_id, role=role, company_id=payload.get("company_id"))

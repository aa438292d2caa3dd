"""
auth/tokens.py -- JWT codec and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (username), role, iat and exp.
       TokenCodec.decode() returns None on any failure -- bad signature,
       malformed token, expiry, missing or unknown claims. Callers never learn
       why a token was refused.

  Passwords: bcrypt directly (no passlib wrapper). bcrypt's cost factor makes
       brute-force expensive and gensalt() gives every hash its own salt. The
       DUMMY_HASH constant enables timing equalization in the authenticator
       so response time does not reveal whether a username exists.

  Signing key: TokenCodec is built once at startup from Settings and passed
       by reference. It never reads configuration itself.

Layer rule: no imports from api/ or loans/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import IssuedToken, Role, TokenClaims
from core.config import MIN_SECRET_BYTES

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("loandesk.auth")

ALGORITHM = "HS256"

# bcrypt only reads the first 72 bytes of its input and bcrypt >= 4.1 rejects
# longer values outright, so both sides of the comparison cut at 72.
_BCRYPT_MAX_BYTES = 72


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_password_bytes(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in the store.
        return False


# Timing equalization dummy hash. Computed once at module load so the first
# login attempt is not measurably slower than subsequent ones.
DUMMY_HASH: str = hash_password("loandesk_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


class TokenCodec:
    """Signs and verifies bearer tokens with a fixed key and lifetime.

    Usage:
        codec = TokenCodec.from_settings(get_settings())
        issued = codec.issue("alice", Role.CUSTOMER)
        claims = codec.decode(issued.token)   # TokenClaims or None
    """

    def __init__(self, secret_key: str, lifetime_ms: int) -> None:
        if len(secret_key.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ValueError(f"Signing key must be at least {MIN_SECRET_BYTES} bytes for {ALGORITHM}.")
        if lifetime_ms <= 0:
            raise ValueError("Token lifetime must be positive.")
        self._secret_key = secret_key
        self.lifetime_ms = lifetime_ms

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenCodec:
        return cls(settings.secret_key, settings.token_expire_ms)

    def issue(self, subject: str, role: Role, now: datetime | None = None) -> IssuedToken:
        """Encode a signed JWT for subject with the configured lifetime.

        JWT dates are whole seconds, so iat is truncated and the lifetime is
        rounded up to the next second.
        """
        issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        expires_at = issued_at + timedelta(seconds=-(-self.lifetime_ms // 1000))
        payload = {
            "sub": subject,
            "role": role.to_wire(),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)
        claims = TokenClaims(subject=subject, role=role, issued_at=issued_at, expires_at=expires_at)
        return IssuedToken(token=token, claims=claims)

    def decode(self, token: str) -> TokenClaims | None:
        """Verify signature and expiry and return the claims, or None on any failure.

        Returning None (rather than raising) keeps the caller simple: any
        invalid token is treated as anonymous.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            return None
        if not isinstance(payload.get("iat"), int) or not isinstance(payload.get("exp"), int):
            return None
        try:
            role = Role.from_wire(payload.get("role"))
        except ValueError:
            return None

        return TokenClaims(
            subject=subject,
            role=role,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

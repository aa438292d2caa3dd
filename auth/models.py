"""
auth/models.py -- Domain types for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Mirrors the
approach in loans/models.py -- dataclasses own domain shape; stores, the
authenticator and routes do the work.

Role is the one exception: it owns its wire mapping so every place that reads
a role string (DB rows, JWT claims, request bodies) goes through one total,
injective conversion.

Layer rule: no imports from api/ or loans/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Closed set of roles. The value is the wire form used in tokens and JSON."""

    ADMIN = "ADMIN"
    ANALYST = "ANALYST"
    CUSTOMER = "CUSTOMER"

    @classmethod
    def from_wire(cls, value: str) -> Role:
        """Map a wire string to a Role. Raises ValueError for anything else.

        Matching is exact: "admin" is not a role, "ADMIN" is.
        """
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None

    def to_wire(self) -> str:
        return self.value


@dataclass
class User:
    """A stored identity (the credential store's record).

    hashed_password is a bcrypt hash and never leaves the server.
    Profile fields are optional and only edited by the user themself.
    """

    username: str
    hashed_password: str
    role: Role = Role.CUSTOMER
    id: int | None = None
    is_active: bool = True
    created_at: str | None = None
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, verified contents of a bearer token.

    role is the snapshot taken at issuance. It is informational only --
    authorization uses the role re-read from the store (see Principal).
    """

    subject: str
    role: Role
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class IssuedToken:
    """A freshly signed token plus the claims it carries."""

    token: str
    claims: TokenClaims

    @property
    def expires_in(self) -> int:
        """Lifetime in whole seconds, for the OAuth-style login response."""
        return int((self.claims.expires_at - self.claims.issued_at).total_seconds())


@dataclass(frozen=True)
class Principal:
    """The identity resolved for one in-flight request.

    Built from a fresh store lookup on every request, so role changes and
    deactivation apply on the next request even with an old token.
    """

    user_id: int
    username: str
    role: Role

"""
auth/dependencies.py -- Per-request authentication and FastAPI Depends() helpers.

authenticate_request() is the request authenticator: a total function from
the raw Authorization header to a Principal or None. The HTTP middleware in
api/main.py calls it exactly once per request, stores the result on
request.state.principal, and then runs the access policy.

Pipeline (each step either continues or short-circuits to anonymous):
  1. header present and starts with "Bearer "
  2. TokenCodec.decode() -- signature, expiry and claim checks
  3. fresh store lookup by subject -- must exist, be active and carry a
     known role (an unreadable stored role is logged and treated as anonymous)
  4. Principal built from the STORE's role, not the token's role claim

Step 4 is the trust boundary: a role change or deactivation applies on the
very next request instead of waiting for the token to expire.

get_principal() is the soft variant (returns None when anonymous).
get_current_principal() raises HTTP 401 if the request is anonymous.

Layer rule: no imports from api/ or loans/. FastAPI imports are allowed
because this module is part of the dependency injection system.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import HTTPException, Request

from auth.models import Principal

if TYPE_CHECKING:
    from auth.store import UserStore
    from auth.tokens import TokenCodec

logger = logging.getLogger("loandesk.auth")

BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token part of an Authorization header, or None if it is not a bearer header."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX) :].strip()
    return token or None


def authenticate_request(authorization: str | None, codec: TokenCodec, store: UserStore) -> Principal | None:
    """Resolve the caller of one request. Never raises for bad credentials."""
    token = extract_bearer_token(authorization)
    if token is None:
        return None

    claims = codec.decode(token)
    if claims is None:
        return None

    try:
        user = store.get_by_username(claims.subject)
    except ValueError:
        logger.warning("Stored role for %r is not a known role; treating request as anonymous", claims.subject)
        return None
    if user is None or not user.is_active:
        return None

    return Principal(user_id=user.id, username=user.username, role=user.role)


def get_principal(request: Request) -> Principal | None:
    """Return the principal the middleware resolved for this request, if any."""
    return getattr(request.state, "principal", None)


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is anonymous.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = get_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Access denied."},
        )
    return principal

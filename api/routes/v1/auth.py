"""
api/routes/v1/auth.py -- Registration and login endpoints.

Routes:
  POST /api/v1/auth/register   -- create a CUSTOMER account (public)
  POST /api/v1/auth/login      -- password login; returns a bearer token (public)

Security:
  Login returns the same "bad_credentials" error for an unknown username, a
  wrong password and a disabled account, so the response never reveals which
  usernames exist. Authenticator.login() also equalizes timing.
  Both responses carry Cache-Control: no-store.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import CredentialsRequest, ErrorDetail, ErrorResponse, LoginResponse, UserResponse
from auth.authenticator import Authenticator
from core.exceptions import InvalidCredentials

# Auth policy (enforced by the access rules in auth/policy.py):
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public
router = APIRouter()


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: CredentialsRequest) -> UserResponse:
    """Create a new account with the CUSTOMER role.

    400 invalid_input when username or password is blank, 409 username_taken
    when the username already exists.
    """
    authenticator: Authenticator = request.app.state.authenticator
    user = authenticator.register(body.username, body.password)
    return UserResponse.from_user(user)


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Authenticate with username and password and return a bearer token."""
    authenticator: Authenticator = request.app.state.authenticator
    try:
        issued = authenticator.login(body.username, body.password)
    except InvalidCredentials as exc:
        resp = JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=issued.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=issued.expires_in,
            username=issued.claims.subject,
            role=issued.claims.role,
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp

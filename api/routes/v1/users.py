"""
api/routes/v1/users.py -- The caller's own account.

Routes:
  GET /api/v1/users/me   -- profile of the authenticated user
  PUT /api/v1/users/me   -- update full_name / email / phone
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import ProfileResponse, ProfileUpdate
from auth.dependencies import get_current_principal
from auth.models import Principal
from auth.store import UserStore
from core.exceptions import NotFound

router = APIRouter()


def _load(user_store: UserStore, principal: Principal):
    user = user_store.get_by_id(principal.user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


@router.get("/users/me", response_model=ProfileResponse)
def me(request: Request, principal: Principal = Depends(get_current_principal)) -> ProfileResponse:
    """Return profile information for the currently authenticated user."""
    user_store: UserStore = request.app.state.user_store
    return ProfileResponse.from_user(_load(user_store, principal))


@router.put("/users/me", response_model=ProfileResponse)
def update_me(
    request: Request,
    body: ProfileUpdate,
    principal: Principal = Depends(get_current_principal),
) -> ProfileResponse:
    user_store: UserStore = request.app.state.user_store
    updates = body.model_dump(exclude_unset=True)
    if updates:
        user_store.update_user(principal.user_id, **updates)
    return ProfileResponse.from_user(_load(user_store, principal))

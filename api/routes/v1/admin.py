"""
api/routes/v1/admin.py -- Admin-only user management and metrics.

Routes (all require ADMIN via the /api/v1/admin/** access rule):
  GET /api/v1/admin/metrics                -- user counts per role + loan count
  GET /api/v1/admin/users[?role=]          -- list users, optionally by role
  PUT /api/v1/admin/users/{user_id}/role   -- change a user's role
  PUT /api/v1/admin/users/{user_id}/active -- enable / disable an account

Role and active changes take effect on the user's next request: the request
authenticator re-reads both from the store every time.

Guards:
  - An admin cannot demote or deactivate their own account.
  - The last active admin cannot be demoted or deactivated.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.models import ActiveUpdate, MetricsResponse, RoleUpdate, UserResponse
from auth.dependencies import get_current_principal
from auth.models import Principal, Role, User
from auth.store import UserStore
from core.exceptions import AdminGuardError, NotFound
from loans.store import LoanStore

logger = logging.getLogger("loandesk.api")

router = APIRouter(dependencies=[Depends(get_current_principal)])


@router.get("/admin/metrics", response_model=MetricsResponse)
def metrics(request: Request) -> MetricsResponse:
    user_store: UserStore = request.app.state.user_store
    loan_store: LoanStore = request.app.state.loan_store
    return MetricsResponse(
        customers=user_store.count_by_role(Role.CUSTOMER),
        analysts=user_store.count_by_role(Role.ANALYST),
        admins=user_store.count_by_role(Role.ADMIN),
        loans=loan_store.count_loans(),
    )


@router.get("/admin/users", response_model=list[UserResponse])
def list_users(request: Request, role: Role | None = None) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    users = user_store.list_users() if role is None else user_store.find_by_role(role)
    return [UserResponse.from_user(u) for u in users]


@router.put("/admin/users/{user_id}/role", response_model=UserResponse)
def update_role(
    request: Request,
    user_id: int,
    body: RoleUpdate,
    principal: Principal = Depends(get_current_principal),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    target = _get_user(user_store, user_id)
    if target.role is Role.ADMIN and body.role is not Role.ADMIN:
        _guard_admin_removal(user_store, target, principal, "demote")
    user_store.update_user(user_id, role=body.role)
    logger.info("User id=%s role %s -> %s by %s", user_id, target.role.value, body.role.value, principal.username)
    return UserResponse.from_user(_get_user(user_store, user_id))


@router.put("/admin/users/{user_id}/active", response_model=UserResponse)
def update_active(
    request: Request,
    user_id: int,
    body: ActiveUpdate,
    principal: Principal = Depends(get_current_principal),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    target = _get_user(user_store, user_id)
    if not body.active and target.role is Role.ADMIN:
        _guard_admin_removal(user_store, target, principal, "deactivate")
    user_store.update_user(user_id, is_active=body.active)
    logger.info("User id=%s active=%s by %s", user_id, body.active, principal.username)
    return UserResponse.from_user(_get_user(user_store, user_id))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_user(user_store: UserStore, user_id: int) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def _guard_admin_removal(user_store: UserStore, target: User, principal: Principal, action: str) -> None:
    if target.id == principal.user_id:
        raise AdminGuardError(f"You cannot {action} your own account.")
    if target.is_active and user_store.count_active_admins() <= 1:
        raise AdminGuardError(f"Cannot {action} the last active admin account.")

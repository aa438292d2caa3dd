"""
auth/seed.py -- Demo accounts for local development.

Enabled with SEED_DEMO_USERS=true. Idempotent: existing usernames are left
untouched, so restarting the server never resets a changed password or role.
"""

from __future__ import annotations

import logging

from auth.authenticator import Authenticator
from auth.models import Role
from core.exceptions import UsernameTaken

logger = logging.getLogger("loandesk.auth")

DEMO_USERS: tuple[tuple[str, str, Role], ...] = (
    ("admin", "admin123", Role.ADMIN),
    ("analyst", "analyst123", Role.ANALYST),
    ("customer", "customer123", Role.CUSTOMER),
)


def seed_demo_users(authenticator: Authenticator) -> list[str]:
    """Create any missing demo account. Returns the usernames created."""
    created: list[str] = []
    for username, password, role in DEMO_USERS:
        if authenticator.store.get_by_username(username) is not None:
            continue
        try:
            authenticator.create_account(username, password, role)
        except UsernameTaken:
            # Another worker seeded it first.
            continue
        created.append(username)
    if created:
        logger.warning("Seeded demo accounts %s with default passwords -- do not use in production", created)
    return created

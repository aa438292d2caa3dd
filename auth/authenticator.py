"""
auth/authenticator.py -- Registration and password login.

Authenticator ties the credential store, the password hasher and the token
codec together. It raises domain errors from core/exceptions.py; the route
layer turns them into HTTP responses.

Security:
  login() answers every failure with the same InvalidCredentials and always
  runs bcrypt, against DUMMY_HASH when the username is unknown, so neither the
  response body nor its timing tells an attacker which usernames exist.

  register() pre-checks the username, but the UNIQUE constraint in the store
  is the final authority: an IntegrityError from a concurrent registration is
  reported as UsernameTaken as well.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import IssuedToken, Role, User
from auth.store import UserStore
from auth.tokens import DUMMY_HASH, TokenCodec, hash_password, verify_password
from core.exceptions import InvalidCredentials, InvalidInput, UsernameTaken

logger = logging.getLogger("loandesk.auth")


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


class Authenticator:
    def __init__(self, store: UserStore, codec: TokenCodec) -> None:
        self.store = store
        self.codec = codec

    def register(self, username: str | None, raw_password: str | None) -> User:
        """Create a CUSTOMER account. Returns the stored user.

        Raises InvalidInput for a missing/blank field and UsernameTaken for a
        duplicate username.
        """
        if _is_blank(username) or _is_blank(raw_password):
            raise InvalidInput("Username and password are required.")

        if self.store.get_by_username(username) is not None:
            raise UsernameTaken()

        return self.create_account(username, raw_password, Role.CUSTOMER)

    def create_account(self, username: str, raw_password: str, role: Role) -> User:
        """Persist a new active account with an explicit role.

        Registration always passes CUSTOMER; bootstrap code (seeding, the CLI)
        passes the role it needs.
        """
        user = User(username=username, hashed_password=hash_password(raw_password), role=role)
        try:
            user.id = self.store.create_user(user)
        except IntegrityError as exc:
            raise UsernameTaken() from exc
        logger.info("Created %s account %r (id=%s)", role.value, username, user.id)
        return self.store.get_by_id(user.id) or user

    def login(self, username: str | None, raw_password: str | None) -> IssuedToken:
        """Verify credentials and issue a token. Raises InvalidCredentials on any failure."""
        user = self.store.get_by_username(username) if username else None
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt.
            verify_password(raw_password or "", DUMMY_HASH)
            logger.info("Failed login")
            raise InvalidCredentials()
        if not verify_password(raw_password or "", user.hashed_password) or not user.is_active:
            logger.info("Failed login")
            raise InvalidCredentials()

        issued = self.codec.issue(user.username, user.role)
        logger.info("Issued token for user id=%s", user.id)
        return issued

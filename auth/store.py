"""
auth/store.py -- SQLAlchemy Core persistence layer for users (the credential store).

Pattern: Repository + Data Mapper (same as loans/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route, authenticator and dependency code never touches SQL directly.

Security:
  Statements are SQLAlchemy expressions, so every value is a bound parameter.
  Username uniqueness is a UNIQUE constraint. create_user() lets the
  IntegrityError escape so the authenticator can report UsernameTaken even
  when two registrations race past its pre-check.

Layer rule: no imports from api/ or loans/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import Role, User
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default=Role.CUSTOMER.value),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("full_name", String(255)),
    Column("email", String(255)),
    Column("phone", String(50)),
)

# Fields update_user() accepts. Anything else is a programming error.
_MUTABLE_FIELDS = {"role", "is_active", "full_name", "email", "phone", "hashed_password"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Switch a new SQLite connection to WAL so readers never wait on the writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user_id = store.create_user(User(username="admin", role=Role.ADMIN, hashed_password=hash_password("s3cret")))
        user = store.get_by_username("admin")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert user and return the new row id.

        A duplicate username surfaces as sqlalchemy.exc.IntegrityError.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    hashed_password=user.hashed_password,
                    role=user.role.to_wire(),
                    is_active=1 if user.is_active else 0,
                    created_at=_now_iso(),
                    full_name=user.full_name,
                    email=user.email,
                    phone=user.phone,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_username(self, username: str) -> User | None:
        """Exact, case-sensitive username match, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Every account, sorted by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        return [_row_to_user(r) for r in rows]

    def find_by_role(self, role: Role) -> list[User]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where(_users.c.role == role.to_wire()).order_by(_users.c.username)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_by_role(self, role: Role) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_users).where(_users.c.role == role.to_wire())
            ).scalar()
        return result or 0

    def count_active_admins(self) -> int:
        """Return the number of active admin users (last-admin guard)."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count())
                .select_from(_users)
                .where((_users.c.role == Role.ADMIN.value) & (_users.c.is_active == 1))
            ).scalar()
        return result or 0

    def update_user(self, user_id: int, **fields) -> bool:
        """Write the given fields on one user row.

        Accepted fields: role (Role), is_active (bool), full_name, email,
        phone, hashed_password. Username is immutable.

        False when no row has user_id.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {sorted(unknown)!r}")
        if "role" in fields:
            fields["role"] = fields["role"].to_wire()
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # A row with no role loads as CUSTOMER.
    role = Role.from_wire(row.role) if row.role else Role.CUSTOMER
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        role=role,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        full_name=row.full_name,
        email=row.email,
        phone=row.phone,
    )

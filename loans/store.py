"""
loans/store.py -- SQLAlchemy-backed persistence for loan applications.

Uses SQLAlchemy Core (not ORM) so the dataclasses in loans/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. LoanStore is the repository, _row_to_loan
the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. Sort columns come from the
_SORT_COLUMNS whitelist, never from raw user input.

Status changes are compare-and-set: transition_status() only updates a row
that is still in the expected from_status, so two concurrent decisions on the
same loan cannot both succeed.

Usage:
    store = LoanStore("sqlite:///:memory:")
    loan_id = store.create_loan(application)
    page = store.list_loans(page=0, size=10, sort_by="created_at", direction="desc")
    store.transition_status(loan_id, LoanStatus.SUBMITTED, LoanStatus.APPROVED, decided_by="analyst")
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from core.config import get_settings
from core.exceptions import InvalidInput
from loans.models import Decision, LoanApplication, LoanPage, LoanRequest, LoanStatus

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_loans = Table(
    "loan_applications",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("full_name", String(255)),
    Column("amount", Float),
    Column("tenure", Integer),
    Column("monthly_income", Float),
    Column("monthly_debt", Float),
    Column("credit_score", Integer),
    Column("employment_type", String(50)),
    Column("purpose", Text),
    Column("dti", Float, nullable=False),
    Column("risk_score", Integer, nullable=False),
    Column("eligibility_decision", String(20), nullable=False),
    Column("interest_rate", Float, nullable=False),
    Column("status", String(20), nullable=False, server_default=LoanStatus.SUBMITTED.value),
    Column("applicant_username", String(255)),
    Column("decided_by", String(255)),
    Column("decided_at", String(32)),
    Column("created_at", String(32), nullable=False),
)

_SORT_COLUMNS = {
    "id": _loans.c.id,
    "created_at": _loans.c.created_at,
    "amount": _loans.c.amount,
    "tenure": _loans.c.tenure,
    "credit_score": _loans.c.credit_score,
    "risk_score": _loans.c.risk_score,
    "interest_rate": _loans.c.interest_rate,
    "status": _loans.c.status,
    "full_name": _loans.c.full_name,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class LoanStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool, so the same pooled
            # connection may be used from more than one thread.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def create_loan(self, loan: LoanApplication) -> int:
        """Insert a new application and return its ID.

        created_at defaults to now when the caller did not set it.
        """
        req = loan.request
        with self.engine.connect() as conn:
            result = conn.execute(
                _loans.insert().values(
                    full_name=req.full_name,
                    amount=req.amount,
                    tenure=req.tenure,
                    monthly_income=req.monthly_income,
                    monthly_debt=req.monthly_debt,
                    credit_score=req.credit_score,
                    employment_type=req.employment_type,
                    purpose=req.purpose,
                    dti=loan.dti,
                    risk_score=loan.risk_score,
                    eligibility_decision=loan.eligibility_decision.value,
                    interest_rate=loan.interest_rate,
                    status=loan.status.value,
                    applicant_username=loan.applicant_username,
                    created_at=loan.created_at or _now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_loan(self, loan_id: int) -> Optional[LoanApplication]:
        """Fetch a single application by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_loans.select().where(_loans.c.id == loan_id)).fetchone()
        return _row_to_loan(row) if row is not None else None

    def list_loans(
        self,
        page: int = 0,
        size: int = 10,
        sort_by: str = "created_at",
        direction: str = "desc",
        status: Optional[LoanStatus] = None,
        applicant: Optional[str] = None,
    ) -> LoanPage:
        """Return one page of applications, optionally filtered by status and applicant.

        page is zero-based. direction is "asc" or "desc" (case-insensitive;
        anything other than "desc" sorts ascending). Raises InvalidInput for an
        unknown sort field or a negative page / non-positive size.
        """
        column = _SORT_COLUMNS.get(sort_by)
        if column is None:
            raise InvalidInput(f"Cannot sort by {sort_by!r}. Allowed: {', '.join(sorted(_SORT_COLUMNS))}.")
        if page < 0 or size <= 0:
            raise InvalidInput("page must be >= 0 and size must be > 0.")

        order = column.desc() if direction.lower() == "desc" else column.asc()
        conditions = []
        if status is not None:
            conditions.append(_loans.c.status == status.value)
        if applicant is not None:
            conditions.append(_loans.c.applicant_username == applicant)

        query = _loans.select()
        count_query = select(func.count()).select_from(_loans)
        if conditions:
            query = query.where(*conditions)
            count_query = count_query.where(*conditions)
        query = query.order_by(order, _loans.c.id).limit(size).offset(page * size)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            total = conn.execute(count_query).scalar() or 0
        return LoanPage(page=page, size=size, total_elements=total, items=[_row_to_loan(r) for r in rows])

    def transition_status(
        self,
        loan_id: int,
        from_status: LoanStatus,
        to_status: LoanStatus,
        decided_by: Optional[str] = None,
        decided_at: Optional[str] = None,
    ) -> bool:
        """Move a loan from from_status to to_status.

        Returns False if the loan does not exist or is no longer in
        from_status. Only status and the decision audit columns are written;
        decided_at defaults to now.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _loans.update()
                .where((_loans.c.id == loan_id) & (_loans.c.status == from_status.value))
                .values(status=to_status.value, decided_by=decided_by, decided_at=decided_at or _now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def count_loans(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_loans)).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_loan(row) -> LoanApplication:
    return LoanApplication(
        id=row.id,
        request=LoanRequest(
            full_name=row.full_name,
            amount=row.amount,
            tenure=row.tenure,
            monthly_income=row.monthly_income,
            monthly_debt=row.monthly_debt,
            credit_score=row.credit_score,
            employment_type=row.employment_type,
            purpose=row.purpose,
        ),
        dti=row.dti,
        risk_score=row.risk_score,
        eligibility_decision=Decision(row.eligibility_decision),
        interest_rate=row.interest_rate,
        status=LoanStatus(row.status),
        applicant_username=row.applicant_username,
        decided_by=row.decided_by,
        decided_at=row.decided_at,
        created_at=row.created_at,
    )

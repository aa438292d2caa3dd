"""
loans/models.py -- Domain dataclasses for loan applications.

Pure data containers. Scoring lives in loans/eligibility.py, the status
workflow in loans/service.py, persistence in loans/store.py.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class LoanStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Decision(str, Enum):
    """Outcome of the eligibility rules. Advisory -- reviewers make the final call."""

    ELIGIBLE = "ELIGIBLE"
    REVIEW = "REVIEW"
    REJECT = "REJECT"


@dataclass
class LoanRequest:
    """Applicant-supplied fields, as submitted. Any of them may be missing."""

    full_name: Optional[str] = None
    amount: Optional[float] = None
    tenure: Optional[int] = None  # months
    monthly_income: Optional[float] = None
    monthly_debt: Optional[float] = None
    credit_score: Optional[int] = None
    employment_type: Optional[str] = None  # "SALARIED" | "SELF_EMPLOYED" | "STUDENT" | other
    purpose: Optional[str] = None


@dataclass
class LoanApplication:
    """A submitted application with its scoring and review state.

    dti, risk_score, eligibility_decision and interest_rate are written once
    at creation from the eligibility engine and never recomputed.
    decided_by and decided_at (ISO 8601) stay None until an analyst or admin
    approves or rejects.

    id is None before the record is written to the database.
    """

    request: LoanRequest
    dti: float
    risk_score: int
    eligibility_decision: Decision
    interest_rate: float
    status: LoanStatus = LoanStatus.SUBMITTED
    applicant_username: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: Optional[str] = None
    created_at: str = ""  # ISO 8601, set once at creation
    id: Optional[int] = None


@dataclass
class LoanPage:
    """One page of a sorted loan listing."""

    page: int
    size: int
    total_elements: int
    items: list[LoanApplication] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return -(-self.total_elements // self.size)

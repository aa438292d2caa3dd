"""
loans/service.py -- Loan application workflow.

Lifecycle:

    SUBMITTED --approve--> APPROVED
              --reject---> REJECTED

SUBMITTED is set at creation together with the eligibility result. APPROVED
and REJECTED are terminal: a second approve/reject raises InvalidTransition
and the stored status is left alone. A transition only flips status -- the
eligibility fields are never recomputed.
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from core.exceptions import InvalidTransition, NotFound
from loans.eligibility import evaluate_request
from loans.models import LoanApplication, LoanPage, LoanRequest, LoanStatus
from loans.store import LoanStore

logger = logging.getLogger("loandesk.loans")

_TRANSITIONS: dict[LoanStatus, frozenset[LoanStatus]] = {
    LoanStatus.SUBMITTED: frozenset({LoanStatus.APPROVED, LoanStatus.REJECTED}),
    LoanStatus.APPROVED: frozenset(),
    LoanStatus.REJECTED: frozenset(),
}


def next_status(current: LoanStatus, target: LoanStatus) -> LoanStatus:
    """Validate current -> target and return target. Raises InvalidTransition otherwise."""
    if target not in _TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot move a {current.value} loan to {target.value}.")
    return target


class LoanService:
    def __init__(self, store: LoanStore) -> None:
        self.store = store

    def apply(self, request: LoanRequest, applicant: Optional[str] = None) -> LoanApplication:
        """Score and persist a new application in SUBMITTED state."""
        result = evaluate_request(request)
        loan = LoanApplication(
            request=request,
            dti=result.dti,
            risk_score=result.risk_score,
            eligibility_decision=result.decision,
            interest_rate=result.recommended_rate,
            status=LoanStatus.SUBMITTED,
            applicant_username=applicant,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        loan.id = self.store.create_loan(loan)
        logger.info(
            "Loan %s submitted by %s: risk=%d decision=%s",
            loan.id,
            applicant or "anonymous",
            loan.risk_score,
            loan.eligibility_decision.value,
        )
        return loan

    def get(self, loan_id: int) -> LoanApplication:
        loan = self.store.get_loan(loan_id)
        if loan is None:
            raise NotFound("Loan not found.")
        return loan

    def list_loans(
        self,
        page: int = 0,
        size: int = 10,
        sort_by: str = "created_at",
        direction: str = "desc",
        status: Optional[LoanStatus] = None,
        applicant: Optional[str] = None,
    ) -> LoanPage:
        return self.store.list_loans(
            page=page, size=size, sort_by=sort_by, direction=direction, status=status, applicant=applicant
        )

    def approve(self, loan_id: int, actor: Optional[str] = None) -> LoanApplication:
        return self._decide(loan_id, LoanStatus.APPROVED, actor)

    def reject(self, loan_id: int, actor: Optional[str] = None) -> LoanApplication:
        return self._decide(loan_id, LoanStatus.REJECTED, actor)

    def _decide(self, loan_id: int, target: LoanStatus, actor: Optional[str]) -> LoanApplication:
        loan = self.get(loan_id)
        next_status(loan.status, target)
        decided_at = datetime.now(timezone.utc).isoformat()
        if not self.store.transition_status(loan_id, loan.status, target, decided_by=actor, decided_at=decided_at):
            # Someone else decided it between our read and the write.
            current = self.get(loan_id)
            raise InvalidTransition(f"Cannot move a {current.status.value} loan to {target.value}.")
        logger.info("Loan %s %s by %s", loan_id, target.value, actor or "system")
        return replace(loan, status=target, decided_by=actor, decided_at=decided_at)

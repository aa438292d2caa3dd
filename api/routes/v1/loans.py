"""
api/routes/v1/loans.py -- Loan application routes.

Routes:
  POST  /api/v1/loans/apply          -- submit and score an application (authenticated)
  GET   /api/v1/loans                -- paged listing (authenticated)
  GET   /api/v1/loans/{loan_id}      -- one application (authenticated)
  PATCH /api/v1/loans/{loan_id}/approve  -- ANALYST or ADMIN
  PATCH /api/v1/loans/{loan_id}/reject   -- ANALYST or ADMIN

Visibility: customers only ever see their own applications. For a customer,
another applicant's loan id answers 404 rather than 403 so ids cannot be
probed.

Repeated decisions: approve/reject on a loan that is no longer SUBMITTED
answers 409 invalid_transition and leaves the stored status unchanged.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import LoanApplyRequest, LoanPageResponse, LoanResponse
from auth.dependencies import get_current_principal
from auth.models import Principal, Role
from core.exceptions import NotFound
from loans.models import LoanStatus
from loans.service import LoanService

router = APIRouter(dependencies=[Depends(get_current_principal)])


def _applicant_scope(principal: Principal) -> Optional[str]:
    """Username to filter by, or None when the caller may see every loan."""
    return principal.username if principal.role is Role.CUSTOMER else None


@router.post("/loans/apply", response_model=LoanResponse, status_code=201)
def apply(
    request: Request,
    body: LoanApplyRequest,
    principal: Principal = Depends(get_current_principal),
) -> LoanResponse:
    """Score the application and store it as SUBMITTED."""
    service: LoanService = request.app.state.loan_service
    loan = service.apply(body.to_domain(), applicant=principal.username)
    return LoanResponse.from_loan(loan)


@router.get("/loans", response_model=LoanPageResponse)
def list_loans(
    request: Request,
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    sort_by: str = "created_at",
    direction: str = "desc",
    status: Optional[LoanStatus] = None,
    principal: Principal = Depends(get_current_principal),
) -> LoanPageResponse:
    service: LoanService = request.app.state.loan_service
    result = service.list_loans(
        page=page,
        size=size,
        sort_by=sort_by,
        direction=direction,
        status=status,
        applicant=_applicant_scope(principal),
    )
    return LoanPageResponse.from_page(result)


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(
    request: Request,
    loan_id: int,
    principal: Principal = Depends(get_current_principal),
) -> LoanResponse:
    service: LoanService = request.app.state.loan_service
    loan = service.get(loan_id)
    scope = _applicant_scope(principal)
    if scope is not None and loan.applicant_username != scope:
        raise NotFound("Loan not found.")
    return LoanResponse.from_loan(loan)


@router.patch("/loans/{loan_id}/approve", response_model=LoanResponse)
def approve(
    request: Request,
    loan_id: int,
    principal: Principal = Depends(get_current_principal),
) -> LoanResponse:
    service: LoanService = request.app.state.loan_service
    return LoanResponse.from_loan(service.approve(loan_id, actor=principal.username))


@router.patch("/loans/{loan_id}/reject", response_model=LoanResponse)
def reject(
    request: Request,
    loan_id: int,
    principal: Principal = Depends(get_current_principal),
) -> LoanResponse:
    service: LoanService = request.app.state.loan_service
    return LoanResponse.from_loan(service.reject(loan_id, actor=principal.username))

"""
API request and response models for LoanDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
loans/models.py, which own the internal domain representation. Route handlers
map between the two.

Request models for register/login and loan submission accept missing fields.
The authenticator and the eligibility engine define what a missing
value means, not the transport layer.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Role, User
from loans.models import Decision, LoanApplication, LoanPage, LoanRequest, LoanStatus

# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Body for POST /auth/register and POST /auth/login."""

    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    username: str
    role: Role


class UserResponse(BaseModel):
    """Safe user view for clients -- never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    role: Role
    is_active: bool
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at or "",
        )


class ProfileResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    role: Role
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "ProfileResponse":
        return cls(
            id=user.id,
            username=user.username,
            role=user.role,
            full_name=user.full_name,
            email=user.email,
            phone=user.phone,
        )


class ProfileUpdate(BaseModel):
    """Body for PUT /users/me. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class RoleUpdate(BaseModel):
    role: Role


class ActiveUpdate(BaseModel):
    active: bool


class MetricsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    customers: int
    analysts: int
    admins: int
    loans: int


# ---------------------------------------------------------------------------
# Loans
# ---------------------------------------------------------------------------


class LoanApplyRequest(BaseModel):
    """Body for POST /loans/apply. Every field may be omitted.

    NaN and Infinity literals are refused with 422.
    """

    model_config = ConfigDict(allow_inf_nan=False)

    full_name: Optional[str] = Field(default=None, max_length=255)
    amount: Optional[float] = None
    tenure: Optional[int] = None
    monthly_income: Optional[float] = None
    monthly_debt: Optional[float] = None
    credit_score: Optional[int] = None
    employment_type: Optional[str] = Field(default=None, max_length=50)
    purpose: Optional[str] = Field(default=None, max_length=1000)

    def to_domain(self) -> LoanRequest:
        return LoanRequest(**self.model_dump())


class LoanResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    full_name: Optional[str]
    amount: Optional[float]
    tenure: Optional[int]
    monthly_income: Optional[float]
    monthly_debt: Optional[float]
    credit_score: Optional[int]
    employment_type: Optional[str]
    purpose: Optional[str]
    dti: float
    risk_score: int
    eligibility_decision: Decision
    interest_rate: float
    status: LoanStatus
    applicant_username: Optional[str]
    decided_by: Optional[str]
    decided_at: Optional[str]
    created_at: str

    @classmethod
    def from_loan(cls, loan: LoanApplication) -> "LoanResponse":
        req = loan.request
        return cls(
            id=loan.id,
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
            eligibility_decision=loan.eligibility_decision,
            interest_rate=loan.interest_rate,
            status=loan.status,
            applicant_username=loan.applicant_username,
            decided_by=loan.decided_by,
            decided_at=loan.decided_at,
            created_at=loan.created_at,
        )


class LoanPageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: list[LoanResponse]
    page: int
    size: int
    total_elements: int
    total_pages: int

    @classmethod
    def from_page(cls, page: LoanPage) -> "LoanPageResponse":
        return cls(
            items=[LoanResponse.from_loan(loan) for loan in page.items],
            page=page.page,
            size=page.size,
            total_elements=page.total_elements,
            total_pages=page.total_pages,
        )

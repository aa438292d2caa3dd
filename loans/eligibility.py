"""
loans/eligibility.py -- Rule-based eligibility scoring.

A fixed rule table over credit score, debt-to-income ratio and employment
category. evaluate() is a pure function: no I/O, no clock, no randomness --
the same inputs always give the same result.

Risk score (0-100, higher = riskier) is the sum of three bands:

  credit score   >=760: 10   >=700: 25   >=650: 45   else: 70
  DTI            <=0.25: 5   <=0.35: 15  <=0.50: 35  else: 55
  employment     SALARIED: 5  SELF_EMPLOYED: 15  STUDENT: 25  else: 35

The decision is NOT derived from the risk score. Hard limits on credit score
and DTI decide it directly:

  REJECT    credit < 600 or DTI > 0.60
  REVIEW    credit < 680 or DTI > 0.45
  ELIGIBLE  otherwise

Recommended rate = 8.5 + risk * 0.05, rounded half-up to one decimal.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from loans.models import Decision, LoanRequest

_BASE_RATE = Decimal("8.5")
_RATE_PER_RISK_POINT = Decimal("0.05")

# (lower bound inclusive, points), checked in order.
_CREDIT_BANDS: tuple[tuple[int, int], ...] = ((760, 10), (700, 25), (650, 45))
_CREDIT_FLOOR_POINTS = 70

# (upper bound inclusive, points), checked in order.
_DTI_BANDS: tuple[tuple[float, int], ...] = ((0.25, 5), (0.35, 15), (0.50, 35))
_DTI_CEILING_POINTS = 55

_EMPLOYMENT_POINTS: dict[str, int] = {
    "SALARIED": 5,
    "SELF_EMPLOYED": 15,
    "STUDENT": 25,
}
_EMPLOYMENT_DEFAULT_POINTS = 35

_REJECT_CREDIT_BELOW = 600
_REJECT_DTI_ABOVE = 0.60
_REVIEW_CREDIT_BELOW = 680
_REVIEW_DTI_ABOVE = 0.45


@dataclass(frozen=True)
class EligibilityResult:
    dti: float
    risk_score: int
    decision: Decision
    recommended_rate: float


def debt_to_income(monthly_income: float, monthly_debt: float) -> float:
    """DTI ratio. No, negative or non-finite income counts as fully indebted (1.0).

    A non-finite debt counts as no debt.
    """
    if not math.isfinite(monthly_income) or monthly_income <= 0:
        return 1.0
    if not math.isfinite(monthly_debt):
        monthly_debt = 0.0
    return monthly_debt / monthly_income


def _credit_points(credit_score: int) -> int:
    for floor, points in _CREDIT_BANDS:
        if credit_score >= floor:
            return points
    return _CREDIT_FLOOR_POINTS


def _dti_points(dti: float) -> int:
    for ceiling, points in _DTI_BANDS:
        if dti <= ceiling:
            return points
    return _DTI_CEILING_POINTS


def _employment_points(employment_type: Optional[str]) -> int:
    normalized = (employment_type or "").strip().upper()
    return _EMPLOYMENT_POINTS.get(normalized, _EMPLOYMENT_DEFAULT_POINTS)


def _decide(credit_score: int, dti: float) -> Decision:
    if credit_score < _REJECT_CREDIT_BELOW or dti > _REJECT_DTI_ABOVE:
        return Decision.REJECT
    if credit_score < _REVIEW_CREDIT_BELOW or dti > _REVIEW_DTI_ABOVE:
        return Decision.REVIEW
    return Decision.ELIGIBLE


def recommended_rate(risk_score: int) -> float:
    rate = _BASE_RATE + Decimal(risk_score) * _RATE_PER_RISK_POINT
    return float(rate.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def evaluate(
    amount: Optional[float] = None,
    tenure: Optional[int] = None,
    monthly_income: Optional[float] = None,
    monthly_debt: Optional[float] = None,
    credit_score: Optional[int] = None,
    employment_type: Optional[str] = None,
    purpose: Optional[str] = None,
) -> EligibilityResult:
    """Score one application.

    amount, tenure and purpose are accepted for a complete application record
    but do not affect the current rule table. Missing numbers count as 0 and a
    missing employment type lands in the least favourable bucket. NaN or
    infinite income scores like no income, and NaN or infinite debt like none.
    """
    income = monthly_income or 0.0
    debt = monthly_debt or 0.0
    credit = credit_score or 0

    dti = debt_to_income(income, debt)
    risk = _credit_points(credit) + _dti_points(dti) + _employment_points(employment_type)
    risk = min(100, max(0, risk))

    return EligibilityResult(
        dti=dti,
        risk_score=risk,
        decision=_decide(credit, dti),
        recommended_rate=recommended_rate(risk),
    )


def evaluate_request(request: LoanRequest) -> EligibilityResult:
    """Convenience wrapper for a LoanRequest."""
    return evaluate(
        amount=request.amount,
        tenure=request.tenure,
        monthly_income=request.monthly_income,
        monthly_debt=request.monthly_debt,
        credit_score=request.credit_score,
        employment_type=request.employment_type,
        purpose=request.purpose,
    )

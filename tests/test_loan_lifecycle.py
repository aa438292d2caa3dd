"""
tests/test_loan_lifecycle.py -- Unit tests for loans/service.py and loans/store.py.

Covers:
  - apply(): eligibility output is stored with status SUBMITTED
  - approve()/reject(): SUBMITTED -> terminal, exactly once
  - terminal states are immutable (InvalidTransition, stored status unchanged)
  - compare-and-set: a decision that loses a race does not overwrite the winner
  - list_loans(): paging, sorting, status and applicant filters
"""

from __future__ import annotations

import pytest

from core.exceptions import InvalidInput, InvalidTransition, NotFound
from loans.models import Decision, LoanPage, LoanRequest, LoanStatus
from loans.service import LoanService, next_status
from loans.store import LoanStore


def _request(**overrides) -> LoanRequest:
    fields = dict(
        full_name="Ada Lovelace",
        amount=10_000.0,
        tenure=24,
        monthly_income=5000.0,
        monthly_debt=1500.0,
        credit_score=720,
        employment_type="SALARIED",
        purpose="car",
    )
    fields.update(overrides)
    return LoanRequest(**fields)


class TestNextStatus:
    @pytest.mark.parametrize("target", [LoanStatus.APPROVED, LoanStatus.REJECTED])
    def test_submitted_can_be_decided(self, target: LoanStatus) -> None:
        assert next_status(LoanStatus.SUBMITTED, target) is target

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (LoanStatus.APPROVED, LoanStatus.APPROVED),
            (LoanStatus.APPROVED, LoanStatus.REJECTED),
            (LoanStatus.REJECTED, LoanStatus.APPROVED),
            (LoanStatus.REJECTED, LoanStatus.SUBMITTED),
            (LoanStatus.SUBMITTED, LoanStatus.SUBMITTED),
        ],
    )
    def test_everything_else_is_invalid(self, current: LoanStatus, target: LoanStatus) -> None:
        with pytest.raises(InvalidTransition):
            next_status(current, target)


class TestApply:
    def test_stores_submitted_with_eligibility(self, loan_service: LoanService) -> None:
        loan = loan_service.apply(_request(), applicant="alice")
        assert loan.id is not None
        assert loan.status is LoanStatus.SUBMITTED
        assert loan.risk_score == 45
        assert loan.eligibility_decision is Decision.ELIGIBLE
        assert loan.interest_rate == 10.8
        assert loan.dti == pytest.approx(0.30)
        assert loan.decided_by is None
        assert loan.decided_at is None

        stored = loan_service.get(loan.id)
        assert stored == loan

    def test_empty_request_is_accepted(self, loan_service: LoanService) -> None:
        loan = loan_service.apply(LoanRequest())
        assert loan.risk_score == 100
        assert loan.eligibility_decision is Decision.REJECT
        assert loan_service.get(loan.id).request == LoanRequest()


class TestDecide:
    def test_approve(self, loan_service: LoanService) -> None:
        loan = loan_service.apply(_request(), applicant="alice")
        approved = loan_service.approve(loan.id, actor="ana")
        assert approved.status is LoanStatus.APPROVED
        assert approved.decided_by == "ana"
        assert approved.decided_at is not None
        stored = loan_service.get(loan.id)
        assert stored.status is LoanStatus.APPROVED
        assert stored.decided_by == "ana"
        assert stored.decided_at == approved.decided_at

    def test_reject(self, loan_service: LoanService) -> None:
        loan = loan_service.apply(_request(), applicant="alice")
        assert loan_service.reject(loan.id, actor="ana").status is LoanStatus.REJECTED
        assert loan_service.get(loan.id).status is LoanStatus.REJECTED

    def test_decision_does_not_rescore(self, loan_service: LoanService) -> None:
        loan = loan_service.apply(_request(credit_score=610, monthly_debt=2600), applicant="alice")
        loan_service.approve(loan.id, actor="ana")
        stored = loan_service.get(loan.id)
        assert (stored.dti, stored.risk_score, stored.eligibility_decision, stored.interest_rate) == (
            loan.dti,
            loan.risk_score,
            loan.eligibility_decision,
            loan.interest_rate,
        )

    def test_second_approve_is_rejected(self, loan_service: LoanService) -> None:
        loan = loan_service.apply(_request())
        loan_service.approve(loan.id, actor="ana")
        with pytest.raises(InvalidTransition):
            loan_service.approve(loan.id, actor="root")
        assert loan_service.get(loan.id).decided_by == "ana"

    def test_terminal_state_cannot_be_reversed(self, loan_service: LoanService) -> None:
        loan = loan_service.apply(_request())
        loan_service.approve(loan.id, actor="ana")
        with pytest.raises(InvalidTransition):
            loan_service.reject(loan.id, actor="ana")
        assert loan_service.get(loan.id).status is LoanStatus.APPROVED

    def test_unknown_loan(self, loan_service: LoanService) -> None:
        with pytest.raises(NotFound):
            loan_service.approve(12345, actor="ana")
        with pytest.raises(NotFound):
            loan_service.get(12345)

    def test_lost_race_keeps_the_winner(
        self, loan_service: LoanService, loan_store: LoanStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Another reviewer rejects between our read and our write."""
        loan = loan_service.apply(_request())
        original = loan_store.transition_status

        def racing(loan_id, from_status, to_status, decided_by=None, decided_at=None):
            original(loan_id, from_status, LoanStatus.REJECTED, decided_by="other")
            return original(loan_id, from_status, to_status, decided_by=decided_by, decided_at=decided_at)

        monkeypatch.setattr(loan_store, "transition_status", racing)
        with pytest.raises(InvalidTransition):
            loan_service.approve(loan.id, actor="ana")
        stored = loan_service.get(loan.id)
        assert stored.status is LoanStatus.REJECTED
        assert stored.decided_by == "other"


class TestStoreTransition:
    def test_compare_and_set(self, loan_service: LoanService, loan_store: LoanStore) -> None:
        loan = loan_service.apply(_request())
        assert loan_store.transition_status(loan.id, LoanStatus.SUBMITTED, LoanStatus.APPROVED, "ana") is True
        assert loan_store.transition_status(loan.id, LoanStatus.SUBMITTED, LoanStatus.REJECTED, "ana") is False
        assert loan_store.get_loan(loan.id).status is LoanStatus.APPROVED
        assert loan_store.get_loan(loan.id).decided_at is not None

    def test_missing_loan(self, loan_store: LoanStore) -> None:
        assert loan_store.transition_status(99, LoanStatus.SUBMITTED, LoanStatus.APPROVED) is False
        assert loan_store.get_loan(99) is None


class TestListLoans:
    @pytest.fixture
    def five_loans(self, loan_service: LoanService) -> LoanService:
        for i, amount in enumerate([300.0, 100.0, 500.0, 200.0, 400.0]):
            loan = loan_service.apply(_request(amount=amount), applicant="alice" if i % 2 == 0 else "bob")
            if amount >= 400:
                loan_service.approve(loan.id, actor="ana")
        return loan_service

    def test_pages(self, five_loans: LoanService) -> None:
        first = five_loans.list_loans(page=0, size=2, sort_by="amount", direction="asc")
        last = five_loans.list_loans(page=2, size=2, sort_by="amount", direction="asc")
        assert [loan.request.amount for loan in first.items] == [100.0, 200.0]
        assert [loan.request.amount for loan in last.items] == [500.0]
        assert first.total_elements == 5
        assert first.total_pages == 3

    def test_page_past_the_end_is_empty(self, five_loans: LoanService) -> None:
        page = five_loans.list_loans(page=10, size=2)
        assert page.items == []
        assert page.total_elements == 5

    def test_descending(self, five_loans: LoanService) -> None:
        page = five_loans.list_loans(size=2, sort_by="amount", direction="DESC")
        assert [loan.request.amount for loan in page.items] == [500.0, 400.0]

    def test_default_sort_is_newest_first(self, five_loans: LoanService) -> None:
        page = five_loans.list_loans(size=5)
        created = [loan.created_at for loan in page.items]
        assert created == sorted(created, reverse=True)

    def test_status_filter(self, five_loans: LoanService) -> None:
        page = five_loans.list_loans(sort_by="amount", direction="asc", status=LoanStatus.APPROVED)
        assert [loan.request.amount for loan in page.items] == [400.0, 500.0]
        assert page.total_elements == 2

    def test_applicant_filter(self, five_loans: LoanService) -> None:
        page = five_loans.list_loans(applicant="bob")
        assert {loan.applicant_username for loan in page.items} == {"bob"}
        assert page.total_elements == 2

    def test_unknown_sort_field(self, five_loans: LoanService) -> None:
        with pytest.raises(InvalidInput):
            five_loans.list_loans(sort_by="monthly_income; DROP TABLE loan_applications")

    @pytest.mark.parametrize(("page", "size"), [(-1, 10), (0, 0)])
    def test_bad_paging(self, five_loans: LoanService, page: int, size: int) -> None:
        with pytest.raises(InvalidInput):
            five_loans.list_loans(page=page, size=size)

    def test_count_loans(self, five_loans: LoanService) -> None:
        assert five_loans.store.count_loans() == 5


def test_empty_page_has_no_pages() -> None:
    assert LoanPage(page=0, size=10, total_elements=0).total_pages == 0

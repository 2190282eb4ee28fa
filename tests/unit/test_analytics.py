"""
Unit tests for partner analytics, commission status and the sale ledger.
"""

import itertools
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.exceptions import PersistenceWriteFailed
from app.models.sale import Sale
from app.services.analytics_service import (
    LedgerService,
    commission_statuses,
    partner_financials,
    summarize_sales,
)

T0 = datetime(2026, 1, 10, tzinfo=timezone.utc)


def sale(course, amount, email, day=0, commission=None):
    amount = Decimal(amount)
    return SimpleNamespace(
        id=uuid.uuid4(),
        student_id=uuid.uuid4(),
        student_email=email,
        course_name=course,
        amount=amount,
        commission=commission if commission is not None else amount * Decimal("0.20"),
        purchase_date=T0 + timedelta(days=day),
    )


def payout(amount):
    return SimpleNamespace(amount=Decimal(amount))


@pytest.fixture
def sales():
    return [
        sale("Python Basics", "2500", "a@example.com", day=0),
        sale("Data Science", "4000", "b@example.com", day=1),
        sale("Python Basics", "3000", "c@example.com", day=2),
        sale("Excel Mastery", "1000", "A@example.com", day=3),
    ]


class TestSummarizeSales:

    def test_totals(self, sales):
        summary = summarize_sales(sales, partner_id="PARTNER123")

        assert summary.partner_id == "PARTNER123"
        assert summary.total_sales == 4
        assert summary.total_revenue == Decimal("10500")
        assert summary.total_commission == Decimal("2100.00")
        # Emails compared case-insensitively
        assert summary.unique_students == 3
        assert summary.unique_courses == 3

    def test_breakdown_sorted_by_count_then_name(self, sales):
        summary = summarize_sales(sales)
        assert [(c.course_name, c.sales) for c in summary.courses] == [
            ("Python Basics", 2), ("Data Science", 1), ("Excel Mastery", 1),
        ]
        assert summary.courses[0].revenue == Decimal("5500")

    def test_same_result_for_any_order(self, sales):
        expected = summarize_sales(sales)
        for permutation in itertools.permutations(sales):
            assert summarize_sales(permutation) == expected

    def test_uses_stored_commission(self):
        odd = sale("Legacy", "1000", "x@example.com", commission=Decimal("150.00"))
        assert summarize_sales([odd]).total_commission == Decimal("150.00")

    def test_empty(self):
        summary = summarize_sales([])
        assert summary.total_sales == 0
        assert summary.total_revenue == Decimal("0")
        assert summary.courses == []


class TestCommissionStatuses:

    def test_payouts_clear_oldest_first(self, sales):
        # Commissions in purchase order: 500, 800, 600, 200
        statuses = commission_statuses(sales, [payout("1000"), payout("300")])

        assert statuses[str(sales[0].id)] == "cleared"
        assert statuses[str(sales[1].id)] == "cleared"
        assert statuses[str(sales[2].id)] == "pending"
        assert statuses[str(sales[3].id)] == "pending"

    def test_no_payouts_all_pending(self, sales):
        assert set(commission_statuses(sales, []).values()) == {"pending"}

    def test_deterministic(self, sales):
        first = commission_statuses(sales, [payout("600")])
        for _ in range(5):
            assert commission_statuses(list(reversed(sales)), [payout("600")]) == first


class TestPartnerFinancials:

    def test_figures(self, sales):
        financials = partner_financials("PARTNER123", sales, [payout("1000")])
        assert financials.generated == Decimal("10500")
        assert financials.earned == Decimal("2100.00")
        assert financials.paid == Decimal("1000")
        assert financials.pending == Decimal("1100.00")

    def test_pending_never_negative(self, sales):
        assert partner_financials("PARTNER123", sales, [payout("5000")]).pending == Decimal("0")


class TestLedgerService:

    def make_sale(self, student, course, partner_id, day=0):
        return Sale(
            student_id=student.id,
            student_name=student.full_name,
            student_email=student.email,
            course_id=course.id,
            course_name=course.title,
            amount=Decimal("2500"),
            commission_rate=Decimal("0.20"),
            commission=Decimal("500.00"),
            purchase_date=T0 + timedelta(days=day),
            plan_days=365,
            partner_id=partner_id
        )

    def test_add_and_list_by_partner(self, db, make_course, student):
        course = make_course()
        ledger = LedgerService(db)
        ledger.add_sale(self.make_sale(student, course, "PARTNER123", day=0))
        ledger.add_sale(self.make_sale(student, course, "PARTNER123", day=1))
        ledger.add_sale(self.make_sale(student, course, None))

        sales = ledger.list_sales("partner123")

        assert len(sales) == 2
        assert sales[0].purchase_date > sales[1].purchase_date
        assert len(ledger.list_sales()) == 3

    def test_payouts_feed_financials(self, db, make_course, student, partner):
        course = make_course()
        ledger = LedgerService(db)
        ledger.add_sale(self.make_sale(student, course, "PARTNER123"))
        ledger.record_payout("PARTNER123", "300", payer="ops", utr="UTR0001")

        financials = ledger.financials("PARTNER123")
        assert financials.paid == Decimal("300")
        assert financials.pending == Decimal("200.00")
        assert [status for _, status in ledger.sales_with_status("PARTNER123")] == ["pending"]

    @pytest.mark.parametrize("amount", ["0", "-5", None])
    def test_payout_requires_positive_amount(self, db, amount):
        with pytest.raises(ValueError):
            LedgerService(db).record_payout("PARTNER123", amount)

    def test_add_sale_failure(self, db, make_course, student, monkeypatch):
        course = make_course()

        def failing_commit():
            from sqlalchemy.exc import OperationalError
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db, "commit", failing_commit)
        with pytest.raises(PersistenceWriteFailed):
            LedgerService(db).add_sale(self.make_sale(student, course, "PARTNER123"))

    def test_add_sale_without_commit_joins_caller_transaction(self, db, make_course, student):
        course = make_course()
        ledger = LedgerService(db)

        ledger.add_sale(self.make_sale(student, course, "PARTNER123"), commit=False)
        db.rollback()

        assert ledger.list_sales() == []

from sqlalchemy.orm import Session
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
import logging

from app.core.clock import ensure_aware
from app.core.exceptions import PersistenceWriteFailed
from app.models.sale import Payout, Sale
from app.services.pricing_service import parse_price
from app.services.referral_service import clean_referral_code

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class CourseBreakdown:
    course_name: str
    sales: int
    revenue: Decimal


@dataclass
class PartnerSummary:
    partner_id: Optional[str]
    total_sales: int = 0
    total_revenue: Decimal = ZERO
    total_commission: Decimal = ZERO
    unique_students: int = 0
    unique_courses: int = 0
    courses: List[CourseBreakdown] = field(default_factory=list)


@dataclass
class PartnerFinancials:
    partner_id: str
    generated: Decimal  # Sale value brought in
    earned: Decimal  # Commission on those sales
    paid: Decimal
    pending: Decimal


def summarize_sales(sales: Iterable[Sale], partner_id: Optional[str] = None) -> PartnerSummary:
    """Revenue, commission and per-course figures for a set of sales.

    Works from the stored commission of each sale, so the result only depends
    on the sales given, never on their order or on the current rate.
    """
    sales = list(sales)
    revenue_by_course: Dict[str, Decimal] = {}
    count_by_course: Dict[str, int] = {}
    students = set()

    total_revenue = ZERO
    total_commission = ZERO
    for sale in sales:
        amount = parse_price(sale.amount) or ZERO
        total_revenue += amount
        total_commission += parse_price(sale.commission) or ZERO
        students.add((sale.student_email or "").strip().lower() or str(sale.student_id))
        name = sale.course_name
        count_by_course[name] = count_by_course.get(name, 0) + 1
        revenue_by_course[name] = revenue_by_course.get(name, ZERO) + amount

    courses = [
        CourseBreakdown(course_name=name, sales=count_by_course[name], revenue=revenue_by_course[name])
        for name in count_by_course
    ]
    courses.sort(key=lambda c: (-c.sales, c.course_name))

    return PartnerSummary(
        partner_id=partner_id,
        total_sales=len(sales),
        total_revenue=total_revenue,
        total_commission=total_commission,
        unique_students=len(students),
        unique_courses=len(courses),
        courses=courses
    )


def _purchase_order(sale: Sale):
    return (ensure_aware(sale.purchase_date), str(sale.id))


def commission_statuses(sales: Iterable[Sale], payouts: Iterable[Payout]) -> Dict[str, str]:
    """Commission status per sale id, derived from the payouts made so far.

    Payouts settle commission oldest sale first; a sale is ``cleared`` once
    the total paid covers it and every earlier sale, otherwise ``pending``.
    """
    remaining = sum((parse_price(p.amount) or ZERO for p in payouts), ZERO)
    statuses = {}
    for sale in sorted(sales, key=_purchase_order):
        commission = parse_price(sale.commission) or ZERO
        if commission <= remaining:
            remaining -= commission
            statuses[str(sale.id)] = "cleared"
        else:
            remaining = ZERO
            statuses[str(sale.id)] = "pending"
    return statuses


def partner_financials(partner_id: str, sales: Iterable[Sale], payouts: Iterable[Payout]) -> PartnerFinancials:
    sales = list(sales)
    generated = sum((parse_price(s.amount) or ZERO for s in sales), ZERO)
    earned = sum((parse_price(s.commission) or ZERO for s in sales), ZERO)
    paid = sum((parse_price(p.amount) or ZERO for p in payouts), ZERO)
    return PartnerFinancials(
        partner_id=partner_id,
        generated=generated,
        earned=earned,
        paid=paid,
        pending=max(earned - paid, ZERO)
    )


class LedgerService:
    """Append-only access to sales and payouts"""

    def __init__(self, db: Session):
        self.db = db

    def add_sale(self, sale: Sale, commit: bool = True) -> Sale:
        """Append a sale. With ``commit=False`` it joins the caller's transaction."""
        if not commit:
            self.db.add(sale)
            return sale
        try:
            self.db.add(sale)
            self.db.commit()
            self.db.refresh(sale)
        except SQLAlchemyError as e:
            logger.error(f"Error appending sale: {e}")
            self.db.rollback()
            raise PersistenceWriteFailed() from e
        return sale

    def list_sales(self, partner_id: Optional[str] = None) -> List[Sale]:
        query = self.db.query(Sale)
        if partner_id is not None:
            code = clean_referral_code(partner_id)
            if not code:
                return []
            query = query.filter(func.lower(Sale.partner_id) == code.lower())
        return query.order_by(Sale.purchase_date.desc(), Sale.id).all()

    def record_payout(self, partner_id: str, amount, payer: str = None, utr: str = None) -> Payout:
        code = clean_referral_code(partner_id)
        value = parse_price(amount)
        if not code or value is None or value <= 0:
            raise ValueError("A partner code and a positive amount are required")
        payout = Payout(partner_id=code, amount=value, payer=payer, utr=utr, status="verified")
        try:
            self.db.add(payout)
            self.db.commit()
            self.db.refresh(payout)
        except SQLAlchemyError as e:
            logger.error(f"Error recording payout for partner {code}: {e}")
            self.db.rollback()
            raise PersistenceWriteFailed() from e
        logger.info(f"Recorded payout of {value} to partner {code}")
        return payout

    def list_payouts(self, partner_id: str) -> List[Payout]:
        code = clean_referral_code(partner_id) or ""
        return self.db.query(Payout).filter(
            func.lower(Payout.partner_id) == code.lower()
        ).order_by(Payout.created_at.desc(), Payout.id).all()

    def summary(self, partner_id: str) -> PartnerSummary:
        return summarize_sales(self.list_sales(partner_id), partner_id=partner_id)

    def financials(self, partner_id: str) -> PartnerFinancials:
        return partner_financials(partner_id, self.list_sales(partner_id), self.list_payouts(partner_id))

    def sales_with_status(self, partner_id: str) -> List[tuple]:
        sales = self.list_sales(partner_id)
        statuses = commission_statuses(sales, self.list_payouts(partner_id))
        return [(sale, statuses[str(sale.id)]) for sale in sales]

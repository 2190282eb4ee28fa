from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional
from urllib.parse import quote
import logging

from app.core.clock import ensure_aware, utcnow
from app.core.config import settings
from app.core.exceptions import AlreadyEnrolled, PartnerContactMissing, PersistenceWriteFailed
from app.models.course import Course
from app.models.enrollment import EnrolledCourse, EnrollmentStatus, Purchase, PurchaseStatus
from app.models.sale import Sale
from app.models.user import User
from app.services.analytics_service import LedgerService
from app.services.pricing_service import FREE, PriceResolver, Price, amount_of, is_free
from app.services.referral_service import PendingReferral, ReferralService, attributed_code, clean_referral_code

logger = logging.getLogger(__name__)

LIFETIME = -1
LIFETIME_LABEL = "Lifetime"


def compute_expiry(purchase_date: datetime, plan_days: int) -> Optional[datetime]:
    """Expiry of a plan; None for lifetime access"""
    if plan_days == LIFETIME:
        return None
    if plan_days is None or plan_days < 0:
        raise ValueError(f"Invalid plan length: {plan_days}")
    return purchase_date + timedelta(days=plan_days)


def is_expired(expiry_date: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if expiry_date is None:
        return False
    return ensure_aware(expiry_date) <= (now or utcnow())


def format_expiry(expiry_date: Optional[datetime]) -> str:
    if expiry_date is None:
        return LIFETIME_LABEL
    return expiry_date.strftime("%d %B %Y")


def calculate_commission(amount: Decimal, rate: Decimal = None) -> Decimal:
    rate = settings.COMMISSION_RATE if rate is None else rate
    return Decimal(amount) * Decimal(rate)


def whatsapp_link(number: str, course_title: str, price: Price) -> str:
    digits = "".join(c for c in number if c.isdigit())
    message = f"Hi, I want to buy the course '{course_title}' ({price})."
    return f"https://wa.me/{digits}?text={quote(message)}"


@dataclass
class CheckoutResult:
    action: str  # enrolled, purchased, contact_partner
    price: Price
    sale: Optional[Sale] = None
    enrollment: Optional[EnrolledCourse] = None
    whatsapp_url: Optional[str] = None


class PurchaseService:
    def __init__(self, db: Session, commission_rate: Decimal = None):
        self.db = db
        self.commission_rate = settings.COMMISSION_RATE if commission_rate is None else commission_rate
        self.prices = PriceResolver(db)
        self.referrals = ReferralService(db)
        self.ledger = LedgerService(db)

    def _get_enrollment(self, user_id, course_id) -> Optional[EnrolledCourse]:
        return self.db.query(EnrolledCourse).filter(
            EnrolledCourse.user_id == user_id,
            EnrolledCourse.course_id == course_id
        ).first()

    def _purchase_query(self, user_id, course_id, for_update: bool = False):
        query = self.db.query(Purchase).filter(
            Purchase.user_id == user_id,
            Purchase.course_id == course_id
        )
        if for_update:
            query = query.with_for_update()
        return query

    def _get_purchase(self, user_id, course_id) -> Optional[Purchase]:
        return self._purchase_query(user_id, course_id).first()

    def is_actively_enrolled(self, user_id, course_id, now: Optional[datetime] = None) -> bool:
        """Enrolled for free, or holding a purchase that has not run out"""
        enrollment = self._get_enrollment(user_id, course_id)
        purchase = self._get_purchase(user_id, course_id)
        if purchase is not None:
            return purchase.status == PurchaseStatus.ACTIVE and not is_expired(purchase.expiry_date, now)
        return enrollment is not None

    def _new_enrollment(self, user: User, course: Course, now: datetime) -> EnrolledCourse:
        return EnrolledCourse(
            user_id=user.id,
            course_id=course.id,
            title=course.title or "Untitled Course",
            progress=0,
            status=EnrollmentStatus.IN_PROGRESS,
            watched_duration=0.0,
            last_accessed=now,
            video_url=course.video_url or "",
            youtube_id=course.youtube_id or ""
        )

    def purchase(self, user: User, course: Course, resolved_price: Price,
                 plan_days: Optional[int] = None, partner_code: Optional[str] = None,
                 now: Optional[datetime] = None) -> Sale:
        """Record a purchase: sale, purchase record and enrollment in one transaction.

        ``partner_code`` defaults to the buyer's own attribution.
        """
        now = now or utcnow()
        plan_days = settings.DEFAULT_PLAN_DAYS if plan_days is None else plan_days
        expiry_date = compute_expiry(now, plan_days)

        # Renewals update this row in place; concurrent ones serialise on the lock
        self._purchase_query(user.id, course.id, for_update=True).first()
        if self.is_actively_enrolled(user.id, course.id, now):
            raise AlreadyEnrolled(course.id)

        if partner_code is None:
            partner_code = attributed_code(user)
        partner = self.referrals.find_partner(partner_code) if partner_code else None
        partner_id = clean_referral_code(partner.referral_code) if partner else None

        amount = amount_of(resolved_price)
        try:
            sale = Sale(
                student_id=user.id,
                student_name=user.full_name,
                student_email=user.email,
                course_id=course.id,
                course_name=course.title,
                amount=amount,
                commission_rate=self.commission_rate,
                commission=calculate_commission(amount, self.commission_rate),
                purchase_date=now,
                expiry_date=expiry_date,
                plan_days=plan_days,
                status="verified",
                partner_id=partner_id
            )
            self.ledger.add_sale(sale, commit=False)

            purchase = self._get_purchase(user.id, course.id)
            if purchase is None:
                purchase = Purchase(user_id=user.id, course_id=course.id)
                self.db.add(purchase)
            purchase.price = amount
            purchase.purchase_date = now
            purchase.expiry_date = expiry_date
            purchase.plan_days = plan_days
            purchase.status = PurchaseStatus.ACTIVE

            # Renewals keep the progress already made
            if self._get_enrollment(user.id, course.id) is None:
                self.db.add(self._new_enrollment(user, course, now))

            self.db.commit()
            self.db.refresh(sale)
        except IntegrityError as e:
            # A concurrent purchase of the same course won the race
            self.db.rollback()
            raise AlreadyEnrolled(course.id) from e
        except SQLAlchemyError as e:
            logger.error(f"Error recording purchase of course {course.id} by user {user.id}: {e}")
            self.db.rollback()
            raise PersistenceWriteFailed("Purchase failed. Please try again.") from e

        logger.info(
            f"Recorded sale {sale.id}: course {course.id}, amount {amount}, "
            f"partner {partner_id or 'direct'}, commission {sale.commission}"
        )
        return sale

    def enroll_free(self, user: User, course: Course, now: Optional[datetime] = None) -> EnrolledCourse:
        now = now or utcnow()
        if self.is_actively_enrolled(user.id, course.id, now):
            raise AlreadyEnrolled(course.id)
        try:
            enrollment = self._get_enrollment(user.id, course.id)
            if enrollment is None:
                enrollment = self._new_enrollment(user, course, now)
                self.db.add(enrollment)
            self.db.commit()
            self.db.refresh(enrollment)
        except IntegrityError as e:
            self.db.rollback()
            raise AlreadyEnrolled(course.id) from e
        except SQLAlchemyError as e:
            logger.error(f"Error enrolling user {user.id} in course {course.id}: {e}")
            self.db.rollback()
            raise PersistenceWriteFailed("Enrollment failed. Please try again.") from e

        logger.info(f"Enrolled user {user.id} in free course {course.id}")
        return enrollment

    def checkout(self, user: User, course_id, host_code: Optional[str] = None,
                 pending: Optional[PendingReferral] = None,
                 plan_days: Optional[int] = None) -> CheckoutResult:
        """Buy or enroll, routing paid courses on partner sites to the partner"""
        course = self.prices.get_course(course_id)
        partner_code = attributed_code(user, pending, host_code)
        price = self.prices.price_course(course, partner_code)

        if is_free(price):
            enrollment = self.enroll_free(user, course)
            return CheckoutResult(action="enrolled", price=FREE, enrollment=enrollment)

        if host_code:
            site_partner = self.referrals.find_partner(host_code)
            if site_partner is not None:
                if self.is_actively_enrolled(user.id, course.id):
                    raise AlreadyEnrolled(course.id)
                if not site_partner.whatsapp:
                    raise PartnerContactMissing(
                        f"{site_partner.institute_name or site_partner.full_name} has no contact number set up"
                    )
                return CheckoutResult(
                    action="contact_partner",
                    price=price,
                    whatsapp_url=whatsapp_link(site_partner.whatsapp, course.title, price)
                )

        sale = self.purchase(user, course, price, plan_days=plan_days, partner_code=partner_code)
        return CheckoutResult(action="purchased", price=price, sale=sale)

    def my_courses(self, user_id) -> List[EnrolledCourse]:
        return self.db.query(EnrolledCourse).filter(
            EnrolledCourse.user_id == user_id
        ).order_by(EnrolledCourse.enrolled_at, EnrolledCourse.id).all()

    def my_purchases(self, user_id) -> List[Purchase]:
        return self.db.query(Purchase).filter(
            Purchase.user_id == user_id
        ).order_by(Purchase.purchase_date.desc()).all()

    def expire_overdue_purchases(self, now: Optional[datetime] = None) -> int:
        """Mark purchases past their expiry as expired; lifetime plans are never touched"""
        now = now or utcnow()
        expired = 0
        try:
            candidates = self.db.query(Purchase).filter(
                Purchase.status == PurchaseStatus.ACTIVE,
                Purchase.expiry_date.isnot(None)
            ).all()
            for purchase in candidates:
                if is_expired(purchase.expiry_date, now):
                    purchase.status = PurchaseStatus.EXPIRED
                    expired += 1
            if expired:
                self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error expiring purchases: {e}")
            self.db.rollback()
            raise
        return expired

from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union
import logging

from app.core.exceptions import CourseNotFound
from app.models.course import Course
from app.models.resell import ResellListing
from app.services.referral_service import clean_referral_code

logger = logging.getLogger(__name__)

FREE = "Free"

Price = Union[Decimal, str]


def normalize_course_id(value) -> str:
    """Canonical string form of a course id.

    Ids arrive as ints, floats, digit strings ("05") and slugs; all of them
    are compared only after passing through here.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Invalid course id: {value!r}")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (float, Decimal)):
        if value != value or value % 1 != 0:
            raise ValueError(f"Invalid course id: {value!r}")
        return str(int(value))
    text = str(value).strip()
    if not text:
        raise ValueError("Invalid course id: empty")
    if text.isdigit():
        return str(int(text))
    return text


def parse_price(value) -> Optional[Decimal]:
    """Numeric amount of a price field, None when it carries no amount"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    # Strings like "₹2,999" or "2999.00"
    digits = "".join(c for c in str(value) if c.isdigit() or c in ".-")
    if not digits:
        return None
    try:
        return Decimal(digits)
    except InvalidOperation:
        return None


def is_free(value) -> bool:
    """"Free", 0, "0" and empty prices are one and the same state"""
    if isinstance(value, str) and value.strip().lower() == FREE.lower():
        return True
    amount = parse_price(value)
    return amount is None or amount == 0


def canonical_price(value) -> Price:
    if is_free(value):
        return FREE
    return parse_price(value)


def amount_of(price: Price) -> Decimal:
    """Chargeable amount of a resolved price"""
    if is_free(price):
        return Decimal("0")
    return parse_price(price)


class PriceResolver:
    def __init__(self, db: Session):
        self.db = db

    def listings_for_partner(self, partner_code: str) -> List[ResellListing]:
        return self.db.query(ResellListing).filter(
            func.lower(ResellListing.referral_code) == partner_code.lower(),
            ResellListing.status == "active"
        ).order_by(ResellListing.created_at, ResellListing.id).all()

    def listing_for(self, course_id, partner_code: Optional[str]) -> Optional[ResellListing]:
        """The partner's listing for a course; the earliest one wins if several match"""
        code = clean_referral_code(partner_code)
        if not code:
            return None
        wanted = normalize_course_id(course_id)
        for listing in self.listings_for_partner(code):
            try:
                if normalize_course_id(listing.course_id) == wanted:
                    return listing
            except ValueError:
                logger.warning(f"Skipping listing {listing.id} with malformed course id {listing.course_id!r}")
        return None

    def price_for(self, course_id, partner_code: Optional[str], catalog_price) -> Price:
        """Effective price: the partner's selling price if listed, else the catalog price"""
        if not partner_code:
            return canonical_price(catalog_price)
        listing = self.listing_for(course_id, partner_code)
        if listing is None:
            return canonical_price(catalog_price)
        return canonical_price(listing.selling_price)

    def get_course(self, course_id) -> Course:
        try:
            course = self.db.get(Course, normalize_course_id(course_id))
        except ValueError:
            course = None
        if course is None or not course.is_active:
            raise CourseNotFound(course_id)
        return course

    def list_courses(self) -> List[Course]:
        return self.db.query(Course).filter(Course.is_active.is_(True)).order_by(Course.id).all()

    def price_course(self, course: Course, partner_code: Optional[str]) -> Price:
        return self.price_for(course.id, partner_code, course.price)

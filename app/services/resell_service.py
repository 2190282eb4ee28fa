from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import List
import logging

from app.core.exceptions import DuplicateListing, InvalidListing, PersistenceWriteFailed
from app.models.resell import ResellListing
from app.models.user import User, UserRole
from app.services.pricing_service import PriceResolver, amount_of, canonical_price, normalize_course_id, parse_price

logger = logging.getLogger(__name__)


class ResellService:
    def __init__(self, db: Session):
        self.db = db
        self.prices = PriceResolver(db)

    def create_listing(self, partner: User, course_id, selling_price) -> ResellListing:
        """List a catalog course under the partner's code at a custom price"""
        if partner.role != UserRole.PARTNER or not partner.referral_code:
            raise InvalidListing("Only partners can resell courses")

        course = self.prices.get_course(course_id)
        canonical_id = normalize_course_id(course.id)

        amount = parse_price(selling_price)
        if amount is None or amount < 0:
            raise InvalidListing("Selling price must be a non-negative amount")
        actual_price = amount_of(canonical_price(course.price))
        if amount < actual_price:
            raise InvalidListing(
                f"Selling price {amount} is below the course price {actual_price}"
            )

        # One listing per (partner, course); the unique constraint backs this up
        for listing in self.list_listings(partner):
            if normalize_course_id(listing.course_id) == canonical_id:
                raise DuplicateListing(f"Course {canonical_id} is already listed")

        listing = ResellListing(
            partner_id=partner.id,
            referral_code=partner.referral_code,
            course_id=canonical_id,
            selling_price=amount,
            actual_price=actual_price,
            commission=amount - actual_price,
            status="active"
        )
        try:
            self.db.add(listing)
            self.db.commit()
            self.db.refresh(listing)
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateListing(f"Course {canonical_id} is already listed") from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating listing for partner {partner.id}: {e}")
            self.db.rollback()
            raise PersistenceWriteFailed() from e

        logger.info(f"Partner {partner.referral_code} listed course {canonical_id} at {amount}")
        return listing

    def list_listings(self, partner: User) -> List[ResellListing]:
        return self.db.query(ResellListing).filter(
            ResellListing.partner_id == partner.id
        ).order_by(ResellListing.created_at, ResellListing.id).all()


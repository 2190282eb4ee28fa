from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.database import Base


class ResellListing(Base):
    __tablename__ = "resell_listings"
    __table_args__ = (
        UniqueConstraint("partner_id", "course_id", name="uq_resell_listing_partner_course"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    partner_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    referral_code = Column(String, nullable=False, index=True)
    course_id = Column(String, ForeignKey("courses.id"), nullable=False)
    selling_price = Column(Numeric(10, 2), nullable=False)
    actual_price = Column(Numeric(10, 2), nullable=False)  # Catalog price when listed
    commission = Column(Numeric(10, 2), nullable=False)  # selling_price - actual_price
    status = Column(String, default="active")  # active, paused
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    partner = relationship("User", back_populates="resell_listings")
    course = relationship("Course")

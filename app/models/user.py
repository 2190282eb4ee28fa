from sqlalchemy import Column, String, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.database import Base


class UserRole:
    STUDENT = "student"
    PARTNER = "partner"

    ALL = (STUDENT, PARTNER)


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(String, nullable=False, default=UserRole.STUDENT)  # student, partner
    full_name = Column(String, nullable=False)
    mobile = Column(String(15), nullable=True)
    # Partners: their own code, assigned at signup and never changed.
    # Students: the clean code of the partner that referred them.
    referral_code = Column(String, nullable=True, index=True)
    institute_name = Column(String, nullable=True)  # Partners only
    whatsapp = Column(String(20), nullable=True)  # Partner contact channel for branded checkouts
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    enrolled_courses = relationship(
        "EnrolledCourse", back_populates="user", order_by="EnrolledCourse.enrolled_at"
    )
    purchases = relationship("Purchase", back_populates="user")
    resell_listings = relationship("ResellListing", back_populates="partner")

    @property
    def is_partner(self) -> bool:
        return self.role == UserRole.PARTNER

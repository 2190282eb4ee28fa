from sqlalchemy import Column, String, Integer, Float, DateTime, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from app.database import Base


class EnrollmentStatus:
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class PurchaseStatus:
    ACTIVE = "active"
    EXPIRED = "expired"


class EnrolledCourse(Base):
    __tablename__ = "enrolled_courses"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrolled_course_user_course"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String, ForeignKey("courses.id"), nullable=False)
    title = Column(String, nullable=False)
    progress = Column(Integer, nullable=False, default=0)  # 0-100, never decreases
    status = Column(String, nullable=False, default=EnrollmentStatus.IN_PROGRESS)
    watched_duration = Column(Float, nullable=False, default=0.0)  # seconds
    last_accessed = Column(DateTime(timezone=True), nullable=True)
    video_url = Column(String)
    youtube_id = Column(String)
    enrolled_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="enrolled_courses")


class Purchase(Base):
    __tablename__ = "purchases"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_purchase_user_course"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String, ForeignKey("courses.id"), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    purchase_date = Column(DateTime(timezone=True), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=True)  # NULL means lifetime access
    plan_days = Column(Integer, nullable=False)  # -1 means lifetime
    status = Column(String, nullable=False, default=PurchaseStatus.ACTIVE)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="purchases")

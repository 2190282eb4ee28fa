from sqlalchemy import Column, String, Integer, Boolean, DateTime, Numeric, Text
from sqlalchemy.sql import func

from app.database import Base


class Course(Base):
    """Read-only catalog entry, owned by the content team"""
    __tablename__ = "courses"

    # Canonical string form of the course id (see pricing_service.normalize_course_id)
    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    instructor = Column(String)
    category = Column(String, default="General")
    level = Column(String, default="Beginner")
    price = Column(Numeric(10, 2), nullable=True)  # NULL or 0 means free
    original_price = Column(Numeric(10, 2), nullable=True)
    video_url = Column(String)
    youtube_id = Column(String)
    lecture_count = Column(Integer, default=1)
    duration_seconds = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for tests, set before anything under app/ is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EXPIRY_SCHEDULER_ENABLED"] = "false"
os.environ.setdefault("SECRET_KEY", "test_secret_key_for_testing_only")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("MAIN_DOMAIN", "alifestableacademy.com")
os.environ.setdefault("PARTNER_DOMAIN_SUFFIX", ".alife-stable-academy.com")
os.environ.setdefault("FRONTEND_URL", "http://localhost:5173")
os.environ.setdefault("COMMISSION_RATE", "0.20")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from fastapi.testclient import TestClient

import app.models  # noqa: F401
from app.auth.jwt import token_for_user
from app.database import Base, SessionLocal, engine
from app.models.course import Course
from app.models.enrollment import EnrolledCourse
from app.models.resell import ResellListing
from app.models.user import User, UserRole
from app.services.user_service import UserService


@pytest.fixture
def db():
    """Fresh in-memory schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        UserService._listeners.clear()


@pytest.fixture
def client(db):
    """TestClient sharing the in-memory database with ``db``."""
    from main import app
    return TestClient(app)


@pytest.fixture
def make_course(db):
    def _make_course(course_id="101", title="Python Basics", price=Decimal("2500"), lecture_count=1, **kwargs):
        course = Course(
            id=course_id,
            title=title,
            price=price,
            lecture_count=lecture_count,
            video_url=kwargs.pop("video_url", "https://www.youtube.com/watch?v=abc123"),
            youtube_id=kwargs.pop("youtube_id", "abc123"),
            is_active=kwargs.pop("is_active", True),
            **kwargs
        )
        db.add(course)
        db.commit()
        db.refresh(course)
        return course
    return _make_course


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role=UserRole.STUDENT, full_name=None, email=None, referral_code=None,
                   whatsapp=None, institute_name=None, created_at=None):
        counter["n"] += 1
        user = User(
            email=email or f"{role}{counter['n']}@example.com",
            role=role,
            full_name=full_name or f"Test {role.title()} {counter['n']}",
            referral_code=referral_code,
            whatsapp=whatsapp,
            institute_name=institute_name
        )
        if created_at is not None:
            user.created_at = created_at
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def partner(make_user):
    return make_user(
        role=UserRole.PARTNER,
        full_name="Partner One Two Three",
        email="partner@example.com",
        referral_code="PARTNER123",
        whatsapp="+91 98765 43210",
        institute_name="Bright Future Institute"
    )


@pytest.fixture
def student(make_user):
    return make_user(role=UserRole.STUDENT, full_name="Asha Student", email="asha@example.com")


@pytest.fixture
def make_listing(db):
    def _make_listing(partner, course_id, selling_price, actual_price, created_at=None):
        listing = ResellListing(
            partner_id=partner.id,
            referral_code=partner.referral_code,
            course_id=course_id,
            selling_price=Decimal(str(selling_price)),
            actual_price=Decimal(str(actual_price)),
            commission=Decimal(str(selling_price)) - Decimal(str(actual_price)),
            status="active"
        )
        if created_at is not None:
            listing.created_at = created_at
        db.add(listing)
        db.commit()
        db.refresh(listing)
        return listing
    return _make_listing


@pytest.fixture
def enroll(db):
    def _enroll(user, course, progress=0):
        enrollment = EnrolledCourse(
            user_id=user.id,
            course_id=course.id,
            title=course.title,
            progress=progress,
            watched_duration=0.0,
            last_accessed=datetime(2026, 1, 1, tzinfo=timezone.utc)
        )
        db.add(enrollment)
        db.commit()
        db.refresh(enrollment)
        return enrollment
    return _enroll


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {token_for_user(user)}"}
    return _auth_headers

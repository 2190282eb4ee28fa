from app.database import Base

# Import all models here to ensure they are registered with SQLAlchemy
from .user import User, UserRole
from .course import Course
from .resell import ResellListing
from .enrollment import EnrolledCourse, Purchase, EnrollmentStatus, PurchaseStatus
from .sale import Sale, Payout

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Course",
    "ResellListing",
    "EnrolledCourse",
    "Purchase",
    "EnrollmentStatus",
    "PurchaseStatus",
    "Sale",
    "Payout"
]

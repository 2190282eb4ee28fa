"""Domain errors raised by the marketplace services.

Endpoints translate these into HTTP responses; background code logs them.
"""


class MarketplaceError(Exception):
    """Base class for all marketplace domain errors"""

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class AlreadyEnrolled(MarketplaceError):
    """Already enrolled in this course"""

    def __init__(self, course_id: str):
        super().__init__(f"Already enrolled in course {course_id}")
        self.course_id = course_id


class PartnerContactMissing(MarketplaceError):
    """This partner has not set up a contact channel for purchases"""


class ReferralNotFound(MarketplaceError):
    """No partner found for referral code"""

    def __init__(self, code: str):
        super().__init__(f"No partner found for referral code {code!r}")
        self.code = code


class PersistenceWriteFailed(MarketplaceError):
    """Could not save your changes, please try again"""


class InvalidListing(MarketplaceError):
    """Selling price must not be below the course price"""


class DuplicateListing(MarketplaceError):
    """This course is already listed by the partner"""


class CourseNotFound(MarketplaceError):
    """Course not found"""

    def __init__(self, course_id):
        super().__init__(f"Course {course_id} not found")
        self.course_id = course_id


class ImmutableRecordError(MarketplaceError):
    """Sale records are append-only"""


class NotEnrolled(MarketplaceError):
    """You are not enrolled in this course"""

    def __init__(self, course_id: str):
        super().__init__(f"Not enrolled in course {course_id}")
        self.course_id = course_id


class EmailAlreadyRegistered(MarketplaceError):
    """An account with this email already exists"""

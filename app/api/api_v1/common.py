from datetime import timedelta
from typing import Optional
import logging

from fastapi import HTTPException, Request, Response, status

from app.core.clock import utcnow
from app.core.config import settings
from app.core import exceptions
from app.services.referral_service import PendingReferral, partner_code_from_host

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    exceptions.AlreadyEnrolled: status.HTTP_409_CONFLICT,
    exceptions.DuplicateListing: status.HTTP_409_CONFLICT,
    exceptions.EmailAlreadyRegistered: status.HTTP_409_CONFLICT,
    exceptions.ImmutableRecordError: status.HTTP_409_CONFLICT,
    exceptions.InvalidListing: status.HTTP_400_BAD_REQUEST,
    exceptions.PartnerContactMissing: status.HTTP_422_UNPROCESSABLE_ENTITY,
    exceptions.CourseNotFound: status.HTTP_404_NOT_FOUND,
    exceptions.ReferralNotFound: status.HTTP_404_NOT_FOUND,
    exceptions.NotEnrolled: status.HTTP_404_NOT_FOUND,
    exceptions.PersistenceWriteFailed: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def http_error(error: exceptions.MarketplaceError) -> HTTPException:
    """HTTP response for a domain error"""
    status_code = ERROR_STATUS.get(type(error), status.HTTP_400_BAD_REQUEST)
    detail = error.message
    if isinstance(error, exceptions.PersistenceWriteFailed) and "try again" not in detail.lower():
        detail = f"{detail}. Please try again."
    return HTTPException(status_code=status_code, detail=detail)


def pending_referral(request: Request) -> Optional[PendingReferral]:
    """Pending referral from the visitor's cookie, if still fresh"""
    pending = PendingReferral.from_cookie(request.cookies.get(settings.PENDING_REFERRAL_COOKIE))
    if pending is None:
        return None
    if utcnow() - pending.captured_at > timedelta(seconds=settings.PENDING_REFERRAL_MAX_AGE_SECONDS):
        logger.info(f"Ignoring stale pending referral {pending.code}")
        return None
    return pending


def host_partner_code(request: Request) -> Optional[str]:
    """Partner code of the branded site this request was made on"""
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    return partner_code_from_host(host)


def set_pending_cookie(response: Response, pending: PendingReferral):
    response.set_cookie(
        key=settings.PENDING_REFERRAL_COOKIE,
        value=pending.to_cookie(),
        max_age=settings.PENDING_REFERRAL_MAX_AGE_SECONDS,
        httponly=True,
        samesite="lax"
    )


def clear_pending_cookie(response: Response):
    response.delete_cookie(key=settings.PENDING_REFERRAL_COOKIE)

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database import get_db
from app.schemas.course import CourseResponse
from app.models.course import Course
from app.models.user import User
from app.auth.dependencies import get_current_user_optional
from app.core.exceptions import MarketplaceError
from app.services.pricing_service import PriceResolver, canonical_price
from app.services.referral_service import attributed_code
from app.api.api_v1.common import http_error, host_partner_code, pending_referral

router = APIRouter()


def _course_response(course: Course, resolver: PriceResolver, partner_code: Optional[str]) -> dict:
    listing = resolver.listing_for(course.id, partner_code) if partner_code else None
    return {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "instructor": course.instructor,
        "category": course.category,
        "level": course.level,
        "catalog_price": canonical_price(course.price),
        "price": resolver.price_course(course, partner_code),
        "original_price": course.original_price,
        "lecture_count": course.lecture_count,
        "duration_seconds": course.duration_seconds,
        "youtube_id": course.youtube_id,
        "partner_code": listing.referral_code if listing else None
    }


@router.get("", response_model=List[CourseResponse])
async def list_courses(
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user_optional)
):
    """Catalog with prices for the caller's attribution"""
    resolver = PriceResolver(db)
    partner_code = attributed_code(current_user, pending_referral(request), host_partner_code(request))
    return [_course_response(course, resolver, partner_code) for course in resolver.list_courses()]


@router.get("/{course_id}", response_model=CourseResponse)
async def get_course(
    course_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user_optional)
):
    resolver = PriceResolver(db)
    partner_code = attributed_code(current_user, pending_referral(request), host_partner_code(request))
    try:
        course = resolver.get_course(course_id)
    except MarketplaceError as e:
        raise http_error(e)
    return _course_response(course, resolver, partner_code)

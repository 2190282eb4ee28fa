from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List

from app.database import get_db
from app.schemas.resell import ResellListingCreate, ResellListingResponse, ReferredStudentResponse
from app.models.enrollment import EnrolledCourse
from app.models.user import User
from app.auth.dependencies import get_current_partner
from app.core.exceptions import MarketplaceError
from app.services.referral_service import ReferralService
from app.services.resell_service import ResellService
from app.api.api_v1.common import http_error

router = APIRouter()

@router.post("/listings", response_model=ResellListingResponse)
async def create_listing(
    listing_data: ResellListingCreate,
    db: Session = Depends(get_db),
    current_partner: User = Depends(get_current_partner)
):
    """List a catalog course at the partner's own price"""
    try:
        return ResellService(db).create_listing(current_partner, listing_data.course_id, listing_data.selling_price)
    except MarketplaceError as e:
        raise http_error(e)

@router.get("/listings", response_model=List[ResellListingResponse])
async def list_listings(
    db: Session = Depends(get_db),
    current_partner: User = Depends(get_current_partner)
):
    return ResellService(db).list_listings(current_partner)

@router.get("/students", response_model=List[ReferredStudentResponse])
async def list_referred_students(
    db: Session = Depends(get_db),
    current_partner: User = Depends(get_current_partner)
):
    """Students who signed up through the partner's referral code"""
    students = ReferralService(db).referred_students(current_partner)
    counts = dict(
        db.query(EnrolledCourse.user_id, func.count(EnrolledCourse.id))
        .filter(EnrolledCourse.user_id.in_([s.id for s in students]))
        .group_by(EnrolledCourse.user_id)
        .all()
    ) if students else {}

    return [
        ReferredStudentResponse(
            id=student.id,
            full_name=student.full_name,
            email=student.email,
            mobile=student.mobile,
            created_at=student.created_at,
            enrolled_courses=counts.get(student.id, 0)
        )
        for student in students
    ]

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.referral import PartnerIdentityResponse, ReferralCaptureResponse, ReferralStatusResponse
from app.services.referral_service import ReferralService
from app.api.api_v1.common import host_partner_code, pending_referral, set_pending_cookie

router = APIRouter()

@router.post("/capture/{code}", response_model=ReferralCaptureResponse)
async def capture_referral(code: str, response: Response, db: Session = Depends(get_db)):
    """Hold a referral code for this visitor until they sign up"""
    service = ReferralService(db)
    pending = service.capture(code)
    if pending is None:
        return {"captured": False}

    set_pending_cookie(response, pending)
    return {
        "captured": True,
        "pending": pending,
        "partner": service.resolve(pending.code)
    }

@router.get("/resolve/{code}", response_model=PartnerIdentityResponse)
async def resolve_referral(code: str, db: Session = Depends(get_db)):
    """Partner branding for a referral code"""
    partner = ReferralService(db).resolve(code)
    if partner is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Referral code not found"
        )
    return partner

@router.get("/pending", response_model=ReferralStatusResponse)
async def get_pending_referral(request: Request, db: Session = Depends(get_db)):
    """The visitor's pending referral and the partner site they are on, if any"""
    service = ReferralService(db)
    pending = pending_referral(request)
    host_code = host_partner_code(request)

    partner = None
    code = pending.code if pending else host_code
    if code:
        partner = service.resolve(code)

    return {
        "pending": pending,
        "partner": partner,
        "host_partner_code": host_code
    }

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from app.database import get_db
from app.schemas.sale import (
    SaleResponse, PartnerAnalyticsResponse, PartnerFinancialsResponse, PayoutCreate, PayoutResponse
)
from app.models.user import User
from app.auth.dependencies import get_current_partner, require_admin_key
from app.core.exceptions import MarketplaceError
from app.services.analytics_service import LedgerService
from app.services.referral_service import ReferralService
from app.api.api_v1.common import http_error

router = APIRouter()

@router.get("/analytics", response_model=PartnerAnalyticsResponse)
async def partner_analytics(
    db: Session = Depends(get_db),
    current_partner: User = Depends(get_current_partner)
):
    """Revenue, commission and per-course sales for the partner's code"""
    return LedgerService(db).summary(current_partner.referral_code)

@router.get("/sales", response_model=List[SaleResponse])
async def partner_sales(
    db: Session = Depends(get_db),
    current_partner: User = Depends(get_current_partner)
):
    """Sales credited to the partner, newest first, with commission status"""
    return [
        SaleResponse(
            id=sale.id,
            student_id=sale.student_id,
            student_name=sale.student_name,
            student_email=sale.student_email,
            course_id=sale.course_id,
            course_name=sale.course_name,
            amount=sale.amount,
            commission_rate=sale.commission_rate,
            commission=sale.commission,
            commission_status=commission_status,
            purchase_date=sale.purchase_date,
            expiry_date=sale.expiry_date,
            plan_days=sale.plan_days,
            status=sale.status,
            partner_id=sale.partner_id
        )
        for sale, commission_status in LedgerService(db).sales_with_status(current_partner.referral_code)
    ]

@router.get("/financials", response_model=PartnerFinancialsResponse)
async def partner_financials(
    db: Session = Depends(get_db),
    current_partner: User = Depends(get_current_partner)
):
    return LedgerService(db).financials(current_partner.referral_code)

@router.get("/payouts", response_model=List[PayoutResponse])
async def partner_payouts(
    db: Session = Depends(get_db),
    current_partner: User = Depends(get_current_partner)
):
    return LedgerService(db).list_payouts(current_partner.referral_code)

@router.post("/{code}/payouts", response_model=PayoutResponse, dependencies=[Depends(require_admin_key)])
async def record_payout(
    code: str,
    payout_data: PayoutCreate,
    db: Session = Depends(get_db)
):
    """Record a commission payout made to a partner (operator only)"""
    try:
        partner = ReferralService(db).get_partner(code)
        return LedgerService(db).record_payout(
            partner.referral_code,
            payout_data.amount,
            payer=payout_data.payer,
            utr=payout_data.utr
        )
    except MarketplaceError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

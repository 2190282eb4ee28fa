from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from typing import List

from app.database import get_db
from app.schemas.enrollment import CheckoutRequest, CheckoutResponse, EnrolledCourseResponse, PurchaseResponse
from app.models.enrollment import PurchaseStatus
from app.models.user import User
from app.auth.dependencies import get_current_student
from app.core.exceptions import MarketplaceError
from app.services.pricing_service import normalize_course_id
from app.services.purchase_service import PurchaseService, format_expiry, is_expired
from app.api.api_v1.common import http_error, host_partner_code, pending_referral

router = APIRouter()

@router.post("/checkout", response_model=CheckoutResponse)
async def checkout(
    checkout_data: CheckoutRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student)
):
    """Enroll in a free course, buy a paid one, or get the partner's contact link on a partner site"""
    try:
        course_id = normalize_course_id(checkout_data.course_id)
        result = PurchaseService(db).checkout(
            current_user,
            course_id,
            host_code=host_partner_code(request),
            pending=pending_referral(request),
            plan_days=checkout_data.plan_days
        )
    except MarketplaceError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    response = {
        "action": result.action,
        "course_id": course_id,
        "price": result.price
    }
    if result.action == "enrolled":
        response["message"] = "Enrolled successfully"
    elif result.action == "contact_partner":
        response["whatsapp_url"] = result.whatsapp_url
        response["message"] = "Contact the partner on WhatsApp to complete your purchase"
    else:
        sale = result.sale
        response.update({
            "sale_id": sale.id,
            "commission": sale.commission,
            "partner_id": sale.partner_id,
            "expiry_date": sale.expiry_date,
            "expiry_label": format_expiry(sale.expiry_date),
            "message": "Purchase successful"
        })
    return response

@router.get("/my-courses", response_model=List[EnrolledCourseResponse])
async def my_courses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student)
):
    return PurchaseService(db).my_courses(current_user.id)

@router.get("/my-purchases", response_model=List[PurchaseResponse])
async def my_purchases(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student)
):
    """Purchases with their expiry rendered for display"""
    return [
        PurchaseResponse(
            id=purchase.id,
            course_id=purchase.course_id,
            price=purchase.price,
            purchase_date=purchase.purchase_date,
            expiry_date=purchase.expiry_date,
            expiry_label=format_expiry(purchase.expiry_date),
            plan_days=purchase.plan_days,
            status=purchase.status,
            is_expired=purchase.status != PurchaseStatus.ACTIVE or is_expired(purchase.expiry_date)
        )
        for purchase in PurchaseService(db).my_purchases(current_user.id)
    ]

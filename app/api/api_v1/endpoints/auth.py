from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.auth import SignUp, ProfileUpdate, UserResponse, SignUpResponse
from app.models.user import User, UserRole
from app.auth.jwt import token_for_user
from app.auth.dependencies import get_current_user
from app.core.exceptions import MarketplaceError
from app.services.user_service import UserService
from app.api.api_v1.common import http_error, pending_referral, clear_pending_cookie

router = APIRouter()

@router.post("/signup", response_model=SignUpResponse)
async def signup(
    signup_data: SignUp,
    request: Request,
    response: Response,
    db: Session = Depends(get_db)
):
    """Register a student or partner profile and issue an access token"""
    if signup_data.role not in UserRole.ALL:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Role must be one of: {', '.join(UserRole.ALL)}"
        )

    referral_token = signup_data.referral_code
    if not referral_token:
        pending = pending_referral(request)
        referral_token = pending.code if pending else None

    try:
        user = UserService(db).create_user(
            email=signup_data.email,
            full_name=signup_data.full_name,
            role=signup_data.role,
            mobile=signup_data.mobile,
            institute_name=signup_data.institute_name,
            whatsapp=signup_data.whatsapp,
            referral_token=referral_token
        )
    except MarketplaceError as e:
        raise http_error(e)

    # Read once at signup
    clear_pending_cookie(response)

    return {
        "access_token": token_for_user(user),
        "token_type": "bearer",
        "user": UserResponse.model_validate(user)
    }

@router.get("/me", response_model=UserResponse)
async def read_me(current_user: User = Depends(get_current_user)):
    """Get the current user's profile"""
    return current_user

@router.patch("/me", response_model=UserResponse)
async def update_me(
    profile_data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update the current user's profile; the referral code cannot be changed"""
    try:
        return UserService(db).update_user(current_user.id, profile_data.model_dump(exclude_unset=True))
    except MarketplaceError as e:
        raise http_error(e)

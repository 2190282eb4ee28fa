from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime
from uuid import UUID

class Token(BaseModel):
    access_token: str
    token_type: str

class SignUp(BaseModel):
    email: EmailStr
    full_name: str
    role: str = "student"  # student, partner
    mobile: Optional[str] = None
    institute_name: Optional[str] = None  # Partners only
    whatsapp: Optional[str] = None  # Partners only
    referral_code: Optional[str] = None  # Falls back to the pending referral cookie

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    mobile: Optional[str] = None
    institute_name: Optional[str] = None
    whatsapp: Optional[str] = None
    referral_code: Optional[str] = None  # Accepted for compatibility, never applied

class UserResponse(BaseModel):
    id: UUID
    email: str
    role: str
    full_name: str
    mobile: Optional[str] = None
    referral_code: Optional[str] = None
    institute_name: Optional[str] = None
    whatsapp: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class SignUpResponse(Token):
    user: UserResponse

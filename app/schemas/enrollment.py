from pydantic import BaseModel, Field
from typing import Optional, Union
from datetime import datetime
from decimal import Decimal
from uuid import UUID

class CheckoutRequest(BaseModel):
    course_id: Union[int, str]
    plan_days: Optional[int] = None  # -1 for lifetime access

class CheckoutResponse(BaseModel):
    action: str  # enrolled, purchased, contact_partner
    course_id: str
    price: Union[Decimal, str]
    sale_id: Optional[UUID] = None
    commission: Optional[Decimal] = None
    partner_id: Optional[str] = None
    expiry_date: Optional[datetime] = None
    expiry_label: Optional[str] = None
    whatsapp_url: Optional[str] = None
    message: str

class EnrolledCourseResponse(BaseModel):
    id: UUID
    course_id: str
    title: str
    progress: int
    status: str
    watched_duration: float
    last_accessed: Optional[datetime] = None
    video_url: Optional[str] = None
    youtube_id: Optional[str] = None
    enrolled_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PurchaseResponse(BaseModel):
    id: UUID
    course_id: str
    price: Decimal
    purchase_date: datetime
    expiry_date: Optional[datetime] = None
    expiry_label: str
    plan_days: int
    status: str
    is_expired: bool

class ProgressUpdate(BaseModel):
    progress: float = Field(..., ge=0)
    watched_duration: float = Field(0.0, ge=0)
    last_accessed: Optional[datetime] = None

class ProgressResponse(BaseModel):
    course_id: str
    progress: int
    watched_duration: float
    last_accessed: Optional[datetime] = None
    status: str

    class Config:
        from_attributes = True

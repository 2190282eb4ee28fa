from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID

class SaleResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_name: str
    student_email: str
    course_id: str
    course_name: str
    amount: Decimal
    commission_rate: Decimal
    commission: Decimal
    commission_status: str  # cleared, pending
    purchase_date: datetime
    expiry_date: Optional[datetime] = None
    plan_days: int
    status: str
    partner_id: Optional[str] = None

class CourseBreakdownResponse(BaseModel):
    course_name: str
    sales: int
    revenue: Decimal

    class Config:
        from_attributes = True

class PartnerAnalyticsResponse(BaseModel):
    partner_id: Optional[str] = None
    total_sales: int
    total_revenue: Decimal
    total_commission: Decimal
    unique_students: int
    unique_courses: int
    courses: List[CourseBreakdownResponse] = []

    class Config:
        from_attributes = True

class PartnerFinancialsResponse(BaseModel):
    partner_id: str
    generated: Decimal
    earned: Decimal
    paid: Decimal
    pending: Decimal

    class Config:
        from_attributes = True

class PayoutCreate(BaseModel):
    amount: Decimal
    payer: Optional[str] = None
    utr: Optional[str] = None

class PayoutResponse(BaseModel):
    id: UUID
    partner_id: str
    amount: Decimal
    payer: Optional[str] = None
    utr: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

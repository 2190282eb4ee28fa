from pydantic import BaseModel
from typing import Optional, Union
from datetime import datetime
from decimal import Decimal
from uuid import UUID

class ResellListingCreate(BaseModel):
    course_id: Union[int, str]
    selling_price: Decimal

class ResellListingResponse(BaseModel):
    id: UUID
    partner_id: UUID
    referral_code: str
    course_id: str
    selling_price: Decimal
    actual_price: Decimal
    commission: Decimal  # Partner's margin over the catalog price
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ReferredStudentResponse(BaseModel):
    id: UUID
    full_name: str
    email: str
    mobile: Optional[str] = None
    created_at: Optional[datetime] = None
    enrolled_courses: int = 0

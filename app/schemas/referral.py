from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from uuid import UUID

class PartnerIdentityResponse(BaseModel):
    user_id: UUID
    code: str
    display_name: str
    institute_name: Optional[str] = None
    whatsapp: Optional[str] = None

    class Config:
        from_attributes = True

class PendingReferralResponse(BaseModel):
    code: str
    captured_at: datetime

    class Config:
        from_attributes = True

class ReferralCaptureResponse(BaseModel):
    captured: bool
    pending: Optional[PendingReferralResponse] = None
    partner: Optional[PartnerIdentityResponse] = None

class ReferralStatusResponse(BaseModel):
    pending: Optional[PendingReferralResponse] = None
    partner: Optional[PartnerIdentityResponse] = None
    host_partner_code: Optional[str] = None

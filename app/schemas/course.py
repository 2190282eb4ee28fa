from pydantic import BaseModel
from typing import Optional, Union
from decimal import Decimal

class CourseResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    instructor: Optional[str] = None
    category: Optional[str] = None
    level: Optional[str] = None
    catalog_price: Union[Decimal, str]  # Decimal amount or "Free"
    price: Union[Decimal, str]  # Effective price for the caller's attribution
    original_price: Optional[Decimal] = None
    lecture_count: Optional[int] = None
    duration_seconds: Optional[int] = None
    youtube_id: Optional[str] = None
    partner_code: Optional[str] = None  # Partner whose listing set the price

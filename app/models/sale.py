from sqlalchemy import Column, String, Integer, DateTime, Numeric, ForeignKey, event
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from app.database import Base
from app.core.exceptions import ImmutableRecordError


class Sale(Base):
    """Append-only ledger entry, one per purchase"""
    __tablename__ = "sales"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    student_name = Column(String, nullable=False)
    student_email = Column(String, nullable=False)
    course_id = Column(String, ForeignKey("courses.id"), nullable=False)
    course_name = Column(String, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    commission_rate = Column(Numeric(5, 4), nullable=False)  # Rate in force when the sale was written
    commission = Column(Numeric(16, 6), nullable=False)  # Exact amount * rate, never rounded
    purchase_date = Column(DateTime(timezone=True), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=True)  # NULL means lifetime access
    plan_days = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="verified")
    partner_id = Column(String, nullable=True, index=True)  # Clean referral code, NULL for direct sales
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Payout(Base):
    """Commission paid out to a partner by an operator"""
    __tablename__ = "payouts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    partner_id = Column(String, nullable=False, index=True)  # Partner referral code
    amount = Column(Numeric(10, 2), nullable=False)
    payer = Column(String, nullable=True)
    utr = Column(String, nullable=True)  # Bank transfer reference
    status = Column(String, nullable=False, default="verified")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


@event.listens_for(Sale, "before_update")
def _reject_sale_update(mapper, connection, target):
    raise ImmutableRecordError(f"Sale {target.id} cannot be modified")


@event.listens_for(Sale, "before_delete")
def _reject_sale_delete(mapper, connection, target):
    raise ImmutableRecordError(f"Sale {target.id} cannot be deleted")

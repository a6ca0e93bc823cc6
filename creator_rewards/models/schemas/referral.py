"""
Pydantic schemas for the referral programme.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict
from ..db.enums import CommissionStatus, InvoiceStatus, PaymentMethod


class ReferralDashboardRead(BaseModel):
    referral_code: Optional[str]
    referral_percentage: int
    referee_count: int
    available_amount: int
    pending_amount: int
    reserved_amount: int
    withdrawn_amount: int
    total_earned: int

    model_config = ConfigDict(from_attributes=True)


class ReferralCommissionRead(BaseModel):
    id: int
    referee_id: int
    invoice_id: int
    amount_eur: int
    status: CommissionStatus
    referral_invoice_id: Optional[int]
    created_at: datetime
    available_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class ReferralInvoiceRead(BaseModel):
    id: int
    user_id: int
    payment_method: PaymentMethod
    pdf_url: Optional[str]
    amount_eur: int
    status: InvoiceStatus
    uploaded_at: datetime
    paid_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class RefereeRead(BaseModel):
    id: int
    name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

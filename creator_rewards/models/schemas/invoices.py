"""
Pydantic schemas for reward claims (invoices).
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict
from ..db.enums import InvoiceStatus, PaymentMethod


class InvoiceRead(BaseModel):
    id: int
    reward_id: int
    campaign_id: int
    submission_id: int
    creator_id: int
    payment_method: PaymentMethod
    status: InvoiceStatus
    pdf_url: Optional[str]
    amount_eur: int
    views_target: int
    uploaded_at: datetime
    paid_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

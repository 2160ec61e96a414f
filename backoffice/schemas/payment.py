"""
Payment & Invoice Schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from backoffice.models.payment import (
    InvoiceStatus, InvoiceType, PaymentMethod, PaymentStatus, PaymentType,
)


class PaymentCreate(BaseModel):
    lease_id: int
    payment_type: PaymentType
    amount: Decimal = Field(..., gt=0)
    due_date: date
    notes: Optional[str] = None


class PaymentUpdate(BaseModel):
    payment_type: Optional[PaymentType] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    due_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None


class MarkPaid(BaseModel):
    paid_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


class MarkPartial(BaseModel):
    paid_amount: Decimal = Field(..., gt=0)
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    lease_id: int
    invoice_id: Optional[int] = None
    payment_type: PaymentType
    amount: float
    due_date: date
    paid_date: Optional[date] = None
    payment_method: PaymentMethod
    status: PaymentStatus
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceItem(BaseModel):
    payment_type: PaymentType
    amount: Decimal = Field(..., gt=0)
    notes: Optional[str] = None


class InvoiceCreate(BaseModel):
    lease_id: int
    items: List[InvoiceItem] = Field(..., min_length=1)
    invoice_date: Optional[date] = None
    due_date: date
    invoice_type: InvoiceType = InvoiceType.MONTHLY_RENT
    notes: Optional[str] = None


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    lease_id: int
    invoice_date: date
    due_date: date
    total_amount: float
    invoice_type: InvoiceType
    status: InvoiceStatus
    notes: Optional[str] = None
    payments: List[PaymentResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True

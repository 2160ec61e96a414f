"""
Lease Schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from backoffice.models.lease import BillingCycle, LeaseStatus


class LeaseCreate(BaseModel):
    unit_id: int
    tenant_id: int
    start_date: date
    end_date: date
    rent_amount: Decimal = Field(..., gt=0)
    security_deposit: Optional[Decimal] = Field(None, ge=0)
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    activate: bool = True  # False creates the lease PENDING and leaves the unit alone

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class LeaseUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rent_amount: Optional[Decimal] = Field(None, gt=0)
    security_deposit: Optional[Decimal] = Field(None, ge=0)


class LeaseTerminate(BaseModel):
    reason: Optional[str] = None


class LeaseCheckout(BaseModel):
    checkout_date: date


class LeaseResponse(BaseModel):
    id: int
    unit_id: int
    tenant_id: int
    start_date: date
    end_date: date
    rent_amount: float
    security_deposit: Optional[float] = None
    billing_cycle: BillingCycle
    status: LeaseStatus
    termination_reason: Optional[str] = None
    created_by_user_id: Optional[int] = None
    room_number: Optional[str] = None
    tenant_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @classmethod
    def from_lease(cls, lease) -> "LeaseResponse":
        response = cls.model_validate(lease)
        if lease.unit is not None:
            response.room_number = lease.unit.room_number
        if lease.tenant is not None:
            response.tenant_name = lease.tenant.full_name
        return response


class SweepResult(BaseModel):
    expired_leases: int
    overdue_payments: int = 0
    triggered_schedules: int = 0
    message: str

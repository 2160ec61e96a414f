"""
Rental Request Schemas
"""
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from backoffice.models.lease import LeaseStatus
from backoffice.models.rental_request import RentalRequestStatus
from backoffice.models.unit import UnitStatus


class RentalRequestCreate(BaseModel):
    unit_id: int
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=20)
    occupation: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    lease_duration_months: int = Field(12, ge=1, le=120)
    notes: Optional[str] = None


class RentalRequestUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, min_length=1, max_length=20)
    occupation: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    lease_duration_months: Optional[int] = Field(None, ge=1, le=120)
    notes: Optional[str] = None


class RentalRequestApprove(BaseModel):
    # Both dates given: full approval creating tenant, lease and account
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class RentalRequestReject(BaseModel):
    reason: str = Field(..., min_length=1)


class RentalRequestResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    unit_id: int
    first_name: str
    last_name: str
    email: str
    phone: str
    occupation: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    lease_duration_months: int
    notes: Optional[str] = None
    status: RentalRequestStatus
    request_date: datetime
    approved_by_user_id: Optional[int] = None
    approved_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejection_acknowledged_at: Optional[datetime] = None
    monthly_rent: Optional[float] = None
    total_amount: Optional[float] = None
    is_rejection_acknowledged: bool = False
    requires_acknowledgement: bool = False

    class Config:
        from_attributes = True


class AcknowledgeResponse(BaseModel):
    request_id: int
    acknowledged_at: datetime
    message: str
    can_create_new_request: bool = True


class MyLatestRequest(BaseModel):
    """The caller's newest request plus what they may do next."""
    id: Optional[int] = None
    unit_id: Optional[int] = None
    room_number: Optional[str] = None
    floor: Optional[int] = None
    unit_type: Optional[str] = None
    unit_status: Optional[UnitStatus] = None
    monthly_rent: Optional[float] = None
    lease_duration_months: Optional[int] = None
    status: Optional[RentalRequestStatus] = None
    request_date: Optional[datetime] = None
    approved_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejection_acknowledged_at: Optional[datetime] = None

    lease_id: Optional[int] = None
    lease_status: Optional[LeaseStatus] = None
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None

    is_pending: bool = False
    is_approved: bool = False
    is_rejected: bool = False
    requires_acknowledgement: bool = False
    has_active_lease: bool = False
    can_create_new_request: bool = True
    status_message: str = "You can submit a new booking request"

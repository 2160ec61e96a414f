"""
Unit Pydantic Schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, Field

from backoffice.models.unit import UnitStatus


class UnitBase(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=20)
    floor: int = Field(..., ge=0)
    unit_type: str = "STANDARD"
    rent_amount: Decimal = Field(..., gt=0)
    size_sqm: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None


class UnitCreate(UnitBase):
    status: UnitStatus = UnitStatus.AVAILABLE


class UnitUpdate(BaseModel):
    room_number: Optional[str] = Field(None, min_length=1, max_length=20)
    floor: Optional[int] = Field(None, ge=0)
    unit_type: Optional[str] = None
    rent_amount: Optional[Decimal] = Field(None, gt=0)
    size_sqm: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None


class UnitStatusUpdate(BaseModel):
    status: UnitStatus
    reason: Optional[str] = None


class UnitPriceUpdate(BaseModel):
    rent_amount: Decimal = Field(..., gt=0)
    reason: Optional[str] = None


class UnitResponse(BaseModel):
    id: int
    room_number: str
    floor: int
    unit_type: str
    rent_amount: float
    size_sqm: Optional[float] = None
    description: Optional[str] = None
    status: UnitStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UnitDashboard(BaseModel):
    total_units: int
    by_status: Dict[str, int]
    occupancy_rate: float

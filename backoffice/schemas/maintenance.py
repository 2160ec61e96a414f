"""
Maintenance Schemas
Requests, request items, stock, schedules and the activity log
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from backoffice.models.maintenance import (
    MaintenanceCategory,
    MaintenanceLogAction,
    MaintenancePriority,
    MaintenanceStatus,
    MaintenanceUrgency,
    RecurrenceType,
    TargetType,
)


# ==================== STOCK ====================

class StockCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=255)
    category: MaintenanceCategory
    quantity: int = Field(0, ge=0)
    unit_of_measure: str = Field("piece", max_length=50)
    unit_price: Decimal = Field(..., ge=0)
    description: Optional[str] = None


class StockUpdate(BaseModel):
    item_name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[MaintenanceCategory] = None
    quantity: Optional[int] = Field(None, ge=0)
    unit_of_measure: Optional[str] = Field(None, max_length=50)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None


class StockQuantityChange(BaseModel):
    """Signed adjustment; the resulting quantity may not go below zero."""
    change: int


class StockAdd(BaseModel):
    quantity: int = Field(..., gt=0)


class StockResponse(BaseModel):
    id: int
    item_name: str
    category: MaintenanceCategory
    quantity: int
    unit_of_measure: str
    unit_price: float
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ==================== REQUESTS ====================

class MaintenanceRequestCreate(BaseModel):
    unit_id: int
    tenant_id: Optional[int] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: MaintenanceCategory
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    urgency: MaintenanceUrgency = MaintenanceUrgency.MEDIUM
    preferred_time: Optional[str] = Field(None, max_length=50)
    estimated_cost: Optional[Decimal] = Field(None, ge=0)


class MaintenanceRequestUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[MaintenanceCategory] = None
    priority: Optional[MaintenancePriority] = None
    urgency: Optional[MaintenanceUrgency] = None
    status: Optional[MaintenanceStatus] = None
    preferred_time: Optional[str] = Field(None, max_length=50)
    estimated_cost: Optional[Decimal] = Field(None, ge=0)
    actual_cost: Optional[Decimal] = Field(None, ge=0)
    completion_notes: Optional[str] = None


class AssignRequest(BaseModel):
    assigned_to_user_id: int


class StatusChange(BaseModel):
    status: MaintenanceStatus
    notes: Optional[str] = None


class PriorityChange(BaseModel):
    priority: MaintenancePriority


class CompleteRequest(BaseModel):
    completion_notes: Optional[str] = None
    actual_cost: Optional[Decimal] = Field(None, ge=0)


class RejectMaintenance(BaseModel):
    reason: str = Field(..., min_length=1)


class TimeSlotSelection(BaseModel):
    preferred_date: date
    preferred_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")


class RequestItemCreate(BaseModel):
    stock_id: int
    quantity_used: int = Field(..., gt=0)
    notes: Optional[str] = None


class RequestItemQuantity(BaseModel):
    quantity_used: int = Field(..., gt=0)


class RequestItemResponse(BaseModel):
    id: int
    request_id: int
    stock_id: int
    item_name: Optional[str] = None
    unit_price: Optional[float] = None
    quantity_used: int
    line_total: float
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MaintenanceRequestResponse(BaseModel):
    id: int
    unit_id: int
    tenant_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    category: MaintenanceCategory
    priority: MaintenancePriority
    urgency: MaintenanceUrgency
    status: MaintenanceStatus
    preferred_time: Optional[str] = None
    assigned_to_user_id: Optional[int] = None
    estimated_cost: Optional[float] = None
    actual_cost: Optional[float] = None
    completion_notes: Optional[str] = None
    submitted_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    created_by_user_id: Optional[int] = None
    schedule_id: Optional[int] = None
    is_from_schedule: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ItemsCost(BaseModel):
    request_id: int
    total_cost: float
    item_count: int


class MaintenanceStats(BaseModel):
    """Counts keyed by enum value; `by_status` also carries a TOTAL entry."""
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    by_category: Dict[str, int]


# ==================== SCHEDULES ====================

class ScheduleBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: MaintenanceCategory
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    recurrence_type: RecurrenceType
    recurrence_interval: int = Field(1, ge=1)
    recurrence_day_of_month: Optional[int] = Field(None, ge=1, le=31)
    target_type: TargetType = TargetType.ALL_UNITS
    target_unit_ids: Optional[List[int]] = None
    target_floor: Optional[int] = None
    target_unit_type: Optional[str] = Field(None, max_length=50)
    start_date: date
    end_date: Optional[date] = None
    estimated_cost: Optional[Decimal] = Field(None, ge=0)
    assigned_to_user_id: Optional[int] = None


class ScheduleCreate(ScheduleBase):
    pass


class ScheduleUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[MaintenanceCategory] = None
    priority: Optional[MaintenancePriority] = None
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_interval: Optional[int] = Field(None, ge=1)
    recurrence_day_of_month: Optional[int] = Field(None, ge=1, le=31)
    target_type: Optional[TargetType] = None
    target_unit_ids: Optional[List[int]] = None
    target_floor: Optional[int] = None
    target_unit_type: Optional[str] = Field(None, max_length=50)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    estimated_cost: Optional[Decimal] = Field(None, ge=0)
    assigned_to_user_id: Optional[int] = None


class ScheduleResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    category: MaintenanceCategory
    priority: MaintenancePriority
    recurrence_type: RecurrenceType
    recurrence_interval: int
    recurrence_day_of_month: Optional[int] = None
    target_type: TargetType
    target_unit_ids: Optional[List[int]] = None
    target_floor: Optional[int] = None
    target_unit_type: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    next_trigger_date: Optional[date] = None
    last_triggered_date: Optional[date] = None
    estimated_cost: Optional[float] = None
    assigned_to_user_id: Optional[int] = None
    created_by_user_id: Optional[int] = None
    is_active: bool
    is_paused: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TriggerResult(BaseModel):
    schedule_id: int
    created_request_ids: List[int]
    next_trigger_date: Optional[date] = None
    is_active: bool


# ==================== LOG ====================

class MaintenanceLogResponse(BaseModel):
    id: int
    schedule_id: Optional[int] = None
    request_id: Optional[int] = None
    action_type: MaintenanceLogAction
    description: Optional[str] = None
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    created_by_user_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True

"""
Maintenance Models
Repair requests, the parts they consume, spare-part stock, recurring
schedules that raise requests, and the maintenance activity log
"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base, TimestampMixin


class MaintenancePriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class MaintenanceCategory(str, Enum):
    PLUMBING = "PLUMBING"
    ELECTRICAL = "ELECTRICAL"
    HVAC = "HVAC"
    APPLIANCE = "APPLIANCE"
    STRUCTURAL = "STRUCTURAL"
    CLEANING = "CLEANING"
    OTHER = "OTHER"


class MaintenanceUrgency(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EMERGENCY = "EMERGENCY"


class MaintenanceStatus(str, Enum):
    NOT_SUBMITTED = "NOT_SUBMITTED"
    PENDING_TENANT_CONFIRMATION = "PENDING_TENANT_CONFIRMATION"
    SUBMITTED = "SUBMITTED"
    WAITING_FOR_REPAIR = "WAITING_FOR_REPAIR"
    APPROVED = "APPROVED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


CLOSED_STATUSES = (MaintenanceStatus.COMPLETED, MaintenanceStatus.CANCELLED)


class RecurrenceType(str, Enum):
    ONE_TIME = "ONE_TIME"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class TargetType(str, Enum):
    ALL_UNITS = "ALL_UNITS"
    SPECIFIC_UNITS = "SPECIFIC_UNITS"
    FLOOR = "FLOOR"
    UNIT_TYPE = "UNIT_TYPE"


class MaintenanceLogAction(str, Enum):
    SCHEDULE_CREATED = "SCHEDULE_CREATED"
    SCHEDULE_UPDATED = "SCHEDULE_UPDATED"
    SCHEDULE_DELETED = "SCHEDULE_DELETED"
    SCHEDULE_ACTIVATED = "SCHEDULE_ACTIVATED"
    SCHEDULE_DEACTIVATED = "SCHEDULE_DEACTIVATED"
    SCHEDULE_PAUSED = "SCHEDULE_PAUSED"
    SCHEDULE_RESUMED = "SCHEDULE_RESUMED"
    SCHEDULE_TRIGGERED = "SCHEDULE_TRIGGERED"
    REQUEST_CREATED_FROM_SCHEDULE = "REQUEST_CREATED_FROM_SCHEDULE"
    REQUEST_UPDATED = "REQUEST_UPDATED"
    REQUEST_STATUS_CHANGED = "REQUEST_STATUS_CHANGED"
    REQUEST_ASSIGNED = "REQUEST_ASSIGNED"
    REQUEST_COMPLETED = "REQUEST_COMPLETED"


class MaintenanceStock(Base, TimestampMixin):
    """Spare parts and consumables; soft-deleted so old request items keep their price."""
    __tablename__ = "maintenance_stocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    category: Mapped[MaintenanceCategory] = mapped_column(
        SQLEnum(MaintenanceCategory, name="maintenance_category"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_of_measure: Mapped[str] = mapped_column(String(50), nullable=False, default="piece")
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def __repr__(self):
        return f"<MaintenanceStock(id={self.id}, item='{self.item_name}', qty={self.quantity})>"


class MaintenanceSchedule(Base, TimestampMixin):
    """Recurring maintenance that raises one request per targeted, leased unit."""
    __tablename__ = "maintenance_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[MaintenanceCategory] = mapped_column(
        SQLEnum(MaintenanceCategory, name="maintenance_category"), nullable=False
    )
    priority: Mapped[MaintenancePriority] = mapped_column(
        SQLEnum(MaintenancePriority, name="maintenance_priority"),
        nullable=False,
        default=MaintenancePriority.MEDIUM,
    )

    recurrence_type: Mapped[RecurrenceType] = mapped_column(
        SQLEnum(RecurrenceType, name="recurrence_type"), nullable=False
    )
    recurrence_interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    recurrence_day_of_month: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    target_type: Mapped[TargetType] = mapped_column(
        SQLEnum(TargetType, name="maintenance_target_type"), nullable=False, default=TargetType.ALL_UNITS
    )
    target_unit_ids: Mapped[Optional[List[int]]] = mapped_column(JSON, nullable=True)
    target_floor: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_unit_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    next_trigger_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    last_triggered_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    estimated_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    assigned_to_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_by_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_maintenance_schedules_due", "is_active", "is_paused", "next_trigger_date"),
    )

    def __repr__(self):
        return (
            f"<MaintenanceSchedule(id={self.id}, title='{self.title}', "
            f"{self.recurrence_type.value}, next={self.next_trigger_date})>"
        )


class MaintenanceRequest(Base, TimestampMixin):
    __tablename__ = "maintenance_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    unit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("units.id"), nullable=False, index=True
    )
    tenant_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True, index=True
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[MaintenancePriority] = mapped_column(
        SQLEnum(MaintenancePriority, name="maintenance_priority"),
        nullable=False,
        default=MaintenancePriority.MEDIUM,
        index=True,
    )
    category: Mapped[MaintenanceCategory] = mapped_column(
        SQLEnum(MaintenanceCategory, name="maintenance_category"), nullable=False, index=True
    )
    urgency: Mapped[MaintenanceUrgency] = mapped_column(
        SQLEnum(MaintenanceUrgency, name="maintenance_urgency"),
        nullable=False,
        default=MaintenanceUrgency.MEDIUM,
    )
    status: Mapped[MaintenanceStatus] = mapped_column(
        SQLEnum(MaintenanceStatus, name="maintenance_status"),
        nullable=False,
        default=MaintenanceStatus.SUBMITTED,
        index=True,
    )
    # "YYYY-MM-DD HH:MM" slot picked by the tenant
    preferred_time: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    assigned_to_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    estimated_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    actual_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    completion_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    submitted_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_by_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    schedule_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("maintenance_schedules.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_from_schedule: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    unit = relationship("Unit")
    tenant = relationship("Tenant")
    items: Mapped[List["MaintenanceRequestItem"]] = relationship(
        back_populates="request", cascade="all, delete-orphan", order_by="MaintenanceRequestItem.id"
    )

    @property
    def is_open(self) -> bool:
        return self.status not in CLOSED_STATUSES

    def __repr__(self):
        return f"<MaintenanceRequest(id={self.id}, unit_id={self.unit_id}, status='{self.status.value}')>"


class MaintenanceRequestItem(Base):
    """Stock consumed by a request; quantities are taken from stock when recorded."""
    __tablename__ = "maintenance_request_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("maintenance_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stock_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("maintenance_stocks.id"), nullable=False, index=True
    )
    quantity_used: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    request: Mapped[MaintenanceRequest] = relationship(back_populates="items")
    stock: Mapped[MaintenanceStock] = relationship()

    @property
    def item_name(self) -> Optional[str]:
        return self.stock.item_name if self.stock else None

    @property
    def unit_price(self) -> Optional[Decimal]:
        return self.stock.unit_price if self.stock else None

    @property
    def line_total(self) -> Decimal:
        if self.stock is None:
            return Decimal("0")
        return self.stock.unit_price * self.quantity_used


class MaintenanceLog(Base):
    """Append-only history of schedule and request activity."""
    __tablename__ = "maintenance_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Plain columns: entries outlive the schedule or request they describe
    schedule_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    request_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    action_type: Mapped[MaintenanceLogAction] = mapped_column(
        SQLEnum(MaintenanceLogAction, name="maintenance_log_action"), nullable=False, index=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    previous_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON string
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON string

    created_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

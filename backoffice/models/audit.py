"""
Unit audit trail and price history (append-only)
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.db.base import Base


class UnitAuditActionType(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    PRICE_CHANGED = "PRICE_CHANGED"
    STATUS_CHANGED = "STATUS_CHANGED"
    DELETED = "DELETED"


class UnitAuditLog(Base):
    __tablename__ = "unit_audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Plain column: rows outlive the unit they describe
    unit_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    action_type: Mapped[UnitAuditActionType] = mapped_column(
        SQLEnum(UnitAuditActionType, name="unit_audit_action_type"), nullable=False, index=True
    )

    old_values: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON string
    new_values: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON string
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    __table_args__ = (
        Index("idx_unit_audit_unit_created", "unit_id", "created_at"),
    )


class UnitPriceHistory(Base):
    __tablename__ = "unit_price_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    unit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True
    )

    rent_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    effective_from: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    effective_to: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)  # NULL = current
    change_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

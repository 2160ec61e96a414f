"""
Lease Models
Tables: leases
"""
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Date, ForeignKey, Index, Integer, Numeric, String, Text, Enum as SQLEnum, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base, TimestampMixin


class LeaseStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class BillingCycle(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUALLY = "ANNUALLY"


class Lease(Base, TimestampMixin):
    """Tenancy agreement between one tenant and one unit for a date range."""
    __tablename__ = "leases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    unit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("units.id"), nullable=False, index=True
    )
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id"), nullable=False, index=True
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    security_deposit: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    billing_cycle: Mapped[BillingCycle] = mapped_column(
        SQLEnum(BillingCycle, name="billing_cycle"), default=BillingCycle.MONTHLY, nullable=False
    )

    status: Mapped[LeaseStatus] = mapped_column(
        SQLEnum(LeaseStatus, name="lease_status"),
        default=LeaseStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    termination_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Read-only navigation; ownership stays with the foreign keys above
    unit = relationship("Unit", foreign_keys=[unit_id], lazy="joined", viewonly=True)
    tenant = relationship("Tenant", foreign_keys=[tenant_id], lazy="joined", viewonly=True)

    __table_args__ = (
        Index("idx_leases_dates", "start_date", "end_date"),
        Index("idx_leases_unit_status", "unit_id", "status"),
        # At most one ACTIVE lease per unit, enforced by the store
        Index(
            "uq_leases_one_active_per_unit",
            "unit_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    def __repr__(self):
        return (
            f"<Lease(id={self.id}, unit_id={self.unit_id}, status='{self.status.value}', "
            f"{self.start_date}..{self.end_date})>"
        )

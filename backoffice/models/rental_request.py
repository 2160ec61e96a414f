"""
Rental Request Model - applications by prospective tenants for a unit
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base, TimestampMixin


class RentalRequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"  # lease behind the approval has finished


class RentalRequest(Base, TimestampMixin):
    __tablename__ = "rental_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Applicant account; NULL for anonymous intake
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True, index=True
    )
    unit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("units.id"), nullable=False, index=True
    )

    # Applicant identity
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    occupation: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    emergency_contact: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    emergency_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    lease_duration_months: Mapped[int] = mapped_column(Integer, nullable=False, default=12)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[RentalRequestStatus] = mapped_column(
        SQLEnum(RentalRequestStatus, name="rental_request_status"),
        default=RentalRequestStatus.PENDING,
        nullable=False,
        index=True,
    )
    request_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Set on approval and on rejection alike
    approved_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    unit = relationship("Unit", foreign_keys=[unit_id], lazy="joined", viewonly=True)

    @property
    def monthly_rent(self) -> Optional[Decimal]:
        return self.unit.rent_amount if self.unit is not None else None

    @property
    def total_amount(self) -> Optional[Decimal]:
        if self.unit is None or self.lease_duration_months is None:
            return None
        return self.unit.rent_amount * self.lease_duration_months

    @property
    def is_rejection_acknowledged(self) -> bool:
        return self.rejection_acknowledged_at is not None

    @property
    def requires_acknowledgement(self) -> bool:
        return self.status == RentalRequestStatus.REJECTED and not self.is_rejection_acknowledged

    def __repr__(self):
        return (
            f"<RentalRequest(id={self.id}, unit_id={self.unit_id}, email='{self.email}', "
            f"status='{self.status.value}')>"
        )

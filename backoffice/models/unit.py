from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Integer, Numeric, String, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.db.base import Base, TimestampMixin


class UnitStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    MAINTENANCE = "MAINTENANCE"
    RESERVED = "RESERVED"


class Unit(Base, TimestampMixin):
    __tablename__ = "units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    room_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    floor: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    unit_type: Mapped[str] = mapped_column(String(50), nullable=False, default="STANDARD")
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    size_sqm: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Written by the lease lifecycle and rental request workflow
    status: Mapped[UnitStatus] = mapped_column(
        SQLEnum(UnitStatus, name="unit_status"),
        default=UnitStatus.AVAILABLE,
        nullable=False,
        index=True,
    )

    def __repr__(self):
        return f"<Unit(id={self.id}, room='{self.room_number}', status='{self.status.value}')>"

"""
Payment & Invoice Models
Billable items tracked against leases
"""
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import Date, ForeignKey, Integer, Numeric, String, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base, TimestampMixin


class PaymentType(str, Enum):
    RENT = "RENT"
    ELECTRICITY = "ELECTRICITY"
    WATER = "WATER"
    MAINTENANCE = "MAINTENANCE"
    SECURITY_DEPOSIT = "SECURITY_DEPOSIT"
    OTHER = "OTHER"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    PARTIAL = "PARTIAL"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CREDIT_CARD = "CREDIT_CARD"
    PROMPTPAY = "PROMPTPAY"
    OTHER = "OTHER"


class InvoiceType(str, Enum):
    MONTHLY_RENT = "MONTHLY_RENT"
    SECURITY_DEPOSIT = "SECURITY_DEPOSIT"
    CLEANING_FEE = "CLEANING_FEE"
    MAINTENANCE_FEE = "MAINTENANCE_FEE"
    CUSTOM = "CUSTOM"


class InvoiceStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


# Receipt number prefixes per payment type
RECEIPT_PREFIXES = {
    PaymentType.RENT: "RENT",
    PaymentType.ELECTRICITY: "ELEC",
    PaymentType.WATER: "WATER",
    PaymentType.MAINTENANCE: "MAINT",
    PaymentType.SECURITY_DEPOSIT: "DEP",
    PaymentType.OTHER: "OTHER",
}


class Invoice(Base, TimestampMixin):
    """Invoice grouping one or more payment lines for a lease."""
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)

    lease_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True
    )

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    invoice_type: Mapped[InvoiceType] = mapped_column(
        SQLEnum(InvoiceType, name="invoice_type"), default=InvoiceType.MONTHLY_RENT, nullable=False
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(InvoiceStatus, name="invoice_status"),
        default=InvoiceStatus.PENDING,
        nullable=False,
        index=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    payments: Mapped[List["Payment"]] = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.id",
    )

    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.invoice_number}', status='{self.status.value}')>"


class Payment(Base, TimestampMixin):
    """Single billable item against a lease."""
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    lease_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invoice_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=True, index=True
    )

    payment_type: Mapped[PaymentType] = mapped_column(
        SQLEnum(PaymentType, name="payment_type"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    paid_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, name="payment_method"), default=PaymentMethod.CASH, nullable=False
    )
    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, name="payment_status"),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    receipt_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    invoice = relationship("Invoice", back_populates="payments")

    def __repr__(self):
        return f"<Payment(id={self.id}, type='{self.payment_type.value}', status='{self.status.value}')>"

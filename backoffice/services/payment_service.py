"""
Payment Service
Bills, invoices and their settlement against leases.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, resolve_clock
from backoffice.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from backoffice.database import transaction
from backoffice.models.lease import Lease
from backoffice.models.payment import (
    RECEIPT_PREFIXES,
    Invoice,
    InvoiceStatus,
    InvoiceType,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
)
from backoffice.models.tenant import Tenant
from backoffice.schemas.payment import InvoiceItem, PaymentUpdate

logger = logging.getLogger(__name__)


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}\n{note}" if existing else note


class PaymentService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)

    def generate_receipt_number(self, payment_type: PaymentType) -> str:
        millis = int(self.clock.now().timestamp() * 1000)
        return f"{RECEIPT_PREFIXES[payment_type]}-{millis}"

    def _lease(self, lease_id: int) -> Lease:
        lease = self.db.get(Lease, lease_id)
        if lease is None:
            raise NotFoundError.for_entity("Lease", lease_id)
        return lease

    # ── Queries ──────────────────────────────────────────────────────────────

    def get_payment(self, payment_id: int) -> Payment:
        payment = self.db.get(Payment, payment_id)
        if payment is None:
            raise NotFoundError.for_entity("Payment", payment_id)
        return payment

    def get_all_payments(self, skip: int = 0, limit: int = 100) -> List[Payment]:
        return self.db.query(Payment).order_by(Payment.due_date.desc(), Payment.id.desc()).offset(skip).limit(limit).all()

    def get_payments_by_lease(self, lease_id: int) -> List[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.lease_id == lease_id)
            .order_by(Payment.due_date, Payment.id)
            .all()
        )

    def get_payments_by_status(self, status: PaymentStatus) -> List[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.status == status)
            .order_by(Payment.due_date, Payment.id)
            .all()
        )

    def get_payments_by_tenant(self, tenant_id: int) -> List[Payment]:
        return (
            self.db.query(Payment)
            .join(Lease, Lease.id == Payment.lease_id)
            .filter(Lease.tenant_id == tenant_id)
            .order_by(Payment.due_date, Payment.id)
            .all()
        )

    def get_overdue_payments(self) -> List[Payment]:
        """Unpaid bills past their due date, whether or not the sweep has flagged them."""
        return (
            self.db.query(Payment)
            .filter(
                Payment.status.in_([PaymentStatus.PENDING, PaymentStatus.OVERDUE]),
                Payment.due_date < self.clock.today(),
            )
            .order_by(Payment.due_date, Payment.id)
            .all()
        )

    # ── Commands ─────────────────────────────────────────────────────────────

    def create_bill(
        self,
        lease_id: int,
        payment_type: PaymentType,
        amount: Decimal,
        due_date: date,
        notes: Optional[str] = None,
    ) -> Payment:
        if amount is None or amount <= 0:
            raise InvalidStateError("Bill amount must be positive")

        with transaction(self.db):
            lease = self._lease(lease_id)
            payment = Payment(
                lease_id=lease.id,
                payment_type=payment_type,
                amount=amount,
                due_date=due_date,
                status=PaymentStatus.PENDING,
                receipt_number=self.generate_receipt_number(payment_type),
                notes=notes,
            )
            self.db.add(payment)

        self.db.refresh(payment)
        logger.info(f"[PAYMENT] {payment_type.value} bill of {amount} for lease {lease_id}")
        return payment

    def mark_as_paid(
        self,
        payment_id: int,
        paid_date: Optional[date] = None,
        method: Optional[PaymentMethod] = None,
        notes: Optional[str] = None,
    ) -> Payment:
        with transaction(self.db):
            payment = self.get_payment(payment_id)
            if payment.status == PaymentStatus.PAID:
                raise ConflictError("Payment is already marked as paid", entity="Payment")

            payment.status = PaymentStatus.PAID
            payment.paid_date = paid_date or self.clock.today()
            if method is not None:
                payment.payment_method = method
            if notes:
                payment.notes = _append_note(payment.notes, f"Payment Notes: {notes}")
            if not payment.receipt_number:
                payment.receipt_number = self.generate_receipt_number(payment.payment_type)

            if payment.invoice is not None:
                _settle_invoice(payment.invoice)

        self.db.refresh(payment)
        logger.info(f"[PAYMENT] Payment {payment.id} paid for lease {payment.lease_id}")
        return payment

    def mark_as_partial(self, payment_id: int, paid_amount: Decimal, notes: Optional[str] = None) -> Payment:
        with transaction(self.db):
            payment = self.get_payment(payment_id)
            if payment.status == PaymentStatus.PAID:
                raise ConflictError("Payment is already marked as paid", entity="Payment")
            if paid_amount >= payment.amount:
                raise InvalidStateError("Paid amount should be less than total amount for partial payment")

            payment.status = PaymentStatus.PARTIAL
            note = f"Partial Payment: {paid_amount}"
            if notes:
                note = f"{note} - {notes}"
            payment.notes = _append_note(payment.notes, note)

        self.db.refresh(payment)
        return payment

    def mark_overdue_payments(self) -> int:
        today = self.clock.today()
        with transaction(self.db):
            overdue = (
                self.db.query(Payment)
                .filter(Payment.status == PaymentStatus.PENDING, Payment.due_date < today)
                .all()
            )
            for payment in overdue:
                payment.status = PaymentStatus.OVERDUE

            invoices = (
                self.db.query(Invoice)
                .filter(Invoice.status == InvoiceStatus.PENDING, Invoice.due_date < today)
                .all()
            )
            for invoice in invoices:
                invoice.status = InvoiceStatus.OVERDUE

        if overdue:
            logger.info(f"[PAYMENT] Marked {len(overdue)} payment(s) overdue")
        return len(overdue)

    def update_payment(self, payment_id: int, data: PaymentUpdate) -> Payment:
        with transaction(self.db):
            payment = self.get_payment(payment_id)
            for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
                setattr(payment, field, value)

        self.db.refresh(payment)
        return payment

    def delete_payment(self, payment_id: int) -> None:
        with transaction(self.db):
            payment = self.get_payment(payment_id)
            self.db.delete(payment)
        logger.info(f"[PAYMENT] Deleted payment {payment_id}")


def _settle_invoice(invoice: Invoice) -> None:
    if invoice.status != InvoiceStatus.CANCELLED and all(
        p.status == PaymentStatus.PAID for p in invoice.payments
    ):
        invoice.status = InvoiceStatus.PAID


class InvoiceService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)
        self.payments = PaymentService(db, self.clock)

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.db.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError.for_entity("Invoice", invoice_id)
        return invoice

    def get_invoice_by_number(self, invoice_number: str) -> Invoice:
        invoice = self.db.query(Invoice).filter(Invoice.invoice_number == invoice_number).first()
        if invoice is None:
            raise NotFoundError(f"Invoice not found with number: {invoice_number}", entity="Invoice")
        return invoice

    def get_all_invoices(self, skip: int = 0, limit: int = 100) -> List[Invoice]:
        return (
            self.db.query(Invoice)
            .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_invoices_by_lease(self, lease_id: int) -> List[Invoice]:
        return (
            self.db.query(Invoice)
            .filter(Invoice.lease_id == lease_id)
            .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
            .all()
        )

    def get_invoices_by_tenant_email(self, email: str) -> List[Invoice]:
        return (
            self.db.query(Invoice)
            .join(Lease, Lease.id == Invoice.lease_id)
            .join(Tenant, Tenant.id == Lease.tenant_id)
            .filter(Tenant.email == email)
            .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
            .all()
        )

    def generate_invoice_number(self, invoice_date: date) -> str:
        """INV-YYYYMMDD-<n>, numbered per invoice date."""
        stamp = invoice_date.strftime("%Y%m%d")
        sequence = self.db.query(Invoice).filter(Invoice.invoice_date == invoice_date).count() + 1
        number = f"INV-{stamp}-{sequence}"
        while self.db.query(Invoice.id).filter(Invoice.invoice_number == number).first() is not None:
            sequence += 1
            number = f"INV-{stamp}-{sequence}"
        return number

    def create_invoice(
        self,
        lease_id: int,
        items: Iterable[InvoiceItem],
        due_date: date,
        invoice_date: Optional[date] = None,
        invoice_type: InvoiceType = InvoiceType.MONTHLY_RENT,
        notes: Optional[str] = None,
    ) -> Invoice:
        items = list(items)
        if not items:
            raise InvalidStateError("An invoice needs at least one item")
        invoice_date = invoice_date or self.clock.today()
        if due_date < invoice_date:
            raise InvalidStateError("Invoice due date must not be before the invoice date")

        with transaction(self.db):
            lease = self.payments._lease(lease_id)
            invoice = Invoice(
                invoice_number=self.generate_invoice_number(invoice_date),
                lease_id=lease.id,
                invoice_date=invoice_date,
                due_date=due_date,
                total_amount=sum((item.amount for item in items), Decimal("0")),
                invoice_type=invoice_type,
                status=InvoiceStatus.PENDING,
                notes=notes,
            )
            for item in items:
                invoice.payments.append(
                    Payment(
                        lease_id=lease.id,
                        payment_type=item.payment_type,
                        amount=item.amount,
                        due_date=due_date,
                        status=PaymentStatus.PENDING,
                        receipt_number=self.payments.generate_receipt_number(item.payment_type),
                        notes=item.notes,
                    )
                )
            self.db.add(invoice)

        self.db.refresh(invoice)
        logger.info(f"[INVOICE] Created {invoice.invoice_number} for lease {lease_id} ({invoice.total_amount})")
        return invoice

    def mark_invoice_paid(
        self,
        invoice_id: int,
        method: PaymentMethod = PaymentMethod.CASH,
        paid_date: Optional[date] = None,
    ) -> Invoice:
        with transaction(self.db):
            invoice = self.get_invoice(invoice_id)
            if invoice.status == InvoiceStatus.CANCELLED:
                raise InvalidStateError("Cancelled invoices cannot be paid")
            if invoice.status == InvoiceStatus.PAID:
                raise ConflictError("Invoice is already paid", entity="Invoice")

            paid_on = paid_date or self.clock.today()
            for payment in invoice.payments:
                if payment.status != PaymentStatus.PAID:
                    payment.status = PaymentStatus.PAID
                    payment.paid_date = paid_on
                    payment.payment_method = method
            invoice.status = InvoiceStatus.PAID

        self.db.refresh(invoice)
        logger.info(f"[INVOICE] {invoice.invoice_number} paid")
        return invoice

    def cancel_invoice(self, invoice_id: int) -> Invoice:
        with transaction(self.db):
            invoice = self.get_invoice(invoice_id)
            if invoice.status == InvoiceStatus.PAID:
                raise InvalidStateError("Paid invoices cannot be cancelled")
            invoice.status = InvoiceStatus.CANCELLED

        self.db.refresh(invoice)
        return invoice

    def delete_invoice(self, invoice_id: int) -> None:
        with transaction(self.db):
            invoice = self.get_invoice(invoice_id)
            self.db.delete(invoice)
        logger.info(f"[INVOICE] Deleted invoice {invoice_id}")

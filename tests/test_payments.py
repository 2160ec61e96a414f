from datetime import date, datetime
from decimal import Decimal

import pytest

from backoffice.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from backoffice.models import InvoiceStatus, PaymentMethod, PaymentStatus, PaymentType
from backoffice.schemas.payment import InvoiceItem, PaymentUpdate
from backoffice.services.lease_service import LeaseService
from backoffice.services.payment_service import InvoiceService, PaymentService
from tests.factories import NOW, lease_data


@pytest.fixture
def lease(db, clock, unit, tenant):
    return LeaseService(db, clock).create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))


@pytest.fixture
def payments(db, clock):
    return PaymentService(db, clock)


@pytest.fixture
def invoices(db, clock):
    return InvoiceService(db, clock)


# ==================== PAYMENTS ====================

def test_create_bill(payments, lease):
    bill = payments.create_bill(lease.id, PaymentType.ELECTRICITY, Decimal("420.50"), date(2025, 1, 10))

    assert bill.status == PaymentStatus.PENDING
    assert bill.amount == Decimal("420.50")
    assert bill.receipt_number == f"ELEC-{int(NOW.timestamp() * 1000)}"


def test_create_bill_requires_lease_and_amount(payments, lease):
    with pytest.raises(NotFoundError):
        payments.create_bill(999, PaymentType.RENT, Decimal("1"), date(2025, 1, 10))
    with pytest.raises(InvalidStateError):
        payments.create_bill(lease.id, PaymentType.RENT, Decimal("0"), date(2025, 1, 10))


def test_mark_as_paid(payments, lease, clock):
    bill = payments.create_bill(lease.id, PaymentType.RENT, Decimal("5000"), date(2025, 1, 5))

    paid = payments.mark_as_paid(bill.id, method=PaymentMethod.BANK_TRANSFER, notes="Slip 123")

    assert paid.status == PaymentStatus.PAID
    assert paid.paid_date == clock.today()
    assert paid.payment_method == PaymentMethod.BANK_TRANSFER
    assert "Slip 123" in paid.notes

    with pytest.raises(ConflictError):
        payments.mark_as_paid(bill.id)


def test_mark_as_partial(payments, lease):
    bill = payments.create_bill(lease.id, PaymentType.RENT, Decimal("5000"), date(2025, 1, 5))

    with pytest.raises(InvalidStateError):
        payments.mark_as_partial(bill.id, Decimal("5000"))

    partial = payments.mark_as_partial(bill.id, Decimal("2000"), "First half")
    assert partial.status == PaymentStatus.PARTIAL
    assert "Partial Payment: 2000 - First half" in partial.notes


def test_mark_overdue_is_idempotent(payments, lease, clock):
    late = payments.create_bill(lease.id, PaymentType.WATER, Decimal("150"), date(2025, 1, 5))
    payments.create_bill(lease.id, PaymentType.RENT, Decimal("5000"), date(2025, 2, 5))
    clock.set(datetime(2025, 1, 20, 8, 0))

    assert [p.id for p in payments.get_overdue_payments()] == [late.id]
    assert payments.mark_overdue_payments() == 1
    assert payments.mark_overdue_payments() == 0
    assert payments.get_payment(late.id).status == PaymentStatus.OVERDUE


def test_payment_queries_update_delete(payments, lease, tenant):
    bill = payments.create_bill(lease.id, PaymentType.RENT, Decimal("5000"), date(2025, 1, 5))

    assert [p.id for p in payments.get_payments_by_lease(lease.id)] == [bill.id]
    assert [p.id for p in payments.get_payments_by_tenant(tenant.id)] == [bill.id]
    assert [p.id for p in payments.get_payments_by_status(PaymentStatus.PENDING)] == [bill.id]

    updated = payments.update_payment(bill.id, PaymentUpdate(amount=Decimal("5500")))
    assert updated.amount == Decimal("5500")

    payments.delete_payment(bill.id)
    with pytest.raises(NotFoundError):
        payments.get_payment(bill.id)


# ==================== INVOICES ====================

def items():
    return [
        InvoiceItem(payment_type=PaymentType.RENT, amount=Decimal("5000")),
        InvoiceItem(payment_type=PaymentType.WATER, amount=Decimal("150"), notes="12 units"),
    ]


def test_create_invoice_numbers_per_day(invoices, lease):
    first = invoices.create_invoice(lease.id, items(), due_date=date(2025, 1, 5))
    second = invoices.create_invoice(lease.id, items(), due_date=date(2025, 1, 5))

    assert first.invoice_number == "INV-20250101-1"
    assert second.invoice_number == "INV-20250101-2"
    assert first.total_amount == Decimal("5150")
    assert [p.payment_type for p in first.payments] == [PaymentType.RENT, PaymentType.WATER]
    assert invoices.get_invoice_by_number("INV-20250101-2").id == second.id


def test_create_invoice_validation(invoices, lease):
    with pytest.raises(InvalidStateError):
        invoices.create_invoice(lease.id, [], due_date=date(2025, 1, 5))
    with pytest.raises(InvalidStateError):
        invoices.create_invoice(lease.id, items(), due_date=date(2024, 12, 31))


def test_paying_every_line_settles_invoice(invoices, payments, lease):
    invoice = invoices.create_invoice(lease.id, items(), due_date=date(2025, 1, 5))
    rent, water = invoice.payments

    payments.mark_as_paid(rent.id)
    assert invoices.get_invoice(invoice.id).status == InvoiceStatus.PENDING

    payments.mark_as_paid(water.id)
    assert invoices.get_invoice(invoice.id).status == InvoiceStatus.PAID


def test_mark_invoice_paid_and_cancel(invoices, lease):
    invoice = invoices.create_invoice(lease.id, items(), due_date=date(2025, 1, 5))
    other = invoices.create_invoice(lease.id, items(), due_date=date(2025, 1, 5))

    paid = invoices.mark_invoice_paid(invoice.id, PaymentMethod.PROMPTPAY)
    assert paid.status == InvoiceStatus.PAID
    assert all(p.status == PaymentStatus.PAID for p in paid.payments)
    with pytest.raises(ConflictError):
        invoices.mark_invoice_paid(invoice.id)
    with pytest.raises(InvalidStateError):
        invoices.cancel_invoice(invoice.id)

    cancelled = invoices.cancel_invoice(other.id)
    assert cancelled.status == InvoiceStatus.CANCELLED
    with pytest.raises(InvalidStateError):
        invoices.mark_invoice_paid(other.id)


def test_overdue_sweep_flags_invoices(invoices, payments, lease, clock):
    invoice = invoices.create_invoice(lease.id, items(), due_date=date(2025, 1, 5))
    clock.set(datetime(2025, 1, 6, 0, 0))

    assert payments.mark_overdue_payments() == 2
    assert invoices.get_invoice(invoice.id).status == InvoiceStatus.OVERDUE


def test_invoices_by_tenant_email(invoices, lease, tenant):
    invoice = invoices.create_invoice(lease.id, items(), due_date=date(2025, 1, 5))

    assert [i.id for i in invoices.get_invoices_by_tenant_email(tenant.email)] == [invoice.id]
    assert [i.id for i in invoices.get_invoices_by_lease(lease.id)] == [invoice.id]

    invoices.delete_invoice(invoice.id)
    assert invoices.get_all_invoices() == []

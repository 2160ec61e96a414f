"""
Payment & Invoice Routes
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, get_clock
from backoffice.core.config import settings
from backoffice.database import get_db
from backoffice.dependencies import require_admin
from backoffice.models.payment import PaymentMethod, PaymentStatus
from backoffice.models.user import User
from backoffice.schemas.payment import (
    InvoiceCreate, InvoiceResponse, MarkPaid, MarkPartial, PaymentCreate, PaymentResponse, PaymentUpdate,
)
from backoffice.services.payment_service import InvoiceService, PaymentService

router = APIRouter()
invoices_router = APIRouter()


def get_payment_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> PaymentService:
    return PaymentService(db, clock)


def get_invoice_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> InvoiceService:
    return InvoiceService(db, clock)


# ==================== PAYMENTS ====================

@router.get("/", response_model=List[PaymentResponse])
def list_payments(
    lease_id: Optional[int] = None,
    tenant_id: Optional[int] = None,
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: PaymentService = Depends(get_payment_service),
    _: User = Depends(require_admin),
):
    if lease_id is not None:
        return service.get_payments_by_lease(lease_id)
    if tenant_id is not None:
        return service.get_payments_by_tenant(tenant_id)
    if payment_status is not None:
        return service.get_payments_by_status(payment_status)
    return service.get_all_payments(skip=skip, limit=limit)


@router.get("/overdue", response_model=List[PaymentResponse])
def overdue_payments(service: PaymentService = Depends(get_payment_service), _: User = Depends(require_admin)):
    return service.get_overdue_payments()


@router.get("/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: int, service: PaymentService = Depends(get_payment_service), _: User = Depends(require_admin)):
    return service.get_payment(payment_id)


@router.post("/", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def create_bill(
    bill: PaymentCreate,
    service: PaymentService = Depends(get_payment_service),
    _: User = Depends(require_admin),
):
    return service.create_bill(bill.lease_id, bill.payment_type, bill.amount, bill.due_date, bill.notes)


@router.patch("/{payment_id}/paid", response_model=PaymentResponse)
def mark_payment_paid(
    payment_id: int,
    body: MarkPaid,
    service: PaymentService = Depends(get_payment_service),
    _: User = Depends(require_admin),
):
    return service.mark_as_paid(payment_id, body.paid_date, body.payment_method, body.notes)


@router.patch("/{payment_id}/partial", response_model=PaymentResponse)
def mark_payment_partial(
    payment_id: int,
    body: MarkPartial,
    service: PaymentService = Depends(get_payment_service),
    _: User = Depends(require_admin),
):
    return service.mark_as_partial(payment_id, body.paid_amount, body.notes)


@router.put("/{payment_id}", response_model=PaymentResponse)
def update_payment(
    payment_id: int,
    body: PaymentUpdate,
    service: PaymentService = Depends(get_payment_service),
    _: User = Depends(require_admin),
):
    return service.update_payment(payment_id, body)


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment(payment_id: int, service: PaymentService = Depends(get_payment_service), _: User = Depends(require_admin)):
    service.delete_payment(payment_id)


# ==================== INVOICES ====================

@invoices_router.get("/", response_model=List[InvoiceResponse])
def list_invoices(
    lease_id: Optional[int] = None,
    tenant_email: Optional[EmailStr] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: InvoiceService = Depends(get_invoice_service),
    _: User = Depends(require_admin),
):
    if lease_id is not None:
        return service.get_invoices_by_lease(lease_id)
    if tenant_email:
        return service.get_invoices_by_tenant_email(tenant_email)
    return service.get_all_invoices(skip=skip, limit=limit)


@invoices_router.get("/number/{invoice_number}", response_model=InvoiceResponse)
def get_invoice_by_number(
    invoice_number: str,
    service: InvoiceService = Depends(get_invoice_service),
    _: User = Depends(require_admin),
):
    return service.get_invoice_by_number(invoice_number)


@invoices_router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(invoice_id: int, service: InvoiceService = Depends(get_invoice_service), _: User = Depends(require_admin)):
    return service.get_invoice(invoice_id)


@invoices_router.post("/", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_in: InvoiceCreate,
    service: InvoiceService = Depends(get_invoice_service),
    _: User = Depends(require_admin),
):
    return service.create_invoice(
        lease_id=invoice_in.lease_id,
        items=invoice_in.items,
        due_date=invoice_in.due_date,
        invoice_date=invoice_in.invoice_date,
        invoice_type=invoice_in.invoice_type,
        notes=invoice_in.notes,
    )


@invoices_router.patch("/{invoice_id}/paid", response_model=InvoiceResponse)
def mark_invoice_paid(
    invoice_id: int,
    method: PaymentMethod = PaymentMethod.CASH,
    service: InvoiceService = Depends(get_invoice_service),
    _: User = Depends(require_admin),
):
    return service.mark_invoice_paid(invoice_id, method)


@invoices_router.patch("/{invoice_id}/cancel", response_model=InvoiceResponse)
def cancel_invoice(invoice_id: int, service: InvoiceService = Depends(get_invoice_service), _: User = Depends(require_admin)):
    return service.cancel_invoice(invoice_id)


@invoices_router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: int, service: InvoiceService = Depends(get_invoice_service), _: User = Depends(require_admin)):
    service.delete_invoice(invoice_id)

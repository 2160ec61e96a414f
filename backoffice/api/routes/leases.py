"""
Lease Routes
Lease lifecycle endpoints: creation, activation, termination, checkout and
the manual trigger for the expiry sweep
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, get_clock
from backoffice.core.config import settings
from backoffice.database import get_db
from backoffice.dependencies import require_admin
from backoffice.models.lease import LeaseStatus
from backoffice.models.user import User
from backoffice.schemas.lease import (
    LeaseCheckout, LeaseCreate, LeaseResponse, LeaseTerminate, LeaseUpdate, SweepResult,
)
from backoffice.services.lease_service import LeaseService
from backoffice.services.scheduler import run_maintenance_sweeps

router = APIRouter()
logger = logging.getLogger(__name__)


def get_lease_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> LeaseService:
    return LeaseService(db, clock)


def _many(leases) -> List[LeaseResponse]:
    return [LeaseResponse.from_lease(lease) for lease in leases]


# ==================== QUERIES ====================

@router.get("/", response_model=List[LeaseResponse])
def list_leases(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: LeaseService = Depends(get_lease_service),
    _: User = Depends(require_admin),
):
    return _many(service.get_all_leases(skip=skip, limit=limit))


@router.get("/ending-soon", response_model=List[LeaseResponse])
def leases_ending_soon(
    days: Optional[int] = Query(None, ge=0),
    service: LeaseService = Depends(get_lease_service),
    _: User = Depends(require_admin),
):
    """ACTIVE leases ending within `days` (default from settings)"""
    return _many(service.get_leases_ending_soon(days))


@router.get("/expired", response_model=List[LeaseResponse])
def expired_leases(
    service: LeaseService = Depends(get_lease_service),
    _: User = Depends(require_admin),
):
    """ACTIVE leases past their end date that the sweep has not processed yet"""
    return _many(service.get_expired_leases())


@router.get("/status/{lease_status}", response_model=List[LeaseResponse])
def leases_by_status(
    lease_status: LeaseStatus,
    service: LeaseService = Depends(get_lease_service),
    _: User = Depends(require_admin),
):
    return _many(service.get_leases_by_status(lease_status))


@router.get("/tenant/{tenant_id}", response_model=List[LeaseResponse])
def leases_by_tenant(
    tenant_id: int,
    service: LeaseService = Depends(get_lease_service),
    _: User = Depends(require_admin),
):
    return _many(service.get_leases_by_tenant(tenant_id))


@router.get("/unit/{unit_id}", response_model=List[LeaseResponse])
def leases_by_unit(
    unit_id: int,
    service: LeaseService = Depends(get_lease_service),
    _: User = Depends(require_admin),
):
    return _many(service.get_leases_by_unit(unit_id))


@router.get("/unit/{unit_id}/active", response_model=Optional[LeaseResponse])
def active_lease_by_unit(
    unit_id: int,
    service: LeaseService = Depends(get_lease_service),
    _: User = Depends(require_admin),
):
    lease = service.get_active_lease_by_unit(unit_id)
    return LeaseResponse.from_lease(lease) if lease else None


@router.get("/{lease_id}", response_model=LeaseResponse)
def get_lease(
    lease_id: int,
    service: LeaseService = Depends(get_lease_service),
    _: User = Depends(require_admin),
):
    return LeaseResponse.from_lease(service.get_lease(lease_id))


# ==================== LIFECYCLE ====================

@router.post("/", response_model=LeaseResponse, status_code=status.HTTP_201_CREATED)
def create_lease(
    lease_in: LeaseCreate,
    service: LeaseService = Depends(get_lease_service),
    current_user: User = Depends(require_admin),
):
    return LeaseResponse.from_lease(service.create_lease(lease_in, user_id=current_user.id))


@router.put("/{lease_id}", response_model=LeaseResponse)
def update_lease(
    lease_id: int,
    lease_in: LeaseUpdate,
    service: LeaseService = Depends(get_lease_service),
    _: User = Depends(require_admin),
):
    return LeaseResponse.from_lease(service.update_lease(lease_id, lease_in))


@router.patch("/{lease_id}/activate", response_model=LeaseResponse)
def activate_lease(
    lease_id: int,
    service: LeaseService = Depends(get_lease_service),
    current_user: User = Depends(require_admin),
):
    return LeaseResponse.from_lease(service.activate_lease(lease_id, user_id=current_user.id))


@router.patch("/{lease_id}/terminate", response_model=LeaseResponse)
def terminate_lease(
    lease_id: int,
    body: Optional[LeaseTerminate] = None,
    service: LeaseService = Depends(get_lease_service),
    current_user: User = Depends(require_admin),
):
    reason = body.reason if body else None
    return LeaseResponse.from_lease(service.terminate_lease(lease_id, reason, user_id=current_user.id))


@router.post("/{lease_id}/checkout", response_model=LeaseResponse)
def checkout_lease(
    lease_id: int,
    body: LeaseCheckout,
    service: LeaseService = Depends(get_lease_service),
    current_user: User = Depends(require_admin),
):
    """End the lease on the given checkout date"""
    lease = service.terminate_lease_with_checkout_date(lease_id, body.checkout_date, user_id=current_user.id)
    return LeaseResponse.from_lease(lease)


@router.post("/expire-leases", response_model=SweepResult)
def expire_leases(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(require_admin),
):
    """Run the maintenance sweep now"""
    logger.info(f"[SWEEP] Manual sweep requested by user {current_user.id}")
    result = run_maintenance_sweeps(db, clock)
    return SweepResult(
        **result,
        message=f"Expired {result['expired_leases']} lease(s)",
    )


@router.delete("/{lease_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lease(
    lease_id: int,
    service: LeaseService = Depends(get_lease_service),
    current_user: User = Depends(require_admin),
):
    service.delete_lease(lease_id, user_id=current_user.id)

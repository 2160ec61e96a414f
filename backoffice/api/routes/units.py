"""
Unit Routes
Unit registry: listing, lookups, status/price changes and the occupancy dashboard
"""
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, get_clock
from backoffice.core.config import settings
from backoffice.database import get_db
from backoffice.dependencies import require_admin
from backoffice.models.unit import UnitStatus
from backoffice.models.user import User
from backoffice.schemas.unit import (
    UnitCreate, UnitDashboard, UnitPriceUpdate, UnitResponse, UnitStatusUpdate, UnitUpdate,
)
from backoffice.services.unit_service import UnitService

router = APIRouter()


def get_unit_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> UnitService:
    return UnitService(db, clock)


# ==================== QUERIES ====================

@router.get("/", response_model=List[UnitResponse])
def list_units(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: UnitService = Depends(get_unit_service),
):
    return service.get_all_units(skip=skip, limit=limit)


@router.get("/available", response_model=List[UnitResponse])
def list_available_units(service: UnitService = Depends(get_unit_service)):
    return service.get_available_units()


@router.get("/dashboard", response_model=UnitDashboard)
def unit_dashboard(
    service: UnitService = Depends(get_unit_service),
    _: User = Depends(require_admin),
):
    """Unit counts per status and occupancy rate"""
    return service.get_dashboard()


@router.get("/rent-range", response_model=List[UnitResponse])
def units_by_rent_range(
    min_rent: Decimal = Query(..., ge=0),
    max_rent: Decimal = Query(..., ge=0),
    service: UnitService = Depends(get_unit_service),
):
    return service.get_units_by_rent_range(min_rent, max_rent)


@router.get("/status/{unit_status}", response_model=List[UnitResponse])
def units_by_status(unit_status: UnitStatus, service: UnitService = Depends(get_unit_service)):
    return service.get_units_by_status(unit_status)


@router.get("/floor/{floor}", response_model=List[UnitResponse])
def units_by_floor(floor: int, service: UnitService = Depends(get_unit_service)):
    return service.get_units_by_floor(floor)


@router.get("/room/{room_number}", response_model=UnitResponse)
def unit_by_room(room_number: str, service: UnitService = Depends(get_unit_service)):
    return service.get_unit_by_room_number(room_number)


@router.get("/{unit_id}", response_model=UnitResponse)
def get_unit(unit_id: int, service: UnitService = Depends(get_unit_service)):
    return service.get_unit(unit_id)


# ==================== COMMANDS (admin) ====================

@router.post("/", response_model=UnitResponse, status_code=status.HTTP_201_CREATED)
def create_unit(
    unit_in: UnitCreate,
    service: UnitService = Depends(get_unit_service),
    current_user: User = Depends(require_admin),
):
    return service.create_unit(unit_in, user_id=current_user.id)


@router.put("/{unit_id}", response_model=UnitResponse)
def update_unit(
    unit_id: int,
    unit_in: UnitUpdate,
    service: UnitService = Depends(get_unit_service),
    current_user: User = Depends(require_admin),
):
    return service.update_unit(unit_id, unit_in, user_id=current_user.id)


@router.patch("/{unit_id}/status", response_model=UnitResponse)
def update_unit_status(
    unit_id: int,
    body: UnitStatusUpdate,
    service: UnitService = Depends(get_unit_service),
    current_user: User = Depends(require_admin),
):
    """Move a unit between AVAILABLE, MAINTENANCE and RESERVED"""
    return service.update_unit_status(unit_id, body.status, body.reason, user_id=current_user.id)


@router.patch("/{unit_id}/price", response_model=UnitResponse)
def update_unit_price(
    unit_id: int,
    body: UnitPriceUpdate,
    service: UnitService = Depends(get_unit_service),
    current_user: User = Depends(require_admin),
):
    return service.update_unit_price(unit_id, body.rent_amount, body.reason, user_id=current_user.id)


@router.delete("/{unit_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_unit(
    unit_id: int,
    service: UnitService = Depends(get_unit_service),
    current_user: User = Depends(require_admin),
):
    service.delete_unit(unit_id, user_id=current_user.id)

"""
Maintenance Stock Routes
Spare-part inventory (admin only)
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, get_clock
from backoffice.database import get_db
from backoffice.dependencies import require_admin
from backoffice.models.maintenance import MaintenanceCategory
from backoffice.models.user import User
from backoffice.schemas.maintenance import (
    StockAdd, StockCreate, StockQuantityChange, StockResponse, StockUpdate,
)
from backoffice.services.maintenance_stock_service import MaintenanceStockService

router = APIRouter()


def get_stock_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> MaintenanceStockService:
    return MaintenanceStockService(db, clock)


# ==================== QUERIES ====================

@router.get("/", response_model=List[StockResponse])
def list_stocks(
    service: MaintenanceStockService = Depends(get_stock_service),
    _: User = Depends(require_admin),
):
    return service.get_all_stocks()


@router.get("/search", response_model=List[StockResponse])
def search_stocks(
    name: str = Query(..., min_length=1),
    service: MaintenanceStockService = Depends(get_stock_service),
    _: User = Depends(require_admin),
):
    return service.search_stocks(name)


@router.get("/low-stock", response_model=List[StockResponse])
def low_stock(
    threshold: Optional[int] = Query(None, ge=0),
    service: MaintenanceStockService = Depends(get_stock_service),
    _: User = Depends(require_admin),
):
    """Items below `threshold` (default LOW_STOCK_THRESHOLD)"""
    return service.get_low_stock(threshold)


@router.get("/category/{category}", response_model=List[StockResponse])
def stocks_by_category(
    category: MaintenanceCategory,
    service: MaintenanceStockService = Depends(get_stock_service),
    _: User = Depends(require_admin),
):
    return service.get_stocks_by_category(category)


@router.get("/{stock_id}", response_model=StockResponse)
def get_stock(
    stock_id: int,
    service: MaintenanceStockService = Depends(get_stock_service),
    _: User = Depends(require_admin),
):
    return service.get_stock(stock_id)


# ==================== COMMANDS ====================

@router.post("/", response_model=StockResponse, status_code=status.HTTP_201_CREATED)
def create_stock(
    stock_in: StockCreate,
    service: MaintenanceStockService = Depends(get_stock_service),
    _: User = Depends(require_admin),
):
    return service.create_stock(stock_in)


@router.put("/{stock_id}", response_model=StockResponse)
def update_stock(
    stock_id: int,
    stock_in: StockUpdate,
    service: MaintenanceStockService = Depends(get_stock_service),
    _: User = Depends(require_admin),
):
    return service.update_stock(stock_id, stock_in)


@router.patch("/{stock_id}/quantity", response_model=StockResponse)
def adjust_stock_quantity(
    stock_id: int,
    body: StockQuantityChange,
    service: MaintenanceStockService = Depends(get_stock_service),
    _: User = Depends(require_admin),
):
    """Signed change; refused if the quantity would drop below zero"""
    return service.adjust_quantity(stock_id, body.change)


@router.post("/{stock_id}/add", response_model=StockResponse)
def add_stock(
    stock_id: int,
    body: StockAdd,
    service: MaintenanceStockService = Depends(get_stock_service),
    _: User = Depends(require_admin),
):
    return service.add_stock(stock_id, body.quantity)


@router.post("/{stock_id}/reduce", response_model=StockResponse)
def reduce_stock(
    stock_id: int,
    body: StockAdd,
    service: MaintenanceStockService = Depends(get_stock_service),
    _: User = Depends(require_admin),
):
    return service.reduce_stock(stock_id, body.quantity)


@router.delete("/{stock_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_stock(
    stock_id: int,
    service: MaintenanceStockService = Depends(get_stock_service),
    _: User = Depends(require_admin),
):
    service.delete_stock(stock_id)

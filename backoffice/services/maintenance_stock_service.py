"""
Maintenance Stock Service
Spare-part inventory. Quantities never go negative; deleted items are kept
(soft delete) so the requests that consumed them still price correctly.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, resolve_clock
from backoffice.core.config import settings
from backoffice.core.exceptions import InvalidStateError, NotFoundError
from backoffice.database import transaction
from backoffice.models.maintenance import MaintenanceCategory, MaintenanceStock
from backoffice.schemas.maintenance import StockCreate, StockUpdate

logger = logging.getLogger(__name__)


class MaintenanceStockService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)

    def _live(self):
        return self.db.query(MaintenanceStock).filter(MaintenanceStock.deleted_at.is_(None))

    # ── Queries ──────────────────────────────────────────────────────────────

    def get_stock(self, stock_id: int) -> MaintenanceStock:
        stock = self._live().filter(MaintenanceStock.id == stock_id).first()
        if stock is None:
            raise NotFoundError.for_entity("Stock item", stock_id)
        return stock

    def lock_stock(self, stock_id: int, include_deleted: bool = False) -> MaintenanceStock:
        """Load a stock row under a lock held until the transaction ends."""
        q = self.db.query(MaintenanceStock) if include_deleted else self._live()
        stock = q.filter(MaintenanceStock.id == stock_id).with_for_update().first()
        if stock is None:
            raise NotFoundError.for_entity("Stock item", stock_id)
        return stock

    def get_all_stocks(self) -> List[MaintenanceStock]:
        return self._live().order_by(MaintenanceStock.item_name).all()

    def get_stocks_by_category(self, category: MaintenanceCategory) -> List[MaintenanceStock]:
        return (
            self._live()
            .filter(MaintenanceStock.category == category)
            .order_by(MaintenanceStock.item_name)
            .all()
        )

    def search_stocks(self, name: str) -> List[MaintenanceStock]:
        return (
            self._live()
            .filter(MaintenanceStock.item_name.ilike(f"%{name}%"))
            .order_by(MaintenanceStock.item_name)
            .all()
        )

    def get_low_stock(self, threshold: Optional[int] = None) -> List[MaintenanceStock]:
        """Items with fewer than `threshold` units left."""
        if threshold is None:
            threshold = settings.LOW_STOCK_THRESHOLD
        return (
            self._live()
            .filter(MaintenanceStock.quantity < threshold)
            .order_by(MaintenanceStock.quantity, MaintenanceStock.item_name)
            .all()
        )

    # ── Commands ─────────────────────────────────────────────────────────────

    def create_stock(self, data: StockCreate) -> MaintenanceStock:
        with transaction(self.db):
            stock = MaintenanceStock(**data.model_dump())
            self.db.add(stock)

        self.db.refresh(stock)
        logger.info(f"[STOCK] Added {stock.item_name} ({stock.quantity} {stock.unit_of_measure})")
        return stock

    def update_stock(self, stock_id: int, data: StockUpdate) -> MaintenanceStock:
        with transaction(self.db):
            stock = self.get_stock(stock_id)
            for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
                setattr(stock, field, value)

        self.db.refresh(stock)
        return stock

    def apply_change(self, stock: MaintenanceStock, change: int) -> MaintenanceStock:
        """Shift a locked stock row by `change` inside the caller's transaction."""
        if stock.quantity + change < 0:
            raise InvalidStateError(
                f"Insufficient stock for {stock.item_name}: "
                f"{stock.quantity} available, {-change} requested"
            )
        stock.quantity += change
        return stock

    def adjust_quantity(self, stock_id: int, change: int) -> MaintenanceStock:
        with transaction(self.db):
            stock = self.apply_change(self.lock_stock(stock_id), change)

        self.db.refresh(stock)
        logger.info(f"[STOCK] {stock.item_name} adjusted by {change:+d} to {stock.quantity}")
        return stock

    def add_stock(self, stock_id: int, quantity: int) -> MaintenanceStock:
        if quantity <= 0:
            raise InvalidStateError("Quantity to add must be positive")
        return self.adjust_quantity(stock_id, quantity)

    def reduce_stock(self, stock_id: int, quantity: int) -> MaintenanceStock:
        if quantity <= 0:
            raise InvalidStateError("Quantity to reduce must be positive")
        return self.adjust_quantity(stock_id, -quantity)

    def delete_stock(self, stock_id: int) -> None:
        with transaction(self.db):
            stock = self.get_stock(stock_id)
            stock.deleted_at = self.clock.now()

        logger.info(f"[STOCK] Deleted {stock.item_name} (id {stock_id})")

"""
Maintenance Request Service
Repair requests raised by tenants, staff or schedules, the stock they
consume, and the request statistics shown on the admin dashboard.

Stock moves with the request items: recording an item takes the quantity
out of stock, changing it moves the difference, and removing the item (or
the whole request) puts it back.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, resolve_clock
from backoffice.core.exceptions import InvalidStateError, NotFoundError
from backoffice.database import transaction
from backoffice.models.lease import Lease, LeaseStatus
from backoffice.models.maintenance import (
    CLOSED_STATUSES,
    MaintenanceCategory,
    MaintenanceLogAction,
    MaintenancePriority,
    MaintenanceRequest,
    MaintenanceRequestItem,
    MaintenanceStatus,
)
from backoffice.models.tenant import Tenant
from backoffice.models.user import User
from backoffice.schemas.maintenance import MaintenanceRequestCreate, MaintenanceRequestUpdate
from backoffice.services.maintenance_log_service import MaintenanceLogService
from backoffice.services.maintenance_stock_service import MaintenanceStockService
from backoffice.services.unit_service import UnitService

logger = logging.getLogger(__name__)

HIGH_PRIORITIES = (MaintenancePriority.HIGH, MaintenancePriority.URGENT)


class MaintenanceRequestService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)
        self.units = UnitService(db, self.clock)
        self.stocks = MaintenanceStockService(db, self.clock)
        self.log = MaintenanceLogService(db, self.clock)

    # ── Queries ──────────────────────────────────────────────────────────────

    def get_request(self, request_id: int) -> MaintenanceRequest:
        request = self.db.get(MaintenanceRequest, request_id)
        if request is None:
            raise NotFoundError.for_entity("Maintenance request", request_id)
        return request

    def _newest_first(self, *criteria) -> List[MaintenanceRequest]:
        return (
            self.db.query(MaintenanceRequest)
            .filter(*criteria)
            .order_by(MaintenanceRequest.created_at.desc(), MaintenanceRequest.id.desc())
            .all()
        )

    def get_all_requests(self) -> List[MaintenanceRequest]:
        return self._newest_first()

    def get_requests_by_tenant(self, tenant_id: int) -> List[MaintenanceRequest]:
        return self._newest_first(MaintenanceRequest.tenant_id == tenant_id)

    def get_requests_by_unit(self, unit_id: int) -> List[MaintenanceRequest]:
        return self._newest_first(MaintenanceRequest.unit_id == unit_id)

    def get_requests_by_creator(self, user_id: int) -> List[MaintenanceRequest]:
        return self._newest_first(MaintenanceRequest.created_by_user_id == user_id)

    def get_requests_by_status(self, status: MaintenanceStatus) -> List[MaintenanceRequest]:
        return self._newest_first(MaintenanceRequest.status == status)

    def get_requests_by_priority(self, priority: MaintenancePriority) -> List[MaintenanceRequest]:
        return self._newest_first(MaintenanceRequest.priority == priority)

    def get_requests_by_category(self, category: MaintenanceCategory) -> List[MaintenanceRequest]:
        return self._newest_first(MaintenanceRequest.category == category)

    def get_open_requests(self) -> List[MaintenanceRequest]:
        return self._newest_first(MaintenanceRequest.status.notin_(CLOSED_STATUSES))

    def get_high_priority_requests(self) -> List[MaintenanceRequest]:
        return self._newest_first(
            MaintenanceRequest.priority.in_(HIGH_PRIORITIES),
            MaintenanceRequest.status.notin_(CLOSED_STATUSES),
        )

    def find_leasing_tenant(self, email: Optional[str], unit_id: int) -> Optional[Tenant]:
        """The tenant with this email who holds the ACTIVE lease on the unit, if any."""
        if not email:
            return None
        return (
            self.db.query(Tenant)
            .join(Lease, Lease.tenant_id == Tenant.id)
            .filter(
                Tenant.email == email,
                Lease.unit_id == unit_id,
                Lease.status == LeaseStatus.ACTIVE,
            )
            .first()
        )

    def get_statistics(self) -> Dict[str, Dict[str, int]]:
        def counts(column, members) -> Dict[str, int]:
            rows = dict(self.db.query(column, func.count(MaintenanceRequest.id)).group_by(column).all())
            return {m.value: rows.get(m, 0) for m in members}

        by_status = counts(MaintenanceRequest.status, MaintenanceStatus)
        return {
            "by_status": {"TOTAL": sum(by_status.values()), **by_status},
            "by_priority": counts(MaintenanceRequest.priority, MaintenancePriority),
            "by_category": counts(MaintenanceRequest.category, MaintenanceCategory),
        }

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def create_request(
        self, data: MaintenanceRequestCreate, user_id: Optional[int] = None
    ) -> MaintenanceRequest:
        with transaction(self.db):
            self.units.get_unit(data.unit_id)
            if data.tenant_id is not None and self.db.get(Tenant, data.tenant_id) is None:
                raise NotFoundError.for_entity("Tenant", data.tenant_id)

            request = MaintenanceRequest(
                **data.model_dump(),
                status=MaintenanceStatus.SUBMITTED,
                submitted_date=self.clock.now(),
                created_by_user_id=user_id,
            )
            self.db.add(request)

        self.db.refresh(request)
        logger.info(
            f"[MAINTENANCE] Request {request.id} on unit {request.unit_id}: "
            f"{request.title} ({request.priority.value})"
        )
        return request

    def update_request(
        self, request_id: int, data: MaintenanceRequestUpdate, user_id: Optional[int] = None
    ) -> MaintenanceRequest:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        with transaction(self.db):
            request = self.get_request(request_id)
            new_status = changes.pop("status", None)
            for field, value in changes.items():
                setattr(request, field, value)
            if changes:
                self.log.record(
                    MaintenanceLogAction.REQUEST_UPDATED,
                    f"Request updated: {', '.join(sorted(changes))}",
                    request_id=request.id,
                    schedule_id=request.schedule_id,
                    user_id=user_id,
                )
            if new_status is not None and new_status != request.status:
                self._move(request, new_status, user_id)

        self.db.refresh(request)
        return request

    def assign_request(
        self, request_id: int, assignee_id: int, user_id: Optional[int] = None
    ) -> MaintenanceRequest:
        with transaction(self.db):
            request = self._open(request_id)
            if self.db.get(User, assignee_id) is None:
                raise NotFoundError.for_entity("User", assignee_id)

            request.assigned_to_user_id = assignee_id
            self.log.record(
                MaintenanceLogAction.REQUEST_ASSIGNED,
                f"Assigned to user {assignee_id}",
                request_id=request.id,
                schedule_id=request.schedule_id,
                user_id=user_id,
                new={"assigned_to_user_id": assignee_id},
            )
            if request.status != MaintenanceStatus.IN_PROGRESS:
                self._move(request, MaintenanceStatus.IN_PROGRESS, user_id)

        self.db.refresh(request)
        logger.info(f"[MAINTENANCE] Request {request.id} assigned to user {assignee_id}")
        return request

    def update_status(
        self,
        request_id: int,
        status: MaintenanceStatus,
        notes: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> MaintenanceRequest:
        with transaction(self.db):
            request = self.get_request(request_id)
            if notes:
                request.completion_notes = notes
            if status != request.status:
                self._move(request, status, user_id)

        self.db.refresh(request)
        return request

    def update_priority(self, request_id: int, priority: MaintenancePriority) -> MaintenanceRequest:
        with transaction(self.db):
            request = self.get_request(request_id)
            request.priority = priority

        self.db.refresh(request)
        return request

    def complete_request(
        self,
        request_id: int,
        notes: Optional[str] = None,
        actual_cost: Optional[Decimal] = None,
        user_id: Optional[int] = None,
    ) -> MaintenanceRequest:
        """Close the request; without an explicit cost the consumed stock is the cost."""
        with transaction(self.db):
            request = self._open(request_id)
            if notes:
                request.completion_notes = notes
            if actual_cost is not None:
                request.actual_cost = actual_cost
            elif request.items:
                request.actual_cost = self._items_total(request)
            self._move(request, MaintenanceStatus.COMPLETED, user_id)
            self.log.record(
                MaintenanceLogAction.REQUEST_COMPLETED,
                "Request completed",
                request_id=request.id,
                schedule_id=request.schedule_id,
                user_id=user_id,
                new={"actual_cost": request.actual_cost},
            )

        self.db.refresh(request)
        logger.info(f"[MAINTENANCE] Request {request.id} completed")
        return request

    def reject_request(self, request_id: int, reason: str, user_id: Optional[int] = None) -> MaintenanceRequest:
        with transaction(self.db):
            request = self._open(request_id)
            request.completion_notes = reason
            self._move(request, MaintenanceStatus.CANCELLED, user_id)

        self.db.refresh(request)
        logger.info(f"[MAINTENANCE] Request {request.id} rejected: {reason}")
        return request

    def select_time_slot(self, request_id: int, slot: str, user_id: Optional[int] = None) -> MaintenanceRequest:
        """Tenant picks a visit slot for a scheduled request; that submits it."""
        with transaction(self.db):
            request = self.get_request(request_id)
            if request.status != MaintenanceStatus.PENDING_TENANT_CONFIRMATION:
                raise InvalidStateError("This request is not awaiting time selection")

            request.preferred_time = slot
            request.submitted_date = self.clock.now()
            self._move(request, MaintenanceStatus.SUBMITTED, user_id)

        self.db.refresh(request)
        logger.info(f"[MAINTENANCE] Request {request.id} booked for {slot}")
        return request

    def delete_request(self, request_id: int) -> None:
        with transaction(self.db):
            request = self.get_request(request_id)
            for item in list(request.items):
                self._restore(item)
            self.db.delete(request)

        logger.info(f"[MAINTENANCE] Deleted request {request_id}")

    # ── Items ────────────────────────────────────────────────────────────────

    def get_items(self, request_id: int) -> List[MaintenanceRequestItem]:
        return list(self.get_request(request_id).items)

    def add_item(
        self, request_id: int, stock_id: int, quantity: int, notes: Optional[str] = None
    ) -> MaintenanceRequestItem:
        if quantity <= 0:
            raise InvalidStateError("Quantity used must be positive")

        with transaction(self.db):
            request = self._open(request_id)
            stock = self.stocks.lock_stock(stock_id)
            self.stocks.apply_change(stock, -quantity)

            item = MaintenanceRequestItem(
                request_id=request.id,
                stock_id=stock.id,
                quantity_used=quantity,
                notes=notes,
                created_at=self.clock.now(),
            )
            self.db.add(item)

        self.db.refresh(item)
        logger.info(f"[MAINTENANCE] Request {request_id} used {quantity} x {stock.item_name}")
        return item

    def add_items(self, request_id: int, items: List[Dict]) -> List[MaintenanceRequestItem]:
        return [
            self.add_item(request_id, entry["stock_id"], entry["quantity_used"], entry.get("notes"))
            for entry in items
        ]

    def update_item_quantity(self, item_id: int, quantity: int) -> MaintenanceRequestItem:
        if quantity <= 0:
            raise InvalidStateError("Quantity used must be positive")

        with transaction(self.db):
            item = self._item(item_id)
            self._open(item.request_id)
            stock = self.stocks.lock_stock(item.stock_id, include_deleted=True)
            self.stocks.apply_change(stock, item.quantity_used - quantity)
            item.quantity_used = quantity

        self.db.refresh(item)
        return item

    def remove_item(self, item_id: int) -> None:
        with transaction(self.db):
            item = self._item(item_id)
            self._open(item.request_id)
            self._restore(item)
            self.db.delete(item)

        logger.info(f"[MAINTENANCE] Removed item {item_id} and returned it to stock")

    def remove_all_items(self, request_id: int) -> int:
        with transaction(self.db):
            request = self._open(request_id)
            items = list(request.items)
            for item in items:
                self._restore(item)
                request.items.remove(item)
        return len(items)

    def calculate_total_cost(self, request_id: int) -> Decimal:
        return self._items_total(self.get_request(request_id))

    # ── Internals ────────────────────────────────────────────────────────────

    def _open(self, request_id: int) -> MaintenanceRequest:
        request = self.get_request(request_id)
        if not request.is_open:
            raise InvalidStateError(f"Request is already {request.status.value.lower()}")
        return request

    def _item(self, item_id: int) -> MaintenanceRequestItem:
        item = self.db.get(MaintenanceRequestItem, item_id)
        if item is None:
            raise NotFoundError.for_entity("Request item", item_id)
        return item

    def _restore(self, item: MaintenanceRequestItem) -> None:
        stock = self.stocks.lock_stock(item.stock_id, include_deleted=True)
        self.stocks.apply_change(stock, item.quantity_used)

    @staticmethod
    def _items_total(request: MaintenanceRequest) -> Decimal:
        return sum((item.line_total for item in request.items), Decimal("0"))

    def _move(self, request: MaintenanceRequest, status: MaintenanceStatus, user_id: Optional[int]) -> None:
        previous = request.status
        request.status = status
        if status == MaintenanceStatus.COMPLETED:
            request.completed_date = self.clock.now()
        self.log.record(
            MaintenanceLogAction.REQUEST_STATUS_CHANGED,
            f"Status {previous.value} -> {status.value}",
            request_id=request.id,
            schedule_id=request.schedule_id,
            user_id=user_id,
            previous={"status": previous},
            new={"status": status},
        )
        logger.info(f"[MAINTENANCE] Request {request.id}: {previous.value} -> {status.value}")

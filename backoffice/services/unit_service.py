"""
Unit Service
Unit registry: CRUD, status and price changes, occupancy dashboard.
Every change is mirrored into the unit audit trail.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, resolve_clock
from backoffice.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from backoffice.database import transaction
from backoffice.models.audit import UnitAuditActionType, UnitPriceHistory
from backoffice.models.lease import Lease
from backoffice.models.rental_request import RentalRequest
from backoffice.models.unit import Unit, UnitStatus
from backoffice.schemas.unit import UnitCreate, UnitUpdate
from backoffice.services.audit_service import AuditService

logger = logging.getLogger(__name__)

# States a caller may put a unit into by hand; OCCUPIED belongs to the lease lifecycle
MANUAL_STATUSES = {UnitStatus.AVAILABLE, UnitStatus.MAINTENANCE, UnitStatus.RESERVED}


def _snapshot(unit: Unit) -> Dict:
    return {
        "room_number": unit.room_number,
        "floor": unit.floor,
        "unit_type": unit.unit_type,
        "rent_amount": unit.rent_amount,
        "size_sqm": unit.size_sqm,
        "description": unit.description,
        "status": unit.status,
    }


class UnitService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)
        self.audit = AuditService(db, self.clock)

    # ── Lookups ──────────────────────────────────────────────────────────────

    def get_unit(self, unit_id: int) -> Unit:
        unit = self.db.get(Unit, unit_id)
        if unit is None:
            raise NotFoundError.for_entity("Unit", unit_id)
        return unit

    def lock_unit(self, unit_id: int) -> Unit:
        """Load the unit with a row lock held until the surrounding transaction ends."""
        unit = (
            self.db.query(Unit)
            .filter(Unit.id == unit_id)
            .with_for_update()
            .first()
        )
        if unit is None:
            raise NotFoundError.for_entity("Unit", unit_id)
        return unit

    def get_all_units(self, skip: int = 0, limit: int = 100) -> List[Unit]:
        return self.db.query(Unit).order_by(Unit.floor, Unit.room_number).offset(skip).limit(limit).all()

    def get_unit_by_room_number(self, room_number: str) -> Unit:
        unit = self.db.query(Unit).filter(Unit.room_number == room_number).first()
        if unit is None:
            raise NotFoundError(f"Unit not found with room number: {room_number}", entity="Unit")
        return unit

    def get_units_by_floor(self, floor: int) -> List[Unit]:
        return self.db.query(Unit).filter(Unit.floor == floor).order_by(Unit.room_number).all()

    def get_units_by_status(self, status: UnitStatus) -> List[Unit]:
        return (
            self.db.query(Unit)
            .filter(Unit.status == status)
            .order_by(Unit.floor, Unit.room_number)
            .all()
        )

    def get_available_units(self) -> List[Unit]:
        return self.get_units_by_status(UnitStatus.AVAILABLE)

    def get_units_by_rent_range(self, min_rent: Decimal, max_rent: Decimal) -> List[Unit]:
        if min_rent > max_rent:
            raise InvalidStateError("min_rent must not exceed max_rent")
        return (
            self.db.query(Unit)
            .filter(Unit.rent_amount >= min_rent, Unit.rent_amount <= max_rent)
            .order_by(Unit.rent_amount, Unit.room_number)
            .all()
        )

    def count_units_by_status(self, status: UnitStatus) -> int:
        return self.db.query(Unit).filter(Unit.status == status).count()

    def exists_by_room_number(self, room_number: str, exclude_id: Optional[int] = None) -> bool:
        q = self.db.query(Unit.id).filter(Unit.room_number == room_number)
        if exclude_id is not None:
            q = q.filter(Unit.id != exclude_id)
        return q.first() is not None

    def get_dashboard(self) -> Dict:
        rows = self.db.query(Unit.status, func.count(Unit.id)).group_by(Unit.status).all()
        by_status = {s.value: 0 for s in UnitStatus}
        for unit_status, count in rows:
            by_status[unit_status.value] = count

        total = sum(by_status.values())
        occupied = by_status[UnitStatus.OCCUPIED.value]
        return {
            "total_units": total,
            "by_status": by_status,
            "occupancy_rate": round(occupied * 100.0 / total, 2) if total else 0.0,
        }

    # ── Commands ─────────────────────────────────────────────────────────────

    def create_unit(self, data: UnitCreate, user_id: Optional[int] = None) -> Unit:
        if data.status not in MANUAL_STATUSES:
            raise InvalidStateError("A new unit cannot start OCCUPIED")

        with transaction(self.db):
            if self.exists_by_room_number(data.room_number):
                raise ConflictError(f"Room number already exists: {data.room_number}", entity="Unit")

            unit = Unit(**data.model_dump())
            self.db.add(unit)
            self.db.flush()

            self.audit.record(
                unit.id,
                UnitAuditActionType.CREATED,
                new_values=_snapshot(unit),
                description=f"Unit {unit.room_number} created",
                user_id=user_id,
            )
            self.audit.open_price_period(unit.id, unit.rent_amount, "Initial price", user_id)

        self.db.refresh(unit)
        logger.info(f"[UNIT] Created unit {unit.id} (room {unit.room_number})")
        return unit

    def update_unit(self, unit_id: int, data: UnitUpdate, user_id: Optional[int] = None) -> Unit:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        with transaction(self.db):
            unit = self.lock_unit(unit_id)

            room_number = changes.get("room_number")
            if room_number and room_number != unit.room_number:
                if self.exists_by_room_number(room_number, exclude_id=unit.id):
                    raise ConflictError(f"Room number already exists: {room_number}", entity="Unit")

            new_rent = changes.pop("rent_amount", None)
            if new_rent is not None and new_rent != unit.rent_amount:
                self._change_price(unit, new_rent, "Updated with unit details", user_id)

            if changes:
                before = _snapshot(unit)
                for field, value in changes.items():
                    setattr(unit, field, value)
                self.audit.record(
                    unit.id,
                    UnitAuditActionType.UPDATED,
                    old_values=before,
                    new_values=_snapshot(unit),
                    description=f"Unit {unit.room_number} updated",
                    user_id=user_id,
                )

        self.db.refresh(unit)
        return unit

    def update_unit_price(
        self,
        unit_id: int,
        new_price: Decimal,
        reason: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Unit:
        if new_price is None or new_price <= 0:
            raise InvalidStateError("Rent amount must be positive")

        with transaction(self.db):
            unit = self.lock_unit(unit_id)
            self._change_price(unit, new_price, reason, user_id)

        self.db.refresh(unit)
        return unit

    def update_unit_status(
        self,
        unit_id: int,
        status: UnitStatus,
        reason: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Unit:
        with transaction(self.db):
            unit = self.lock_unit(unit_id)
            if unit.status == UnitStatus.OCCUPIED or status == UnitStatus.OCCUPIED:
                raise ConflictError(
                    f"Unit {unit.room_number} cannot be moved from {unit.status.value} to {status.value}; "
                    "occupancy follows the lease lifecycle",
                    entity="Unit",
                )
            self.set_unit_status(unit, status, reason or "Manual status change", user_id)

        self.db.refresh(unit)
        return unit

    def delete_unit(self, unit_id: int, user_id: Optional[int] = None) -> None:
        with transaction(self.db):
            unit = self.lock_unit(unit_id)

            lease_count = self.db.query(Lease).filter(Lease.unit_id == unit.id).count()
            if lease_count:
                raise ConflictError(
                    f"Unit {unit.room_number} has {lease_count} lease(s) and cannot be deleted",
                    entity="Unit",
                )

            self.audit.record(
                unit.id,
                UnitAuditActionType.DELETED,
                old_values=_snapshot(unit),
                description=f"Unit {unit.room_number} deleted",
                user_id=user_id,
            )
            self.db.query(RentalRequest).filter(RentalRequest.unit_id == unit.id).delete(
                synchronize_session=False
            )
            self.db.query(UnitPriceHistory).filter(UnitPriceHistory.unit_id == unit.id).delete(
                synchronize_session=False
            )
            self.db.delete(unit)

        logger.info(f"[UNIT] Deleted unit {unit_id}")

    # ── Used inside other services' transactions ─────────────────────────────

    def set_unit_status(
        self,
        unit: Unit,
        status: UnitStatus,
        reason: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> None:
        """Change status without committing; records STATUS_CHANGED when it moves."""
        if unit.status == status:
            return
        old_status = unit.status
        unit.status = status
        self.audit.record(
            unit.id,
            UnitAuditActionType.STATUS_CHANGED,
            old_values={"status": old_status},
            new_values={"status": status},
            description=reason,
            user_id=user_id,
        )
        self.db.flush()
        logger.info(f"[UNIT] Unit {unit.id} {old_status.value} -> {status.value}")

    def _change_price(
        self, unit: Unit, new_price: Decimal, reason: Optional[str], user_id: Optional[int]
    ) -> None:
        old_price = unit.rent_amount
        unit.rent_amount = new_price
        self.audit.open_price_period(unit.id, new_price, reason, user_id)
        self.audit.record(
            unit.id,
            UnitAuditActionType.PRICE_CHANGED,
            old_values={"rent_amount": old_price},
            new_values={"rent_amount": new_price},
            description=reason,
            user_id=user_id,
        )

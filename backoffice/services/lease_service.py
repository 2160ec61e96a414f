"""
Lease Service
Lease lifecycle: creation, activation, termination, checkout and expiry.

Unit status follows the lease: a unit is OCCUPIED while it carries an ACTIVE
lease and goes back to AVAILABLE when that lease ends. Check-then-act on a
unit always happens under a row lock on the unit, and the partial unique
index on leases backs the "one ACTIVE lease per unit" rule at the store.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, resolve_clock
from backoffice.core.config import settings
from backoffice.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from backoffice.database import transaction
from backoffice.models.lease import BillingCycle, Lease, LeaseStatus
from backoffice.models.payment import Invoice, Payment
from backoffice.models.rental_request import RentalRequest, RentalRequestStatus
from backoffice.models.tenant import Tenant, TenantStatus
from backoffice.models.unit import Unit, UnitStatus
from backoffice.schemas.lease import LeaseCreate, LeaseUpdate
from backoffice.services import auth_service
from backoffice.services.tenant_service import TenantService
from backoffice.services.unit_service import UnitService

logger = logging.getLogger(__name__)

OVERLAP_MESSAGE = "Unit already has an overlapping active lease for the requested dates"


class LeaseService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)
        self.units = UnitService(db, self.clock)
        self.tenants = TenantService(db, self.clock)

    # ── Queries ──────────────────────────────────────────────────────────────

    def get_lease(self, lease_id: int) -> Lease:
        lease = self.db.get(Lease, lease_id)
        if lease is None:
            raise NotFoundError.for_entity("Lease", lease_id)
        return lease

    def exists(self, lease_id: int) -> bool:
        return self.db.query(Lease.id).filter(Lease.id == lease_id).first() is not None

    def get_all_leases(self, skip: int = 0, limit: int = 100) -> List[Lease]:
        return self.db.query(Lease).order_by(Lease.id.desc()).offset(skip).limit(limit).all()

    def get_leases_by_status(self, status: LeaseStatus) -> List[Lease]:
        return self.db.query(Lease).filter(Lease.status == status).order_by(Lease.start_date).all()

    def get_leases_by_tenant(self, tenant_id: int) -> List[Lease]:
        return (
            self.db.query(Lease)
            .filter(Lease.tenant_id == tenant_id)
            .order_by(Lease.start_date.desc())
            .all()
        )

    def get_leases_by_unit(self, unit_id: int) -> List[Lease]:
        return (
            self.db.query(Lease)
            .filter(Lease.unit_id == unit_id)
            .order_by(Lease.start_date.desc())
            .all()
        )

    def get_active_lease_by_unit(self, unit_id: int) -> Optional[Lease]:
        return (
            self.db.query(Lease)
            .filter(Lease.unit_id == unit_id, Lease.status == LeaseStatus.ACTIVE)
            .first()
        )

    def get_leases_ending_soon(self, days: Optional[int] = None) -> List[Lease]:
        if days is None:
            days = settings.ENDING_SOON_DEFAULT_DAYS
        if days < 0:
            raise InvalidStateError("days must not be negative")
        today = self.clock.today()
        return (
            self.db.query(Lease)
            .filter(
                Lease.status == LeaseStatus.ACTIVE,
                Lease.end_date >= today,
                Lease.end_date <= today + timedelta(days=days),
            )
            .order_by(Lease.end_date)
            .all()
        )

    def get_expired_leases(self) -> List[Lease]:
        """ACTIVE leases already past their end date, i.e. waiting for the sweep."""
        return (
            self.db.query(Lease)
            .filter(Lease.status == LeaseStatus.ACTIVE, Lease.end_date < self.clock.today())
            .order_by(Lease.end_date)
            .all()
        )

    # ── Commands ─────────────────────────────────────────────────────────────

    def create_lease(self, data: LeaseCreate, user_id: Optional[int] = None) -> Lease:
        try:
            with transaction(self.db):
                lease = self.open_lease(
                    unit_id=data.unit_id,
                    tenant_id=data.tenant_id,
                    start_date=data.start_date,
                    end_date=data.end_date,
                    rent_amount=data.rent_amount,
                    security_deposit=data.security_deposit,
                    billing_cycle=data.billing_cycle,
                    activate=data.activate,
                    user_id=user_id,
                )
        except IntegrityError as exc:
            logger.warning(f"[LEASE] Store rejected lease for unit {data.unit_id}: {exc.orig}")
            raise ConflictError(OVERLAP_MESSAGE, entity="Lease") from exc

        self.db.refresh(lease)
        logger.info(
            f"[LEASE] Created lease {lease.id} on unit {lease.unit_id} "
            f"({lease.start_date}..{lease.end_date}, {lease.status.value})"
        )
        return lease

    def open_lease(
        self,
        unit_id: int,
        tenant_id: int,
        start_date: date,
        end_date: date,
        rent_amount: Decimal,
        security_deposit: Optional[Decimal] = None,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        activate: bool = True,
        user_id: Optional[int] = None,
    ) -> Lease:
        """
        Insert a lease inside the caller's transaction.

        The unit must be AVAILABLE whether or not the lease is activated. An
        activated lease also needs no overlapping ACTIVE lease and marks the
        unit OCCUPIED.
        """
        unit = self.units.lock_unit(unit_id)
        self.tenants.get_tenant(tenant_id)

        if end_date < start_date:
            raise InvalidStateError("Lease end date must not be before its start date")

        self._require_available(unit)
        if activate:
            self._check_overlap(unit.id, start_date, end_date)

        lease = Lease(
            unit_id=unit.id,
            tenant_id=tenant_id,
            start_date=start_date,
            end_date=end_date,
            rent_amount=rent_amount,
            security_deposit=security_deposit,
            billing_cycle=billing_cycle,
            status=LeaseStatus.ACTIVE if activate else LeaseStatus.PENDING,
            created_by_user_id=user_id,
        )
        self.db.add(lease)
        self.db.flush()

        if activate:
            self.units.set_unit_status(unit, UnitStatus.OCCUPIED, f"Lease {lease.id} started", user_id)
        return lease

    def activate_lease(self, lease_id: int, user_id: Optional[int] = None) -> Lease:
        try:
            with transaction(self.db):
                lease = self.get_lease(lease_id)
                if lease.status != LeaseStatus.PENDING:
                    raise InvalidStateError("Only pending leases can be activated")

                unit = self.units.lock_unit(lease.unit_id)
                if self.get_active_lease_by_unit(unit.id) is not None:
                    raise ConflictError(
                        f"Unit {unit.room_number} already has an active lease", entity="Lease"
                    )
                self._require_available(unit)
                self._check_overlap(unit.id, lease.start_date, lease.end_date, exclude_id=lease.id)

                lease.status = LeaseStatus.ACTIVE
                self.db.flush()
                self.units.set_unit_status(unit, UnitStatus.OCCUPIED, f"Lease {lease.id} activated", user_id)
        except IntegrityError as exc:
            raise ConflictError(OVERLAP_MESSAGE, entity="Lease") from exc

        self.db.refresh(lease)
        logger.info(f"[LEASE] Activated lease {lease.id}")
        return lease

    def terminate_lease(
        self, lease_id: int, reason: Optional[str] = None, user_id: Optional[int] = None
    ) -> Lease:
        with transaction(self.db):
            lease = self.get_lease(lease_id)
            if lease.status in (LeaseStatus.TERMINATED, LeaseStatus.EXPIRED):
                raise InvalidStateError("Lease is already terminated or expired")

            was_active = lease.status == LeaseStatus.ACTIVE
            lease.status = LeaseStatus.TERMINATED
            lease.termination_reason = reason or settings.DEFAULT_TERMINATION_REASON
            self.db.flush()

            # A pending lease never held the unit
            if was_active:
                self._release_unit(lease, user_id)
                self._close_tenancy(lease)

        self.db.refresh(lease)
        logger.info(f"[LEASE] Terminated lease {lease.id}: {lease.termination_reason}")
        return lease

    def terminate_lease_with_checkout_date(
        self, lease_id: int, checkout_date: date, user_id: Optional[int] = None
    ) -> Lease:
        """
        End an ACTIVE lease on `checkout_date`. The tenant side is closed now;
        the unit is freed now when checking out today, otherwise by the sweep
        once the checkout date has passed.
        """
        today = self.clock.today()

        with transaction(self.db):
            lease = self.get_lease(lease_id)
            if lease.status != LeaseStatus.ACTIVE:
                raise InvalidStateError("Only active leases can be checked out")
            if checkout_date < today:
                raise InvalidStateError("Checkout date cannot be in the past")
            if checkout_date > lease.end_date:
                raise InvalidStateError("Checkout date cannot be after the lease end date")

            lease.end_date = checkout_date
            lease.status = LeaseStatus.TERMINATED
            lease.termination_reason = f"Checked out on {checkout_date.isoformat()}"
            self.db.flush()

            if checkout_date == today:
                self._release_unit(lease, user_id)
            self._close_tenancy(lease)

        self.db.refresh(lease)
        logger.info(f"[LEASE] Lease {lease.id} checks out on {checkout_date}")
        return lease

    def expire_leases(self) -> int:
        """
        Expire ACTIVE leases whose end date has passed and free units still
        held by TERMINATED leases past checkout. Safe to run repeatedly.
        """
        today = self.clock.today()

        with transaction(self.db):
            expired = (
                self.db.query(Lease)
                .filter(Lease.status == LeaseStatus.ACTIVE, Lease.end_date < today)
                .order_by(Lease.id)
                .all()
            )
            for lease in expired:
                lease.status = LeaseStatus.EXPIRED
                self.db.flush()
                self._release_unit(lease)
                self._close_tenancy(lease)
                logger.info(f"[LEASE] Lease {lease.id} expired (ended {lease.end_date})")

            # A future checkout leaves the unit OCCUPIED with no ACTIVE lease.
            # Only the lease that last held the unit decides when it is freed.
            held = (
                self.db.query(Unit)
                .filter(Unit.status == UnitStatus.OCCUPIED)
                .order_by(Unit.id)
                .all()
            )
            released = 0
            for unit in held:
                if self.get_active_lease_by_unit(unit.id) is not None:
                    continue
                holder = self._last_holder(unit.id)
                if holder is None or holder.status != LeaseStatus.TERMINATED or holder.end_date >= today:
                    continue
                self._release_unit(holder)
                released += 1

        if expired or released:
            logger.info(f"[LEASE] Expiry sweep: {len(expired)} expired, {released} unit(s) released after checkout")
        return len(expired)

    def update_lease(self, lease_id: int, data: LeaseUpdate) -> Lease:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        try:
            with transaction(self.db):
                lease = self.get_lease(lease_id)
                start = changes.get("start_date", lease.start_date)
                end = changes.get("end_date", lease.end_date)
                if end < start:
                    raise InvalidStateError("Lease end date must not be before its start date")

                dates_changed = start != lease.start_date or end != lease.end_date
                if lease.status == LeaseStatus.ACTIVE and dates_changed:
                    self.units.lock_unit(lease.unit_id)
                    self._check_overlap(lease.unit_id, start, end, exclude_id=lease.id)

                for field, value in changes.items():
                    setattr(lease, field, value)
        except IntegrityError as exc:
            raise ConflictError(OVERLAP_MESSAGE, entity="Lease") from exc

        self.db.refresh(lease)
        return lease

    def delete_lease(self, lease_id: int, user_id: Optional[int] = None) -> None:
        with transaction(self.db):
            lease = self.get_lease(lease_id)
            if lease.status == LeaseStatus.ACTIVE:
                unit = self.units.lock_unit(lease.unit_id)
                self.units.set_unit_status(unit, UnitStatus.AVAILABLE, f"Lease {lease.id} deleted", user_id)

            self.db.query(Payment).filter(Payment.lease_id == lease.id).delete(synchronize_session=False)
            self.db.query(Invoice).filter(Invoice.lease_id == lease.id).delete(synchronize_session=False)
            self.db.delete(lease)

        logger.info(f"[LEASE] Deleted lease {lease_id}")

    # ── Internals ────────────────────────────────────────────────────────────

    def _check_overlap(
        self, unit_id: int, start_date: date, end_date: date, exclude_id: Optional[int] = None
    ) -> None:
        q = self.db.query(Lease.id).filter(
            Lease.unit_id == unit_id,
            Lease.status == LeaseStatus.ACTIVE,
            Lease.start_date <= end_date,
            Lease.end_date >= start_date,
        )
        if exclude_id is not None:
            q = q.filter(Lease.id != exclude_id)
        if q.first() is not None:
            raise ConflictError(OVERLAP_MESSAGE, entity="Lease")

    def _require_available(self, unit: Unit) -> None:
        if unit.status != UnitStatus.AVAILABLE:
            raise ConflictError(
                f"Unit {unit.room_number} is not available for lease (status: {unit.status.value})",
                entity="Unit",
            )

    def _last_holder(self, unit_id: int) -> Optional[Lease]:
        """The most recently started non-pending lease on the unit."""
        return (
            self.db.query(Lease)
            .filter(Lease.unit_id == unit_id, Lease.status != LeaseStatus.PENDING)
            .order_by(Lease.start_date.desc(), Lease.id.desc())
            .first()
        )

    def _release_unit(self, lease: Lease, user_id: Optional[int] = None) -> None:
        unit = self.units.lock_unit(lease.unit_id)
        other_active = (
            self.db.query(Lease.id)
            .filter(
                Lease.unit_id == unit.id,
                Lease.status == LeaseStatus.ACTIVE,
                Lease.id != lease.id,
            )
            .first()
        )
        if other_active is None:
            self.units.set_unit_status(
                unit, UnitStatus.AVAILABLE, f"Lease {lease.id} {lease.status.value.lower()}", user_id
            )

    def _close_tenancy(self, lease: Lease) -> None:
        """
        Close the tenant side of a finished lease. When the tenant has no
        other ACTIVE lease their account drops back to USER, their APPROVED
        requests become COMPLETED and the tenant is marked INACTIVE.
        """
        tenant = self.db.get(Tenant, lease.tenant_id)
        if tenant is None:
            return
        still_leasing = (
            self.db.query(Lease.id)
            .filter(
                Lease.tenant_id == tenant.id,
                Lease.status == LeaseStatus.ACTIVE,
                Lease.id != lease.id,
            )
            .first()
        )
        if still_leasing is not None:
            return

        account = auth_service.demote_to_user(self.db, tenant.email)

        owners = []
        if tenant.email:
            owners.append(RentalRequest.email == tenant.email)
        if account is not None:
            owners.append(RentalRequest.user_id == account.id)
        if owners:
            completed = (
                self.db.query(RentalRequest)
                .filter(RentalRequest.status == RentalRequestStatus.APPROVED, or_(*owners))
                .all()
            )
            for request in completed:
                request.status = RentalRequestStatus.COMPLETED
            if completed:
                logger.info(f"[LEASE] Marked {len(completed)} approved request(s) COMPLETED for {tenant.email}")

        tenant.status = TenantStatus.INACTIVE

"""
Rental Request Service
Intake, approval and rejection of rental requests.

A full approval is one transaction: tenant profile, ACTIVE lease, unit
OCCUPIED, request APPROVED and the applicant's VILLAGER account all land
together or not at all.
"""
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, resolve_clock
from backoffice.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from backoffice.database import transaction
from backoffice.models.lease import Lease, LeaseStatus
from backoffice.models.rental_request import RentalRequest, RentalRequestStatus
from backoffice.models.tenant import Tenant
from backoffice.models.unit import UnitStatus
from backoffice.models.user import User, UserRole
from backoffice.schemas.rental_request import (
    AcknowledgeResponse,
    MyLatestRequest,
    RentalRequestCreate,
    RentalRequestUpdate,
)
from backoffice.services import auth_service
from backoffice.services.lease_service import OVERLAP_MESSAGE, LeaseService

logger = logging.getLogger(__name__)


class RentalRequestService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)
        self.leases = LeaseService(db, self.clock)
        self.units = self.leases.units
        self.tenants = self.leases.tenants

    # ── Queries ──────────────────────────────────────────────────────────────

    def get_request(self, request_id: int) -> RentalRequest:
        request = self.db.get(RentalRequest, request_id)
        if request is None:
            raise NotFoundError.for_entity("Rental request", request_id)
        return request

    def get_all_rental_requests(self, skip: int = 0, limit: int = 100) -> List[RentalRequest]:
        return (
            self.db.query(RentalRequest)
            .order_by(RentalRequest.request_date.desc(), RentalRequest.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_pending_requests(self) -> List[RentalRequest]:
        return (
            self.db.query(RentalRequest)
            .filter(RentalRequest.status == RentalRequestStatus.PENDING)
            .order_by(RentalRequest.request_date, RentalRequest.id)
            .all()
        )

    def get_requests_by_unit(self, unit_id: int) -> List[RentalRequest]:
        return (
            self.db.query(RentalRequest)
            .filter(RentalRequest.unit_id == unit_id)
            .order_by(RentalRequest.request_date.desc(), RentalRequest.id.desc())
            .all()
        )

    def get_requests_by_email(self, email: str) -> List[RentalRequest]:
        return (
            self.db.query(RentalRequest)
            .filter(RentalRequest.email == email)
            .order_by(RentalRequest.request_date.desc(), RentalRequest.id.desc())
            .all()
        )

    def _requests_of(self, user: Optional[User], email: Optional[str]):
        owners = []
        if user is not None:
            owners.append(RentalRequest.user_id == user.id)
            email = email or user.email
        if email:
            owners.append(RentalRequest.email == email)
        return self.db.query(RentalRequest).filter(or_(*owners))

    # ── Intake ───────────────────────────────────────────────────────────────

    def create_rental_request(
        self, data: RentalRequestCreate, user_id: Optional[int] = None
    ) -> RentalRequest:
        with transaction(self.db):
            user = None
            if user_id is not None:
                user = self.db.get(User, user_id)
                if user is None:
                    raise NotFoundError.for_entity("User", user_id)
                if user.email.lower() != data.email.lower():
                    raise InvalidStateError("Request email must match the signed-in account")
            else:
                user = auth_service.get_user_by_email(self.db, data.email)

            unit = self.units.get_unit(data.unit_id)
            if unit.status != UnitStatus.AVAILABLE:
                raise ConflictError(
                    f"Unit {unit.room_number} is not available (status: {unit.status.value})",
                    entity="Unit",
                )

            self._check_eligibility(user, data.email)

            request = RentalRequest(
                **data.model_dump(),
                user_id=user.id if user is not None else None,
                status=RentalRequestStatus.PENDING,
                request_date=self.clock.now(),
            )
            self.db.add(request)

        self.db.refresh(request)
        logger.info(f"[RENTAL] Request {request.id} for unit {request.unit_id} from {request.email}")
        return request

    def _check_eligibility(self, user: Optional[User], email: str) -> None:
        if user is not None and user.role == UserRole.VILLAGER:
            raise ConflictError("Tenants with an active lease cannot submit a new request", entity="RentalRequest")

        blocking = (
            self._requests_of(user, email)
            .filter(
                or_(
                    RentalRequest.status.in_([RentalRequestStatus.PENDING, RentalRequestStatus.APPROVED]),
                    and_(
                        RentalRequest.status == RentalRequestStatus.REJECTED,
                        RentalRequest.rejection_acknowledged_at.is_(None),
                    ),
                )
            )
            .order_by(RentalRequest.id.desc())
            .first()
        )
        if blocking is None:
            return
        if blocking.status == RentalRequestStatus.PENDING:
            raise ConflictError("You already have a pending request", entity="RentalRequest")
        if blocking.status == RentalRequestStatus.APPROVED:
            raise ConflictError("You already have an approved request", entity="RentalRequest")
        raise ConflictError(
            "Please acknowledge your rejected request before submitting a new one",
            entity="RentalRequest",
        )

    def update_rental_request(self, request_id: int, data: RentalRequestUpdate) -> RentalRequest:
        with transaction(self.db):
            request = self.get_request(request_id)
            for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
                setattr(request, field, value)

        self.db.refresh(request)
        return request

    def delete_rental_request(self, request_id: int) -> None:
        with transaction(self.db):
            request = self.get_request(request_id)
            self.db.delete(request)
        logger.info(f"[RENTAL] Deleted request {request_id}")

    # ── Decisions ────────────────────────────────────────────────────────────

    def approve_request(
        self,
        request_id: int,
        approved_by_user_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> RentalRequest:
        """
        Approve a PENDING request. With both dates the approval also creates
        the tenant, the ACTIVE lease and the VILLAGER account; without them it
        only records the decision.
        """
        if (start_date is None) != (end_date is None):
            raise InvalidStateError("Provide both start_date and end_date, or neither")
        if start_date is None:
            return self._approve_simple(request_id, approved_by_user_id)

        try:
            with transaction(self.db):
                request = self._pending(request_id)
                if start_date < self.clock.today():
                    raise InvalidStateError("Lease start date cannot be in the past")
                if end_date <= start_date:
                    raise InvalidStateError("Lease end date must be after the start date")

                unit = self.units.lock_unit(request.unit_id)

                tenant = self.tenants.find_or_create_from_request(request)
                lease = self.leases.open_lease(
                    unit_id=unit.id,
                    tenant_id=tenant.id,
                    start_date=start_date,
                    end_date=end_date,
                    rent_amount=unit.rent_amount,
                    user_id=approved_by_user_id,
                )

                self._mark_approved(request, approved_by_user_id)
                account = auth_service.promote_to_villager(self.db, request.email)
                if request.user_id is None:
                    request.user_id = account.id
        except IntegrityError as exc:
            logger.warning(f"[RENTAL] Approval of request {request_id} rejected by the store: {exc.orig}")
            raise ConflictError(OVERLAP_MESSAGE, entity="Lease") from exc

        self.db.refresh(request)
        logger.info(
            f"[RENTAL] Request {request.id} approved by {approved_by_user_id}: "
            f"lease {lease.id} on unit {lease.unit_id} for tenant {tenant.id}"
        )
        return request

    def _approve_simple(self, request_id: int, approved_by_user_id: int) -> RentalRequest:
        with transaction(self.db):
            request = self._pending(request_id)
            self._mark_approved(request, approved_by_user_id)

        self.db.refresh(request)
        logger.info(f"[RENTAL] Request {request.id} approved by {approved_by_user_id}")
        return request

    def reject_request(self, request_id: int, reason: str, rejected_by_user_id: int) -> RentalRequest:
        with transaction(self.db):
            request = self._pending(request_id)
            request.status = RentalRequestStatus.REJECTED
            request.rejection_reason = reason
            request.approved_by_user_id = rejected_by_user_id
            request.approved_date = self.clock.now()
            request.rejection_acknowledged_at = None

        self.db.refresh(request)
        logger.info(f"[RENTAL] Request {request.id} rejected by {rejected_by_user_id}: {reason}")
        return request

    def acknowledge_rejection(self, request_id: int, user_id: int) -> AcknowledgeResponse:
        with transaction(self.db):
            request = self.db.get(RentalRequest, request_id)
            user = self.db.get(User, user_id)
            owned = (
                request is not None
                and user is not None
                and (request.user_id == user.id or (request.user_id is None and request.email == user.email))
            )
            if not owned:
                raise NotFoundError.for_entity("Rental request", request_id)
            if request.status != RentalRequestStatus.REJECTED:
                raise InvalidStateError("Only rejected requests can be acknowledged")
            if request.rejection_acknowledged_at is not None:
                raise ConflictError("Rejection has already been acknowledged", entity="RentalRequest")

            acknowledged_at = self.clock.now()
            request.rejection_acknowledged_at = acknowledged_at
            self.db.flush()

            try:
                self._check_eligibility(user, user.email)
                can_create = True
            except ConflictError:
                can_create = False

        logger.info(f"[RENTAL] User {user_id} acknowledged rejection of request {request_id}")
        if can_create:
            message = "Rejection acknowledged. You can now submit a new booking request."
        else:
            message = "Rejection acknowledged. Another request or lease still blocks a new booking."
        return AcknowledgeResponse(
            request_id=request_id,
            acknowledged_at=acknowledged_at,
            message=message,
            can_create_new_request=can_create,
        )

    def _pending(self, request_id: int) -> RentalRequest:
        request = self.get_request(request_id)
        if request.status != RentalRequestStatus.PENDING:
            raise InvalidStateError(
                f"Only pending requests can be decided (current status: {request.status.value})"
            )
        return request

    def _mark_approved(self, request: RentalRequest, approved_by_user_id: int) -> None:
        request.status = RentalRequestStatus.APPROVED
        request.approved_by_user_id = approved_by_user_id
        request.approved_date = self.clock.now()
        request.rejection_reason = None

    # ── Applicant view ───────────────────────────────────────────────────────

    def get_my_latest_request(self, user_id: int) -> MyLatestRequest:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError.for_entity("User", user_id)

        latest = (
            self._requests_of(user, user.email)
            .order_by(RentalRequest.request_date.desc(), RentalRequest.id.desc())
            .first()
        )
        if latest is None:
            return MyLatestRequest()

        active_lease = (
            self.db.query(Lease)
            .join(Tenant, Tenant.id == Lease.tenant_id)
            .filter(Tenant.email == user.email, Lease.status == LeaseStatus.ACTIVE)
            .order_by(Lease.start_date.desc())
            .first()
        )
        # Newest lease on the requested unit for this applicant, if any
        lease = active_lease or (
            self.db.query(Lease)
            .join(Tenant, Tenant.id == Lease.tenant_id)
            .filter(Tenant.email == user.email, Lease.unit_id == latest.unit_id)
            .order_by(Lease.id.desc())
            .first()
        )

        has_active_lease = user.role == UserRole.VILLAGER or active_lease is not None
        is_pending = latest.status == RentalRequestStatus.PENDING
        is_approved = latest.status == RentalRequestStatus.APPROVED or active_lease is not None
        is_rejected = latest.status == RentalRequestStatus.REJECTED
        requires_ack = latest.requires_acknowledgement

        unit = latest.unit
        result = MyLatestRequest(
            id=latest.id,
            unit_id=latest.unit_id,
            room_number=unit.room_number if unit else None,
            floor=unit.floor if unit else None,
            unit_type=unit.unit_type if unit else None,
            unit_status=unit.status if unit else None,
            monthly_rent=latest.monthly_rent,
            lease_duration_months=latest.lease_duration_months,
            status=latest.status,
            request_date=latest.request_date,
            approved_date=latest.approved_date,
            rejection_reason=latest.rejection_reason,
            rejection_acknowledged_at=latest.rejection_acknowledged_at,
            lease_id=lease.id if lease else None,
            lease_status=lease.status if lease else None,
            lease_start_date=lease.start_date if lease else None,
            lease_end_date=lease.end_date if lease else None,
            is_pending=is_pending,
            is_approved=is_approved,
            is_rejected=is_rejected,
            requires_acknowledgement=requires_ack,
            has_active_lease=has_active_lease,
            can_create_new_request=not (is_pending or is_approved or requires_ack),
            status_message=self._status_message(latest, is_pending, is_approved, requires_ack),
        )
        return result

    @staticmethod
    def _status_message(
        request: RentalRequest, is_pending: bool, is_approved: bool, requires_ack: bool
    ) -> str:
        if is_pending:
            return "Your booking request is being reviewed"
        if is_approved:
            return "Your booking request has been approved"
        if requires_ack:
            reason = request.rejection_reason or "No reason given"
            return f"Your booking request was rejected: {reason}. Please acknowledge to continue"
        if request.status == RentalRequestStatus.COMPLETED:
            return "Your previous lease has ended. You can submit a new booking request"
        return "You can submit a new booking request"

"""
Tenant Service
Tenant registry. Tenants are found by email; approval of a rental request
creates or refreshes the tenant profile from the applicant's details.
"""
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, resolve_clock
from backoffice.core.exceptions import ConflictError, NotFoundError
from backoffice.database import transaction
from backoffice.models.lease import Lease, LeaseStatus
from backoffice.models.payment import Invoice, Payment
from backoffice.models.rental_request import RentalRequest
from backoffice.models.tenant import Tenant, TenantStatus
from backoffice.schemas.tenant import TenantCreate, TenantUpdate
from backoffice.services import auth_service

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "phone",
    "occupation",
    "emergency_contact",
    "emergency_phone",
)


class TenantService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)

    def get_tenant(self, tenant_id: int) -> Tenant:
        tenant = self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundError.for_entity("Tenant", tenant_id)
        return tenant

    def get_tenant_by_email(self, email: str) -> Optional[Tenant]:
        return (
            self.db.query(Tenant)
            .filter(Tenant.email == email)
            .order_by(Tenant.id.desc())
            .first()
        )

    def get_all_tenants(self, skip: int = 0, limit: int = 100) -> List[Tenant]:
        return (
            self.db.query(Tenant)
            .order_by(Tenant.last_name, Tenant.first_name)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def search_tenants(self, name: str) -> List[Tenant]:
        pattern = f"%{name.strip()}%"
        return (
            self.db.query(Tenant)
            .filter(or_(Tenant.first_name.ilike(pattern), Tenant.last_name.ilike(pattern)))
            .order_by(Tenant.last_name, Tenant.first_name)
            .all()
        )

    def has_active_lease(self, tenant_id: int) -> bool:
        return (
            self.db.query(Lease.id)
            .filter(Lease.tenant_id == tenant_id, Lease.status == LeaseStatus.ACTIVE)
            .first()
            is not None
        )

    def create_tenant(self, data: TenantCreate) -> Tenant:
        with transaction(self.db):
            if data.email and self.get_tenant_by_email(data.email) is not None:
                raise ConflictError(f"Tenant already exists with email: {data.email}", entity="Tenant")
            tenant = Tenant(**data.model_dump(), status=TenantStatus.ACTIVE)
            self.db.add(tenant)

        self.db.refresh(tenant)
        logger.info(f"[TENANT] Created tenant {tenant.id}")
        return tenant

    def update_tenant(self, tenant_id: int, data: TenantUpdate) -> Tenant:
        changes = data.model_dump(exclude_unset=True)

        with transaction(self.db):
            tenant = self.get_tenant(tenant_id)
            new_email = changes.get("email")
            if new_email and new_email != tenant.email:
                other = self.get_tenant_by_email(new_email)
                if other is not None and other.id != tenant.id:
                    raise ConflictError(f"Tenant already exists with email: {new_email}", entity="Tenant")
            for field, value in changes.items():
                setattr(tenant, field, value)

        self.db.refresh(tenant)
        return tenant

    def delete_tenant(self, tenant_id: int) -> None:
        """
        Delete a tenant together with their finished leases and the ledger rows
        billed against them. Refused while a lease is still ACTIVE.
        """
        with transaction(self.db):
            tenant = self.get_tenant(tenant_id)
            if self.has_active_lease(tenant.id):
                raise ConflictError("Cannot delete tenant with an active lease", entity="Tenant")

            lease_ids = [
                lease_id for (lease_id,) in
                self.db.query(Lease.id).filter(Lease.tenant_id == tenant.id).all()
            ]
            if lease_ids:
                self.db.query(Payment).filter(Payment.lease_id.in_(lease_ids)).delete(
                    synchronize_session=False
                )
                self.db.query(Invoice).filter(Invoice.lease_id.in_(lease_ids)).delete(
                    synchronize_session=False
                )
                self.db.query(Lease).filter(Lease.id.in_(lease_ids)).delete(synchronize_session=False)

            auth_service.demote_to_user(self.db, tenant.email)
            self.db.delete(tenant)

        logger.info(f"[TENANT] Deleted tenant {tenant_id}")

    # ── Used by the rental request workflow ──────────────────────────────────

    def find_or_create_from_request(self, request: RentalRequest) -> Tenant:
        """Resolve the applicant's tenant by email, refreshing it from the request."""
        tenant = self.get_tenant_by_email(request.email)
        if tenant is None:
            tenant = Tenant(email=request.email)
            self.db.add(tenant)
            logger.info(f"[TENANT] Creating tenant for applicant {request.email}")

        for field in _PROFILE_FIELDS:
            value = getattr(request, field)
            if value is not None:
                setattr(tenant, field, value)
        tenant.status = TenantStatus.ACTIVE

        self.db.flush()
        return tenant

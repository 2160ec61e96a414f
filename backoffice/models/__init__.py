# Import all models so they register with Base.metadata
from backoffice.models.user import User, UserRole
from backoffice.models.unit import Unit, UnitStatus
from backoffice.models.tenant import Tenant, TenantStatus
from backoffice.models.lease import Lease, LeaseStatus, BillingCycle
from backoffice.models.rental_request import RentalRequest, RentalRequestStatus
from backoffice.models.payment import (
    Invoice, InvoiceStatus, InvoiceType,
    Payment, PaymentMethod, PaymentStatus, PaymentType,
)
from backoffice.models.audit import UnitAuditLog, UnitAuditActionType, UnitPriceHistory
from backoffice.models.maintenance import (
    MaintenanceCategory, MaintenanceLog, MaintenanceLogAction, MaintenancePriority,
    MaintenanceRequest, MaintenanceRequestItem, MaintenanceSchedule, MaintenanceStatus,
    MaintenanceStock, MaintenanceUrgency, RecurrenceType, TargetType,
)
from backoffice.models.apartment_setting import ApartmentSetting

__all__ = [
    "User",
    "UserRole",
    "Unit",
    "UnitStatus",
    "Tenant",
    "TenantStatus",
    "Lease",
    "LeaseStatus",
    "BillingCycle",
    "RentalRequest",
    "RentalRequestStatus",
    "Invoice",
    "InvoiceStatus",
    "InvoiceType",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentType",
    "UnitAuditLog",
    "UnitAuditActionType",
    "UnitPriceHistory",
    "MaintenanceCategory",
    "MaintenanceLog",
    "MaintenanceLogAction",
    "MaintenancePriority",
    "MaintenanceRequest",
    "MaintenanceRequestItem",
    "MaintenanceSchedule",
    "MaintenanceStatus",
    "MaintenanceStock",
    "MaintenanceUrgency",
    "RecurrenceType",
    "TargetType",
    "ApartmentSetting",
]

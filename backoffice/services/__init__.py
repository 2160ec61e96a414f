from backoffice.services import auth_service
from backoffice.services.audit_service import AuditService
from backoffice.services.unit_service import UnitService
from backoffice.services.tenant_service import TenantService
from backoffice.services.lease_service import LeaseService
from backoffice.services.rental_request_service import RentalRequestService
from backoffice.services.payment_service import InvoiceService, PaymentService
from backoffice.services.maintenance_log_service import MaintenanceLogService
from backoffice.services.maintenance_stock_service import MaintenanceStockService
from backoffice.services.maintenance_request_service import MaintenanceRequestService
from backoffice.services.maintenance_schedule_service import MaintenanceScheduleService
from backoffice.services.apartment_settings_service import ApartmentSettingsService

__all__ = [
    "auth_service",
    "AuditService",
    "UnitService",
    "TenantService",
    "LeaseService",
    "RentalRequestService",
    "PaymentService",
    "InvoiceService",
    "MaintenanceLogService",
    "MaintenanceStockService",
    "MaintenanceRequestService",
    "MaintenanceScheduleService",
    "ApartmentSettingsService",
]

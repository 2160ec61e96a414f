from backoffice.api.routes.auth import router as auth_router
from backoffice.api.routes.units import router as units_router
from backoffice.api.routes.tenants import router as tenants_router
from backoffice.api.routes.leases import router as leases_router
from backoffice.api.routes.rental_requests import router as rental_requests_router
from backoffice.api.routes.payments import router as payments_router, invoices_router
from backoffice.api.routes.audit import router as audit_router
from backoffice.api.routes.maintenance_requests import router as maintenance_requests_router
from backoffice.api.routes.maintenance_stocks import router as maintenance_stocks_router
from backoffice.api.routes.maintenance_schedules import router as maintenance_schedules_router
from backoffice.api.routes.settings import router as settings_router

__all__ = [
    "auth_router",
    "units_router",
    "tenants_router",
    "leases_router",
    "rental_requests_router",
    "payments_router",
    "invoices_router",
    "audit_router",
    "maintenance_requests_router",
    "maintenance_stocks_router",
    "maintenance_schedules_router",
    "settings_router",
]

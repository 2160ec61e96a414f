"""
Maintenance Request Routes
Tenant intake and time-slot booking, the admin repair workflow, and the
stock consumed by each request
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, get_clock
from backoffice.database import get_db
from backoffice.dependencies import get_current_user, require_admin
from backoffice.models.maintenance import (
    MaintenanceCategory, MaintenancePriority, MaintenanceRequest, MaintenanceStatus,
)
from backoffice.models.user import User, UserRole
from backoffice.schemas.maintenance import (
    AssignRequest,
    CompleteRequest,
    ItemsCost,
    MaintenanceLogResponse,
    MaintenanceRequestCreate,
    MaintenanceRequestResponse,
    MaintenanceRequestUpdate,
    MaintenanceStats,
    PriorityChange,
    RejectMaintenance,
    RequestItemCreate,
    RequestItemQuantity,
    RequestItemResponse,
    StatusChange,
    TimeSlotSelection,
)
from backoffice.services.maintenance_log_service import MaintenanceLogService
from backoffice.services.maintenance_request_service import MaintenanceRequestService

router = APIRouter()


def get_maintenance_request_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> MaintenanceRequestService:
    return MaintenanceRequestService(db, clock)


def _visible_to(request: MaintenanceRequest, user: User) -> MaintenanceRequest:
    if user.role != UserRole.ADMIN and request.created_by_user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return request


# ==================== TENANT ====================

@router.post("/", response_model=MaintenanceRequestResponse, status_code=status.HTTP_201_CREATED)
def create_maintenance_request(
    request_in: MaintenanceRequestCreate,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    current_user: User = Depends(get_current_user),
):
    """Admins file for any unit; anyone else only for the unit they currently lease"""
    if current_user.role != UserRole.ADMIN:
        tenant = service.find_leasing_tenant(current_user.email, request_in.unit_id)
        if tenant is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only report issues for the unit you lease",
            )
        request_in.tenant_id = tenant.id
    return service.create_request(request_in, user_id=current_user.id)


@router.get("/my", response_model=List[MaintenanceRequestResponse])
def my_maintenance_requests(
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    current_user: User = Depends(get_current_user),
):
    return service.get_requests_by_creator(current_user.id)


@router.post("/{request_id}/select-time", response_model=MaintenanceRequestResponse)
def select_time_slot(
    request_id: int,
    body: TimeSlotSelection,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    current_user: User = Depends(get_current_user),
):
    """Book the visit for a scheduled request; this submits it"""
    _visible_to(service.get_request(request_id), current_user)
    slot = f"{body.preferred_date.isoformat()} {body.preferred_time}"
    return service.select_time_slot(request_id, slot, user_id=current_user.id)


# ==================== QUERIES (admin) ====================

@router.get("/", response_model=List[MaintenanceRequestResponse])
def list_maintenance_requests(
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    return service.get_all_requests()


@router.get("/open", response_model=List[MaintenanceRequestResponse])
def open_maintenance_requests(
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    return service.get_open_requests()


@router.get("/high-priority", response_model=List[MaintenanceRequestResponse])
def high_priority_requests(
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    """Open HIGH and URGENT requests"""
    return service.get_high_priority_requests()


@router.get("/statistics", response_model=MaintenanceStats)
def maintenance_statistics(
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    return service.get_statistics()


@router.get("/status/{request_status}", response_model=List[MaintenanceRequestResponse])
def requests_by_status(
    request_status: MaintenanceStatus,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    return service.get_requests_by_status(request_status)


@router.get("/priority/{priority}", response_model=List[MaintenanceRequestResponse])
def requests_by_priority(
    priority: MaintenancePriority,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    return service.get_requests_by_priority(priority)


@router.get("/category/{category}", response_model=List[MaintenanceRequestResponse])
def requests_by_category(
    category: MaintenanceCategory,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    return service.get_requests_by_category(category)


@router.get("/unit/{unit_id}", response_model=List[MaintenanceRequestResponse])
def requests_by_unit(
    unit_id: int,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    return service.get_requests_by_unit(unit_id)


@router.get("/tenant/{tenant_id}", response_model=List[MaintenanceRequestResponse])
def requests_by_tenant(
    tenant_id: int,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    return service.get_requests_by_tenant(tenant_id)


@router.get("/{request_id}", response_model=MaintenanceRequestResponse)
def get_maintenance_request(
    request_id: int,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    current_user: User = Depends(get_current_user),
):
    return _visible_to(service.get_request(request_id), current_user)


@router.get("/{request_id}/logs", response_model=List[MaintenanceLogResponse])
def maintenance_request_logs(
    request_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return MaintenanceLogService(db).get_logs_by_request(request_id)


# ==================== WORKFLOW (admin) ====================

@router.put("/{request_id}", response_model=MaintenanceRequestResponse)
def update_maintenance_request(
    request_id: int,
    request_in: MaintenanceRequestUpdate,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    current_user: User = Depends(require_admin),
):
    return service.update_request(request_id, request_in, user_id=current_user.id)


@router.patch("/{request_id}/assign", response_model=MaintenanceRequestResponse)
def assign_maintenance_request(
    request_id: int,
    body: AssignRequest,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    current_user: User = Depends(require_admin),
):
    """Assign a technician; the request moves to IN_PROGRESS"""
    return service.assign_request(request_id, body.assigned_to_user_id, user_id=current_user.id)


@router.patch("/{request_id}/status", response_model=MaintenanceRequestResponse)
def update_maintenance_status(
    request_id: int,
    body: StatusChange,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    current_user: User = Depends(require_admin),
):
    return service.update_status(request_id, body.status, body.notes, user_id=current_user.id)


@router.patch("/{request_id}/priority", response_model=MaintenanceRequestResponse)
def update_maintenance_priority(
    request_id: int,
    body: PriorityChange,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    return service.update_priority(request_id, body.priority)


@router.post("/{request_id}/complete", response_model=MaintenanceRequestResponse)
def complete_maintenance_request(
    request_id: int,
    body: CompleteRequest,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    current_user: User = Depends(require_admin),
):
    return service.complete_request(
        request_id, body.completion_notes, body.actual_cost, user_id=current_user.id
    )


@router.post("/{request_id}/reject", response_model=MaintenanceRequestResponse)
def reject_maintenance_request(
    request_id: int,
    body: RejectMaintenance,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    current_user: User = Depends(require_admin),
):
    return service.reject_request(request_id, body.reason, user_id=current_user.id)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_maintenance_request(
    request_id: int,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    """Delete the request and return its consumed items to stock"""
    service.delete_request(request_id)


# ==================== ITEMS (admin) ====================

@router.get("/{request_id}/items", response_model=List[RequestItemResponse])
def list_request_items(
    request_id: int,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    return service.get_items(request_id)


@router.post(
    "/{request_id}/items", response_model=RequestItemResponse, status_code=status.HTTP_201_CREATED
)
def add_request_item(
    request_id: int,
    body: RequestItemCreate,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    """Record stock used on the request; the quantity leaves stock immediately"""
    return service.add_item(request_id, body.stock_id, body.quantity_used, body.notes)


@router.get("/{request_id}/items/total-cost", response_model=ItemsCost)
def request_items_cost(
    request_id: int,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    items = service.get_items(request_id)
    return ItemsCost(
        request_id=request_id,
        total_cost=service.calculate_total_cost(request_id),
        item_count=len(items),
    )


@router.put("/items/{item_id}", response_model=RequestItemResponse)
def update_request_item(
    item_id: int,
    body: RequestItemQuantity,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    return service.update_item_quantity(item_id, body.quantity_used)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_request_item(
    item_id: int,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    service.remove_item(item_id)


@router.delete("/{request_id}/items", response_model=ItemsCost)
def clear_request_items(
    request_id: int,
    service: MaintenanceRequestService = Depends(get_maintenance_request_service),
    _: User = Depends(require_admin),
):
    """Return every item on the request to stock"""
    removed = service.remove_all_items(request_id)
    return ItemsCost(request_id=request_id, total_cost=0, item_count=removed)

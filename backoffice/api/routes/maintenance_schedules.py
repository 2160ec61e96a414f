"""
Maintenance Schedule Routes
Recurring maintenance plans, manual triggers and the maintenance activity log
(admin only)
"""
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, get_clock
from backoffice.database import get_db
from backoffice.dependencies import require_admin
from backoffice.models.user import User
from backoffice.schemas.maintenance import (
    MaintenanceLogResponse, ScheduleCreate, ScheduleResponse, ScheduleUpdate, TriggerResult,
)
from backoffice.schemas.unit import UnitResponse
from backoffice.services.maintenance_log_service import RECENT_LIMIT, MaintenanceLogService
from backoffice.services.maintenance_schedule_service import MaintenanceScheduleService

router = APIRouter()


def get_schedule_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> MaintenanceScheduleService:
    return MaintenanceScheduleService(db, clock)


# ==================== QUERIES ====================

@router.get("/", response_model=List[ScheduleResponse])
def list_schedules(
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    _: User = Depends(require_admin),
):
    return service.get_all_schedules()


@router.get("/active", response_model=List[ScheduleResponse])
def active_schedules(
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    _: User = Depends(require_admin),
):
    return service.get_active_schedules()


@router.get("/due", response_model=List[ScheduleResponse])
def due_schedules(
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    _: User = Depends(require_admin),
):
    """Schedules the next sweep will fire"""
    return service.get_due_schedules()


@router.get("/logs/recent", response_model=List[MaintenanceLogResponse])
def recent_logs(
    limit: int = Query(RECENT_LIMIT, ge=1, le=RECENT_LIMIT),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return MaintenanceLogService(db).get_recent_logs(limit)


@router.get("/{schedule_id}", response_model=ScheduleResponse)
def get_schedule(
    schedule_id: int,
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    _: User = Depends(require_admin),
):
    return service.get_schedule(schedule_id)


@router.get("/{schedule_id}/affected-units", response_model=List[UnitResponse])
def affected_units(
    schedule_id: int,
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    _: User = Depends(require_admin),
):
    """Targeted units that currently have an ACTIVE lease"""
    return service.get_affected_units(schedule_id)


@router.get("/{schedule_id}/logs", response_model=List[MaintenanceLogResponse])
def schedule_logs(
    schedule_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return MaintenanceLogService(db).get_logs_by_schedule(schedule_id)


# ==================== COMMANDS ====================

@router.post("/", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
def create_schedule(
    schedule_in: ScheduleCreate,
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    current_user: User = Depends(require_admin),
):
    """First run is on start_date; the sweep raises the requests"""
    return service.create_schedule(schedule_in, user_id=current_user.id)


@router.put("/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(
    schedule_id: int,
    schedule_in: ScheduleUpdate,
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    current_user: User = Depends(require_admin),
):
    return service.update_schedule(schedule_id, schedule_in, user_id=current_user.id)


@router.post("/{schedule_id}/activate", response_model=ScheduleResponse)
def activate_schedule(
    schedule_id: int,
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    current_user: User = Depends(require_admin),
):
    return service.activate_schedule(schedule_id, user_id=current_user.id)


@router.post("/{schedule_id}/deactivate", response_model=ScheduleResponse)
def deactivate_schedule(
    schedule_id: int,
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    current_user: User = Depends(require_admin),
):
    return service.deactivate_schedule(schedule_id, user_id=current_user.id)


@router.post("/{schedule_id}/pause", response_model=ScheduleResponse)
def pause_schedule(
    schedule_id: int,
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    current_user: User = Depends(require_admin),
):
    return service.pause_schedule(schedule_id, user_id=current_user.id)


@router.post("/{schedule_id}/resume", response_model=ScheduleResponse)
def resume_schedule(
    schedule_id: int,
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    current_user: User = Depends(require_admin),
):
    return service.resume_schedule(schedule_id, user_id=current_user.id)


@router.post("/{schedule_id}/trigger", response_model=TriggerResult)
def trigger_schedule(
    schedule_id: int,
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    current_user: User = Depends(require_admin),
):
    """Raise this schedule's requests now, whether or not it is due"""
    schedule, requests = service.trigger_schedule(schedule_id, user_id=current_user.id)
    return TriggerResult(
        schedule_id=schedule.id,
        created_request_ids=[r.id for r in requests],
        next_trigger_date=schedule.next_trigger_date,
        is_active=schedule.is_active,
    )


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    schedule_id: int,
    service: MaintenanceScheduleService = Depends(get_schedule_service),
    current_user: User = Depends(require_admin),
):
    service.delete_schedule(schedule_id, user_id=current_user.id)

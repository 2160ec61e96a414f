"""
Maintenance Schedule Service
Recurring maintenance plans. A trigger raises one request per targeted unit
that currently has an ACTIVE lease; the request waits for the tenant to pick
a visit slot (PENDING_TENANT_CONFIRMATION).

trigger_due_schedules is the sweep entry point: every active, unpaused
schedule whose next_trigger_date has arrived fires once and moves its next
date past today.
"""
import calendar
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, resolve_clock
from backoffice.core.exceptions import InvalidStateError, NotFoundError
from backoffice.database import transaction
from backoffice.models.lease import Lease, LeaseStatus
from backoffice.models.maintenance import (
    MaintenanceLogAction,
    MaintenanceRequest,
    MaintenanceSchedule,
    MaintenanceStatus,
    MaintenanceUrgency,
    RecurrenceType,
    TargetType,
)
from backoffice.models.tenant import Tenant
from backoffice.models.unit import Unit
from backoffice.models.user import User
from backoffice.schemas.maintenance import ScheduleCreate, ScheduleUpdate
from backoffice.services import auth_service
from backoffice.services.maintenance_log_service import MaintenanceLogService

logger = logging.getLogger(__name__)

MONTHS_PER_STEP = {
    RecurrenceType.MONTHLY: 1,
    RecurrenceType.QUARTERLY: 3,
    RecurrenceType.YEARLY: 12,
}


def add_months(day: date, months: int, day_of_month: Optional[int] = None) -> date:
    """Shift `day` by whole months, clamping to the last day of the target month."""
    index = day.month - 1 + months
    year, month = day.year + index // 12, index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month or day.day, last_day))


def next_occurrence(schedule: MaintenanceSchedule, after: date) -> Optional[date]:
    """The occurrence following `after`; None for one-time schedules."""
    step = schedule.recurrence_interval or 1
    kind = schedule.recurrence_type
    if kind == RecurrenceType.DAILY:
        return after + timedelta(days=step)
    if kind == RecurrenceType.WEEKLY:
        return after + timedelta(weeks=step)
    if kind in MONTHS_PER_STEP:
        return add_months(after, MONTHS_PER_STEP[kind] * step, schedule.recurrence_day_of_month)
    return None


def _snapshot(schedule: MaintenanceSchedule) -> Dict:
    return {
        "title": schedule.title,
        "recurrence_type": schedule.recurrence_type,
        "recurrence_interval": schedule.recurrence_interval,
        "target_type": schedule.target_type,
        "start_date": schedule.start_date,
        "end_date": schedule.end_date,
        "next_trigger_date": schedule.next_trigger_date,
        "is_active": schedule.is_active,
        "is_paused": schedule.is_paused,
    }


class MaintenanceScheduleService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)
        self.log = MaintenanceLogService(db, self.clock)

    # ── Queries ──────────────────────────────────────────────────────────────

    def get_schedule(self, schedule_id: int) -> MaintenanceSchedule:
        schedule = self.db.get(MaintenanceSchedule, schedule_id)
        if schedule is None:
            raise NotFoundError.for_entity("Maintenance schedule", schedule_id)
        return schedule

    def get_all_schedules(self) -> List[MaintenanceSchedule]:
        return self.db.query(MaintenanceSchedule).order_by(MaintenanceSchedule.id).all()

    def get_active_schedules(self) -> List[MaintenanceSchedule]:
        return (
            self.db.query(MaintenanceSchedule)
            .filter(MaintenanceSchedule.is_active.is_(True))
            .order_by(MaintenanceSchedule.next_trigger_date, MaintenanceSchedule.id)
            .all()
        )

    def get_due_schedules(self) -> List[MaintenanceSchedule]:
        today = self.clock.today()
        return (
            self.db.query(MaintenanceSchedule)
            .filter(
                MaintenanceSchedule.is_active.is_(True),
                MaintenanceSchedule.is_paused.is_(False),
                MaintenanceSchedule.next_trigger_date.isnot(None),
                MaintenanceSchedule.next_trigger_date <= today,
            )
            .order_by(MaintenanceSchedule.next_trigger_date, MaintenanceSchedule.id)
            .all()
        )

    def get_affected_units(self, schedule_id: int) -> List[Unit]:
        return self._leased_targets(self.get_schedule(schedule_id))

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def create_schedule(self, data: ScheduleCreate, user_id: Optional[int] = None) -> MaintenanceSchedule:
        with transaction(self.db):
            schedule = MaintenanceSchedule(**data.model_dump(), created_by_user_id=user_id)
            self._validate(schedule)
            schedule.next_trigger_date = schedule.start_date
            self.db.add(schedule)
            self.db.flush()
            self.log.record(
                MaintenanceLogAction.SCHEDULE_CREATED,
                f"Schedule created: {schedule.title}",
                schedule_id=schedule.id,
                user_id=user_id,
                new=_snapshot(schedule),
            )

        self.db.refresh(schedule)
        logger.info(
            f"[SCHEDULE] Created schedule {schedule.id} '{schedule.title}' "
            f"({schedule.recurrence_type.value}, first run {schedule.next_trigger_date})"
        )
        return schedule

    def update_schedule(
        self, schedule_id: int, data: ScheduleUpdate, user_id: Optional[int] = None
    ) -> MaintenanceSchedule:
        with transaction(self.db):
            schedule = self.get_schedule(schedule_id)
            before = _snapshot(schedule)
            for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
                setattr(schedule, field, value)
            self._validate(schedule)
            if schedule.last_triggered_date is None:
                schedule.next_trigger_date = schedule.start_date
            self.log.record(
                MaintenanceLogAction.SCHEDULE_UPDATED,
                "Schedule updated",
                schedule_id=schedule.id,
                user_id=user_id,
                previous=before,
                new=_snapshot(schedule),
            )

        self.db.refresh(schedule)
        return schedule

    def activate_schedule(self, schedule_id: int, user_id: Optional[int] = None) -> MaintenanceSchedule:
        def apply(schedule: MaintenanceSchedule) -> None:
            schedule.is_active = True
            schedule.is_paused = False
            if schedule.next_trigger_date is None:
                schedule.next_trigger_date = max(schedule.start_date, self.clock.today())

        return self._toggle(schedule_id, apply, MaintenanceLogAction.SCHEDULE_ACTIVATED, user_id)

    def deactivate_schedule(self, schedule_id: int, user_id: Optional[int] = None) -> MaintenanceSchedule:
        def apply(schedule: MaintenanceSchedule) -> None:
            schedule.is_active = False

        return self._toggle(schedule_id, apply, MaintenanceLogAction.SCHEDULE_DEACTIVATED, user_id)

    def pause_schedule(self, schedule_id: int, user_id: Optional[int] = None) -> MaintenanceSchedule:
        def apply(schedule: MaintenanceSchedule) -> None:
            schedule.is_paused = True

        return self._toggle(schedule_id, apply, MaintenanceLogAction.SCHEDULE_PAUSED, user_id)

    def resume_schedule(self, schedule_id: int, user_id: Optional[int] = None) -> MaintenanceSchedule:
        def apply(schedule: MaintenanceSchedule) -> None:
            schedule.is_paused = False

        return self._toggle(schedule_id, apply, MaintenanceLogAction.SCHEDULE_RESUMED, user_id)

    def delete_schedule(self, schedule_id: int, user_id: Optional[int] = None) -> None:
        """Delete the plan; requests it already raised stay, detached from it."""
        with transaction(self.db):
            schedule = self.get_schedule(schedule_id)
            self.db.query(MaintenanceRequest).filter(
                MaintenanceRequest.schedule_id == schedule.id
            ).update({MaintenanceRequest.schedule_id: None}, synchronize_session=False)
            self.log.record(
                MaintenanceLogAction.SCHEDULE_DELETED,
                f"Schedule deleted: {schedule.title}",
                schedule_id=schedule.id,
                user_id=user_id,
                previous=_snapshot(schedule),
            )
            self.db.delete(schedule)

        logger.info(f"[SCHEDULE] Deleted schedule {schedule_id}")

    # ── Triggering ───────────────────────────────────────────────────────────

    def trigger_schedule(
        self, schedule_id: int, user_id: Optional[int] = None
    ) -> Tuple[MaintenanceSchedule, List[MaintenanceRequest]]:
        """Fire a schedule now, whether or not it is due."""
        with transaction(self.db):
            schedule = self._lock(schedule_id)
            if not schedule.is_active:
                raise InvalidStateError("Cannot trigger an inactive schedule")
            if schedule.is_paused:
                raise InvalidStateError("Cannot trigger a paused schedule")
            requests = self._fire(schedule, user_id)

        self.db.refresh(schedule)
        return schedule, requests

    def trigger_due_schedules(self) -> int:
        """
        Fire every due schedule, each in its own transaction. A schedule that
        fails is logged and retried on the next sweep.

        Returns:
            Number of schedules fired.
        """
        fired = 0
        for schedule_id in [s.id for s in self.get_due_schedules()]:
            try:
                with transaction(self.db):
                    schedule = self._lock(schedule_id)
                    if not self._is_due(schedule):
                        continue
                    if schedule.end_date is not None and schedule.next_trigger_date > schedule.end_date:
                        self._retire(schedule)
                        continue
                    self._fire(schedule)
                fired += 1
            except Exception as exc:
                logger.error(f"[SCHEDULE] Trigger of schedule {schedule_id} failed: {exc}", exc_info=True)

        if fired:
            logger.info(f"[SCHEDULE] Fired {fired} due schedule(s)")
        return fired

    # ── Internals ────────────────────────────────────────────────────────────

    def _lock(self, schedule_id: int) -> MaintenanceSchedule:
        schedule = (
            self.db.query(MaintenanceSchedule)
            .filter(MaintenanceSchedule.id == schedule_id)
            .with_for_update()
            .first()
        )
        if schedule is None:
            raise NotFoundError.for_entity("Maintenance schedule", schedule_id)
        return schedule

    def _is_due(self, schedule: MaintenanceSchedule) -> bool:
        return (
            schedule.is_active
            and not schedule.is_paused
            and schedule.next_trigger_date is not None
            and schedule.next_trigger_date <= self.clock.today()
        )

    def _retire(self, schedule: MaintenanceSchedule) -> None:
        """The end date was moved before the pending run; drop it."""
        schedule.is_active = False
        schedule.next_trigger_date = None
        self.log.record(
            MaintenanceLogAction.SCHEDULE_DEACTIVATED,
            f"Schedule ended on {schedule.end_date}",
            schedule_id=schedule.id,
        )
        logger.info(f"[SCHEDULE] Schedule {schedule.id} ended on {schedule.end_date}; deactivated")

    def _toggle(self, schedule_id: int, apply, action: MaintenanceLogAction, user_id: Optional[int]):
        with transaction(self.db):
            schedule = self.get_schedule(schedule_id)
            apply(schedule)
            self.log.record(
                action,
                action.value.replace("_", " ").capitalize(),
                schedule_id=schedule.id,
                user_id=user_id,
            )

        self.db.refresh(schedule)
        logger.info(f"[SCHEDULE] Schedule {schedule.id}: {action.value}")
        return schedule

    def _validate(self, schedule: MaintenanceSchedule) -> None:
        if schedule.end_date is not None and schedule.end_date < schedule.start_date:
            raise InvalidStateError("End date must not be before start date")
        if schedule.target_type == TargetType.SPECIFIC_UNITS and not schedule.target_unit_ids:
            raise InvalidStateError("SPECIFIC_UNITS schedules need target_unit_ids")
        if schedule.target_type == TargetType.FLOOR and schedule.target_floor is None:
            raise InvalidStateError("FLOOR schedules need target_floor")
        if schedule.target_type == TargetType.UNIT_TYPE and not schedule.target_unit_type:
            raise InvalidStateError("UNIT_TYPE schedules need target_unit_type")
        if schedule.assigned_to_user_id is not None and self.db.get(User, schedule.assigned_to_user_id) is None:
            raise NotFoundError.for_entity("User", schedule.assigned_to_user_id)

    def _leased_targets(self, schedule: MaintenanceSchedule) -> List[Unit]:
        q = (
            self.db.query(Unit)
            .join(Lease, Lease.unit_id == Unit.id)
            .filter(Lease.status == LeaseStatus.ACTIVE)
        )
        if schedule.target_type == TargetType.SPECIFIC_UNITS:
            q = q.filter(Unit.id.in_(schedule.target_unit_ids or []))
        elif schedule.target_type == TargetType.FLOOR:
            q = q.filter(Unit.floor == schedule.target_floor)
        elif schedule.target_type == TargetType.UNIT_TYPE:
            q = q.filter(Unit.unit_type == schedule.target_unit_type)
        return q.order_by(Unit.id).all()

    def _fire(self, schedule: MaintenanceSchedule, user_id: Optional[int] = None) -> List[MaintenanceRequest]:
        today = self.clock.today()
        created = []

        for unit in self._leased_targets(schedule):
            lease = (
                self.db.query(Lease)
                .filter(Lease.unit_id == unit.id, Lease.status == LeaseStatus.ACTIVE)
                .first()
            )
            tenant = self.db.get(Tenant, lease.tenant_id)
            account = auth_service.get_user_by_email(self.db, tenant.email) if tenant else None

            request = MaintenanceRequest(
                unit_id=unit.id,
                tenant_id=lease.tenant_id,
                title=schedule.title,
                description=schedule.description,
                category=schedule.category,
                priority=schedule.priority,
                urgency=MaintenanceUrgency.MEDIUM,
                status=MaintenanceStatus.PENDING_TENANT_CONFIRMATION,
                assigned_to_user_id=schedule.assigned_to_user_id,
                estimated_cost=schedule.estimated_cost,
                created_by_user_id=account.id if account else None,
                schedule_id=schedule.id,
                is_from_schedule=True,
            )
            self.db.add(request)
            self.db.flush()
            self.log.record(
                MaintenanceLogAction.REQUEST_CREATED_FROM_SCHEDULE,
                f"Request raised for unit {unit.room_number}",
                schedule_id=schedule.id,
                request_id=request.id,
                user_id=user_id,
            )
            created.append(request)

        previous_next = schedule.next_trigger_date
        schedule.last_triggered_date = today
        schedule.next_trigger_date = self._following(schedule, previous_next or today, today)
        if schedule.next_trigger_date is None:
            schedule.is_active = False

        self.log.record(
            MaintenanceLogAction.SCHEDULE_TRIGGERED,
            f"Raised {len(created)} request(s)",
            schedule_id=schedule.id,
            user_id=user_id,
            previous={"next_trigger_date": previous_next},
            new={"next_trigger_date": schedule.next_trigger_date, "request_ids": [r.id for r in created]},
        )
        logger.info(
            f"[SCHEDULE] Schedule {schedule.id} raised {len(created)} request(s); "
            f"next run {schedule.next_trigger_date or 'none'}"
        )
        return created

    def _following(self, schedule: MaintenanceSchedule, scheduled: date, today: date) -> Optional[date]:
        """First occurrence after today on the schedule's own cadence, or None once it has ended."""
        upcoming = next_occurrence(schedule, scheduled)
        while upcoming is not None and upcoming <= today:
            upcoming = next_occurrence(schedule, upcoming)
        if upcoming is None or (schedule.end_date is not None and upcoming > schedule.end_date):
            return None
        return upcoming

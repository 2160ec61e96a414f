import asyncio
from datetime import date, datetime
from decimal import Decimal

from backoffice.models import LeaseStatus, MaintenanceCategory, PaymentType, RecurrenceType, UnitStatus
from backoffice.schemas.maintenance import ScheduleCreate
from backoffice.services.lease_service import LeaseService
from backoffice.services.maintenance_schedule_service import MaintenanceScheduleService
from backoffice.services.payment_service import PaymentService
from backoffice.services.scheduler import run_maintenance_sweeps, sweep_loop
from tests.factories import lease_data


def test_run_maintenance_sweeps(db, clock, unit, tenant):
    lease = LeaseService(db, clock).create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 1, 31)))
    PaymentService(db, clock).create_bill(lease.id, PaymentType.RENT, Decimal("5000"), date(2025, 1, 5))
    MaintenanceScheduleService(db, clock).create_schedule(
        ScheduleCreate(
            title="Filter change",
            category=MaintenanceCategory.HVAC,
            recurrence_type=RecurrenceType.MONTHLY,
            start_date=date(2025, 2, 1),
        )
    )
    clock.set(datetime(2025, 2, 1, 0, 30))

    assert run_maintenance_sweeps(db, clock) == {"expired_leases": 1, "overdue_payments": 1, "triggered_schedules": 1}
    assert run_maintenance_sweeps(db, clock) == {"expired_leases": 0, "overdue_payments": 0, "triggered_schedules": 0}

    db.refresh(lease)
    db.refresh(unit)
    assert lease.status == LeaseStatus.EXPIRED
    assert unit.status == UnitStatus.AVAILABLE


def test_sweep_loop_survives_failures_until_cancelled():
    calls = []

    def flaky_sweep():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("database unavailable")
        return {"expired_leases": 0, "overdue_payments": 0, "triggered_schedules": 0}

    async def run():
        task = asyncio.create_task(sweep_loop(0, sweep=flaky_sweep))
        while len(calls) < 3:
            await asyncio.sleep(0.01)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return task

    task = asyncio.run(run())

    assert task.cancelled()
    assert len(calls) >= 3

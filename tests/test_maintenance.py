import json
from datetime import date, datetime
from decimal import Decimal

import pytest

from backoffice.core.exceptions import InvalidStateError, NotFoundError
from backoffice.models import (
    MaintenanceCategory,
    MaintenanceLogAction,
    MaintenancePriority,
    MaintenanceStatus,
    RecurrenceType,
    TargetType,
    UserRole,
)
from backoffice.schemas.maintenance import (
    MaintenanceRequestCreate,
    ScheduleCreate,
    ScheduleUpdate,
    StockCreate,
)
from backoffice.services.apartment_settings_service import ApartmentSettingsService
from backoffice.services.lease_service import LeaseService
from backoffice.services.maintenance_log_service import MaintenanceLogService
from backoffice.services.maintenance_request_service import MaintenanceRequestService
from backoffice.services.maintenance_schedule_service import (
    MaintenanceScheduleService,
    add_months,
)
from backoffice.services.maintenance_stock_service import MaintenanceStockService
from tests.factories import auth_headers, lease_data, make_tenant, make_unit, make_user


@pytest.fixture
def stocks(db, clock):
    return MaintenanceStockService(db, clock)


@pytest.fixture
def requests(db, clock):
    return MaintenanceRequestService(db, clock)


@pytest.fixture
def schedules(db, clock):
    return MaintenanceScheduleService(db, clock)


@pytest.fixture
def logs(db, clock):
    return MaintenanceLogService(db, clock)


@pytest.fixture
def faucet(stocks):
    return stocks.create_stock(
        StockCreate(
            item_name="Faucet washer",
            category=MaintenanceCategory.PLUMBING,
            quantity=10,
            unit_price=Decimal("25.00"),
        )
    )


@pytest.fixture
def leased(db, clock, unit, tenant):
    return LeaseService(db, clock).create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))


def new_request(requests, unit, **overrides):
    fields = dict(unit_id=unit.id, title="Leaking tap", category=MaintenanceCategory.PLUMBING)
    fields.update(overrides)
    return requests.create_request(MaintenanceRequestCreate(**fields), user_id=1)


def new_schedule(schedules, **overrides):
    fields = dict(
        title="Air filter change",
        category=MaintenanceCategory.HVAC,
        recurrence_type=RecurrenceType.MONTHLY,
        start_date=date(2025, 1, 1),
    )
    fields.update(overrides)
    return schedules.create_schedule(ScheduleCreate(**fields), user_id=1)


# ==================== STOCK ====================

def test_stock_quantity_never_goes_negative(stocks, faucet):
    with pytest.raises(InvalidStateError):
        stocks.reduce_stock(faucet.id, 11)

    assert stocks.add_stock(faucet.id, 3).quantity == 13
    assert stocks.adjust_quantity(faucet.id, -13).quantity == 0
    with pytest.raises(InvalidStateError):
        stocks.adjust_quantity(faucet.id, -1)
    with pytest.raises(InvalidStateError):
        stocks.add_stock(faucet.id, 0)


def test_low_stock_and_soft_delete(stocks, faucet):
    bulb = stocks.create_stock(
        StockCreate(item_name="LED bulb", category=MaintenanceCategory.ELECTRICAL, quantity=2, unit_price=Decimal("80"))
    )

    assert [s.id for s in stocks.get_low_stock()] == [bulb.id]
    assert [s.id for s in stocks.get_low_stock(threshold=11)] == [bulb.id, faucet.id]
    assert [s.id for s in stocks.search_stocks("washer")] == [faucet.id]

    stocks.delete_stock(bulb.id)

    with pytest.raises(NotFoundError):
        stocks.get_stock(bulb.id)
    assert [s.id for s in stocks.get_all_stocks()] == [faucet.id]


# ==================== REQUESTS ====================

def test_new_request_is_submitted(requests, unit, clock):
    request = new_request(requests, unit, priority=MaintenancePriority.HIGH)

    assert request.status == MaintenanceStatus.SUBMITTED
    assert request.submitted_date == clock.now()
    assert request.created_by_user_id == 1
    assert not request.is_from_schedule
    assert [r.id for r in requests.get_high_priority_requests()] == [request.id]


def test_request_for_missing_unit_is_not_found(requests):
    with pytest.raises(NotFoundError):
        requests.create_request(
            MaintenanceRequestCreate(unit_id=999, title="x", category=MaintenanceCategory.OTHER)
        )


def test_items_move_stock(db, requests, stocks, unit, faucet):
    request = new_request(requests, unit)

    item = requests.add_item(request.id, faucet.id, 4)
    assert stocks.get_stock(faucet.id).quantity == 6
    assert item.line_total == Decimal("100.00")

    requests.update_item_quantity(item.id, 6)
    assert stocks.get_stock(faucet.id).quantity == 4
    assert requests.calculate_total_cost(request.id) == Decimal("150.00")

    requests.remove_item(item.id)
    assert stocks.get_stock(faucet.id).quantity == 10
    assert requests.get_items(request.id) == []


def test_item_beyond_stock_changes_nothing(requests, stocks, unit, faucet):
    request = new_request(requests, unit)

    with pytest.raises(InvalidStateError):
        requests.add_item(request.id, faucet.id, 11)

    assert stocks.get_stock(faucet.id).quantity == 10
    assert requests.get_items(request.id) == []


def test_complete_defaults_cost_to_items(requests, unit, faucet, clock):
    request = new_request(requests, unit)
    requests.add_item(request.id, faucet.id, 2)
    clock.advance(days=2)

    done = requests.complete_request(request.id, notes="Washer replaced")

    assert done.status == MaintenanceStatus.COMPLETED
    assert done.actual_cost == Decimal("50.00")
    assert done.completed_date == clock.now()
    with pytest.raises(InvalidStateError):
        requests.add_item(request.id, faucet.id, 1)
    with pytest.raises(InvalidStateError):
        requests.complete_request(request.id)


def test_explicit_cost_wins_over_items(requests, unit, faucet):
    request = new_request(requests, unit)
    requests.add_item(request.id, faucet.id, 2)

    done = requests.complete_request(request.id, actual_cost=Decimal("300"))

    assert done.actual_cost == Decimal("300.00")


def test_assign_starts_work_and_is_logged(db, requests, logs, unit, admin):
    request = new_request(requests, unit)

    assigned = requests.assign_request(request.id, admin.id, user_id=admin.id)

    assert assigned.status == MaintenanceStatus.IN_PROGRESS
    assert assigned.assigned_to_user_id == admin.id
    actions = {entry.action_type for entry in logs.get_logs_by_request(request.id)}
    assert actions == {MaintenanceLogAction.REQUEST_ASSIGNED, MaintenanceLogAction.REQUEST_STATUS_CHANGED}

    with pytest.raises(NotFoundError):
        requests.assign_request(request.id, 999)


def test_reject_cancels_request(requests, unit):
    request = new_request(requests, unit)

    rejected = requests.reject_request(request.id, "Tenant damage, billed separately")

    assert rejected.status == MaintenanceStatus.CANCELLED
    assert rejected.completion_notes == "Tenant damage, billed separately"
    assert requests.get_open_requests() == []


def test_delete_request_returns_stock(db, requests, stocks, unit, faucet):
    request = new_request(requests, unit)
    requests.add_item(request.id, faucet.id, 7)

    requests.delete_request(request.id)

    assert stocks.get_stock(faucet.id).quantity == 10
    with pytest.raises(NotFoundError):
        requests.get_request(request.id)


def test_statistics(requests, unit, other_unit):
    first = new_request(requests, unit, priority=MaintenancePriority.URGENT)
    new_request(requests, other_unit, category=MaintenanceCategory.ELECTRICAL)
    requests.reject_request(first.id, "duplicate")

    stats = requests.get_statistics()

    assert stats["by_status"]["TOTAL"] == 2
    assert stats["by_status"]["CANCELLED"] == 1
    assert stats["by_status"]["SUBMITTED"] == 1
    assert stats["by_priority"]["URGENT"] == 1
    assert stats["by_priority"]["LOW"] == 0
    expected = {c.value: 0 for c in MaintenanceCategory}
    expected.update(PLUMBING=1, ELECTRICAL=1)
    assert stats["by_category"] == expected


# ==================== SCHEDULES ====================

def test_add_months_clamps_to_month_end():
    assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
    assert add_months(date(2025, 11, 15), 3) == date(2026, 2, 15)
    assert add_months(date(2025, 2, 28), 1, day_of_month=31) == date(2025, 3, 31)


def test_schedule_validates_targets(schedules):
    with pytest.raises(InvalidStateError):
        new_schedule(schedules, target_type=TargetType.SPECIFIC_UNITS)
    with pytest.raises(InvalidStateError):
        new_schedule(schedules, target_type=TargetType.FLOOR)
    with pytest.raises(InvalidStateError):
        new_schedule(schedules, end_date=date(2024, 12, 1))


def test_due_schedule_raises_requests_for_leased_units(db, schedules, requests, leased, unit, other_unit, tenant):
    account = make_user(db, tenant.email, role=UserRole.VILLAGER)
    schedule = new_schedule(schedules, estimated_cost=Decimal("150"))
    assert schedule.next_trigger_date == date(2025, 1, 1)

    assert schedules.trigger_due_schedules() == 1

    raised = requests.get_requests_by_unit(unit.id)
    assert len(raised) == 1
    assert requests.get_requests_by_unit(other_unit.id) == []
    request = raised[0]
    assert request.status == MaintenanceStatus.PENDING_TENANT_CONFIRMATION
    assert request.is_from_schedule
    assert request.schedule_id == schedule.id
    assert request.tenant_id == tenant.id
    assert request.created_by_user_id == account.id
    assert request.estimated_cost == Decimal("150.00")

    db.refresh(schedule)
    assert schedule.last_triggered_date == date(2025, 1, 1)
    assert schedule.next_trigger_date == date(2025, 2, 1)
    assert schedules.trigger_due_schedules() == 0


def test_floor_target_only_reaches_that_floor(db, clock, schedules, leased, unit):
    upstairs = make_unit(db, "201", floor=2)
    neighbour = make_tenant(db, email="upstairs@example.com")
    LeaseService(db, clock).create_lease(lease_data(upstairs, neighbour, date(2025, 1, 1), date(2025, 6, 30)))

    schedule = new_schedule(schedules, target_type=TargetType.FLOOR, target_floor=2)

    assert [u.id for u in schedules.get_affected_units(schedule.id)] == [upstairs.id]
    _, raised = schedules.trigger_schedule(schedule.id)
    assert [r.unit_id for r in raised] == [upstairs.id]


def test_missed_runs_advance_past_today(db, clock, schedules):
    schedule = new_schedule(schedules, recurrence_type=RecurrenceType.WEEKLY)
    clock.set(datetime(2025, 1, 20, 9, 0))

    assert schedules.trigger_due_schedules() == 1

    db.refresh(schedule)
    assert schedule.next_trigger_date == date(2025, 1, 22)


def test_one_time_schedule_deactivates_after_firing(db, schedules):
    schedule = new_schedule(schedules, recurrence_type=RecurrenceType.ONE_TIME)

    schedules.trigger_due_schedules()

    db.refresh(schedule)
    assert not schedule.is_active
    assert schedule.next_trigger_date is None
    with pytest.raises(InvalidStateError):
        schedules.trigger_schedule(schedule.id)


def test_end_date_retires_schedule(db, clock, schedules):
    schedule = new_schedule(schedules, recurrence_type=RecurrenceType.WEEKLY, end_date=date(2025, 1, 10))

    schedules.trigger_due_schedules()
    db.refresh(schedule)
    assert schedule.next_trigger_date == date(2025, 1, 8)

    clock.set(datetime(2025, 1, 8, 9, 0))
    assert schedules.trigger_due_schedules() == 1
    db.refresh(schedule)
    assert schedule.next_trigger_date is None
    assert not schedule.is_active


def test_shortened_end_date_drops_pending_run(db, clock, schedules, logs):
    schedule = new_schedule(schedules, recurrence_type=RecurrenceType.WEEKLY, end_date=date(2025, 1, 31))
    schedules.trigger_due_schedules()

    schedules.update_schedule(schedule.id, ScheduleUpdate(end_date=date(2025, 1, 5)))
    db.refresh(schedule)
    assert schedule.next_trigger_date == date(2025, 1, 8)
    clock.set(datetime(2025, 1, 8, 9, 0))

    assert schedules.trigger_due_schedules() == 0
    db.refresh(schedule)
    assert not schedule.is_active
    assert logs.get_logs_by_schedule(schedule.id)[0].action_type == MaintenanceLogAction.SCHEDULE_DEACTIVATED


def test_paused_schedule_is_skipped(db, schedules, leased):
    schedule = new_schedule(schedules)
    schedules.pause_schedule(schedule.id)

    assert schedules.get_due_schedules() == []
    assert schedules.trigger_due_schedules() == 0
    with pytest.raises(InvalidStateError):
        schedules.trigger_schedule(schedule.id)

    schedules.resume_schedule(schedule.id)
    assert schedules.trigger_due_schedules() == 1


def test_tenant_books_slot_for_scheduled_request(schedules, requests, leased, unit):
    schedule = new_schedule(schedules)
    _, [request] = schedules.trigger_schedule(schedule.id)

    booked = requests.select_time_slot(request.id, "2025-01-05 10:00")

    assert booked.status == MaintenanceStatus.SUBMITTED
    assert booked.preferred_time == "2025-01-05 10:00"
    with pytest.raises(InvalidStateError):
        requests.select_time_slot(request.id, "2025-01-06 10:00")


def test_delete_schedule_keeps_its_requests(db, schedules, requests, logs, leased, unit):
    schedule = new_schedule(schedules)
    _, [request] = schedules.trigger_schedule(schedule.id)

    schedules.delete_schedule(schedule.id)

    db.expire_all()
    kept = requests.get_request(request.id)
    assert kept.schedule_id is None
    assert kept.is_from_schedule
    history = logs.get_logs_by_schedule(schedule.id)
    assert history[0].action_type == MaintenanceLogAction.SCHEDULE_DELETED
    assert json.loads(history[0].previous_value)["title"] == "Air filter change"


# ==================== SETTINGS ====================

def test_utility_rates_fall_back_to_defaults(db, clock):
    service = ApartmentSettingsService(db, clock)

    assert service.electricity_rate() == Decimal("4.00")

    service.upsert_setting("electricity_rate", "5.50", "Baht per kWh", user_id=1)
    assert service.electricity_rate() == Decimal("5.50")

    service.update_setting("electricity_rate", "n/a")
    assert service.electricity_rate() == Decimal("4.00")

    with pytest.raises(NotFoundError):
        service.update_setting("water_rate", "18")


# ==================== HTTP ====================

def test_tenant_reports_issue_for_own_unit(client, db, clock, leased, unit, other_unit, tenant, admin_headers):
    villager = make_user(db, tenant.email, role=UserRole.VILLAGER)
    headers = auth_headers(villager)
    payload = {"unit_id": unit.id, "title": "No hot water", "category": "PLUMBING"}

    created = client.post("/api/maintenance-requests/", json=payload, headers=headers)
    assert created.status_code == 201
    assert created.json()["tenant_id"] == tenant.id

    elsewhere = client.post(
        "/api/maintenance-requests/", json={**payload, "unit_id": other_unit.id}, headers=headers
    )
    assert elsewhere.status_code == 403

    mine = client.get("/api/maintenance-requests/my", headers=headers).json()
    assert [r["id"] for r in mine] == [created.json()["id"]]

    stats = client.get("/api/maintenance-requests/statistics", headers=admin_headers).json()
    assert stats["by_status"]["TOTAL"] == 1
    assert client.get("/api/maintenance-requests/statistics", headers=headers).status_code == 403


def test_stock_and_schedule_endpoints(client, leased, unit, admin_headers, applicant_headers):
    assert client.get("/api/maintenance-stocks/", headers=applicant_headers).status_code == 403

    stock = client.post(
        "/api/maintenance-stocks/",
        json={"item_name": "Fuse", "category": "ELECTRICAL", "quantity": 1, "unit_price": "12.50"},
        headers=admin_headers,
    )
    assert stock.status_code == 201
    short = client.post(
        f"/api/maintenance-stocks/{stock.json()['id']}/reduce", json={"quantity": 2}, headers=admin_headers
    )
    assert short.status_code == 400

    schedule = client.post(
        "/api/maintenance-schedules/",
        json={
            "title": "Smoke detector test",
            "category": "ELECTRICAL",
            "recurrence_type": "QUARTERLY",
            "start_date": "2025-01-01",
        },
        headers=admin_headers,
    ).json()
    triggered = client.post(f"/api/maintenance-schedules/{schedule['id']}/trigger", headers=admin_headers)
    assert triggered.status_code == 200
    body = triggered.json()
    assert len(body["created_request_ids"]) == 1
    assert body["next_trigger_date"] == "2025-04-01"

    recent = client.get("/api/maintenance-schedules/logs/recent", headers=admin_headers).json()
    assert recent[0]["action_type"] == "SCHEDULE_TRIGGERED"

    rates = client.get("/api/settings/utility-rates").json()
    assert Decimal(rates["water_rate"]) == Decimal("20.00")

from datetime import date, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from backoffice.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from backoffice.models import (
    Lease, LeaseStatus, RentalRequest, RentalRequestStatus, TenantStatus, UnitAuditActionType,
    UnitAuditLog, UnitStatus, UserRole,
)
from backoffice.schemas.lease import LeaseUpdate
from backoffice.services.lease_service import LeaseService
from backoffice.services.rental_request_service import RentalRequestService
from tests.factories import NOW, lease_data, make_tenant, make_unit, make_user, request_data


@pytest.fixture
def service(db, clock):
    return LeaseService(db, clock)


# ==================== CREATE ====================

def test_create_lease_occupies_unit(service, db, unit, tenant):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))

    assert lease.status == LeaseStatus.ACTIVE
    db.refresh(unit)
    assert unit.status == UnitStatus.OCCUPIED

    audit = db.query(UnitAuditLog).filter(UnitAuditLog.action_type == UnitAuditActionType.STATUS_CHANGED).all()
    assert len(audit) == 1
    assert audit[0].unit_id == unit.id


def test_create_lease_on_unavailable_unit_is_conflict(service, db, tenant):
    unit = make_unit(db, "201", status=UnitStatus.MAINTENANCE)

    with pytest.raises(ConflictError):
        service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 6, 30)))

    assert db.query(Lease).count() == 0


def test_create_lease_unknown_unit_is_not_found(service, db, tenant, unit):
    data = lease_data(unit, tenant, date(2025, 1, 1), date(2025, 6, 30))
    data.unit_id = 999

    with pytest.raises(NotFoundError):
        service.create_lease(data)


def test_second_lease_on_occupied_unit_is_conflict(service, db, unit, tenant):
    service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))
    other = make_tenant(db, "other@example.com")

    with pytest.raises(ConflictError):
        service.create_lease(lease_data(unit, other, date(2025, 6, 1), date(2025, 7, 1)))

    assert db.query(Lease).count() == 1


def test_overlap_check_catches_active_lease_on_available_unit(service, db, unit, tenant):
    # Unit released by hand while an ACTIVE lease still references it
    service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 3, 31)))
    unit.status = UnitStatus.AVAILABLE
    db.commit()

    with pytest.raises(ConflictError):
        service.create_lease(lease_data(unit, tenant, date(2025, 3, 31), date(2025, 5, 31)))


def test_partial_unique_index_allows_one_active_lease_per_unit(db, unit, tenant):
    for _ in range(2):
        db.add(Lease(
            unit_id=unit.id,
            tenant_id=tenant.id,
            start_date=date(2025, 1, 1),
            end_date=date(2025, 2, 1),
            rent_amount=unit.rent_amount,
            status=LeaseStatus.ACTIVE,
        ))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_pending_lease_leaves_unit_alone(service, db, unit, tenant):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 2, 1), date(2025, 7, 31), activate=False))

    assert lease.status == LeaseStatus.PENDING
    db.refresh(unit)
    assert unit.status == UnitStatus.AVAILABLE


# ==================== ACTIVATE ====================

def test_activate_pending_lease(service, db, unit, tenant):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 2, 1), date(2025, 7, 31), activate=False))

    activated = service.activate_lease(lease.id)

    assert activated.status == LeaseStatus.ACTIVE
    db.refresh(unit)
    assert unit.status == UnitStatus.OCCUPIED


def test_activate_requires_pending(service, unit, tenant):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 6, 30)))

    with pytest.raises(InvalidStateError):
        service.activate_lease(lease.id)


def test_activate_rejects_second_active_lease(service, db, unit, tenant):
    pending = service.create_lease(lease_data(unit, tenant, date(2025, 7, 1), date(2025, 12, 31), activate=False))
    service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 6, 30)))

    with pytest.raises(ConflictError):
        service.activate_lease(pending.id)

    db.refresh(pending)
    assert pending.status == LeaseStatus.PENDING


def test_pending_lease_on_unavailable_unit_is_conflict(service, db, tenant):
    unit = make_unit(db, "202", status=UnitStatus.MAINTENANCE)

    with pytest.raises(ConflictError):
        service.create_lease(lease_data(unit, tenant, date(2025, 2, 1), date(2025, 7, 31), activate=False))

    assert db.query(Lease).count() == 0


def test_activate_refuses_unit_under_maintenance(service, db, unit, tenant):
    pending = service.create_lease(lease_data(unit, tenant, date(2025, 2, 1), date(2025, 7, 31), activate=False))
    unit.status = UnitStatus.MAINTENANCE
    db.commit()

    with pytest.raises(ConflictError):
        service.activate_lease(pending.id)

    db.refresh(pending)
    db.refresh(unit)
    assert pending.status == LeaseStatus.PENDING
    assert unit.status == UnitStatus.MAINTENANCE


# ==================== TERMINATE ====================

def test_terminate_frees_unit_and_closes_tenant(service, db, unit, tenant):
    account = make_user(db, tenant.email, role=UserRole.VILLAGER)
    db.add(RentalRequest(
        user_id=account.id, unit_id=unit.id, first_name="S", last_name="J", email=tenant.email,
        phone="1", status=RentalRequestStatus.APPROVED, request_date=NOW,
    ))
    db.commit()
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))

    terminated = service.terminate_lease(lease.id, "Moved abroad")

    assert terminated.status == LeaseStatus.TERMINATED
    assert terminated.termination_reason == "Moved abroad"
    db.refresh(unit)
    db.refresh(tenant)
    db.refresh(account)
    assert unit.status == UnitStatus.AVAILABLE
    assert tenant.status == TenantStatus.INACTIVE
    assert account.role == UserRole.USER
    assert db.query(RentalRequest).one().status == RentalRequestStatus.COMPLETED


def test_terminate_uses_default_reason(service, unit, tenant):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))

    assert service.terminate_lease(lease.id).termination_reason == "Terminated by system"


def test_terminate_twice_is_invalid(service, unit, tenant):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))
    service.terminate_lease(lease.id)

    with pytest.raises(InvalidStateError):
        service.terminate_lease(lease.id)


def test_tenant_with_another_active_lease_stays_active(service, db, unit, other_unit, tenant):
    first = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))
    service.create_lease(lease_data(other_unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))

    service.terminate_lease(first.id)

    db.refresh(tenant)
    assert tenant.status == TenantStatus.ACTIVE


# ==================== CHECKOUT ====================

def test_checkout_today_frees_unit_now(service, db, unit, tenant, clock):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))

    checked_out = service.terminate_lease_with_checkout_date(lease.id, clock.today())

    assert checked_out.status == LeaseStatus.TERMINATED
    assert checked_out.end_date == clock.today()
    db.refresh(unit)
    assert unit.status == UnitStatus.AVAILABLE


def test_future_checkout_keeps_unit_until_sweep(service, db, unit, tenant, clock):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))

    service.terminate_lease_with_checkout_date(lease.id, date(2025, 1, 15))

    db.refresh(unit)
    db.refresh(tenant)
    assert unit.status == UnitStatus.OCCUPIED
    assert tenant.status == TenantStatus.INACTIVE

    clock.set(datetime(2025, 1, 16, 0, 5))
    assert service.expire_leases() == 0
    db.refresh(unit)
    assert unit.status == UnitStatus.AVAILABLE


def test_old_termination_does_not_release_pending_checkout(service, db, unit, tenant, clock):
    earlier_account = make_user(db, tenant.email)
    first = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 3, 31)))
    service.terminate_lease(first.id, "Left early")

    newcomer = make_tenant(db, "newcomer@example.com")
    second = service.create_lease(lease_data(unit, newcomer, date(2025, 2, 1), date(2025, 12, 31)))

    clock.set(datetime(2025, 5, 1, 10, 0))
    service.terminate_lease_with_checkout_date(second.id, date(2025, 6, 30))
    db.add(RentalRequest(
        user_id=earlier_account.id, unit_id=unit.id, first_name="S", last_name="J", email=tenant.email,
        phone="1", status=RentalRequestStatus.APPROVED, request_date=clock.now(),
    ))
    db.commit()

    clock.set(datetime(2025, 5, 2, 0, 5))
    service.expire_leases()
    db.refresh(unit)
    assert unit.status == UnitStatus.OCCUPIED
    assert db.query(RentalRequest).one().status == RentalRequestStatus.APPROVED

    clock.set(datetime(2025, 7, 1, 0, 5))
    service.expire_leases()
    db.refresh(unit)
    assert unit.status == UnitStatus.AVAILABLE
    assert db.query(RentalRequest).one().status == RentalRequestStatus.APPROVED


def test_sweep_after_checkout_only_frees_unit(service, db, unit, other_unit, tenant, clock):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))
    service.terminate_lease_with_checkout_date(lease.id, date(2025, 1, 15))

    requests = RentalRequestService(db, clock)
    reapplied = requests.create_rental_request(request_data(other_unit, email=tenant.email))
    requests.approve_request(reapplied.id, approved_by_user_id=1)

    clock.set(datetime(2025, 1, 16, 0, 5))
    service.expire_leases()

    db.refresh(unit)
    db.refresh(reapplied)
    assert unit.status == UnitStatus.AVAILABLE
    assert reapplied.status == RentalRequestStatus.APPROVED


def test_checkout_date_bounds(service, unit, tenant):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 3, 31)))

    with pytest.raises(InvalidStateError):
        service.terminate_lease_with_checkout_date(lease.id, date(2024, 12, 31))
    with pytest.raises(InvalidStateError):
        service.terminate_lease_with_checkout_date(lease.id, date(2025, 4, 1))


# ==================== EXPIRY ====================

def test_expire_leases_marks_expired_and_frees_unit(service, db, unit, tenant, clock):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 3, 31)))
    clock.set(datetime(2025, 4, 1, 0, 0))

    assert service.get_expired_leases()[0].id == lease.id
    assert service.expire_leases() == 1

    db.refresh(lease)
    db.refresh(unit)
    assert lease.status == LeaseStatus.EXPIRED
    assert unit.status == UnitStatus.AVAILABLE


def test_expire_leases_is_idempotent(service, db, unit, other_unit, tenant, clock):
    service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 1, 31)))
    service.create_lease(lease_data(other_unit, tenant, date(2025, 1, 1), date(2025, 12, 31)))
    clock.set(datetime(2025, 2, 1, 0, 0))

    assert service.expire_leases() == 1
    snapshot = [(l.id, l.status) for l in service.get_all_leases()]
    assert service.expire_leases() == 0
    assert [(l.id, l.status) for l in service.get_all_leases()] == snapshot


def test_lease_ending_today_is_not_expired(service, db, unit, tenant, clock):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 1, 1)))

    assert service.expire_leases() == 0
    db.refresh(lease)
    assert lease.status == LeaseStatus.ACTIVE


# ==================== UPDATE / DELETE / QUERIES ====================

def test_update_lease_revalidates_overlap_excluding_itself(service, db, unit, tenant):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 6, 30)))

    updated = service.update_lease(lease.id, LeaseUpdate(end_date=date(2025, 9, 30)))

    assert updated.end_date == date(2025, 9, 30)


def test_update_lease_rejects_inverted_dates(service, unit, tenant):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 6, 30)))

    with pytest.raises(InvalidStateError):
        service.update_lease(lease.id, LeaseUpdate(end_date=date(2024, 12, 1)))


def test_delete_active_lease_frees_unit(service, db, unit, tenant):
    lease = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 6, 30)))

    service.delete_lease(lease.id)

    assert not service.exists(lease.id)
    db.refresh(unit)
    assert unit.status == UnitStatus.AVAILABLE


def test_leases_ending_soon_window(service, db, unit, other_unit, tenant):
    soon = service.create_lease(lease_data(unit, tenant, date(2025, 1, 1), date(2025, 1, 20)))
    service.create_lease(lease_data(other_unit, tenant, date(2025, 1, 1), date(2025, 6, 30)))

    assert [l.id for l in service.get_leases_ending_soon(30)] == [soon.id]
    assert service.get_active_lease_by_unit(unit.id).id == soon.id
    assert [l.id for l in service.get_leases_by_tenant(tenant.id)] != []
    assert len(service.get_leases_by_status(LeaseStatus.ACTIVE)) == 2

from datetime import date, datetime

import pytest

from backoffice.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from backoffice.core.security import verify_password
from backoffice.models import (
    Lease, LeaseStatus, RentalRequest, RentalRequestStatus, Tenant, TenantStatus, UnitStatus, User, UserRole,
)
from backoffice.services.lease_service import LeaseService
from backoffice.services.rental_request_service import RentalRequestService
from tests.factories import lease_data, make_tenant, make_unit, make_user, request_data


@pytest.fixture
def service(db, clock):
    return RentalRequestService(db, clock)


# ==================== INTAKE ====================

def test_create_request_is_pending(service, unit, clock):
    request = service.create_rental_request(request_data(unit))

    assert request.status == RentalRequestStatus.PENDING
    assert request.request_date == clock.now()
    assert request.user_id is None
    assert float(request.monthly_rent) == 5000.0
    assert float(request.total_amount) == 60000.0


def test_create_request_links_existing_account(service, unit, applicant):
    request = service.create_rental_request(request_data(unit), user_id=applicant.id)

    assert request.user_id == applicant.id


def test_authenticated_request_email_must_match(service, unit, applicant):
    with pytest.raises(InvalidStateError):
        service.create_rental_request(request_data(unit, email="someone.else@example.com"), user_id=applicant.id)


def test_request_for_unavailable_unit_is_conflict(service, db):
    unit = make_unit(db, "301", status=UnitStatus.OCCUPIED)

    with pytest.raises(ConflictError):
        service.create_rental_request(request_data(unit))


def test_request_for_missing_unit_is_not_found(service, unit):
    data = request_data(unit)
    data.unit_id = 404

    with pytest.raises(NotFoundError):
        service.create_rental_request(data)


def test_pending_request_blocks_another(service, unit, other_unit, applicant):
    service.create_rental_request(request_data(unit), user_id=applicant.id)

    with pytest.raises(ConflictError):
        service.create_rental_request(request_data(other_unit), user_id=applicant.id)


def test_villager_cannot_apply(service, db, unit):
    villager = make_user(db, "villager@example.com", role=UserRole.VILLAGER)

    with pytest.raises(ConflictError):
        service.create_rental_request(request_data(unit, email=villager.email), user_id=villager.id)


# ==================== REJECT / ACKNOWLEDGE ====================

def test_rejection_must_be_acknowledged_before_reapplying(service, unit, applicant, clock):
    first = service.create_rental_request(request_data(unit), user_id=applicant.id)

    rejected = service.reject_request(first.id, "Incomplete documents", rejected_by_user_id=9)
    assert rejected.status == RentalRequestStatus.REJECTED
    assert rejected.rejection_reason == "Incomplete documents"
    assert rejected.requires_acknowledgement

    with pytest.raises(ConflictError):
        service.create_rental_request(request_data(unit), user_id=applicant.id)

    ack = service.acknowledge_rejection(first.id, applicant.id)
    assert ack.request_id == first.id
    assert ack.acknowledged_at == clock.now()
    assert ack.can_create_new_request is True

    second = service.create_rental_request(request_data(unit), user_id=applicant.id)
    assert second.status == RentalRequestStatus.PENDING


def test_acknowledge_errors(service, db, unit, applicant):
    request = service.create_rental_request(request_data(unit), user_id=applicant.id)
    stranger = make_user(db, "stranger@example.com")

    with pytest.raises(InvalidStateError):
        service.acknowledge_rejection(request.id, applicant.id)

    service.reject_request(request.id, "No", rejected_by_user_id=1)
    with pytest.raises(NotFoundError):
        service.acknowledge_rejection(request.id, stranger.id)

    service.acknowledge_rejection(request.id, applicant.id)
    with pytest.raises(ConflictError):
        service.acknowledge_rejection(request.id, applicant.id)


def test_acknowledge_reports_other_blocking_request(service, db, unit, other_unit, applicant, clock):
    rejected = service.create_rental_request(request_data(unit), user_id=applicant.id)
    service.reject_request(rejected.id, "Unit reserved", rejected_by_user_id=1)
    # Entered by staff while the rejection was still open
    db.add(RentalRequest(
        user_id=applicant.id, unit_id=other_unit.id, first_name="Ann", last_name="Applicant",
        email=applicant.email, phone="0899999999", status=RentalRequestStatus.PENDING, request_date=clock.now(),
    ))
    db.commit()

    ack = service.acknowledge_rejection(rejected.id, applicant.id)

    assert ack.can_create_new_request is False
    assert not service.get_my_latest_request(applicant.id).can_create_new_request


def test_decisions_require_pending(service, unit):
    request = service.create_rental_request(request_data(unit))
    service.reject_request(request.id, "No", rejected_by_user_id=1)

    with pytest.raises(InvalidStateError):
        service.approve_request(request.id, 1)
    with pytest.raises(InvalidStateError):
        service.reject_request(request.id, "Again", rejected_by_user_id=1)


def test_reject_touches_nothing_else(service, db, unit):
    request = service.create_rental_request(request_data(unit))

    service.reject_request(request.id, "No", rejected_by_user_id=1)

    db.refresh(unit)
    assert unit.status == UnitStatus.AVAILABLE
    assert db.query(Lease).count() == 0
    assert db.query(Tenant).count() == 0


# ==================== APPROVE ====================

def test_simple_approve_records_decision_only(service, db, unit):
    request = service.create_rental_request(request_data(unit))

    approved = service.approve_request(request.id, approved_by_user_id=9)

    assert approved.status == RentalRequestStatus.APPROVED
    assert approved.approved_by_user_id == 9
    db.refresh(unit)
    assert unit.status == UnitStatus.AVAILABLE
    assert db.query(Lease).count() == 0


def test_full_approval_then_overlapping_lease_is_conflict(service, db, unit):
    request = service.create_rental_request(request_data(unit))

    approved = service.approve_request(request.id, 9, date(2025, 1, 1), date(2025, 12, 31))

    assert approved.status == RentalRequestStatus.APPROVED
    db.refresh(unit)
    assert unit.status == UnitStatus.OCCUPIED

    leases = db.query(Lease).all()
    assert len(leases) == 1
    lease = leases[0]
    assert lease.status == LeaseStatus.ACTIVE
    assert lease.unit_id == unit.id
    assert float(lease.rent_amount) == 5000.0
    assert lease.created_by_user_id == 9

    tenant = db.query(Tenant).one()
    assert lease.tenant_id == tenant.id
    assert tenant.email == "applicant@example.com"
    assert tenant.status == TenantStatus.ACTIVE

    with pytest.raises(ConflictError):
        LeaseService(db).create_lease(lease_data(unit, tenant, date(2025, 6, 1), date(2025, 7, 1)))
    assert db.query(Lease).count() == 1


def test_full_approval_provisions_villager_account(service, db, unit):
    request = service.create_rental_request(request_data(unit, email="new.person@example.com"))

    approved = service.approve_request(request.id, 9, date(2025, 1, 1), date(2025, 12, 31))

    account = db.query(User).filter(User.email == "new.person@example.com").one()
    assert account.role == UserRole.VILLAGER
    assert verify_password("defaultPassword123", account.hashed_password)
    assert approved.user_id == account.id


def test_full_approval_promotes_existing_account(service, db, unit, applicant):
    request = service.create_rental_request(request_data(unit), user_id=applicant.id)

    service.approve_request(request.id, 9, date(2025, 1, 1), date(2025, 12, 31))

    db.refresh(applicant)
    assert applicant.role == UserRole.VILLAGER


def test_full_approval_reuses_tenant_by_email(service, db, unit):
    existing = make_tenant(db, "applicant@example.com", first_name="Old", last_name="Name")
    request = service.create_rental_request(request_data(unit))

    service.approve_request(request.id, 9, date(2025, 1, 1), date(2025, 12, 31))

    assert db.query(Tenant).count() == 1
    db.refresh(existing)
    assert existing.first_name == "Ann"


def test_failed_approval_rolls_back_everything(service, db, unit):
    first = service.create_rental_request(request_data(unit, email="first@example.com"))
    second = service.create_rental_request(request_data(unit, email="second@example.com"))
    service.approve_request(first.id, 9, date(2025, 1, 1), date(2025, 12, 31))

    with pytest.raises(ConflictError):
        service.approve_request(second.id, 9, date(2025, 2, 1), date(2025, 12, 31))

    db.refresh(second)
    assert second.status == RentalRequestStatus.PENDING
    assert db.query(Lease).count() == 1
    assert db.query(Tenant).filter(Tenant.email == "second@example.com").count() == 0
    assert db.query(User).filter(User.email == "second@example.com").count() == 0


def test_full_approval_date_rules(service, unit, clock):
    request = service.create_rental_request(request_data(unit))

    with pytest.raises(InvalidStateError):
        service.approve_request(request.id, 9, date(2024, 12, 31), date(2025, 12, 31))
    with pytest.raises(InvalidStateError):
        service.approve_request(request.id, 9, date(2025, 2, 1), date(2025, 2, 1))
    with pytest.raises(InvalidStateError):
        service.approve_request(request.id, 9, date(2025, 2, 1), None)

    assert service.get_request(request.id).status == RentalRequestStatus.PENDING


def test_lease_end_completes_approved_request(service, db, unit, clock):
    request = service.create_rental_request(request_data(unit))
    service.approve_request(request.id, 9, date(2025, 1, 1), date(2025, 3, 31))

    clock.set(datetime(2025, 4, 1, 1, 0))
    assert LeaseService(db, clock).expire_leases() == 1

    db.refresh(request)
    db.refresh(unit)
    assert request.status == RentalRequestStatus.COMPLETED
    assert unit.status == UnitStatus.AVAILABLE
    account = db.query(User).filter(User.email == "applicant@example.com").one()
    assert account.role == UserRole.USER


# ==================== APPLICANT VIEW ====================

def test_my_latest_request_without_requests(service, applicant):
    latest = service.get_my_latest_request(applicant.id)

    assert latest.id is None
    assert latest.can_create_new_request is True
    assert latest.status_message == "You can submit a new booking request"


def test_my_latest_request_tracks_workflow(service, db, unit, applicant):
    request = service.create_rental_request(request_data(unit), user_id=applicant.id)

    pending = service.get_my_latest_request(applicant.id)
    assert pending.id == request.id
    assert pending.is_pending
    assert not pending.can_create_new_request
    assert pending.room_number == "101"

    service.approve_request(request.id, 9, date(2025, 1, 1), date(2025, 12, 31))
    approved = service.get_my_latest_request(applicant.id)
    assert approved.is_approved
    assert approved.has_active_lease
    assert approved.lease_status == LeaseStatus.ACTIVE
    assert not approved.can_create_new_request


def test_my_latest_request_after_rejection(service, unit, applicant):
    request = service.create_rental_request(request_data(unit), user_id=applicant.id)
    service.reject_request(request.id, "Unit reserved for staff", rejected_by_user_id=1)

    latest = service.get_my_latest_request(applicant.id)
    assert latest.is_rejected
    assert latest.requires_acknowledgement
    assert not latest.can_create_new_request
    assert "Unit reserved for staff" in latest.status_message

    service.acknowledge_rejection(request.id, applicant.id)
    assert service.get_my_latest_request(applicant.id).can_create_new_request


# ==================== ADMIN QUERIES ====================

def test_queries_and_delete(service, unit, other_unit):
    a = service.create_rental_request(request_data(unit, email="a@example.com"))
    b = service.create_rental_request(request_data(other_unit, email="b@example.com"))

    assert {r.id for r in service.get_pending_requests()} == {a.id, b.id}
    assert [r.id for r in service.get_requests_by_unit(unit.id)] == [a.id]
    assert [r.id for r in service.get_requests_by_email("b@example.com")] == [b.id]

    service.delete_rental_request(a.id)
    with pytest.raises(NotFoundError):
        service.get_request(a.id)

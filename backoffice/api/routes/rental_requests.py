"""
Rental Request Routes
Public intake, the applicant's own view, and the admin approval workflow
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr
from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, get_clock
from backoffice.core.config import settings
from backoffice.database import get_db
from backoffice.dependencies import get_current_user, get_current_user_optional, require_admin
from backoffice.models.user import User
from backoffice.schemas.rental_request import (
    AcknowledgeResponse,
    MyLatestRequest,
    RentalRequestApprove,
    RentalRequestCreate,
    RentalRequestReject,
    RentalRequestResponse,
    RentalRequestUpdate,
)
from backoffice.services.rental_request_service import RentalRequestService

router = APIRouter()


def get_rental_request_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> RentalRequestService:
    return RentalRequestService(db, clock)


# ==================== APPLICANT ====================

@router.post("/", response_model=RentalRequestResponse, status_code=status.HTTP_201_CREATED)
def create_rental_request(
    request_in: RentalRequestCreate,
    service: RentalRequestService = Depends(get_rental_request_service),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    """Open intake; a bearer token links the request to that account"""
    return service.create_rental_request(request_in, user_id=current_user.id if current_user else None)


@router.post("/authenticated", response_model=RentalRequestResponse, status_code=status.HTTP_201_CREATED)
def create_authenticated_rental_request(
    request_in: RentalRequestCreate,
    service: RentalRequestService = Depends(get_rental_request_service),
    current_user: User = Depends(get_current_user),
):
    return service.create_rental_request(request_in, user_id=current_user.id)


@router.get("/me/latest", response_model=MyLatestRequest)
def my_latest_request(
    service: RentalRequestService = Depends(get_rental_request_service),
    current_user: User = Depends(get_current_user),
):
    return service.get_my_latest_request(current_user.id)


@router.post("/{request_id}/acknowledge", response_model=AcknowledgeResponse)
def acknowledge_rejection(
    request_id: int,
    service: RentalRequestService = Depends(get_rental_request_service),
    current_user: User = Depends(get_current_user),
):
    return service.acknowledge_rejection(request_id, current_user.id)


# ==================== ADMIN ====================

@router.get("/", response_model=List[RentalRequestResponse])
def list_rental_requests(
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: RentalRequestService = Depends(get_rental_request_service),
    _: User = Depends(require_admin),
):
    return service.get_all_rental_requests(skip=skip, limit=limit)


@router.get("/pending", response_model=List[RentalRequestResponse])
def pending_rental_requests(
    service: RentalRequestService = Depends(get_rental_request_service),
    _: User = Depends(require_admin),
):
    return service.get_pending_requests()


@router.get("/search", response_model=List[RentalRequestResponse])
def search_rental_requests(
    email: EmailStr,
    service: RentalRequestService = Depends(get_rental_request_service),
    _: User = Depends(require_admin),
):
    return service.get_requests_by_email(email)


@router.get("/unit/{unit_id}", response_model=List[RentalRequestResponse])
def rental_requests_by_unit(
    unit_id: int,
    service: RentalRequestService = Depends(get_rental_request_service),
    _: User = Depends(require_admin),
):
    return service.get_requests_by_unit(unit_id)


@router.get("/{request_id}", response_model=RentalRequestResponse)
def get_rental_request(
    request_id: int,
    service: RentalRequestService = Depends(get_rental_request_service),
    _: User = Depends(require_admin),
):
    return service.get_request(request_id)


@router.put("/{request_id}/approve", response_model=RentalRequestResponse)
def approve_rental_request(
    request_id: int,
    body: Optional[RentalRequestApprove] = None,
    service: RentalRequestService = Depends(get_rental_request_service),
    current_user: User = Depends(require_admin),
):
    """
    Approve a pending request. With start_date and end_date the tenant, lease
    and VILLAGER account are created in the same step.
    """
    start_date = body.start_date if body else None
    end_date = body.end_date if body else None
    return service.approve_request(request_id, current_user.id, start_date, end_date)


@router.put("/{request_id}/reject", response_model=RentalRequestResponse)
def reject_rental_request(
    request_id: int,
    body: RentalRequestReject,
    service: RentalRequestService = Depends(get_rental_request_service),
    current_user: User = Depends(require_admin),
):
    return service.reject_request(request_id, body.reason, current_user.id)


@router.put("/{request_id}", response_model=RentalRequestResponse)
def update_rental_request(
    request_id: int,
    request_in: RentalRequestUpdate,
    service: RentalRequestService = Depends(get_rental_request_service),
    _: User = Depends(require_admin),
):
    return service.update_rental_request(request_id, request_in)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rental_request(
    request_id: int,
    service: RentalRequestService = Depends(get_rental_request_service),
    _: User = Depends(require_admin),
):
    service.delete_rental_request(request_id)

"""
Audit Log Routes
Read-only access to the unit audit trail and price history
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.database import get_db
from backoffice.dependencies import require_admin
from backoffice.models.audit import UnitAuditActionType
from backoffice.models.user import User
from backoffice.schemas.audit import UnitAuditLogResponse, UnitPriceHistoryResponse
from backoffice.services.audit_service import AuditService

router = APIRouter()


@router.get("/", response_model=List[UnitAuditLogResponse])
def list_audit_logs(
    unit_id: Optional[int] = None,
    action_type: Optional[UnitAuditActionType] = None,
    user_id: Optional[int] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    return AuditService(db).get_audit_logs(
        unit_id=unit_id,
        action_type=action_type,
        user_id=user_id,
        start=start,
        end=end,
        skip=skip,
        limit=limit,
    )


@router.get("/unit/{unit_id}/recent", response_model=List[UnitAuditLogResponse])
def recent_audit_logs(unit_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return AuditService(db).get_recent_audit_logs(unit_id)


@router.get("/unit/{unit_id}/price-history", response_model=List[UnitPriceHistoryResponse])
def price_history(unit_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return AuditService(db).get_price_history(unit_id)


@router.get("/unit/{unit_id}/current-price", response_model=Optional[UnitPriceHistoryResponse])
def current_price(unit_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return AuditService(db).get_current_price(unit_id)

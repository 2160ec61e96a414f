from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from backoffice.models.audit import UnitAuditActionType


class UnitAuditLogResponse(BaseModel):
    id: int
    unit_id: int
    action_type: UnitAuditActionType
    old_values: Optional[str] = None
    new_values: Optional[str] = None
    description: Optional[str] = None
    created_by_user_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UnitPriceHistoryResponse(BaseModel):
    id: int
    unit_id: int
    rent_amount: float
    effective_from: datetime
    effective_to: Optional[datetime] = None
    change_reason: Optional[str] = None
    created_by_user_id: Optional[int] = None

    class Config:
        from_attributes = True

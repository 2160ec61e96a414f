"""
Audit Service
Append-only unit audit trail and price history.

Recording is fire-and-forget from the caller's point of view: rows are added
to the caller's session and commit with its transaction, and a failure to
build an entry is logged rather than allowed to abort the business operation.
"""
import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, resolve_clock
from backoffice.models.audit import UnitAuditActionType, UnitAuditLog, UnitPriceHistory

logger = logging.getLogger(__name__)


def to_json(values: Optional[Dict[str, Any]]) -> Optional[str]:
    if values is None:
        return None

    def _default(value):
        if isinstance(value, Decimal):
            return str(value)
        if hasattr(value, "isoformat"):
            return value.isoformat()
        if hasattr(value, "value"):
            return value.value
        return str(value)

    return json.dumps(values, default=_default, sort_keys=True)


class AuditService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)

    # ── Recording ────────────────────────────────────────────────────────────

    def record(
        self,
        unit_id: int,
        action: UnitAuditActionType,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Optional[UnitAuditLog]:
        try:
            entry = UnitAuditLog(
                unit_id=unit_id,
                action_type=action,
                old_values=to_json(old_values),
                new_values=to_json(new_values),
                description=description,
                created_by_user_id=user_id,
                created_at=self.clock.now(),
            )
        except (TypeError, ValueError) as exc:
            logger.warning(f"[AUDIT] Could not record {action.value} for unit {unit_id}: {exc}")
            return None

        self.db.add(entry)
        return entry

    def open_price_period(
        self,
        unit_id: int,
        rent_amount: Decimal,
        reason: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> UnitPriceHistory:
        """Close the current price row for the unit and start a new one."""
        now = self.clock.now()
        current = self.get_current_price(unit_id)
        if current is not None:
            current.effective_to = now

        row = UnitPriceHistory(
            unit_id=unit_id,
            rent_amount=rent_amount,
            effective_from=now,
            change_reason=reason,
            created_by_user_id=user_id,
            created_at=now,
        )
        self.db.add(row)
        return row

    # ── Queries ──────────────────────────────────────────────────────────────

    def get_audit_logs(
        self,
        unit_id: Optional[int] = None,
        action_type: Optional[UnitAuditActionType] = None,
        user_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> List[UnitAuditLog]:
        q = self.db.query(UnitAuditLog)
        if unit_id is not None:
            q = q.filter(UnitAuditLog.unit_id == unit_id)
        if action_type is not None:
            q = q.filter(UnitAuditLog.action_type == action_type)
        if user_id is not None:
            q = q.filter(UnitAuditLog.created_by_user_id == user_id)
        if start is not None:
            q = q.filter(UnitAuditLog.created_at >= start)
        if end is not None:
            q = q.filter(UnitAuditLog.created_at <= end)
        return (
            q.order_by(UnitAuditLog.created_at.desc(), UnitAuditLog.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_recent_audit_logs(self, unit_id: int) -> List[UnitAuditLog]:
        return self.get_audit_logs(unit_id=unit_id, limit=10)

    def count_audit_logs(self, unit_id: int, action_type: UnitAuditActionType) -> int:
        return (
            self.db.query(UnitAuditLog)
            .filter(UnitAuditLog.unit_id == unit_id, UnitAuditLog.action_type == action_type)
            .count()
        )

    def get_price_history(self, unit_id: int) -> List[UnitPriceHistory]:
        return (
            self.db.query(UnitPriceHistory)
            .filter(UnitPriceHistory.unit_id == unit_id)
            .order_by(UnitPriceHistory.effective_from.desc(), UnitPriceHistory.id.desc())
            .all()
        )

    def get_current_price(self, unit_id: int) -> Optional[UnitPriceHistory]:
        return (
            self.db.query(UnitPriceHistory)
            .filter(
                UnitPriceHistory.unit_id == unit_id,
                UnitPriceHistory.effective_to.is_(None),
            )
            .order_by(UnitPriceHistory.id.desc())
            .first()
        )

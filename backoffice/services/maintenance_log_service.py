"""
Maintenance Log Service
Append-only history of schedule and request activity. Entries join the
caller's transaction, like the unit audit trail.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from backoffice.core.clock import Clock, resolve_clock
from backoffice.models.maintenance import MaintenanceLog, MaintenanceLogAction
from backoffice.services.audit_service import to_json

logger = logging.getLogger(__name__)

RECENT_LIMIT = 100


class MaintenanceLogService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = resolve_clock(clock)

    def record(
        self,
        action: MaintenanceLogAction,
        description: str,
        schedule_id: Optional[int] = None,
        request_id: Optional[int] = None,
        user_id: Optional[int] = None,
        previous: Optional[Dict[str, Any]] = None,
        new: Optional[Dict[str, Any]] = None,
    ) -> Optional[MaintenanceLog]:
        try:
            entry = MaintenanceLog(
                schedule_id=schedule_id,
                request_id=request_id,
                action_type=action,
                description=description,
                previous_value=to_json(previous),
                new_value=to_json(new),
                created_by_user_id=user_id,
                created_at=self.clock.now(),
            )
        except (TypeError, ValueError) as exc:
            logger.warning(f"[MAINTENANCE] Could not log {action.value}: {exc}")
            return None

        self.db.add(entry)
        return entry

    def get_logs_by_schedule(self, schedule_id: int) -> List[MaintenanceLog]:
        return (
            self.db.query(MaintenanceLog)
            .filter(MaintenanceLog.schedule_id == schedule_id)
            .order_by(MaintenanceLog.created_at.desc(), MaintenanceLog.id.desc())
            .all()
        )

    def get_logs_by_request(self, request_id: int) -> List[MaintenanceLog]:
        return (
            self.db.query(MaintenanceLog)
            .filter(MaintenanceLog.request_id == request_id)
            .order_by(MaintenanceLog.created_at.desc(), MaintenanceLog.id.desc())
            .all()
        )

    def get_recent_logs(self, limit: int = RECENT_LIMIT) -> List[MaintenanceLog]:
        return (
            self.db.query(MaintenanceLog)
            .order_by(MaintenanceLog.created_at.desc(), MaintenanceLog.id.desc())
            .limit(limit)
            .all()
        )

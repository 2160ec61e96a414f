"""
Maintenance sweeps

run_maintenance_sweeps: expire finished leases, flag overdue bills and fire
    due maintenance schedules
sweep_loop: asyncio task started from the app lifespan; runs the
    sweep in a worker thread every interval

Every sweep is idempotent.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from backoffice.core.clock import Clock
from backoffice.database import SessionLocal
from backoffice.services.lease_service import LeaseService
from backoffice.services.maintenance_schedule_service import MaintenanceScheduleService
from backoffice.services.payment_service import PaymentService

logger = logging.getLogger(__name__)


def run_maintenance_sweeps(
    db: Optional[Session] = None,
    clock: Optional[Clock] = None,
) -> Dict[str, int]:
    """
    Run every sweep once. Opens (and closes) its own session unless one is
    passed in.

    Returns:
        {"expired_leases": n, "overdue_payments": m, "triggered_schedules": k}
    """
    owns_session = db is None
    if owns_session:
        db = SessionLocal()
    try:
        expired = LeaseService(db, clock).expire_leases()
        overdue = PaymentService(db, clock).mark_overdue_payments()
        triggered = MaintenanceScheduleService(db, clock).trigger_due_schedules()
    finally:
        if owns_session:
            db.close()

    logger.info(
        f"[SWEEP] Expired {expired} lease(s), flagged {overdue} overdue payment(s), "
        f"fired {triggered} maintenance schedule(s)"
    )
    return {"expired_leases": expired, "overdue_payments": overdue, "triggered_schedules": triggered}


async def sweep_loop(
    interval_seconds: float,
    sweep: Callable[[], Dict[str, int]] = run_maintenance_sweeps,
) -> None:
    """Run `sweep` forever, `interval_seconds` apart, until cancelled."""
    logger.info(f"[SWEEP] Scheduler started (every {interval_seconds}s)")
    try:
        while True:
            try:
                await asyncio.to_thread(sweep)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                # Keep the loop alive; the next tick retries
                logger.error(f"[SWEEP] Sweep failed: {exc}", exc_info=True)
            await asyncio.sleep(interval_seconds)
    finally:
        logger.info("[SWEEP] Scheduler stopped")

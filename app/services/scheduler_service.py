# =====================================================
# FILE: app/services/scheduler_service.py
# Background Job Scheduler for contract expiry and cleanup
# =====================================================

import asyncio
from datetime import datetime, date, timedelta
from typing import Callable, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db_session
from app.core.email import send_expiry_reminder
from app.models.contract import Contract
from app.models.user import UserSession
from app.services.audit_service import AuditActions, log_system_action
from app.services.notification_service import NotificationService, NotificationTypes

logger = logging.getLogger(__name__)


class SchedulerService:
    """Background job scheduler"""

    def __init__(self, tick_seconds: int = 60):
        self.jobs: List[dict] = []
        self.running = False
        self.tick_seconds = tick_seconds

    def add_job(self, name: str, func: Callable, interval_minutes: int):
        """Add a scheduled job"""
        self.jobs.append({
            "name": name,
            "func": func,
            "interval": interval_minutes,
            "last_run": None
        })
        logger.info(f"Scheduled job '{name}' every {interval_minutes} minutes")

    async def run_pending(self, now: Optional[datetime] = None) -> List[str]:
        """Run every job whose interval has elapsed; returns the names that ran"""
        now = now or datetime.utcnow()
        ran = []
        for job in self.jobs:
            should_run = (
                job["last_run"] is None or
                (now - job["last_run"]).total_seconds() >= job["interval"] * 60
            )
            if not should_run:
                continue

            try:
                logger.info(f"⏱️ Running job: {job['name']}")
                if asyncio.iscoroutinefunction(job["func"]):
                    await job["func"]()
                else:
                    job["func"]()
                logger.info(f" Job completed: {job['name']}")
            except Exception as e:
                logger.error(f" Job failed: {job['name']} - {e}")
            job["last_run"] = now
            ran.append(job["name"])
        return ran

    async def start(self):
        """Start the scheduler"""
        self.running = True
        logger.info("🚀 Background scheduler started")

        while self.running:
            await self.run_pending()
            await asyncio.sleep(self.tick_seconds)

    def stop(self):
        """Stop the scheduler"""
        self.running = False
        logger.info("Scheduler stopped")


# =====================================================
# SCHEDULED JOB FUNCTIONS
# =====================================================

async def check_contract_expiry(db: Session, today: Optional[date] = None) -> Dict[str, int]:
    """
    Remind creators of ACTIVE contracts ending exactly N days from today
    (N from EXPIRY_REMINDER_DAYS) and mark ACTIVE contracts past their end
    date as EXPIRED.
    """
    today = today or datetime.utcnow().date()
    summary = {"reminders_sent": 0, "expired": 0}

    for days in sorted(set(settings.EXPIRY_REMINDER_DAYS), reverse=True):
        target = today + timedelta(days=days)
        contracts = db.query(Contract).filter(
            Contract.status == "ACTIVE",
            Contract.is_deleted == False,
            Contract.end_date == target
        ).all()

        for contract in contracts:
            creator = contract.creator
            if not creator or not creator.email:
                continue

            await send_expiry_reminder(
                creator.email,
                contract.title,
                contract.reference,
                days,
                target.isoformat(),
                contract.id
            )
            NotificationService.create_notification(
                db, creator.id,
                NotificationTypes.CONTRACT_EXPIRING,
                f"Contract expiring in {days} day(s): {contract.reference}",
                f"{contract.title} ends on {target.isoformat()}.",
                f"/dashboard/contracts/{contract.id}"
            )
            summary["reminders_sent"] += 1

    expired = db.query(Contract).filter(
        Contract.status == "ACTIVE",
        Contract.is_deleted == False,
        Contract.end_date < today
    ).all()

    for contract in expired:
        contract.status = "EXPIRED"
        summary["expired"] += 1

    # expiry and reminders stand even when an audit row cannot be written
    db.commit()
    for contract in expired:
        log_system_action(
            db, AuditActions.CONTRACT_EXPIRED,
            organization_id=contract.organization_id,
            contract_id=contract.id,
            details={"end_date": contract.end_date.isoformat(), "reference": contract.reference}
        )

    logger.info(
        f"Contract expiry check complete. {summary['reminders_sent']} reminders, "
        f"{summary['expired']} contracts expired."
    )
    return summary


async def run_expiry_job():
    with get_db_session() as db:
        return await check_contract_expiry(db)


def cleanup_expired_sessions():
    """Delete sessions that expired or were revoked more than 7 days ago"""
    cutoff = datetime.utcnow() - timedelta(days=7)
    with get_db_session() as db:
        removed = db.query(UserSession).filter(
            (UserSession.expires_at < datetime.utcnow()) |
            (UserSession.revoked_at < cutoff)
        ).delete(synchronize_session=False)
    logger.info(f"Session cleanup complete. {removed} sessions removed.")
    return removed


# =====================================================
# SCHEDULER INITIALIZATION
# =====================================================

scheduler = SchedulerService()


def setup_scheduler():
    """Configure all scheduled jobs"""
    scheduler.add_job("Contract Expiry Check", run_expiry_job, settings.EXPIRY_CHECK_INTERVAL_MINUTES)
    scheduler.add_job("Session Cleanup", cleanup_expired_sessions, 60)

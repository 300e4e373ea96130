import asyncio
from datetime import date, datetime, timedelta

from app.core.database import SessionLocal
from app.models.audit import AuditLog
from app.models.contract import Contract
from app.models.notification import Notification
from app.models.user import UserSession
from app.services.scheduler_service import SchedulerService, check_contract_expiry, cleanup_expired_sessions

TODAY = date(2026, 10, 1)


def _activate(contract_id, end_date):
    with SessionLocal() as session:
        session.query(Contract).filter(Contract.id == contract_id).update(
            {Contract.status: "ACTIVE", Contract.end_date: end_date}
        )
        session.commit()


class TestExpiryCheck:
    def test_reminder_for_contract_ending_in_seven_days(self, make_contract, db, seeded):
        contract = make_contract()
        _activate(contract["id"], TODAY + timedelta(days=7))

        summary = asyncio.run(check_contract_expiry(db, TODAY))
        db.commit()

        assert summary == {"reminders_sent": 1, "expired": 0}
        notification = db.query(Notification).filter(Notification.user_id == seeded["business"]).one()
        assert notification.notification_type == "CONTRACT_EXPIRING"
        assert notification.link == f"/dashboard/contracts/{contract['id']}"

    def test_no_reminder_between_thresholds(self, make_contract, db):
        contract = make_contract()
        _activate(contract["id"], TODAY + timedelta(days=8))

        assert asyncio.run(check_contract_expiry(db, TODAY)) == {"reminders_sent": 0, "expired": 0}

    def test_past_end_date_expires(self, make_contract, db):
        contract = make_contract()
        _activate(contract["id"], TODAY - timedelta(days=1))

        summary = asyncio.run(check_contract_expiry(db, TODAY))
        db.commit()

        assert summary["expired"] == 1
        assert db.query(Contract).filter(Contract.id == contract["id"]).one().status == "EXPIRED"
        entry = db.query(AuditLog).filter(AuditLog.action == "CONTRACT_EXPIRED").one()
        assert entry.contract_id == contract["id"]
        assert entry.user_id is None

    def test_only_active_contracts(self, make_contract, db):
        contract = make_contract()
        with SessionLocal() as session:
            session.query(Contract).filter(Contract.id == contract["id"]).update(
                {Contract.end_date: TODAY - timedelta(days=1)}
            )
            session.commit()

        assert asyncio.run(check_contract_expiry(db, TODAY))["expired"] == 0


class TestSchedulerService:
    def test_jobs_run_on_their_interval(self):
        calls = []
        scheduler = SchedulerService()
        scheduler.add_job("sync", lambda: calls.append("sync"), interval_minutes=10)

        async def tick():
            calls.append("async")
        scheduler.add_job("async", tick, interval_minutes=60)

        start = datetime(2026, 10, 1, 9, 0)
        assert asyncio.run(scheduler.run_pending(start)) == ["sync", "async"]
        assert asyncio.run(scheduler.run_pending(start + timedelta(minutes=5))) == []
        assert asyncio.run(scheduler.run_pending(start + timedelta(minutes=10))) == ["sync"]
        assert calls == ["sync", "async", "sync"]

    def test_failing_job_does_not_stop_others(self):
        def broken():
            raise RuntimeError("boom")

        scheduler = SchedulerService()
        scheduler.add_job("broken", broken, interval_minutes=1)
        scheduler.add_job("fine", lambda: None, interval_minutes=1)
        assert asyncio.run(scheduler.run_pending(datetime(2026, 10, 1))) == ["broken", "fine"]


def test_cleanup_expired_sessions(admin_client, db):
    db.query(UserSession).update({UserSession.expires_at: datetime.utcnow() - timedelta(minutes=1)})
    db.commit()
    db.close()

    assert cleanup_expired_sessions() == 1
    assert admin_client.get("/api/v1/auth/me").status_code == 401


def test_expiry_kept_when_audit_write_fails(make_contract, db, monkeypatch):
    contract = make_contract()
    _activate(contract["id"], TODAY - timedelta(days=1))

    def broken(*args, **kwargs):
        raise RuntimeError("audit store unavailable")
    monkeypatch.setattr("app.services.audit_service.sanitize_metadata", broken)

    summary = asyncio.run(check_contract_expiry(db, TODAY))
    db.close()

    assert summary["expired"] == 1
    with SessionLocal() as session:
        assert session.query(Contract).filter(Contract.id == contract["id"]).one().status == "EXPIRED"
        assert session.query(AuditLog).filter(AuditLog.action == "CONTRACT_EXPIRED").count() == 0

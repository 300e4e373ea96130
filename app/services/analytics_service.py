# =====================================================
# FILE: app/services/analytics_service.py
# Dashboard aggregates per organization
# =====================================================

from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal
import logging

from app.models.approval import Approval
from app.models.contract import Contract
from app.models.organization import Organization
from app.models.template import Template
from app.models.user import Permission, User

logger = logging.getLogger(__name__)

PENDING_APPROVAL_STATUSES = ("IN_REVIEW", "LEGAL_APPROVED", "FINANCE_APPROVED")
ACTIVE_STATUSES = ("APPROVED", "SENT_TO_COUNTERPARTY", "ACTIVE")
CLOSED_STATUSES = ("EXPIRED", "TERMINATED")

TREND_MONTHS = 6


def format_status(status: str) -> str:
    """IN_REVIEW -> In Review"""
    return status.replace("_", " ").title()


def month_keys(today: date, months: int = TREND_MONTHS) -> List[date]:
    """First day of each of the last `months` months, oldest first, current month included"""
    firsts = []
    year, month = today.year, today.month
    for _ in range(months):
        firsts.append(date(year, month, 1))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(firsts))


class AnalyticsService:
    """
    Aggregates behind the dashboards. Every query is limited to one
    organization; passing `user_id` narrows it to that user's contracts.
    """

    @staticmethod
    def _contracts(db: Session, organization_id: int, user_id: Optional[int] = None):
        query = db.query(Contract).filter(
            Contract.organization_id == organization_id,
            Contract.is_deleted == False
        )
        if user_id is not None:
            query = query.filter(Contract.created_by == user_id)
        return query

    @staticmethod
    def status_counts(db: Session, organization_id: int, user_id: Optional[int] = None) -> Dict[str, int]:
        query = db.query(Contract.status, func.count(Contract.id).label("count")).filter(
            Contract.organization_id == organization_id,
            Contract.is_deleted == False
        )
        if user_id is not None:
            query = query.filter(Contract.created_by == user_id)
        return {row.status: row.count for row in query.group_by(Contract.status).all()}

    @staticmethod
    def contracts_summary(db: Session, organization_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
        logger.debug(f"Contract summary for organization {organization_id}, user {user_id}")
        counts = AnalyticsService.status_counts(db, organization_id, user_id)

        active_value = (
            AnalyticsService._contracts(db, organization_id, user_id)
            .filter(Contract.status.in_(ACTIVE_STATUSES))
            .with_entities(func.coalesce(func.sum(Contract.amount), 0))
            .scalar()
        )

        return {
            "total": sum(counts.values()),
            "by_status": counts,
            "pending_approval": sum(counts.get(s, 0) for s in PENDING_APPROVAL_STATUSES),
            "active": sum(counts.get(s, 0) for s in ACTIVE_STATUSES),
            "active_value": Decimal(active_value or 0),
            "draft": counts.get("DRAFT", 0),
            "rejected": counts.get("REJECTED", 0),
            "expired": sum(counts.get(s, 0) for s in CLOSED_STATUSES),
        }

    @staticmethod
    def contracts_by_status(db: Session, organization_id: int, user_id: Optional[int] = None) -> List[Dict[str, Any]]:
        counts = AnalyticsService.status_counts(db, organization_id, user_id)
        return [
            {"status": status, "count": count, "label": format_status(status)}
            for status, count in sorted(counts.items())
        ]

    @staticmethod
    def contract_trend(
        db: Session,
        organization_id: int,
        user_id: Optional[int] = None,
        today: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        """Contracts created per month over the last six months"""
        months = month_keys(today or datetime.utcnow().date())
        since = datetime.combine(months[0], datetime.min.time())

        created = (
            AnalyticsService._contracts(db, organization_id, user_id)
            .filter(Contract.created_at >= since)
            .with_entities(Contract.created_at)
            .all()
        )

        buckets = {first: 0 for first in months}
        for (created_at,) in created:
            first = date(created_at.year, created_at.month, 1)
            if first in buckets:
                buckets[first] += 1

        return [
            {"month": first.strftime("%Y-%m"), "label": first.strftime("%b %y"), "count": count}
            for first, count in buckets.items()
        ]

    @staticmethod
    def approval_metrics(db: Session, organization_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
        query = db.query(Approval).join(Contract, Contract.id == Approval.contract_id).filter(
            Contract.organization_id == organization_id,
            Contract.is_deleted == False
        )
        if user_id is not None:
            query = query.filter(Contract.created_by == user_id)

        pending = query.filter(Approval.status == "PENDING").count()
        decided = query.filter(Approval.status.in_(("APPROVED", "REJECTED")), Approval.acted_at.isnot(None)).all()
        approved = [a for a in decided if a.status == "APPROVED"]

        hours = [
            (a.acted_at - a.created_at).total_seconds() / 3600
            for a in decided if a.created_at
        ]

        return {
            "pending_count": pending,
            "completed_count": len(decided),
            "average_approval_hours": round(sum(hours) / len(hours), 1) if hours else None,
            "approval_rate": round(len(approved) / len(decided), 2) if decided else 0,
        }

    @staticmethod
    def recent_activity(
        db: Session,
        organization_id: int,
        limit: int = 10,
        user_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        contracts = (
            AnalyticsService._contracts(db, organization_id, user_id)
            .order_by(Contract.updated_at.desc(), Contract.id.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "id": c.id,
                "type": "contract",
                "title": c.title,
                "reference": c.reference,
                "status": c.status,
                "timestamp": c.updated_at,
            }
            for c in contracts
        ]

    @staticmethod
    def admin_stats(db: Session) -> Dict[str, Any]:
        """System-wide counts across every organization"""
        return {
            "total_users": db.query(func.count(User.id)).scalar(),
            "total_organizations": db.query(func.count(Organization.id)).scalar(),
            "total_contracts": db.query(func.count(Contract.id)).filter(Contract.is_deleted == False).scalar(),
            "total_templates": db.query(func.count(Template.id)).scalar(),
            "total_permissions": db.query(func.count(Permission.id)).scalar(),
            "last_updated": datetime.utcnow(),
        }

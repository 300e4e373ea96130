# =====================================================
# FILE: app/api/api_v1/search/service.py
# Contract search, saved searches and filter options
# =====================================================

from fastapi import HTTPException, status
from sqlalchemy import desc, func, or_
from sqlalchemy.orm import Session, joinedload
from typing import List, Optional, Dict, Any, Tuple
from datetime import datetime, time
import logging

from app.models.contract import Contract
from app.models.search import SavedSearch
from app.models.template import Template
from app.services.template_service import available_filter
from app.api.api_v1.search.schemas import SearchFilters

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class SearchService:

    # =====================================================
    # CONTRACT SEARCH
    # =====================================================

    @staticmethod
    def search_contracts(
        db: Session,
        organization_id: int,
        text: Optional[str],
        filters: SearchFilters,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Contract], int]:
        """Free text over title, reference and counterparty, newest activity first"""
        query = db.query(Contract).filter(
            Contract.organization_id == organization_id,
            Contract.is_deleted == False
        )

        if text and text.strip():
            pattern = f"%{text.strip()}%"
            query = query.filter(or_(
                Contract.title.ilike(pattern),
                Contract.reference.ilike(pattern),
                Contract.counterparty_name.ilike(pattern),
            ))
        if filters.status:
            query = query.filter(Contract.status.in_(filters.status))
        if filters.date_from:
            query = query.filter(Contract.created_at >= datetime.combine(filters.date_from, time.min))
        if filters.date_to:
            query = query.filter(Contract.created_at <= datetime.combine(filters.date_to, time.max))
        if filters.counterparty:
            query = query.filter(Contract.counterparty_name.ilike(f"%{filters.counterparty}%"))
        if filters.template_id:
            query = query.filter(Contract.template_id == filters.template_id)

        limit = min(limit, MAX_PAGE_SIZE)
        total = query.count()
        contracts = (
            query.options(joinedload(Contract.template))
            .order_by(desc(Contract.updated_at), desc(Contract.id))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return contracts, total

    @staticmethod
    def serialize_result(contract: Contract) -> Dict[str, Any]:
        template = contract.template
        return {
            "id": contract.id,
            "title": contract.title,
            "reference": contract.reference,
            "status": contract.status,
            "counterparty_name": contract.counterparty_name,
            "created_at": contract.created_at,
            "updated_at": contract.updated_at,
            "template": {"name": template.name, "category": template.category} if template else None,
        }

    @staticmethod
    def filter_options(db: Session, organization_id: int) -> Dict[str, Any]:
        templates = (
            db.query(Template)
            .filter(Template.is_active == True, available_filter(organization_id))
            .order_by(Template.name.asc())
            .all()
        )
        statuses = (
            db.query(Contract.status, func.count(Contract.id).label("count"))
            .filter(Contract.organization_id == organization_id, Contract.is_deleted == False)
            .group_by(Contract.status)
            .order_by(Contract.status.asc())
            .all()
        )
        return {
            "templates": [{"id": t.id, "name": t.name, "category": t.category} for t in templates],
            "statuses": [
                {"value": row.status, "label": row.status.replace("_", " "), "count": row.count}
                for row in statuses
            ],
        }

    # =====================================================
    # SAVED SEARCHES
    # =====================================================

    @staticmethod
    def list_saved(db: Session, user_id: int) -> List[SavedSearch]:
        """Default search first, then most recently changed"""
        return (
            db.query(SavedSearch)
            .filter(SavedSearch.user_id == user_id)
            .order_by(desc(SavedSearch.is_default), desc(SavedSearch.updated_at), desc(SavedSearch.id))
            .all()
        )

    @staticmethod
    def save(db: Session, user_id: int, name: str, text: str, filters: SearchFilters, is_default: bool) -> SavedSearch:
        if is_default:
            db.query(SavedSearch).filter(
                SavedSearch.user_id == user_id,
                SavedSearch.is_default == True
            ).update({SavedSearch.is_default: False}, synchronize_session=False)

        saved = SavedSearch(
            user_id=user_id,
            name=name,
            query={"search_text": text},
            filters=filters.model_dump(mode="json", exclude_none=True),
            is_default=is_default,
        )
        db.add(saved)
        db.flush()
        logger.info(f"Saved search {saved.id} '{name}' stored for user {user_id}")
        return saved

    @staticmethod
    def delete_saved(db: Session, saved_search_id: int, user_id: int) -> None:
        saved = db.query(SavedSearch).filter(
            SavedSearch.id == saved_search_id,
            SavedSearch.user_id == user_id
        ).first()
        if not saved:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Saved search not found")
        db.delete(saved)

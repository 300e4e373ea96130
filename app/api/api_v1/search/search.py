"""
Search API Router
File: app/api/api_v1/search/search.py
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
import logging

from app.core.database import get_db
from app.core.dependencies import CurrentContext
from app.core.permissions import PermissionCode as P
from app.middleware.rbac_middleware import RBACDependency
from app.api.api_v1.search.schemas import SavedSearchCreateRequest, SavedSearchResponse, SearchFilters
from app.api.api_v1.search.service import MAX_PAGE_SIZE, SearchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/search", tags=["search"])


@router.get("/contracts")
async def search_contracts(
    q: Optional[str] = Query(None, max_length=255),
    status_filter: Optional[str] = Query(None, alias="status", description="Comma separated statuses"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    counterparty: Optional[str] = Query(None, max_length=255),
    template_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_VIEW))
):
    organization_id = context.require_organization()
    try:
        filters = SearchFilters(
            status=status_filter,
            date_from=date_from,
            date_to=date_to,
            counterparty=counterparty,
            template_id=template_id,
        )
    except ValidationError as e:
        logger.warning(f"Rejected search filters from user {context.user_id}: {e.errors()}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid search filters")

    limit = min(limit, MAX_PAGE_SIZE)
    contracts, total = SearchService.search_contracts(db, organization_id, q, filters, page, limit)
    return {
        "success": True,
        "data": [SearchService.serialize_result(c) for c in contracts],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        }
    }


@router.get("/filters")
async def filter_options(
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_VIEW))
):
    """Templates and contract statuses to offer as search filters"""
    data = SearchService.filter_options(db, context.require_organization())
    return {"success": True, **data}


# =====================================================
# SAVED SEARCHES
# =====================================================

@router.get("/saved")
async def list_saved_searches(
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_VIEW))
):
    saved = SearchService.list_saved(db, context.user_id)
    return {
        "success": True,
        "saved_searches": [SavedSearchResponse.model_validate(s).model_dump() for s in saved]
    }


@router.post("/saved", status_code=status.HTTP_201_CREATED)
async def save_search(
    payload: SavedSearchCreateRequest,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_VIEW))
):
    try:
        saved = SearchService.save(
            db, context.user_id, payload.name, payload.query, payload.filters, payload.is_default
        )
        db.commit()
        db.refresh(saved)
        return {
            "success": True,
            "message": "Search saved",
            "saved_search": SavedSearchResponse.model_validate(saved).model_dump()
        }
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error saving search: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed saving search")


@router.delete("/saved/{saved_search_id}")
async def delete_saved_search(
    saved_search_id: int,
    db: Session = Depends(get_db),
    context: CurrentContext = Depends(RBACDependency(P.CONTRACT_VIEW))
):
    try:
        SearchService.delete_saved(db, saved_search_id, context.user_id)
        db.commit()
        return {"success": True, "message": "Saved search deleted"}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error deleting saved search: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed deleting saved search")

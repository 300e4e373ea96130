# =====================================================
# FILE: app/services/template_service.py
# Contract templates: availability, placeholders, admin changes
# =====================================================

from sqlalchemy import or_, and_, exists
from sqlalchemy.orm import Session, selectinload
from fastapi import HTTPException, status
from typing import Any, Dict, List, Optional
import logging
import math
import re

from app.models.template import Template, Annexure, TemplateOrganization
from app.utils.sanitize import sanitize_contract_content

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"\{\{([A-Z0-9_]+)\}\}")


def extract_variable_keys(html: Optional[str]) -> List[str]:
    """{{VARIABLE_NAME}} keys in order of first appearance"""
    keys: List[str] = []
    for match in VARIABLE_PATTERN.finditer(html or ""):
        if match.group(1) not in keys:
            keys.append(match.group(1))
    return keys


def key_to_label(key: str) -> str:
    """CONTRACT_START_DATE -> Contract Start Date"""
    return " ".join(word.capitalize() for word in key.split("_") if word)


def render_template(content: Optional[str], values: Optional[Dict[str, Any]]) -> str:
    """Fill placeholders; unknown keys are left in place"""
    values = values or {}

    def _replace(match):
        key = match.group(1)
        if key in values and values[key] is not None:
            return str(values[key])
        return match.group(0)

    return VARIABLE_PATTERN.sub(_replace, content or "")


def available_filter(organization_id: int):
    return or_(
        Template.is_global == True,
        exists().where(and_(
            TemplateOrganization.template_id == Template.id,
            TemplateOrganization.organization_id == organization_id,
            TemplateOrganization.is_enabled == True,
        ))
    )


class TemplateService:

    # =====================================================
    # READ
    # =====================================================

    @staticmethod
    def list_for_organization(
        db: Session,
        organization_id: int,
        page: int = 1,
        limit: int = 12,
        search: Optional[str] = None,
        category: Optional[str] = None
    ) -> Dict[str, Any]:
        page = max(page, 1)
        limit = max(limit, 1)

        query = db.query(Template).filter(Template.is_active == True, available_filter(organization_id))

        if category and category != "ALL":
            query = query.filter(Template.category == category)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Template.name.ilike(pattern), Template.code.ilike(pattern)))

        total = query.count()
        items = (
            query.options(selectinload(Template.annexures))
            .order_by(Template.name.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        last_page = math.ceil(total / limit) if total else 0
        return {
            "data": items,
            "meta": {
                "total": total,
                "last_page": last_page,
                "current_page": page,
                "per_page": limit,
                "prev": page - 1 if page > 1 else None,
                "next": page + 1 if page < last_page else None,
            },
        }

    @staticmethod
    def get_by_id(db: Session, template_id: int) -> Template:
        template = (
            db.query(Template)
            .options(selectinload(Template.annexures), selectinload(Template.organization_access))
            .filter(Template.id == template_id)
            .first()
        )
        if not template:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
        return template

    @staticmethod
    def is_available(db: Session, template: Template, organization_id: int) -> bool:
        if not template.is_active:
            return False
        if template.is_global:
            return True
        return db.query(TemplateOrganization).filter(
            TemplateOrganization.template_id == template.id,
            TemplateOrganization.organization_id == organization_id,
            TemplateOrganization.is_enabled == True,
        ).first() is not None

    @staticmethod
    def extract_variables(db: Session, template_id: int) -> Dict[str, Any]:
        """
        Unified placeholder schema: main agreement first, then annexures in
        order. A key is reported once, from the first place it appears.
        """
        template = TemplateService.get_by_id(db, template_id)

        seen = set()
        variables = []

        def _collect(content, stored_meta, source, source_label):
            meta_by_key = {
                m.get("key"): m for m in (stored_meta if isinstance(stored_meta, list) else [])
                if isinstance(m, dict)
            }
            for key in extract_variable_keys(content):
                if key in seen:
                    continue
                seen.add(key)
                meta = meta_by_key.get(key, {})
                variables.append({
                    "key": key,
                    "label": meta.get("label") or key_to_label(key),
                    "type": meta.get("type") or "text",
                    "required": meta.get("required", True),
                    "placeholder": meta.get("placeholder") or "",
                    "source": source,
                    "source_label": source_label,
                })

        _collect(template.base_content, template.variables_config, "main", "Main Agreement")
        for annexure in template.annexures:
            _collect(annexure.content, annexure.fields_config, "annexure", annexure.title or annexure.name)

        return {"variables": variables, "total": len(variables)}

    # =====================================================
    # ADMIN
    # =====================================================

    @staticmethod
    def create(db: Session, user_id: int, organization_id: Optional[int], data: Dict[str, Any]) -> Template:
        code = data["code"].strip().upper()
        if db.query(Template).filter(Template.code == code).first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Template code {code} already exists")

        template = Template(
            name=data["name"],
            code=code,
            category=data.get("category") or "OTHER",
            description=data.get("description"),
            base_content=sanitize_contract_content(data["base_content"]),
            variables_config=data.get("variables_config") or [],
            is_global=bool(data.get("is_global", False)),
            is_active=True,
            created_by=user_id,
        )
        db.add(template)
        db.flush()

        TemplateService._replace_annexures(template, data.get("annexures") or [])

        if not template.is_global:
            targets = data.get("target_org_ids") or ([organization_id] if organization_id else [])
            TemplateService._replace_organizations(db, template, targets)

        db.commit()
        db.refresh(template)
        logger.info(f"Template created: {template.code} (id={template.id})")
        return template

    @staticmethod
    def update(db: Session, template_id: int, data: Dict[str, Any]) -> Template:
        template = TemplateService.get_by_id(db, template_id)

        for field in ("name", "category", "description", "variables_config", "is_global", "is_active"):
            if field in data and data[field] is not None:
                setattr(template, field, data[field])
        if data.get("base_content") is not None:
            template.base_content = sanitize_contract_content(data["base_content"])

        if data.get("annexures") is not None:
            TemplateService._replace_annexures(template, data["annexures"])

        if data.get("target_org_ids") is not None:
            targets = [] if template.is_global else data["target_org_ids"]
            TemplateService._replace_organizations(db, template, targets)

        db.commit()
        db.refresh(template)
        logger.info(f"Template updated: {template.code}")
        return template

    @staticmethod
    def set_enabled_for_organization(db: Session, template_id: int, organization_id: int, enabled: bool) -> TemplateOrganization:
        TemplateService.get_by_id(db, template_id)

        link = db.query(TemplateOrganization).filter(
            TemplateOrganization.template_id == template_id,
            TemplateOrganization.organization_id == organization_id,
        ).first()

        if link is None:
            if not enabled:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Template is not linked to this organization"
                )
            link = TemplateOrganization(template_id=template_id, organization_id=organization_id)
            db.add(link)

        link.is_enabled = enabled
        db.commit()
        return link

    @staticmethod
    def deactivate(db: Session, template_id: int) -> Template:
        template = TemplateService.get_by_id(db, template_id)
        template.is_active = False
        db.commit()
        return template

    @staticmethod
    def _replace_annexures(template: Template, annexures: List[Dict[str, Any]]) -> None:
        template.annexures.clear()
        for index, annexure in enumerate(annexures):
            template.annexures.append(Annexure(
                name=annexure["name"],
                title=annexure.get("title") or annexure["name"],
                content=sanitize_contract_content(annexure.get("content") or ""),
                fields_config=annexure.get("fields_config") or [],
                order=index + 1,
            ))

    @staticmethod
    def _replace_organizations(db: Session, template: Template, organization_ids: List[int]) -> None:
        template.organization_access.clear()
        db.flush()
        for org_id in dict.fromkeys(organization_ids):
            template.organization_access.append(TemplateOrganization(organization_id=org_id, is_enabled=True))

# =====================================================
# FILE: app/models/template.py
# Contract Template, Annexures and Organization Access
# =====================================================

from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base


class Template(Base):
    __tablename__ = "templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False)
    category = Column(String(50), nullable=False, default="OTHER")
    description = Column(Text)
    base_content = Column(Text, nullable=False)
    variables_config = Column(JSON)
    is_global = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    annexures = relationship(
        "Annexure",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="Annexure.order"
    )
    organization_access = relationship(
        "TemplateOrganization",
        back_populates="template",
        cascade="all, delete-orphan"
    )


class Annexure(Base):
    __tablename__ = "annexures"

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_id = Column(Integer, ForeignKey("templates.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    title = Column(String(255))
    content = Column(Text, nullable=False, default="")
    fields_config = Column(JSON)
    order = Column(Integer, nullable=False, default=1)

    template = relationship("Template", back_populates="annexures")


class TemplateOrganization(Base):
    __tablename__ = "template_organizations"
    __table_args__ = (UniqueConstraint("template_id", "organization_id", name="uq_template_org"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_id = Column(Integer, ForeignKey("templates.id", ondelete="CASCADE"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)

    template = relationship("Template", back_populates="organization_access")

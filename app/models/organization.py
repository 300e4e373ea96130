# =====================================================
# FILE: app/models/organization.py
# Organization (tenant) and per-organization feature flags
# =====================================================

from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)
    org_type = Column(String(20), nullable=False, default="ENTITY")  # PARENT / ENTITY
    parent_id = Column(Integer, ForeignKey("organizations.id", ondelete="SET NULL"))
    is_active = Column(Boolean, default=True, nullable=False)
    settings = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    parent = relationship("Organization", remote_side=[id], backref="children")
    feature_flags = relationship("FeatureFlag", back_populates="organization", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Organization(id={self.id}, code={self.code})>"


class FeatureFlag(Base):
    __tablename__ = "feature_flags"
    __table_args__ = (UniqueConstraint("organization_id", "feature_code", name="uq_feature_flag_org_code"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    feature_code = Column(String(50), nullable=False)
    is_enabled = Column(Boolean, default=False, nullable=False)
    config = Column(JSON)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship("Organization", back_populates="feature_flags")

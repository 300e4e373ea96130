# =====================================================
# FILE: app/models/contract.py
# Contract, Version History and Attachments
# =====================================================

from sqlalchemy import (
    Column, String, Integer, Text, Boolean, DateTime, Date, Numeric,
    ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("templates.id", ondelete="SET NULL"))
    title = Column(String(255), nullable=False)
    reference = Column(String(50), unique=True, nullable=False, index=True)
    status = Column(String(30), nullable=False, default="DRAFT", index=True)

    counterparty_name = Column(String(255), nullable=False)
    counterparty_email = Column(String(255))
    start_date = Column(Date)
    end_date = Column(Date, index=True)
    amount = Column(Numeric(15, 2))
    currency = Column(String(3), default="USD")
    description = Column(Text)

    content = Column(Text)
    annexure_data = Column(Text)
    field_data = Column(JSON)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    submitted_at = Column(DateTime)
    approved_at = Column(DateTime)
    sent_at = Column(DateTime)
    signed_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    cancellation_reason = Column(Text)

    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship("Organization")
    template = relationship("Template")
    creator = relationship("User", foreign_keys=[created_by])
    versions = relationship(
        "ContractVersion",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="desc(ContractVersion.version_number)"
    )
    approvals = relationship(
        "Approval",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="Approval.created_at"
    )
    attachments = relationship(
        "ContractAttachment",
        back_populates="contract",
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Contract(id={self.id}, reference={self.reference}, status={self.status})>"


class ContractVersion(Base):
    __tablename__ = "contract_versions"
    __table_args__ = (UniqueConstraint("contract_id", "version_number", name="uq_contract_version"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(Integer, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    content_snapshot = Column(Text, nullable=False)  # JSON-encoded contract state
    change_log = Column(JSON)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    contract = relationship("Contract", back_populates="versions")
    creator = relationship("User")


class ContractAttachment(Base):
    __tablename__ = "contract_attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(Integer, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_url = Column(String(500), nullable=False)
    file_type = Column(String(100))
    file_size = Column(Integer)
    category = Column(String(30), default="OTHER")  # MAIN_DOCUMENT / SIGNED_CONTRACT / OTHER
    uploaded_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)

    contract = relationship("Contract", back_populates="attachments")

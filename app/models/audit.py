# =====================================================
# FILE: app/models/audit.py
# Immutable audit trail
# =====================================================

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="SET NULL"), index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id", ondelete="SET NULL"), index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    action = Column(String(100), nullable=False, index=True)
    module = Column(String(50), index=True)
    target_type = Column(String(50))
    target_id = Column(String(50))
    old_value = Column(JSON)
    new_value = Column(JSON)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON)
    ip_address = Column(String(45))
    user_agent = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User")

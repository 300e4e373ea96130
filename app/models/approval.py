# =====================================================
# FILE: app/models/approval.py
# Legal / Finance approval steps of a contract
# =====================================================

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.database import Base


class Approval(Base):
    __tablename__ = "approvals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(Integer, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    approval_type = Column(String(20), nullable=False)  # LEGAL / FINANCE
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    actor_id = Column(Integer, ForeignKey("users.id"))
    acted_at = Column(DateTime)
    comment = Column(Text)
    escalated_by = Column(Integer, ForeignKey("users.id"))
    escalated_to = Column(Integer, ForeignKey("users.id"))
    escalated_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    contract = relationship("Contract", back_populates="approvals")
    actor = relationship("User", foreign_keys=[actor_id])

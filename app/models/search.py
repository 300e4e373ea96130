# =====================================================
# FILE: app/models/search.py
# Saved contract searches
# =====================================================

from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, JSON
from datetime import datetime

from app.core.database import Base


class SavedSearch(Base):
    __tablename__ = "saved_searches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    query = Column(JSON)  # {"search_text": ...}
    filters = Column(JSON)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

"""User model (identity is managed elsewhere; only wallet linkage lives here)."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from pevi_api.db.base import Base


class User(Base):
    """Platform user."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    wallet_address = Column(String(56), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

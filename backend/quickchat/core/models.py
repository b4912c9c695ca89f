"""
ORM models for provider persistence.

WHAT: SQLAlchemy model for configured LLM providers
WHY: Providers and their API keys survive restarts
HOW: Declarative model; timestamps are unix milliseconds
"""

import time
from uuid import uuid4
from sqlalchemy import Column, Integer, String, Boolean, BigInteger, Text, Index

from .database import Base


def now_unix_ms() -> int:
    return int(time.time() * 1000)


class Provider(Base):
    """
    Provider table - one row per configured vendor endpoint.

    WHAT: Provider identity, endpoint, model and secret
    WHY: Query engine resolves descriptors and keys from here
    HOW: UUID primary key, display_order for UI ordering, nullable api_key
    """
    __tablename__ = "providers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(100), nullable=False)
    provider_type = Column(String(32), nullable=False)
    base_url = Column(Text, nullable=True)
    model = Column(String(200), nullable=False, default="")
    api_key = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(BigInteger, nullable=False, default=now_unix_ms)
    updated_at = Column(BigInteger, nullable=False, default=now_unix_ms)

    __table_args__ = (
        Index("idx_providers_active_order", "is_active", "display_order"),
    )

    def __repr__(self):
        return f"<Provider(id={self.id}, name={self.name}, type={self.provider_type}, active={self.is_active})>"

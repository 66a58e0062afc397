from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, JSON, String

from .database import Base


class RelationRecord(Base):
    """One row per relation; `rows` holds the whole relation as a JSON array."""

    __tablename__ = "relations"

    name = Column(String, primary_key=True, index=True)
    rows = Column(JSON, nullable=False, default=list)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

"""
Storage model for the key-value store.

Each collection (users, letters, logs, settings) is one row holding a JSON
document that is rewritten wholesale on every change.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Integer, LargeBinary, String
from letterflow.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class KeyValueEntry(Base):
    """
    One stored collection.

    Invariants:
    - size always equals len(value)
    - version increases by one on every successful write
    """
    __tablename__ = "kv_entries"

    key = Column(String, primary_key=True)
    value = Column(LargeBinary, nullable=False)
    size = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

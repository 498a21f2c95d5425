"""
Durable key-value store and the JSON collections kept in it.

The store enforces two things the repositories rely on:
- A write either replaces the whole value or leaves it untouched
- The total stored bytes never exceed the configured capacity
"""
import logging
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

from pydantic import TypeAdapter
from sqlalchemy import func, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from letterflow import config
from letterflow.models.store import KeyValueEntry, _utcnow
from letterflow.services.errors import CapacityExceeded, Conflict

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class KeyValueStore:
    """Versioned byte values keyed by collection name, backed by the kv_entries table."""

    def __init__(self, db: Session, capacity_bytes: Optional[int] = None):
        self.db = db
        self.capacity_bytes = config.STORE_CAPACITY_BYTES if capacity_bytes is None else capacity_bytes

    def get(self, key: str) -> Optional[bytes]:
        value, _ = self.get_versioned(key)
        return value

    def get_versioned(self, key: str) -> Tuple[Optional[bytes], int]:
        """Return (value, version). An absent key is (None, 0)."""
        # Column query so the identity map never serves a stale row
        row = self.db.query(KeyValueEntry.value, KeyValueEntry.version).filter(
            KeyValueEntry.key == key
        ).first()
        if row is None:
            return None, 0
        return bytes(row.value), row.version

    def keys(self) -> List[str]:
        return [k for (k,) in self.db.query(KeyValueEntry.key).order_by(KeyValueEntry.key).all()]

    def total_size(self) -> int:
        return self.db.query(func.coalesce(func.sum(KeyValueEntry.size), 0)).scalar()

    def set(self, key: str, value: bytes) -> int:
        """Write unconditionally. Returns the new version."""
        _, version = self.get_versioned(key)
        return self.compare_and_set(key, value, version)

    def compare_and_set(self, key: str, value: bytes, expected_version: int) -> int:
        """
        Write value only if the key is still at expected_version.

        Raises:
        - CapacityExceeded if the write would push the store over capacity
        - Conflict if another writer got there first
        """
        self._check_capacity(key, value)

        try:
            if expected_version == 0:
                self.db.execute(insert(KeyValueEntry).values(
                    key=key, value=value, size=len(value), version=1, updated_at=_utcnow()
                ))
                self.db.commit()
                return 1

            updated = self.db.query(KeyValueEntry).filter(
                KeyValueEntry.key == key,
                KeyValueEntry.version == expected_version
            ).update(
                {
                    KeyValueEntry.value: value,
                    KeyValueEntry.size: len(value),
                    KeyValueEntry.version: KeyValueEntry.version + 1,
                    KeyValueEntry.updated_at: _utcnow(),
                },
                synchronize_session=False
            )
            if updated == 0:
                self.db.rollback()
                raise Conflict(f"'{key}' was modified concurrently (expected version {expected_version})")
            self.db.commit()
            return expected_version + 1
        except IntegrityError:
            # Someone else created the key between our read and our insert
            self.db.rollback()
            raise Conflict(f"'{key}' was created concurrently")

    def _check_capacity(self, key: str, value: bytes) -> None:
        others = self.db.query(func.coalesce(func.sum(KeyValueEntry.size), 0)).filter(
            KeyValueEntry.key != key
        ).scalar()
        requested = others + len(value)
        if requested > self.capacity_bytes:
            logger.warning(
                "Rejected write to %s: %d bytes would exceed capacity of %d",
                key, requested, self.capacity_bytes
            )
            raise CapacityExceeded(key, requested, self.capacity_bytes)


class JsonCollection(Generic[T]):
    """
    A typed value stored as JSON under a single key.

    Reads decode through a pydantic TypeAdapter; writes go through
    compare-and-set so read-modify-write cycles never drop a concurrent change.
    """

    def __init__(self, store: KeyValueStore, key: str, adapter: TypeAdapter, default: Callable[[], T]):
        self.store = store
        self.key = key
        self.adapter = adapter
        self.default = default

    def exists(self) -> bool:
        return self.store.get(self.key) is not None

    def load(self) -> T:
        value, _ = self.load_versioned()
        return value

    def load_versioned(self) -> Tuple[T, int]:
        raw, version = self.store.get_versioned(self.key)
        if raw is None:
            return self.default(), 0
        return self.adapter.validate_json(raw), version

    def save(self, value: T) -> None:
        self.store.set(self.key, self.adapter.dump_json(value))

    def mutate(self, change: Callable[[T], Tuple[T, R]]) -> R:
        """
        Apply change(current) -> (new_value, result) and write new_value atomically.

        Exceptions raised by change propagate and nothing is written. On a
        concurrent write the change is re-applied to fresh data, up to
        config.STORE_RETRIES attempts.
        """
        for attempt in range(1, config.STORE_RETRIES + 1):
            current, version = self.load_versioned()
            new_value, result = change(current)
            try:
                self.store.compare_and_set(self.key, self.adapter.dump_json(new_value), version)
                return result
            except Conflict:
                logger.warning("Concurrent write to %s, retrying (attempt %d)", self.key, attempt)
        raise Conflict(f"Gave up writing '{self.key}' after {config.STORE_RETRIES} concurrent modifications")

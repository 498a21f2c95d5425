"""Append-only, capacity-bounded activity log."""
import logging
from typing import List

from pydantic import TypeAdapter
from sqlalchemy.exc import SQLAlchemyError

from letterflow import config
from letterflow.models.audit import Log
from letterflow.services.errors import LetterflowError
from letterflow.services.store import JsonCollection, KeyValueStore

logger = logging.getLogger(__name__)

LOGS_KEY = "logs"

_logs_adapter = TypeAdapter(List[Log])


class ActivityLog:
    """
    Newest-first audit trail.

    Invariants:
    - Never holds more than config.LOG_CAPACITY entries; the oldest go first
    - A failed append never fails the operation it accompanies
    """

    def __init__(self, store: KeyValueStore, capacity: int = None):
        self.capacity = config.LOG_CAPACITY if capacity is None else capacity
        self._store = store
        self._logs = JsonCollection(store, LOGS_KEY, _logs_adapter, list)

    def append(self, user_id: str, user_name: str, action: str, details: str) -> None:
        entry = Log(user_id=user_id, user_name=user_name, action=action, details=details)

        def prepend(logs: List[Log]):
            return ([entry] + logs)[:self.capacity], None

        try:
            self._logs.mutate(prepend)
        except LetterflowError as e:
            # Auditing is best-effort
            logger.warning("Could not save %s log entry for %s: %s", action, user_id, e.message)
        except SQLAlchemyError:
            self._store.db.rollback()
            logger.warning("Could not save %s log entry for %s", action, user_id, exc_info=True)

    def list(self) -> List[Log]:
        return self._logs.load()

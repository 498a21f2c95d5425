"""
Activity log entry - the user-visible audit trail of mutating operations.

Entries are append-only and the collection is capped: only the newest
entries survive (see services/activity_log.py).
"""
from datetime import datetime
from pydantic import BaseModel, Field

from letterflow.models.domain import new_id, utcnow


class Log(BaseModel):
    """
    Audit entry.

    Invariants:
    - Once written, never edited
    - user_name is a snapshot of the actor at the time of the action
    """
    id: str = Field(default_factory=new_id)
    user_id: str
    user_name: str
    action: str  # One of LogAction
    details: str = ""
    timestamp: datetime = Field(default_factory=utcnow)


# Action tags for consistency
class LogAction:
    """Enumeration of activity log actions."""
    # Session
    LOGIN = "LOGIN"

    # User lifecycle
    CREATE_USER = "CREATE_USER"
    UPDATE_PROFILE = "UPDATE_PROFILE"
    DELETE_USER = "DELETE_USER"

    # Letter lifecycle
    CREATE_LETTER = "CREATE_LETTER"
    UPDATE_LETTER = "UPDATE_LETTER"
    ADD_RECIPIENT = "ADD_RECIPIENT"
    SIGN_LETTER = "SIGN_LETTER"

    # Administration
    UPDATE_SETTINGS = "UPDATE_SETTINGS"

"""
User accounts and authentication.

Passwords are hashed with bcrypt at this boundary; nothing outside this
module ever sees a password hash.
"""
import logging
from typing import List, Optional

import bcrypt
from pydantic import TypeAdapter

from letterflow.models.audit import LogAction
from letterflow.models.domain import PublicUser, User
from letterflow.services.activity_log import ActivityLog
from letterflow.services.errors import AuthenticationFailure, NotFound, ValidationFailure
from letterflow.services.store import JsonCollection, KeyValueStore

logger = logging.getLogger(__name__)

USERS_KEY = "users"
SYSTEM_ACTOR = PublicUser(id="SYSTEM", username="system", full_name="System")

_users_adapter = TypeAdapter(List[User])

# bcrypt refuses longer secrets
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash. Over-long passwords never match."""
    encoded = plain_password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(encoded, hashed_password.encode("utf-8"))


def _check_password_length(password: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationFailure(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


class UserRepository:
    """CRUD over user accounts, plus the login check."""

    def __init__(self, store: KeyValueStore, activity_log: ActivityLog):
        self.activity_log = activity_log
        self._users = JsonCollection(store, USERS_KEY, _users_adapter, list)

    def is_seeded(self) -> bool:
        return self._users.exists()

    def seed(self, accounts: List[User]) -> None:
        """Write the initial account set. Only called by bootstrap."""
        self._users.save(accounts)

    def login(self, username: str, password: str) -> PublicUser:
        """
        Authenticate a user.

        Fails with the same AuthenticationFailure whether the username is
        unknown or the password is wrong.
        """
        user = next((u for u in self._users.load() if u.username == username), None)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login attempt for %r", username)
            raise AuthenticationFailure()

        self.activity_log.append(user.id, user.full_name, LogAction.LOGIN, "User logged in successfully")
        return user.public()

    def list_all(self) -> List[PublicUser]:
        return [u.public() for u in self._users.load()]

    def get(self, user_id: str) -> PublicUser:
        for u in self._users.load():
            if u.id == user_id:
                return u.public()
        raise NotFound("User", user_id)

    def add(self, user: PublicUser, password: str, actor: Optional[PublicUser] = None) -> PublicUser:
        if not password:
            raise ValidationFailure("A password is required for new users")
        _check_password_length(password)
        record = User(**user.model_dump(), password_hash=hash_password(password))

        def insert(users: List[User]):
            if any(u.id == record.id for u in users):
                raise ValidationFailure(f"User id already exists: {record.id}")
            self._check_username_free(users, record.username, record.id)
            return users + [record], record.public()

        created = self._users.mutate(insert)
        actor = actor or SYSTEM_ACTOR
        self.activity_log.append(
            actor.id, actor.full_name, LogAction.CREATE_USER,
            f"Created user {created.username} ({created.role.value})"
        )
        return created

    def update(self, user: PublicUser, password: Optional[str] = None, actor: Optional[PublicUser] = None) -> PublicUser:
        """Replace a user's profile fields. The stored hash is kept unless a new password is given."""
        if password:
            _check_password_length(password)
        new_hash = hash_password(password) if password else None

        def replace(users: List[User]):
            for index, existing in enumerate(users):
                if existing.id == user.id:
                    break
            else:
                raise NotFound("User", user.id)
            self._check_username_free(users, user.username, user.id)
            record = User(**user.model_dump(), password_hash=new_hash or existing.password_hash)
            users = list(users)
            users[index] = record
            return users, record.public()

        updated = self._users.mutate(replace)
        actor = actor or updated
        self.activity_log.append(
            actor.id, actor.full_name, LogAction.UPDATE_PROFILE,
            f"Updated profile of {updated.username}"
        )
        return updated

    def delete(self, user_id: str, actor: Optional[PublicUser] = None) -> None:
        """Remove a user. Letters that reference the user are left as they are."""
        def remove(users: List[User]):
            remaining = [u for u in users if u.id != user_id]
            if len(remaining) == len(users):
                raise NotFound("User", user_id)
            removed = next(u for u in users if u.id == user_id)
            return remaining, removed

        removed = self._users.mutate(remove)
        actor = actor or SYSTEM_ACTOR
        self.activity_log.append(
            actor.id, actor.full_name, LogAction.DELETE_USER, f"Deleted user {removed.username}"
        )

    @staticmethod
    def _check_username_free(users: List[User], username: str, own_id: str) -> None:
        if any(u.username == username and u.id != own_id for u in users):
            raise ValidationFailure(f"Username already taken: {username}")

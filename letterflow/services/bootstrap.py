"""First-start seeding of user accounts and system settings."""
import logging
from typing import List

from letterflow.models.domain import SystemSettings, User
from letterflow.models.enums import Role
from letterflow.services.activity_log import ActivityLog
from letterflow.services.settings import SettingsRepository
from letterflow.services.store import KeyValueStore
from letterflow.services.users import UserRepository, hash_password

logger = logging.getLogger(__name__)

# (id, username, full name, role, position); every seed account starts with password "123"
SEED_ACCOUNTS = [
    ("1", "admin", "System Administrator", Role.ADMIN, "General Management"),
    ("2", "manager", "Reza Alavi", Role.MANAGER, "Technical Manager"),
    ("3", "employee", "Sara Mohammadi", Role.EMPLOYEE, "Sales Specialist"),
]
SEED_PASSWORD = "123"


def seed_users() -> List[User]:
    return [
        User(
            id=user_id,
            username=username,
            full_name=full_name,
            role=role,
            position=position,
            avatar_url="",
            password_hash=hash_password(SEED_PASSWORD),
        )
        for user_id, username, full_name, role, position in SEED_ACCOUNTS
    ]


def bootstrap(store: KeyValueStore) -> None:
    """
    Seed an empty store.

    - No users collection: write the three seed accounts
    - No settings: write the defaults
    Existing data is never touched.
    """
    activity_log = ActivityLog(store)
    users = UserRepository(store, activity_log)
    settings = SettingsRepository(store, activity_log)

    if not users.is_seeded():
        users.seed(seed_users())
        logger.info("Seeded %d user accounts", len(SEED_ACCOUNTS))

    if not settings.is_saved():
        settings.save(SystemSettings())
        logger.info("Saved default system settings")

"""Pytest configuration and shared fixtures."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from letterflow.database import Base, get_db
from letterflow.models.domain import Letter, LetterRecipient, SystemSettings
from letterflow.models.enums import RecipientRole
from letterflow.models.store import KeyValueEntry
from letterflow.services.activity_log import ActivityLog
from letterflow.services.bootstrap import seed_users
from letterflow.services.letters import LetterRepository
from letterflow.services.settings import SettingsRepository
from letterflow.services.store import KeyValueStore
from letterflow.services.users import UserRepository


@pytest.fixture(scope="session")
def seed_accounts():
    """Seed accounts hashed once per run - bcrypt is deliberately slow."""
    return seed_users()


@pytest.fixture
def db_session():
    """Create a fresh in-memory database for each test."""
    # StaticPool keeps one connection so TestClient worker threads see the same database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)

    TestingSessionLocal = sessionmaker(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def store(db_session, seed_accounts):
    """A store holding the seed accounts and default settings, as after bootstrap."""
    kv = KeyValueStore(db_session)
    activity_log = ActivityLog(kv)
    UserRepository(kv, activity_log).seed(seed_accounts)
    SettingsRepository(kv, activity_log).save(SystemSettings())
    return kv


@pytest.fixture
def activity_log(store):
    return ActivityLog(store)


@pytest.fixture
def users(store, activity_log):
    return UserRepository(store, activity_log)


@pytest.fixture
def letters(store, activity_log):
    return LetterRepository(store, activity_log)


@pytest.fixture
def admin(users):
    return users.get("1")


@pytest.fixture
def manager(users):
    return users.get("2")


@pytest.fixture
def employee(users):
    return users.get("3")


@pytest.fixture
def sample_letter(admin, manager, employee):
    """Unsaved letter from the admin: manager signs, employee gets a copy."""
    return Letter(
        subject="Budget request Q3",
        content="Please approve the attached budget.",
        sender_id=admin.id,
        sender_name=admin.full_name,
        recipients=[
            LetterRecipient(user_id=manager.id, user_name=manager.full_name, role=RecipientRole.SIGNER),
            LetterRecipient(user_id=employee.id, user_name=employee.full_name, role=RecipientRole.VIEWER),
        ]
    )


@pytest.fixture
def client(db_session, store):
    """API client bound to the test database."""
    from letterflow.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()

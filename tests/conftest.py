"""
Configuração compartilhada dos testes: SQLite local, DEV_MODE, sem Redis
(guard do LLM em memória) e sem rate limit por IP.
"""
import os

os.environ["DATABASE_URL"] = "sqlite:///./test_hydrate.db"
os.environ["DEV_MODE"] = "true"
os.environ["REDIS_URL"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["WORKER_SECRET"] = ""
os.environ["ADMIN_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ["SECRET_KEY"] = "test-secret-key-0123456789abcdef0123456789abcdef"

import pytest
from uuid import UUID
from app.database import Base, SessionLocal, engine
from app.middleware import llm_guard
from app.models import User, UserSettings

TEST_USER_ID = UUID("00000000-0000-0000-0000-0000000000aa")

# Base64 válido e longo o bastante para passar em clean_base64
FAKE_IMAGE_B64 = "iVBORw0KGgo" + "A" * 200 + "="


@pytest.fixture(scope="function")
def db_session():
    """Banco limpo por teste."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_llm_guard():
    llm_guard.reset_memory_state()
    yield
    llm_guard.reset_memory_state()


@pytest.fixture
def test_user(db_session):
    """Usuário em America/New_York com configurações padrão."""
    user = User(id=TEST_USER_ID, email="user@example.com", name="Test User")
    db_session.add(user)
    db_session.add(UserSettings(
        user_id=TEST_USER_ID,
        daily_goal=64,
        hand_size="medium",
        sip_size="medium",
        water_unit="oz",
        timezone="America/New_York",
        image_uploads_today=0,
        text_descriptions_today=0,
        manual_adds_today=0,
    ))
    db_session.commit()
    return user


@pytest.fixture
def user_id(test_user):
    return test_user.id


@pytest.fixture
def image_b64():
    return FAKE_IMAGE_B64

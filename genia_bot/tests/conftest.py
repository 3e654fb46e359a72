# tests/conftest.py
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registra las tablas en Base.metadata
from app.models import User, UserAction, ACTION_WHATSAPP_MESSAGE
from app.routers import whatsapp, billing, clones
from app.services.cache_service import CacheService
from app.services.clone_service import StubCloneResponder, get_clone_responder
from app.services.whatsapp_service import get_whatsapp_service
from config.settings import settings
from database.connection import Base, get_db


class FakeWhatsApp:
    """Reemplazo de WhatsAppService que guarda los envíos en memoria."""

    def __init__(self):
        self.sent = []

    async def send_message(self, to_number, body):
        self.sent.append((to_number, body))
        return {"id": f"SM{len(self.sent):032d}", "status": "queued"}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
def twilio_token_env():
    return "test_auth_token_123"


@pytest.fixture(autouse=True)
def setup_test_settings(monkeypatch, twilio_token_env):
    """Setup automático para cada test: credenciales falsas y URLs conocidas."""
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", twilio_token_env)
    monkeypatch.setattr(settings, "TWILIO_WHATSAPP_NUMBER", "+14155238886")
    monkeypatch.setattr(settings, "DISABLE_WEBHOOK_VALIDATION", False)
    monkeypatch.setattr(settings, "REGISTER_URL", "https://genia.app/register")
    monkeypatch.setattr(settings, "SUBSCRIPTION_URL", "https://genia.app/subscription")
    monkeypatch.setattr(settings, "CLONE_AI_ENABLED", False)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_whatsapp():
    return FakeWhatsApp()


@pytest.fixture
def locks():
    return CacheService(None)


@pytest.fixture
def make_user(db):
    def _make(phone="+15551234567", plan="free", credits=10, **kwargs):
        user = User(phone_number=phone, plan=plan, credits=credits, **kwargs)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def add_actions(db):
    def _add(user, count, days_ago=1, action_type=ACTION_WHATSAPP_MESSAGE):
        when = datetime.now(timezone.utc) - timedelta(days=days_ago)
        for _ in range(count):
            db.add(UserAction(user_id=user.id, action_type=action_type, clone_type="content", created_at=when))
        db.commit()
    return _add


@pytest.fixture
def app(db, fake_whatsapp):
    """Aplicación FastAPI de test con BD en memoria y WhatsApp falso."""
    app = FastAPI()
    app.state.limiter = whatsapp.limiter
    app.include_router(whatsapp.router, prefix="/webhook")
    app.include_router(billing.router, prefix="/api")
    app.include_router(clones.router, prefix="/api")

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_whatsapp_service] = lambda: fake_whatsapp
    app.dependency_overrides[get_clone_responder] = lambda: StubCloneResponder()
    return app


@pytest.fixture
def client(app):
    return TestClient(app)

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from voicebridge.backend import gcp_auth, web
from voicebridge.backend.storage import InMemoryStore


VERIFICATION_CODE = "123456"
NOW = datetime(2024, 5, 15, 14, 30, tzinfo=timezone.utc)  # a Wednesday


@pytest.fixture(autouse=True)
def fast_accounts(monkeypatch):
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("VOICEBRIDGE_DEV_VERIFICATION_CODE", VERIFICATION_CODE)
    for name in (
        "GEMINI_API_KEY",
        "GOOGLE_VERTEX_AI_API_KEY",
        "GOOGLE_APPLICATION_CREDENTIALS",
        "GOOGLE_APPLICATION_CREDENTIALS_B64",
        "GOOGLE_APPLICATION_CREDENTIALS_JSON",
        "OPENAI_API_KEY",
        "ELEVENLABS_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    gcp_auth.get_gcp_credentials.cache_clear()
    yield
    gcp_auth.get_gcp_credentials.cache_clear()


@pytest.fixture
def store(monkeypatch):
    memory = InMemoryStore()
    monkeypatch.setattr(web, "store", memory)
    return memory


@pytest.fixture
def client(store):
    with TestClient(web.app) as test_client:
        yield test_client


@pytest.fixture
def user(store):
    return store.create_user(
        email="ada@example.com",
        password_hash="not-a-real-hash",
        name="Ada",
        is_email_verified=True,
    )


def add_session(store, user_id, created_at, **values):
    values.setdefault("target_text", "The quick brown fox")
    return store.create_therapy_session(user_id, created_at=created_at, **values)


def days_ago(days, hours=0):
    return NOW - timedelta(days=days, hours=hours)

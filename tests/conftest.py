import asyncio
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

_tmpdir = Path(tempfile.mkdtemp(prefix="jamspot-tests-"))
APP_DB = _tmpdir / "app.db"

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{APP_DB}"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("AWS_S3_BUCKET_NAME", "media")
os.environ.setdefault("AWS_S3_ENDPOINT_URL", "http://minio.test:9000")
os.environ.setdefault("AWS_S3_REGION", "us-east-1")
os.environ.setdefault("PLACES_API_KEY", "test-key")

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from core.database import build_engine  # noqa: E402
from models.base import Base  # noqa: E402
from models import account, chat, connection_request  # noqa: E402,F401
from models.user import User  # noqa: E402

NYC = {"latitude": 40.70, "longitude": -74.00}


class FakeMinio:
    """Stands in for the MinIO client: keeps objects in a dict."""

    def __init__(self):
        self.objects = {}

    def put_object(self, bucket, key, data, length, content_type=None):
        self.objects[(bucket, key)] = (data.read(), content_type)

    def remove_object(self, bucket, key):
        self.objects.pop((bucket, key), None)


@pytest.fixture
def fake_s3(monkeypatch):
    import utils.s3

    fake = FakeMinio()
    monkeypatch.setattr(utils.s3, "_s3", fake)
    return fake


@pytest.fixture
def session_factory(tmp_path):
    """async_sessionmaker bound to a fresh SQLite file for this test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async def create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create())
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    yield factory
    asyncio.run(engine.dispose())


@pytest.fixture
def run_db(session_factory):
    """Run ``scenario(db)`` to completion and return its result."""

    def runner(scenario):
        async def main():
            async with session_factory() as db:
                return await scenario(db)

        return asyncio.run(main())

    return runner


def build_user(user_id, **fields):
    """Transient profile with sensible defaults."""
    defaults = dict(
        id=user_id,
        name=user_id.title(),
        instrument="Guitar",
        genres=["Rock"],
        skill_level="Intermediate",
        bio="",
        location=dict(NYC),
        visibility=True,
        image_gallery=[],
        video_clips=[],
        audio_clips=[],
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    defaults.update(fields)
    return User(**defaults)


async def add_users(db, *users):
    for user in users:
        db.add(user)
    await db.commit()
    return users


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    if APP_DB.exists():
        APP_DB.unlink()

    from main import app

    with TestClient(app) as test_client:
        yield test_client


def signup(client, email, password="secret123"):
    resp = client.post("/auth/signup", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body["user_id"]


def save_profile(client, headers, **fields):
    payload = {
        "name": "Player",
        "instrument": "Guitar",
        "genres": ["Rock"],
        "skill_level": "Intermediate",
        "bio": "",
        "location": {"location": "New York, NY, USA", "coords": {"lat": 40.70, "lng": -74.00}, "place_id": "nyc"},
    }
    payload.update(fields)
    resp = client.put("/users/me", json=payload, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


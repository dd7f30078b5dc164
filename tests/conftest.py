from __future__ import annotations

import os
import tempfile
import uuid

# Settings are read once at import; point them at throwaway local resources.
_TMP = tempfile.mkdtemp(prefix="vidtube-tests-")
os.environ.setdefault("VIDTUBE_DB_URL_OVERRIDE", f"sqlite+aiosqlite:///{_TMP}/default.db")
os.environ.setdefault("VIDTUBE_COOKIE_SECURE", "false")
os.environ.setdefault("VIDTUBE_COOKIE_SAMESITE", "lax")
os.environ.setdefault("VIDTUBE_CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("VIDTUBE_UPLOAD_TMP_DIR", os.path.join(_TMP, "uploads"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from vidtube.core.database import build_engine, get_db, init_db
from vidtube.core.security import hash_password
from vidtube.models.models import MediaKind, User, Video
from vidtube.services.media.storage import UploadResult, get_media_storage

API = "/api/v1"

# bcrypt is slow on purpose; hash the shared fixture password once.
PASSWORD = "s3cret-pass"
PASSWORD_HASH = hash_password(PASSWORD)


class FakeMediaStorage:
    def __init__(self):
        self.uploads = []
        self.deleted = []

    async def upload(self, upload, kind, folder):
        await upload.read()
        public_id = f"{folder}/{uuid.uuid4().hex}"
        self.uploads.append(public_id)
        duration = 42.0 if kind is MediaKind.VIDEO else 0.0
        return UploadResult(url=f"http://media.test/{public_id}", public_id=public_id, duration=duration)

    async def delete(self, public_id):
        self.deleted.append(public_id)


class DummyTask:
    def __init__(self):
        self.payloads = []

    def delay(self, payload):
        self.payloads.append(payload)


def _engine(tmp_path):
    return build_engine(f"sqlite+aiosqlite:///{tmp_path / 'vidtube.db'}", poolclass=NullPool)


# ── Service-level fixtures ───────────────────────────────────────────────

@pytest.fixture()
async def db_engine(tmp_path):
    engine = _engine(tmp_path)
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def purge_task(monkeypatch):
    task = DummyTask()
    monkeypatch.setattr("vidtube.workers.tasks.purge_media_task", task)
    return task


async def make_user(db, username: str) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        full_name=username.title(),
        hashed_password=PASSWORD_HASH,
        avatar_url=f"http://media.test/avatars/{username}",
        avatar_public_id=f"avatars/{username}",
    )
    db.add(user)
    await db.commit()
    return user


async def make_video(db, owner: User, title: str = "A video", published: bool = True, **extra) -> Video:
    video = Video(
        owner_id=owner.id,
        title=title,
        description=extra.pop("description", f"About {title}"),
        video_file_url="http://media.test/videos/x.mp4",
        video_file_public_id=f"videos/{uuid.uuid4().hex}",
        thumbnail_url="http://media.test/thumbnails/x.png",
        thumbnail_public_id=f"thumbnails/{uuid.uuid4().hex}",
        duration=extra.pop("duration", 10.0),
        is_published=published,
        **extra,
    )
    db.add(video)
    await db.commit()
    return video


# ── API fixtures ─────────────────────────────────────────────────────────

@pytest.fixture()
def api(tmp_path, monkeypatch):
    from vidtube.main import app

    engine = _engine(tmp_path)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    storage = FakeMediaStorage()
    task = DummyTask()

    async def fake_init_db():
        await init_db(bind=engine)

    async def fake_dispose_db():
        await engine.dispose()

    async def override_get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    monkeypatch.setattr("vidtube.main.init_db", fake_init_db)
    monkeypatch.setattr("vidtube.main.dispose_db", fake_dispose_db)
    monkeypatch.setattr("vidtube.workers.tasks.purge_media_task", task)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_media_storage] = lambda: storage

    with TestClient(app) as client:
        yield {"client": client, "storage": storage, "task": task}

    app.dependency_overrides.clear()


def register(client, username: str, password: str = PASSWORD, cover: bool = False):
    files = {"avatar": ("avatar.png", b"\x89PNG avatar", "image/png")}
    if cover:
        files["coverImage"] = ("cover.png", b"\x89PNG cover", "image/png")
    return client.post(
        f"{API}/users/register",
        data={
            "fullName": username.title(),
            "email": f"{username}@example.com",
            "username": username,
            "password": password,
        },
        files=files,
    )


def login(client, username: str, password: str = PASSWORD) -> dict:
    """Log in and return bearer headers; cookies are dropped so headers decide the actor."""
    resp = client.post(f"{API}/users/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['data']['accessToken']}"}


def signup(client, username: str) -> tuple:
    """Register + log in; returns (user_id, headers)."""
    resp = register(client, username)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["id"], login(client, username)


def publish(client, headers, title: str = "Clip", description: str = "A short clip"):
    resp = client.post(
        f"{API}/videos",
        data={"title": title, "description": description},
        files={
            "videoFile": ("clip.mp4", b"fake-mp4-bytes", "video/mp4"),
            "thumbnail": ("thumb.png", b"\x89PNG thumb", "image/png"),
        },
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]

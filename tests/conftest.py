import os
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

os.environ.setdefault("ENV", "dev")
os.environ["DATABASE_DSN"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_MANAGE"] = "migrations"
os.environ["EVENT_BUS_PROVIDER"] = "noop"
os.environ["MEDIA_PROVIDER"] = "null"
os.environ.pop("PUBLIC_BASE_URL", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from lms_media.main import app
from lms_media.core.base import Base
from lms_media.core.db import get_session
from lms_media.core.errors import UpstreamFetchError
from lms_media.core.security import create_token, default_org_id
from lms_media.platform.adapters.flags_settings import SettingsFeatureFlags
from lms_media.platform.provider_registry import get_media_provider, get_feature_flags, get_event_bus
from lms_media.modules.directory.context import ContextRef
from lms_media.modules.directory.models import User, Course, Group, Enrollment, GroupMembership, RoleOverride
from lms_media.modules.files.models import Attachment, MediaTrack
from lms_media.modules.media.models import MediaObject

ORG = default_org_id()
API = "/api/v1"


class FakeStream:
    def __init__(self, body: bytes, headers: dict):
        self.body = body
        self.headers = headers
        self.closed = False

    async def aiter_bytes(self):
        yield self.body

    async def aclose(self):
        self.closed = True


class FakeProvider:
    """In-memory media provider: sources per media id, bodies per url."""

    def __init__(self):
        self.sources: dict[str, list[dict]] = {}
        self.assets: set[str] = set()
        self.bodies: dict[str, bytes] = {}
        self.failures: dict[str, int] = {}
        self.streams: list[FakeStream] = []
        self.opened: list[str] = []

    async def list_sources(self, media_id):
        return list(self.sources.get(media_id, []))

    def thumbnail_url(self, media_id, width, height):
        return f"https://media.example.test/entries/{media_id}/thumbnail?width={width}&height={height}"

    async def asset_exists(self, media_id):
        return media_id in self.assets

    async def open_stream(self, url):
        if url in self.failures:
            raise UpstreamFetchError(self.failures[url], "error fetching url")
        self.opened.append(url)
        stream = FakeStream(self.bodies.get(url, b""), {"content-type": "video/mp4"})
        self.streams.append(stream)
        return stream


class FakeBus:
    def __init__(self):
        self.events: list[dict] = []

    async def publish(self, topic, key, value, headers=None):
        self.events.append(value)

    @property
    def types(self) -> list[str]:
        return [e["event_type"] for e in self.events]


class Seed:
    """Writes fixture rows through a sync session, one minute apart."""

    def __init__(self, session: Session):
        self.session = session
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def add(self, obj):
        self._clock += timedelta(minutes=1)
        obj.org_id = ORG
        obj.created_at = self._clock
        obj.updated_at = self._clock
        self.session.add(obj)
        self.session.commit()
        return obj

    def user(self, name: str = "user") -> User:
        return self.add(User(display_name=name))

    def course(self, name: str = "Biology 101") -> Course:
        return self.add(Course(name=name))

    def group(self, course: Course | None = None, name: str = "Lab group") -> Group:
        return self.add(Group(name=name, course_id=course.id if course else None))

    def enroll(self, user: User, course: Course, role: str = "student") -> Enrollment:
        return self.add(Enrollment(user_id=user.id, course_id=course.id, role=role))

    def member(self, user: User, group: Group) -> GroupMembership:
        return self.add(GroupMembership(user_id=user.id, group_id=group.id))

    def override(self, course: Course, role: str, permission: str, enabled: bool = False) -> RoleOverride:
        return self.add(RoleOverride(course_id=course.id, role=role, permission=permission, enabled=enabled))

    def attachment(
        self,
        context: ContextRef,
        media_id: str | None,
        *,
        user: User | None = None,
        filename: str = "lecture.mp4",
        content_type: str = "video/mp4",
        **extra,
    ) -> Attachment:
        return self.add(Attachment(
            context_type=context.kind.value,
            context_id=context.id,
            user_id=user.id if user else None,
            filename=filename,
            content_type=content_type,
            media_entry_id=media_id,
            **extra,
        ))

    def media_object(
        self,
        context: ContextRef,
        media_id: str,
        *,
        user: User | None = None,
        title: str | None = None,
        user_entered_title: str | None = None,
        attachment: Attachment | None = None,
        media_type: str = "video",
        workflow_state: str = "active",
    ) -> MediaObject:
        mo = MediaObject(
            media_id=media_id,
            title=title,
            user_entered_title=user_entered_title,
            media_type=media_type,
            workflow_state=workflow_state,
            user_id=user.id if user else None,
            attachment_id=attachment.id if attachment else None,
        )
        mo.context = context
        return self.add(mo)

    def track(self, attachment: Attachment, locale: str, content: str, kind: str = "subtitles") -> MediaTrack:
        return self.add(MediaTrack(attachment_id=attachment.id, locale=locale, content=content, kind=kind))

    def media_objects(self) -> list[MediaObject]:
        self.session.expire_all()
        return list(self.session.scalars(select(MediaObject)).all())


def auth(user: User) -> dict:
    return {"Authorization": f"Bearer {create_token(user.id, ORG)}"}


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "media.db"


@pytest.fixture()
def seed(db_path: Path):
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    session = Session(engine, expire_on_commit=False)
    try:
        yield Seed(session)
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def flags() -> SettingsFeatureFlags:
    return SettingsFeatureFlags(set())


@pytest.fixture()
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture()
def sessions(seed: Seed, db_path: Path) -> async_sessionmaker:
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture()
def client(sessions: async_sessionmaker, provider: FakeProvider, flags: SettingsFeatureFlags, bus: FakeBus):
    async def _session():
        async with sessions() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_media_provider] = lambda: provider
    app.dependency_overrides[get_feature_flags] = lambda: flags
    app.dependency_overrides[get_event_bus] = lambda: bus
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()

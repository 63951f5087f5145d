# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from canopy.api.v1.dependencies import get_settings as app_get_settings
from canopy.core.settings import Settings
from canopy.db.session import Base, configure_sqlite
from canopy.db.session import get_db as app_get_session
from canopy.main import app as fastapi_app
from canopy.models import ContentNode, NodeKind, NodeStatus
from canopy.repositories.node_repo import NodeRepository
from canopy.schemas.author import THROTTLE_CAPABILITY, Actor, AnonymousAuthor, RegisteredAuthor
from canopy.services.aggregation import AggregationEngine
from canopy.services.locks import NodeLockRegistry

TEST_DB_URL = "sqlite://"
BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def at(minutes: int) -> datetime:
    """Return a timestamp ``minutes`` after the fixed test epoch."""
    return BASE_TIME + timedelta(minutes=minutes)


def member(user_id: int, *, exempt: bool = False) -> Actor:
    """Build a registered actor, optionally throttle-exempt."""
    capabilities = frozenset({THROTTLE_CAPABILITY}) if exempt else frozenset()
    return Actor(author=RegisteredAuthor(user_id=user_id), capabilities=capabilities)


def guest(name: str = "Guest", address: str = "203.0.113.7", **extra: str) -> Actor:
    """Build an anonymous actor posting from ``address``."""
    return Actor(
        author=AnonymousAuthor(
            name=name,
            email=extra.get("email", f"{name.lower()}@example.com"),
            website=extra.get("website"),
            origin_address=address,
        )
    )


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = configure_sqlite(
        create_engine(
            TEST_DB_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    # Session commits become savepoint releases; the outer transaction is
    # rolled back after the test.
    session = Session(
        bind=connection,
        autoflush=False,
        join_transaction_mode="create_savepoint",
    )

    try:
        yield session
    finally:
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with flood control disabled so tests can post back to back."""
    return Settings(
        throttle_time_seconds=0,
        throttle_exempt_user_ids=[99],
        duplicate_window_seconds=0,
        subscriptions_enabled=True,
    )


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(app: FastAPI, db_session: Session, test_settings: Settings) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[app_get_settings] = lambda: test_settings
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(app_get_settings, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def repo(db_session: Session) -> NodeRepository:
    return NodeRepository(db_session)


@pytest.fixture()
def locks() -> NodeLockRegistry:
    return NodeLockRegistry()


@pytest.fixture()
def engine_service(repo: NodeRepository, locks: NodeLockRegistry) -> AggregationEngine:
    """Aggregation engine over the test session."""
    return AggregationEngine(repo, locks)


@pytest.fixture()
def make_node(repo: NodeRepository) -> Callable[..., ContentNode]:
    """Return a factory creating nodes with strictly increasing creation times.

    Pass ``minutes`` to pin the creation time explicitly.
    """
    clock = count(1)

    def _make(
        kind: NodeKind,
        parent: ContentNode | None = None,
        *,
        author_user_id: int | None = None,
        status: NodeStatus = NodeStatus.PUBLISHED,
        minutes: int | None = None,
        content: str | None = None,
    ) -> ContentNode:
        tick = next(clock)
        offset = tick if minutes is None else minutes
        return repo.create_node(
            kind=kind,
            parent_id=parent.id if parent is not None else None,
            title=f"{kind.value} {tick}",
            content=content if content is not None else f"{kind.value} body {tick}",
            author_user_id=author_user_id,
            status=status,
            created_at=at(offset),
        )

    return _make


@pytest.fixture()
def forum(make_node: Callable[..., ContentNode]) -> ContentNode:
    """Create a root forum."""
    return make_node(NodeKind.FORUM, minutes=0)


@pytest.fixture()
def topic(make_node: Callable[..., ContentNode], forum: ContentNode) -> ContentNode:
    """Create a topic in the root forum at minute 0."""
    return make_node(NodeKind.TOPIC, forum, author_user_id=1, minutes=0)

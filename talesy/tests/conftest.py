import os

# Must be set before talesy.config is imported
os.environ["TESTING"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EMAIL_DELIVERY"] = "queue"
os.environ.pop("RESEND_API_KEY", None)

import itertools
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from talesy.db.session import Database
from talesy.main import create_app
from talesy.models.post import Post, PostStatus
from talesy.models.user import User
from talesy.services.notification_service import NotificationDispatcher

@pytest.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """A fresh SQLite database file per test"""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'talesy_test.db'}")
    await db.create_all()
    yield db
    await db.drop_all()
    await db.dispose()

@pytest.fixture
async def test_db(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    async with database.session_factory() as session:
        yield session

@pytest.fixture
async def test_client(database: Database) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app using the test database"""
    app = create_app(database)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

@pytest.fixture(autouse=True)
def email_task():
    """The Celery email task, never reaching a broker"""
    with patch("talesy.services.notification_service.send_template_email_task") as task:
        yield task

@pytest.fixture
def email_sender() -> AsyncMock:
    return AsyncMock(return_value=True)

@pytest.fixture
async def dispatcher(database: Database, email_sender: AsyncMock) -> AsyncGenerator[NotificationDispatcher, None]:
    """Dispatcher sending email inline through a mock"""
    dispatcher = NotificationDispatcher(
        database.session_factory,
        email_delivery="inline",
        email_sender=email_sender
    )
    yield dispatcher
    await dispatcher.drain()

@pytest.fixture
def create_user(test_db: AsyncSession):
    """Factory for users"""
    counter = itertools.count(1)

    async def _create_user(**overrides) -> User:
        n = next(counter)
        data = {
            "name": f"User {n}",
            "username": f"user{n}",
            "email": f"user{n}@example.com",
            "notification_preferences": {},
        }
        data.update(overrides)
        user = User(**data)
        test_db.add(user)
        await test_db.commit()
        await test_db.refresh(user)
        return user

    return _create_user

@pytest.fixture
def create_post(test_db: AsyncSession):
    """Factory for posts, published unless told otherwise"""
    counter = itertools.count(1)

    async def _create_post(author: User, **overrides) -> Post:
        n = next(counter)
        data = {
            "author_id": author.id,
            "title": f"Story {n}",
            "content": f"Once upon a time, number {n}.",
            "status": PostStatus.PUBLISHED.value,
            "tags": [],
        }
        data.update(overrides)
        post = Post(**data)
        test_db.add(post)
        await test_db.commit()
        await test_db.refresh(post)
        return post

    return _create_post

import os

# Must be set before the application modules build their engine and settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from inventory_api.main import app
from inventory_api.database import Base, get_db
from inventory_api.api.deps import get_password_hash, get_notifier, get_audit_recorder, create_access_token
from inventory_api.models.user import User
from inventory_api.models.inventory import InventoryItem
from inventory_api.services.audit_service import AuditRecorder
from inventory_api.services.websocket_manager import ConnectionManager, InventoryNotifier

# Test database URL (SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test_inventory.db"

API_PREFIX = "/api/v1"


class RecordingNotifier(InventoryNotifier):
    """Notifier that keeps every published event instead of sending it."""

    def __init__(self):
        super().__init__(ConnectionManager())
        self.events = []

    async def publish(self, event, payload, room=None):
        self.events.append((event, payload))
        return 0

    def of_type(self, event):
        return [payload for name, payload in self.events if name == event]


@pytest_asyncio.fixture
async def session_factory():
    """Fresh schema per test; yields the session factory bound to it."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


async def _make_user(db: AsyncSession, email: str, password: str, name: str, role: str, is_active=True) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        name=name,
        role=role,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(test_db: AsyncSession):
    """Create a regular (USER role) account."""
    return await _make_user(test_db, "user@example.com", "userpassword123", "Regular User", "USER")


@pytest_asyncio.fixture
async def admin_user(test_db: AsyncSession):
    """Create an ADMIN account."""
    return await _make_user(test_db, "admin@example.com", "adminpassword123", "Admin User", "ADMIN")


@pytest_asyncio.fixture
async def inactive_user(test_db: AsyncSession):
    return await _make_user(test_db, "inactive@example.com", "inactivepass123", "Inactive User", "USER", False)


@pytest_asyncio.fixture
async def make_item(test_db: AsyncSession):
    """Factory fixture inserting an InventoryItem directly."""
    counter = {"n": 0}

    async def _make(**overrides) -> InventoryItem:
        counter["n"] += 1
        data = {
            "sku": f"SKU-{counter['n']:03d}",
            "name": f"Item {counter['n']}",
            "category": "Hardware",
            "location": "Aisle 1",
            "stock_level": 100,
            "min_stock": 20,
            "unit_price": Decimal("10.00"),
        }
        data.update(overrides)
        item = InventoryItem(**data)
        test_db.add(item)
        await test_db.commit()
        await test_db.refresh(item)
        return item

    return _make


@pytest_asyncio.fixture
async def client(test_db: AsyncSession, session_factory, notifier: RecordingNotifier):
    """Create test client with overridden database, notifier and audit writer."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_audit_recorder] = lambda: AuditRecorder(session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(test_user: User) -> dict:
    return auth_headers(test_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_headers(admin_user)

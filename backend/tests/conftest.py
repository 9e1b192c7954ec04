"""Pytest configuration and fixtures."""
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from codemarket.config import settings

# Fast hashing and no rate limiting under test
settings.BCRYPT_ROUNDS = 4

from codemarket.database import Database, get_db  # noqa: E402
from codemarket.rate_limit import limiter  # noqa: E402
from codemarket.models.user import User  # noqa: E402
from codemarket.models.project import Project  # noqa: E402
from codemarket.auth.security import hash_password, create_access_token  # noqa: E402
from codemarket.services.payment_provider import StripePaymentProvider, get_payment_provider  # noqa: E402
from codemarket.services.sandbox import SandboxStorage, get_sandbox  # noqa: E402
from main import app  # noqa: E402

limiter.enabled = False

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_db():
    """Create test database."""
    database = Database(TEST_DATABASE_URL)
    await database.create_all()

    async with database.session_factory() as session:
        yield session

    await database.drop_all()
    await database.dispose()


@pytest.fixture
def provider():
    """Stripe provider; tests patch the stripe SDK calls it makes."""
    return StripePaymentProvider("sk_test_123", webhook_secret="whsec_test", timeout=5.0)


@pytest.fixture
def sandbox_storage(tmp_path):
    return SandboxStorage(str(tmp_path / "sandbox"), run_timeout=5.0)


@pytest.fixture
async def client(test_db, provider, sandbox_storage):
    """Create test client."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_provider] = lambda: provider
    app.dependency_overrides[get_sandbox] = lambda: sandbox_storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_user(db, username, email=None, role="user", **kwargs):
    user = User(
        username=username,
        email=email or f"{username}@example.com",
        password_hash=hash_password("TestPass123"),
        status="active",
        user_role=role,
        **kwargs,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_project(db, author, **kwargs):
    fields = dict(
        title="Task Tracker",
        description="A small task tracking app",
        category="web",
        tags=["react", "productivity"],
        license_type="paid",
        price=Decimal("10.00"),
        seller_price=Decimal("8.00"),
        currency="USD",
        repository_free_url="https://github.com/seller/task-tracker",
        repository_paid_url="https://github.com/seller/task-tracker-pro",
        status="published",
        is_active=True,
        author_id=author.uuid,
    )
    fields.update(kwargs)
    project = Project(**fields)
    db.add(project)
    await db.commit()
    await db.refresh(project)
    return project


def auth_headers(user):
    token = create_access_token(data={"sub": user.uuid, "email": user.email, "role": user.user_role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def seller(test_db):
    return await create_user(test_db, "seller")


@pytest.fixture
async def buyer(test_db):
    return await create_user(test_db, "buyer", stripe_customer_id="cus_buyer")


@pytest.fixture
async def admin_user(test_db):
    return await create_user(test_db, "admin", role="admin")


@pytest.fixture
async def project(test_db, seller):
    """Published paid project priced at 10 USD."""
    return await create_project(test_db, seller)

"""Tests for authentication endpoints."""
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import select

from codemarket.auth.security import create_refresh_token, decode_token
from codemarket.models.user import User
from codemarket.services.oauth import OAuthError, OAuthIdentity, get_github_oauth, get_google_oauth
from main import app
from conftest import auth_headers, create_project, create_user


async def test_register_user(client, test_db):
    """Test user registration."""
    response = await client.post(
        "/api/auth/register",
        json={"username": "newdev", "email": "NewDev@Example.com", "password": "TestPass123"},
    )

    assert response.status_code == 201
    data = response.json()
    assert "access_token" in data
    assert "refresh_token" in data
    assert data["token_type"] == "bearer"

    payload = decode_token(data["access_token"])
    assert payload["type"] == "access"

    result = await test_db.execute(select(User).where(User.username == "newdev"))
    user = result.scalar_one()
    assert user.email == "newdev@example.com"
    assert user.password_hash != "TestPass123"


async def test_register_duplicate_email(client, test_db):
    await create_user(test_db, "existing", email="taken@example.com")

    response = await client.post(
        "/api/auth/register",
        json={"username": "another", "email": "taken@example.com", "password": "TestPass123"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


async def test_register_duplicate_username(client, test_db):
    await create_user(test_db, "existing")

    response = await client.post(
        "/api/auth/register",
        json={"username": "existing", "email": "fresh@example.com", "password": "TestPass123"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Username already taken"


async def test_register_weak_password(client):
    response = await client.post(
        "/api/auth/register",
        json={"username": "weakling", "email": "weak@example.com", "password": "alllowercase1"},
    )

    assert response.status_code == 422


async def test_login_success(client, test_db):
    await create_user(test_db, "loginuser", email="login@example.com")

    response = await client.post(
        "/api/auth/login",
        json={"email": "login@example.com", "password": "TestPass123"},
    )

    assert response.status_code == 200
    assert "access_token" in response.json()


async def test_login_wrong_password(client, test_db):
    await create_user(test_db, "loginuser", email="login@example.com")

    response = await client.post(
        "/api/auth/login",
        json={"email": "login@example.com", "password": "WrongPass123"},
    )

    assert response.status_code == 401


async def test_refresh_token(client, buyer):
    refresh_token = create_refresh_token(data={"sub": buyer.uuid, "email": buyer.email, "role": "user"})

    response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})

    assert response.status_code == 200
    assert decode_token(response.json()["access_token"])["sub"] == buyer.uuid


async def test_refresh_rejects_access_token(client, buyer):
    access_token = auth_headers(buyer)["Authorization"].split(" ", 1)[1]

    response = await client.post("/api/auth/refresh", json={"refresh_token": access_token})

    assert response.status_code == 401


async def test_me_requires_auth(client):
    response = await client.get("/api/auth/me")

    assert response.status_code == 401


async def test_get_and_update_me(client, buyer):
    response = await client.get("/api/auth/me", headers=auth_headers(buyer))
    assert response.status_code == 200
    assert response.json()["username"] == "buyer"
    assert "password_hash" not in response.json()

    response = await client.put(
        "/api/auth/me",
        json={"bio": "Full-stack developer", "skills": ["python", "react"]},
        headers=auth_headers(buyer),
    )

    assert response.status_code == 200
    assert response.json()["bio"] == "Full-stack developer"
    assert response.json()["skills"] == ["python", "react"]


async def test_public_profile_hides_email_and_drafts(client, test_db, seller, project):
    await create_project(test_db, seller, title="Secret Draft", status="draft")

    response = await client.get(f"/api/auth/users/{seller.uuid}")

    assert response.status_code == 200
    data = response.json()
    assert "email" not in data["user"]
    assert [p["title"] for p in data["projects"]] == ["Task Tracker"]


def _oauth_client(identity=None, error=None):
    client = MagicMock()
    client.provider = identity.provider if identity else "github"
    client.authorization_url.return_value = "https://github.com/login/oauth/authorize?state=abc"
    client.fetch_identity = AsyncMock(return_value=identity, side_effect=error)
    return client


async def test_github_login_url(client):
    app.dependency_overrides[get_github_oauth] = lambda: _oauth_client()

    response = await client.get("/api/auth/github/login")

    assert response.status_code == 200
    assert response.json()["authorization_url"].startswith("https://github.com/login/oauth/authorize")
    assert response.json()["state"]


async def test_github_callback_creates_verified_user(client, test_db):
    identity = OAuthIdentity(
        provider="github", provider_id="4242", email="octo@example.com",
        username="octocat", profile_url="https://github.com/octocat",
    )
    app.dependency_overrides[get_github_oauth] = lambda: _oauth_client(identity)

    response = await client.post("/api/auth/github/callback", json={"code": "abc"})

    assert response.status_code == 200
    result = await test_db.execute(select(User).where(User.github_id == "4242"))
    user = result.scalar_one()
    assert user.username == "octocat"
    assert user.is_verified is True
    assert user.password_hash is None
    assert decode_token(response.json()["access_token"])["sub"] == user.uuid


async def test_google_callback_links_existing_account(client, test_db):
    existing = await create_user(test_db, "gmailer", email="gmailer@example.com")
    identity = OAuthIdentity(
        provider="google", provider_id="g-1", email="gmailer@example.com", username="Gmail User",
    )
    app.dependency_overrides[get_google_oauth] = lambda: _oauth_client(identity)

    response = await client.post("/api/auth/google/callback", json={"code": "abc"})

    assert response.status_code == 200
    assert decode_token(response.json()["access_token"])["sub"] == existing.uuid
    await test_db.refresh(existing)
    assert existing.google_id == "g-1"


async def test_oauth_provider_failure(client):
    app.dependency_overrides[get_github_oauth] = lambda: _oauth_client(error=OAuthError("bad code"))

    response = await client.post("/api/auth/github/callback", json={"code": "bad"})

    assert response.status_code == 502

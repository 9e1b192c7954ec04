"""Tests for admin statistics and moderation endpoints."""
from codemarket.auth.security import create_refresh_token
from codemarket.models.license import License
from conftest import auth_headers, create_project


async def test_platform_stats(client, test_db, admin_user, buyer, project):
    test_db.add(License(
        project_id=project.uuid, licensee_id=buyer.uuid, license_type="basic",
        amount=10, payment_status="completed", is_active=True,
    ))
    test_db.add(License(
        project_id=project.uuid, licensee_id=admin_user.uuid, license_type="premium",
        amount=30, payment_status="pending", is_active=False,
    ))
    await test_db.commit()

    response = await client.get("/api/admin/stats", headers=auth_headers(admin_user))

    assert response.status_code == 200
    data = response.json()
    assert data["stats"] == {
        "total_users": 3,
        "total_projects": 1,
        "total_licenses": 2,
        "total_reviews": 0,
        "total_earnings": 10.0,
    }
    assert len(data["recent_users"]) == 3
    assert data["recent_projects"][0]["title"] == "Task Tracker"


async def test_admin_endpoints_require_admin(client, buyer):
    response = await client.get("/api/admin/stats", headers=auth_headers(buyer))
    assert response.status_code == 403

    response = await client.get("/api/admin/users", headers=auth_headers(buyer))
    assert response.status_code == 403


async def test_list_users_search(client, admin_user, seller, buyer):
    response = await client.get("/api/admin/users?search=BUY", headers=auth_headers(admin_user))

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["username"] == "buyer"
    assert data["items"][0]["status"] == "active"


async def test_suspended_user_locked_out(client, admin_user, buyer):
    response = await client.put(
        f"/api/admin/users/{buyer.uuid}",
        json={"status": "suspended"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "suspended"

    response = await client.get("/api/auth/me", headers=auth_headers(buyer))
    assert response.status_code == 403

    response = await client.post(
        "/api/auth/login",
        json={"email": buyer.email, "password": "TestPass123"},
    )
    assert response.status_code == 403

    refresh_token = create_refresh_token(data={"sub": buyer.uuid, "email": buyer.email, "role": "user"})
    response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 403

    response = await client.put(
        f"/api/admin/users/{buyer.uuid}",
        json={"status": "active", "is_verified": True},
        headers=auth_headers(admin_user),
    )
    assert response.json()["status"] == "active"
    assert response.json()["is_verified"] is True

    response = await client.get("/api/auth/me", headers=auth_headers(buyer))
    assert response.status_code == 200


async def test_admin_cannot_suspend_self(client, admin_user):
    response = await client.put(
        f"/api/admin/users/{admin_user.uuid}",
        json={"status": "suspended"},
        headers=auth_headers(admin_user),
    )

    assert response.status_code == 400


async def test_update_user_validation(client, admin_user, buyer):
    response = await client.put(
        f"/api/admin/users/{buyer.uuid}",
        json={"status": "banished"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 422

    response = await client.put(
        "/api/admin/users/missing",
        json={"is_verified": True},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 404


async def test_admin_project_moderation(client, test_db, admin_user, seller, project):
    await create_project(test_db, seller, title="Hidden Draft", status="draft")

    response = await client.get("/api/admin/projects", headers=auth_headers(admin_user))
    assert response.json()["total"] == 2

    response = await client.put(
        f"/api/admin/projects/{project.uuid}",
        json={"is_active": False, "is_featured": True},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert response.json()["is_featured"] is True

    response = await client.get("/api/projects")
    assert response.json()["total"] == 0

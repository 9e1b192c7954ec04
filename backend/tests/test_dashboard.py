"""Tests for the dashboard endpoints."""
from codemarket.models.license import License
from codemarket.models.review import Review
from conftest import auth_headers, create_project, create_user


async def _grant(db, project, user, amount, license_type="basic", payment_status="completed"):
    lic = License(
        project_id=project.uuid,
        licensee_id=user.uuid,
        license_type=license_type,
        view_code=True,
        download_code=amount > 0,
        amount=amount,
        payment_status=payment_status,
        is_active=payment_status == "completed",
    )
    db.add(lic)
    await db.commit()
    return lic


async def _sales(db, project, buyer):
    """Two paid sales, one free grant and one unpaid attempt."""
    await _grant(db, project, buyer, 10)
    await _grant(db, project, await create_user(db, "studio"), 30, license_type="premium")
    await _grant(db, project, await create_user(db, "hobbyist"), 0, license_type="free")
    await _grant(db, project, await create_user(db, "undecided"), 10, payment_status="pending")


async def test_seller_dashboard(client, test_db, seller, buyer, project):
    await create_project(test_db, seller, title="Unfinished", status="draft")
    await _sales(test_db, project, buyer)

    response = await client.get("/api/dashboard", headers=auth_headers(seller))

    assert response.status_code == 200
    data = response.json()
    assert [p["title"] for p in data["published_projects"]] == ["Task Tracker"]
    assert [p["title"] for p in data["draft_projects"]] == ["Unfinished"]

    stats = data["seller_stats"]
    assert stats["total_projects"] == 1
    # 80% of 10 and 30 after the default 20% marketplace fee
    assert stats["total_revenue"] == 32.0
    assert stats["monthly_revenue"] == 32.0
    assert stats["paid_sales"] == 2
    assert stats["free_grants"] == 1

    assert len(data["recent_activity"]) == 3
    assert all(item["message"].endswith("purchased Task Tracker") for item in data["recent_activity"])


async def test_buyer_dashboard_lists_purchases(client, test_db, buyer, project):
    await _grant(test_db, project, buyer, 10)

    response = await client.get("/api/dashboard", headers=auth_headers(buyer))

    data = response.json()
    assert data["seller_stats"]["total_projects"] == 0
    assert [lic["project_id"] for lic in data["purchased_licenses"]] == [project.uuid]


async def test_dashboard_requires_auth(client):
    response = await client.get("/api/dashboard")

    assert response.status_code == 401


async def test_purchase_history(client, test_db, seller, buyer, project):
    game = await create_project(test_db, seller, title="Space Shooter", category="game")
    await _grant(test_db, project, buyer, 10)
    await _grant(test_db, game, buyer, 30, license_type="premium")
    refunded = await create_project(test_db, seller, title="Old Tool", category="tool")
    await _grant(test_db, refunded, buyer, 10, payment_status="refunded")

    response = await client.get("/api/dashboard/purchases", headers=auth_headers(buyer))

    assert response.status_code == 200
    data = response.json()
    assert data["stats"]["total_purchases"] == 2
    assert data["stats"]["total_spent"] == 40.0
    assert data["stats"]["categories_count"] == {"web": 1, "game": 1}
    assert {p["project"]["title"] for p in data["purchases"]} == {"Task Tracker", "Space Shooter"}


async def test_project_analytics(client, test_db, seller, buyer, project):
    await _sales(test_db, project, buyer)
    test_db.add(Review(project_id=project.uuid, reviewer_id=buyer.uuid, rating=4))
    project.views = 50
    await test_db.commit()

    response = await client.get(f"/api/dashboard/project/{project.uuid}/analytics", headers=auth_headers(seller))

    assert response.status_code == 200
    data = response.json()
    assert data["total_licenses"] == 3
    assert data["total_revenue"] == 32.0
    assert data["conversion_rate"] == 6.0
    assert data["average_rating"] == 4.0
    assert len(data["recent_licenses"]) == 3

    months = data["monthly_data"]
    assert len(months) == 6
    assert months[-1]["licenses"] == 3
    assert months[-1]["revenue"] == 32.0
    assert sum(m["licenses"] for m in months[:-1]) == 0


async def test_project_analytics_author_only(client, buyer, project):
    response = await client.get(f"/api/dashboard/project/{project.uuid}/analytics", headers=auth_headers(buyer))
    assert response.status_code == 403

    response = await client.get("/api/dashboard/project/missing/analytics", headers=auth_headers(buyer))
    assert response.status_code == 404

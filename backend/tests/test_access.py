"""Tests for capability access decisions."""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from codemarket.models.license import License
from codemarket.services.access import access_summary, can_access, capability_access


def _user(uuid="user-1"):
    return SimpleNamespace(uuid=uuid)


def _license(**kwargs):
    fields = dict(
        project_id="project-1",
        licensee_id="user-1",
        license_type="basic",
        view_code=True,
        download_code=True,
        commercial_use=False,
        modify=True,
        redistribute=False,
        private_use=True,
        payment_status="completed",
        is_active=True,
        expires_at=None,
    )
    fields.update(kwargs)
    return License(**fields)


def _project(view_code="public", run_app="public", download_code="licensed", author_id="author-1"):
    return SimpleNamespace(
        author_id=author_id,
        access_view_code=view_code,
        access_run_app=run_app,
        access_download_code=download_code,
        access_level=lambda capability: {
            "view_code": view_code,
            "run_app": run_app,
            "download_code": download_code,
        }[capability],
    )


@pytest.mark.parametrize("user", [None, _user()])
@pytest.mark.parametrize("license_obj", [None, "active"])
def test_public_always_allowed(user, license_obj):
    lic = _license() if license_obj else None
    assert can_access("public", user, lic) is True


@pytest.mark.parametrize("user", [None, _user()])
@pytest.mark.parametrize("license_obj", [None, "active"])
def test_private_always_denied(user, license_obj):
    lic = _license() if license_obj else None
    assert can_access("private", user, lic, "view_code") is False


def test_licensed_requires_user_and_license():
    assert can_access("licensed", None, _license()) is False
    assert can_access("licensed", _user(), None) is False
    assert can_access("licensed", _user(), _license()) is True


@pytest.mark.parametrize("status", ["pending", "failed", "refunded"])
def test_licensed_denied_without_completed_payment(status):
    lic = _license(payment_status=status, is_active=status != "refunded" and status != "failed")
    assert can_access("licensed", _user(), lic) is False


def test_licensed_denied_when_inactive():
    assert can_access("licensed", _user(), _license(is_active=False)) is False


def test_licensed_denied_when_expired():
    lic = _license(expires_at=datetime.utcnow() - timedelta(days=1))
    assert can_access("licensed", _user(), lic) is False

    lic = _license(expires_at=datetime.utcnow() + timedelta(days=1))
    assert can_access("licensed", _user(), lic) is True


def test_licensed_checks_permission_flag():
    lic = _license(download_code=False)

    assert can_access("licensed", _user(), lic, "view_code") is True
    assert can_access("licensed", _user(), lic, "download_code") is False


def test_author_bypasses_every_capability():
    project = _project(view_code="private", run_app="private", download_code="private")
    author = _user("author-1")

    assert access_summary(project, author, None) == {
        "view_code": True,
        "run_app": True,
        "download_code": True,
    }


def test_capabilities_are_evaluated_independently():
    project = _project(view_code="public", run_app="licensed", download_code="licensed")
    lic = _license(download_code=False)
    user = _user()

    assert capability_access(project, "view_code", user, lic) is True
    assert capability_access(project, "run_app", user, lic) is True
    assert capability_access(project, "download_code", user, lic) is False


def test_anonymous_visitor_sees_only_public_capabilities():
    project = _project(view_code="public", run_app="licensed", download_code="private")

    assert access_summary(project, None, None) == {
        "view_code": True,
        "run_app": False,
        "download_code": False,
    }

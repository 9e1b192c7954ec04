"""Tests for the license tier policy and resolver."""
import json
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from codemarket.services.licensing import (
    LicensePolicy,
    UnknownLicenseType,
    default_policy,
    load_policy,
    resolve_license,
)


def _project(price="10.00", currency="USD"):
    return SimpleNamespace(price=Decimal(price), currency=currency)


def test_default_tier_prices():
    """Default ladder is 0x, 1x, 3x and 10x the project price."""
    policy = default_policy()
    project = _project("10.00")

    amounts = {name: resolve_license(name, project, policy).amount for name in policy.tier_names}

    assert amounts == {
        "free": Decimal("0.00"),
        "basic": Decimal("10.00"),
        "premium": Decimal("30.00"),
        "enterprise": Decimal("100.00"),
    }


@pytest.mark.parametrize("price", ["0.01", "4.99", "10.00", "1234.56"])
def test_prices_never_decrease_up_the_ladder(price):
    policy = default_policy()
    project = _project(price)

    amounts = [resolve_license(name, project, policy).amount for name in policy.tier_names]

    assert amounts == sorted(amounts)
    assert policy.tier_names == ["free", "basic", "premium", "enterprise"]


def test_permissions_grow_up_the_ladder():
    policy = default_policy()
    project = _project()

    previous = set()
    for name in policy.tier_names:
        granted = {flag for flag, on in resolve_license(name, project, policy).permissions.items() if on}
        assert previous <= granted
        previous = granted


def test_tier_permission_sets():
    policy = default_policy()
    project = _project()

    free = resolve_license("free", project, policy).permissions
    basic = resolve_license("basic", project, policy).permissions
    premium = resolve_license("premium", project, policy).permissions
    enterprise = resolve_license("enterprise", project, policy).permissions

    assert free["view_code"] and not free["download_code"]
    assert basic["download_code"] and basic["modify"] and not basic["commercial_use"]
    assert premium["commercial_use"] and not premium["redistribute"]
    assert enterprise["redistribute"]
    assert all(p["private_use"] for p in (free, basic, premium, enterprise))


def test_unpriced_project_uses_default_base_price():
    policy = default_policy()

    resolved = resolve_license("basic", _project("0"), policy)

    assert resolved.amount == Decimal("10.00")
    assert resolved.amount_cents == 1000
    assert resolved.requires_payment


def test_amount_is_rounded_to_cents():
    policy = LicensePolicy.from_dict({
        "tiers": {"third": {"price_multiplier": "0.333", "permissions": {"view_code": True}}},
    })

    resolved = resolve_license("third", _project("10.00"), policy)

    assert resolved.amount == Decimal("3.33")
    assert resolved.amount_cents == 333


def test_free_tier_needs_no_payment():
    resolved = resolve_license("free", _project("25.00"), default_policy())

    assert resolved.amount == 0
    assert not resolved.requires_payment
    assert resolved.expires_at is None


def test_currency_falls_back_to_policy_default():
    resolved = resolve_license("basic", _project(currency=None), default_policy())

    assert resolved.currency == "USD"


def test_unknown_tier_raises():
    with pytest.raises(UnknownLicenseType):
        resolve_license("platinum", _project(), default_policy())


def test_duration_sets_expiry():
    policy = LicensePolicy.from_dict({
        "tiers": {"trial": {"price_multiplier": 1, "duration_days": 30, "permissions": {"view_code": True}}},
    })
    now = datetime(2026, 1, 1)

    resolved = resolve_license("trial", _project(), policy, now=now)

    assert resolved.expires_at == now + timedelta(days=30)


def test_policy_rejects_unknown_permission_flags():
    with pytest.raises(ValueError):
        LicensePolicy.from_dict({
            "tiers": {"odd": {"price_multiplier": 1, "permissions": {"resell": True}}},
        })


def test_policy_rejects_negative_multiplier():
    with pytest.raises(ValueError):
        LicensePolicy.from_dict({"tiers": {"odd": {"price_multiplier": -1}}})


def test_load_policy_from_file(tmp_path):
    path = tmp_path / "policy.json"
    path.write_text(json.dumps({
        "default_base_price": 5,
        "tiers": {
            "personal": {"price_multiplier": 1, "permissions": {"view_code": True}},
            "team": {"price_multiplier": 4, "permissions": {"view_code": True, "download_code": True}},
        },
    }))

    policy = load_policy(str(path))

    assert policy.tier_names == ["personal", "team"]
    assert resolve_license("team", _project("0"), policy).amount == Decimal("20.00")

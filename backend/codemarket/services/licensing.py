"""License tiers and the resolver that prices them for a project.

Resolution
----------
1. Look the requested tier up in the active :class:`LicensePolicy`.  Unknown
   tiers raise :class:`UnknownLicenseType` before anything touches the
   payment provider.
2. Take the project's offer price as the base price, falling back to the
   policy's ``default_base_price`` when the project has none.
3. Multiply by the tier's ``price_multiplier`` and round to cents.
4. Copy the tier's permission template; grants snapshot it at creation.
5. Derive ``expires_at`` from ``duration_days`` (``None`` = perpetual).

The policy is plain data.  The built-in ladder lives in ``DEFAULT_TIERS``;
deployments can replace it with a JSON file named by ``LICENSE_POLICY_PATH``::

    {
      "default_base_price": 10,
      "tiers": {
        "basic": {"price_multiplier": 1, "permissions": {"view_code": true}}
      }
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from codemarket.config import settings
from codemarket.models.license import PERMISSION_FLAGS

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class UnknownLicenseType(ValueError):
    """Raised when a tier name is not part of the license policy."""


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(value or 0))


def _permission_set(**granted: bool) -> dict[str, bool]:
    perms = {flag: False for flag in PERMISSION_FLAGS}
    perms["private_use"] = True
    perms.update(granted)
    return perms


@dataclass(frozen=True)
class LicenseTier:
    """One rung of the license ladder."""

    name: str
    price_multiplier: Decimal
    permissions: dict[str, bool]
    duration_days: Optional[int] = None

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "LicenseTier":
        unknown = set(data.get("permissions", {})) - set(PERMISSION_FLAGS)
        if unknown:
            raise ValueError(f"Unknown permission flags for tier '{name}': {sorted(unknown)}")
        multiplier = _to_decimal(data.get("price_multiplier", 0))
        if multiplier < 0:
            raise ValueError(f"Tier '{name}' has a negative price multiplier")
        return cls(
            name=name,
            price_multiplier=multiplier,
            permissions=_permission_set(**data.get("permissions", {})),
            duration_days=data.get("duration_days"),
        )


@dataclass(frozen=True)
class LicensePolicy:
    """Tier table plus the fallback base price."""

    tiers: dict[str, LicenseTier]
    default_base_price: Decimal = Decimal("10")
    default_currency: str = "USD"

    def tier(self, license_type: str) -> LicenseTier:
        try:
            return self.tiers[license_type]
        except KeyError:
            raise UnknownLicenseType(license_type) from None

    @property
    def tier_names(self) -> list[str]:
        """Tier names ordered from cheapest to most expensive."""
        return sorted(self.tiers, key=lambda name: self.tiers[name].price_multiplier)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LicensePolicy":
        tiers = {
            name: LicenseTier.from_dict(name, tier_data)
            for name, tier_data in data.get("tiers", {}).items()
        }
        if not tiers:
            raise ValueError("License policy defines no tiers")
        return cls(
            tiers=tiers,
            default_base_price=_to_decimal(data.get("default_base_price", settings.DEFAULT_LICENSE_BASE_PRICE)),
            default_currency=data.get("default_currency", "USD"),
        )


DEFAULT_TIERS: dict[str, dict[str, Any]] = {
    "free": {
        "price_multiplier": 0,
        "permissions": {"view_code": True},
    },
    "basic": {
        "price_multiplier": 1,
        "permissions": {"view_code": True, "download_code": True, "modify": True},
    },
    "premium": {
        "price_multiplier": 3,
        "permissions": {
            "view_code": True, "download_code": True, "modify": True, "commercial_use": True,
        },
    },
    "enterprise": {
        "price_multiplier": 10,
        "permissions": {
            "view_code": True, "download_code": True, "modify": True, "commercial_use": True,
            "redistribute": True,
        },
    },
}


def default_policy() -> LicensePolicy:
    return LicensePolicy.from_dict({
        "default_base_price": settings.DEFAULT_LICENSE_BASE_PRICE,
        "tiers": DEFAULT_TIERS,
    })


def load_policy(path: str) -> LicensePolicy:
    """Read a license policy from a JSON file."""
    with Path(path).open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    policy = LicensePolicy.from_dict(data)
    logger.info(f"Loaded license policy from {path} with tiers {policy.tier_names}")
    return policy


@lru_cache(maxsize=1)
def get_license_policy() -> LicensePolicy:
    """Dependency returning the process-wide license policy."""
    if settings.LICENSE_POLICY_PATH:
        return load_policy(settings.LICENSE_POLICY_PATH)
    return default_policy()


@dataclass
class ResolvedLicense:
    """Concrete price and permission set for one tier on one project."""

    license_type: str
    amount: Decimal
    currency: str
    permissions: dict[str, bool] = field(default_factory=dict)
    expires_at: Optional[datetime] = None

    @property
    def amount_cents(self) -> int:
        return int((self.amount * 100).to_integral_value(rounding=ROUND_HALF_UP))

    @property
    def requires_payment(self) -> bool:
        return self.amount > 0


def resolve_license(
    license_type: str,
    project,
    policy: LicensePolicy,
    now: Optional[datetime] = None,
) -> ResolvedLicense:
    """Price a license tier for a project.

    Parameters
    ----------
    license_type:
        Tier name requested by the buyer.
    project:
        Anything exposing ``price`` and ``currency`` (normally a ``Project``).
    policy:
        Tier table to resolve against.

    Raises
    ------
    UnknownLicenseType
        If ``license_type`` is not one of the policy's tiers.
    """
    tier = policy.tier(license_type)

    base_price = _to_decimal(getattr(project, "price", None))
    if base_price <= 0:
        base_price = policy.default_base_price

    amount = (base_price * tier.price_multiplier).quantize(CENTS, rounding=ROUND_HALF_UP)

    expires_at = None
    if tier.duration_days:
        expires_at = (now or datetime.utcnow()) + timedelta(days=tier.duration_days)

    return ResolvedLicense(
        license_type=tier.name,
        amount=amount,
        currency=getattr(project, "currency", None) or policy.default_currency,
        permissions=dict(tier.permissions),
        expires_at=expires_at,
    )

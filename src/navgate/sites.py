"""Auction sites handled by the login automation, and correlation ids."""

from __future__ import annotations

import secrets
import string
import time
from collections.abc import Callable
from enum import Enum

_BASE36 = string.digits + string.ascii_lowercase


class Site(str, Enum):
    """Supported auction marketplaces."""

    COPART = "copart"
    IAAI = "iaai"

    @property
    def domain(self) -> str:
        return _SITE_INFO[self]["domain"]

    @property
    def login_url(self) -> str:
        return _SITE_INFO[self]["login_url"]

    @property
    def landing_url(self) -> str:
        """Where a successful login should end up."""
        return _SITE_INFO[self]["landing_url"]


_SITE_INFO: dict[Site, dict[str, str]] = {
    Site.COPART: {
        "domain": "copart.com",
        "login_url": "https://www.copart.com/login",
        "landing_url": "https://www.copart.com/member-payments/unpaid-invoices",
    },
    Site.IAAI: {
        "domain": "iaai.com",
        "login_url": "https://login.iaai.com/Identity/Account/Login",
        "landing_url": "https://www.iaai.com/Payment",
    },
}


def domain_for_site(name: str) -> str:
    """Map a site name (``copart`` / ``iaai``) to the gate's domain key.

    Raises:
        ValueError: If *name* is not a supported site.
    """
    return Site(name.strip().lower()).domain


def now_ms() -> int:
    """Wall-clock epoch milliseconds."""
    return int(time.time() * 1000)


def new_correlation_id(clock: Callable[[], int] = now_ms) -> str:
    """Return ``"{epoch_ms}-{9 base36 chars}"`` tagging one login attempt."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{clock()}-{suffix}"

"""navgate: navigation-loop gate for automated auction-site login flows."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("aas-navgate")
except Exception:
    __version__ = "0.0.0"

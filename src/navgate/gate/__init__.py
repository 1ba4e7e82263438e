"""Navigation gate: loop-breaker, per-key locking and user signalling."""

from __future__ import annotations

from navgate.gate.navigation_gate import NavigationGate

__all__ = ["NavigationGate"]

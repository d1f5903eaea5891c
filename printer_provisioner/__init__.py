"""Printer Provisioner (Windows, reconciliation-driven).

Core design goals:
- Declared target state, re-queried from the OS on every run
- Idempotent stages
- Ordered fallback strategies around fragile OS tooling
- Explicit fatal vs. recoverable classification
- One append-only log per printer
"""

__all__ = []

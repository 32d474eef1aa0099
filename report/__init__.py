"""
Report module: durable outcome store + HTTP status surface.

Usage:
    from report import create_store
    store = create_store(enabled=True, db_path="sentinel.db")  # None when disabled
"""

from __future__ import annotations

from report.store import OutcomeStore


def create_store(
    enabled: bool = False,
    db_path: str | None = None,
) -> OutcomeStore | None:
    """Factory: returns an open store, or None when persistence is off."""
    if not enabled:
        return None
    return OutcomeStore(db_path=db_path)

"""Snapshot persistence for ThinkBack."""

from thinkback.database.snapshot_store import (
    NOTES_KEY,
    ONBOARDED_KEY,
    SETTINGS_KEY,
    SnapshotStore,
)

__all__ = ["NOTES_KEY", "ONBOARDED_KEY", "SETTINGS_KEY", "SnapshotStore"]

"""
Error taxonomy for the scheduling engine.
"""

from __future__ import annotations


class PersistenceError(Exception):
    """Base class for load/save failures of collection or catalog documents."""


class TransientPersistenceError(PersistenceError):
    """A load or save failed because of I/O; retrying may succeed."""


class StaleStateError(PersistenceError):
    """
    A save was rejected because the stored document changed since it was loaded.
    """

    def __init__(self, user_id: str, expected_version: int):
        super().__init__(
            f"Collection for user {user_id!r} was modified elsewhere "
            f"(expected version {expected_version}). Reload before saving."
        )
        self.user_id = user_id
        self.expected_version = expected_version


class CatalogLoadError(Exception):
    """The vocabulary catalog could not be loaded; no session can start."""

    def __init__(self, message: str):
        super().__init__(f"{message}. Check the catalog source and call load() again to retry.")


class InvalidSettingsError(ValueError):
    """Collection settings outside their allowed range."""


class SessionStateError(RuntimeError):
    """An operation is not valid in the session's current mode or status."""

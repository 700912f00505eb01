"""Exceptions raised by the sync orchestration layer."""
from connector.exceptions import SyncError


class SyncInProgressError(SyncError):
    """Another sync pass is already running in this process."""


class PersistenceError(Exception):
    """Writing a single entity to the content store failed."""

    def __init__(self, title: str, cause: Exception):
        self.title = title
        self.cause = cause
        super().__init__(f'Failed to sync event "{title}": {cause}')

"""Exceptions raised by the sync engine."""

from __future__ import annotations


class SyncError(Exception):
    """A provider-level failure that aborts that provider's sync run."""


class ProviderConfigError(SyncError):
    """Provider credentials are missing or cannot be decrypted."""


class UnknownSyncTypeError(ValueError):
    def __init__(self, sync_type: str):
        super().__init__(f"Unknown sync type: {sync_type}")
        self.sync_type = sync_type


class IncompleteListingError(SyncError):
    """The remote list could not be walked to its end.

    ``partial`` holds whatever was fetched before the walk stopped.
    """

    def __init__(self, message: str, partial: list[dict]):
        super().__init__(message)
        self.partial = partial

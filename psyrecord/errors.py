"""
Error taxonomy shared by the repository, the form layer and the routes.

Validation problems are collected per field and reported together; remote
failures (database, blob storage) are wrapped so callers can surface one
uniform message without leaking driver details.
"""

from __future__ import annotations

from typing import Any


class PsyRecordError(Exception):
    """Base class for every error raised by this package."""


class ValidationFailed(PsyRecordError):
    """One or more form rules failed. ``errors`` maps field name -> message."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        super().__init__(f"Validation failed for: {', '.join(sorted(self.errors))}")


class NotFoundError(PsyRecordError):
    def __init__(self, resource: str, resource_id: Any):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class PersistenceError(PsyRecordError):
    """The data store rejected or failed a write; the transaction was rolled back."""


class StorageError(PsyRecordError):
    """The blob store could not store, fetch or delete an object."""


class CascadeDeleteError(PsyRecordError):
    """A deletion workflow failed before commit; nothing was removed."""

    def __init__(self, summary: dict[str, Any]):
        self.summary = summary
        super().__init__(f"Deletion workflow '{summary.get('workflow')}' failed")

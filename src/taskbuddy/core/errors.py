# src/taskbuddy/core/errors.py

"""
Error taxonomy.

PermissionDenied and NotFoundPrecondition are raised before any write happens.
StorageFailure may surface in the middle of a multi-write sequence; earlier
writes are not rolled back and callers converge by retrying the same call.
"""

from __future__ import annotations


class BuddyError(Exception):
    """Base class for errors surfaced to callers with a human-readable message."""


class StorageFailure(BuddyError):
    pass


class NotFoundPrecondition(BuddyError):
    pass


class PermissionDenied(BuddyError):
    pass

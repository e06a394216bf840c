"""Exceptions raised by the sync engine."""

from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for every failure surfaced by a sync run."""


class TransportError(SyncError):
    """Network failure, timeout or non-success response from the remote.

    Attributes:
        status_code: HTTP status code if a response was received, None otherwise.
        details: Short diagnostic extracted from the response body, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class MalformedResponseError(SyncError):
    """The remote answered successfully but the body is not usable library data."""


class PushError(TransportError):
    """A push batch was rejected; later batches were not attempted."""

    def __init__(
        self,
        message: str,
        batch: int,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, details=details)
        self.batch = batch


class SyncInProgressError(SyncError):
    """Another sync run already holds the engine."""

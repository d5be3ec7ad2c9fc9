"""
Custom exception classes for the GitLab transfer tool.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from .orchestrator import Phase
    from .reconcile import ReconcileResult


class TransferError(Exception):
    """Base exception for transfer errors."""


class ConfigurationError(TransferError):
    """Raised when required settings are missing or invalid."""


class TrackerConnectionError(TransferError):
    """Raised when a tracker cannot be reached or rejects the credentials."""


class QueryError(TransferError):
    """Raised when a reachable tracker fails a listing or read call."""


class WriteError(TransferError):
    """Raised when a tracker rejects a create or edit call."""


class DataIntegrityError(TransferError):
    """Raised when a collection would hold invalid or duplicate entities."""


class DuplicateKeyError(DataIntegrityError):
    """Raised when two entities of one collection share an IID/ID."""

    def __init__(self, kind: str, key: int) -> None:
        self.kind: str = kind
        self.key: int = key
        super().__init__(f"Duplicate {kind} key {key}")


class StagingError(TransferError):
    """Base class for staging artifact failures."""

    def __init__(self, message: str, path: Path) -> None:
        self.path: Path = path
        super().__init__(message)


class ArtifactMissingError(StagingError):
    """Raised when a staging artifact does not exist."""


class ArtifactMalformedError(StagingError):
    """Raised when a staging artifact cannot be parsed into entities."""

    def __init__(self, message: str, path: Path, kind: str) -> None:
        self.kind: str = kind
        super().__init__(message, path)


class TranslationError(TransferError):
    """Raised when a source IID has no destination counterpart."""


class ReconcileError(TransferError):
    """Raised when a create/edit call aborts a reconciliation pass.

    The partial result holds the items handled before the failure; they
    stay in place at the destination.
    """

    def __init__(self, message: str, *, kind: str, iid: int, partial: ReconcileResult) -> None:
        self.kind: str = kind
        self.iid: int = iid
        self.partial: ReconcileResult = partial
        super().__init__(message)


class PhaseError(TransferError):
    """Raised when a transfer phase fails; the transfer stops there."""

    def __init__(self, phase: Phase, message: str) -> None:
        self.phase: Phase = phase
        super().__init__(f"Phase {phase.value} failed: {message}")

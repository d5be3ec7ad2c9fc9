"""
GitLab Transfer Tool

Transfers the milestones, issues and issue notes of a GitLab project to a
project on another GitLab instance, via human-editable staging files, for
instances that cannot reach each other.
"""

from __future__ import annotations

from .cli import main
from .config import TrackerSettings, TransferConfig
from .exceptions import (
    ArtifactMalformedError,
    ArtifactMissingError,
    DataIntegrityError,
    PhaseError,
    ReconcileError,
    TransferError,
)
from .orchestrator import Phase, Transfer
from .project_data import ProjectData
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "ArtifactMalformedError",
    "ArtifactMissingError",
    "DataIntegrityError",
    "Phase",
    "PhaseError",
    "ProjectData",
    "ReconcileError",
    "TrackerSettings",
    "TransferConfig",
    "Transfer",
    "TransferError",
    "main",
    "setup_logging",
]

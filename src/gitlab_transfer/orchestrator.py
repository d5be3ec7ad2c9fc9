"""Transfer orchestrator that sequences the pull and apply phases.

The Transfer class owns one ProjectData per side and the translation
tables. It:
1. Pulls the source project data and stages it as files
2. Loads staged files on the destination side
3. Replays milestones, issues and notes against the destination project

Transfer Flow
-------------
Source network:

Phase PULL
    - Find the source project by name
    - List users, milestones, issues, then the notes of every issue
      (each query runs only if the previous one succeeded)

Phase STAGE
    - Write the five staging files (see staging.py)

    ... files are moved (or edited) by the operator ...

Destination network:

Phase LOAD
    - Read all five staging files; any missing or malformed file stops
      here, before the destination is touched

Phase RESOLVE_DESTINATION_PROJECT
    - Find the destination project by name

Phase APPLY_MILESTONES
    - Reconcile milestones by IID, building the milestone table
      {source IID: destination milestone ID}

Phase APPLY_ISSUES
    - Reconcile issues by IID; milestone references are rewritten through
      the milestone table; closed issues are closed after creation.
      Builds the issue table {source IID: destination issue ID}

Phase APPLY_NOTES
    - Append every note to the destination issue found through the issue
      table. Not re-runnable: a second run duplicates the notes.

Each phase depends on state produced by the one before it, so phases must
run in this order.

Translation tables are never persisted. When a phase runs in a later
invocation than the one that would have built its table, the table is
rebuilt from the destination items that already carry the staged IIDs.

Error Handling
--------------
Every failure surfaces as a PhaseError naming the phase. Nothing is retried
and nothing is rolled back: the operator inspects the destination, fixes the
input and re-runs the remaining phases (milestones and issues skip what
already exists).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from . import staging
from .exceptions import PhaseError, TransferError
from .project_data import ProjectData
from .reconcile import (
    ReconcileResult,
    rebuild_issue_table,
    rebuild_milestone_table,
    reconcile_issues,
    reconcile_milestones,
)
from .relations import append_notes
from .tracker import GitlabTracker

if TYPE_CHECKING:
    from pathlib import Path

    from .config import TrackerSettings, TransferConfig
    from .models import Project, User
    from .protocols import Tracker

logger = logging.getLogger(__name__)

TrackerFactory = Callable[["TrackerSettings", str], "Tracker"]


class Phase(Enum):
    LIST_SOURCE_USERS = "list-source-users"
    LIST_DESTINATION_USERS = "list-destination-users"
    LIST_SOURCE_PROJECTS = "list-source-projects"
    LIST_DESTINATION_PROJECTS = "list-destination-projects"
    PULL = "pull"
    STAGE = "stage"
    LOAD = "load"
    RESOLVE_DESTINATION_PROJECT = "resolve-destination-project"
    APPLY_MILESTONES = "apply-milestones"
    APPLY_ISSUES = "apply-issues"
    APPLY_NOTES = "apply-notes"


@dataclass
class TransferStats:
    """Statistics collected during a transfer."""

    milestones_pulled: int = 0
    issues_pulled: int = 0
    notes_pulled: int = 0
    milestones_created: int = 0
    milestones_skipped: int = 0
    issues_created: int = 0
    issues_skipped: int = 0
    issues_closed: int = 0
    unresolved_milestone_refs: int = 0
    notes_created: int = 0
    phases_completed: list[Phase] = field(default_factory=list)


def _default_tracker_factory(settings: TrackerSettings, label: str) -> Tracker:
    return GitlabTracker.from_settings(settings, label=label)


class Transfer:
    """Sequences the transfer of one project's data between two GitLab instances.

    Usage:
        transfer = Transfer(config)
        transfer.pull()
        transfer.stage()
        # ... move files ...
        transfer.load()
        transfer.resolve_destination_project()
        transfer.apply_milestones()
        transfer.apply_issues()
        transfer.apply_notes()

    All state lives on the instance and is discarded with it.
    """

    def __init__(self, config: TransferConfig, *, tracker_factory: TrackerFactory | None = None) -> None:
        self.config: TransferConfig = config
        self._tracker_factory: TrackerFactory = tracker_factory or _default_tracker_factory
        self._source_tracker: Tracker | None = None
        self._destination_tracker: Tracker | None = None

        self.source: ProjectData = ProjectData()
        self.destination: ProjectData = ProjectData()
        self.destination_project: Project | None = None

        # Source IID -> destination ID, rebuilt by each apply run
        self.milestone_table: dict[int, int] = {}
        self.issue_table: dict[int, int] = {}
        self.milestone_result: ReconcileResult | None = None
        self.issue_result: ReconcileResult | None = None

        self.stats: TransferStats = TransferStats()

    @contextmanager
    def _phase(self, phase: Phase) -> Iterator[None]:
        start = time.monotonic()
        logger.info(f"==> {phase.value}")
        try:
            yield
        except PhaseError:
            raise
        except TransferError as e:
            logger.error(f"Phase {phase.value} failed: {e}")
            raise PhaseError(phase, str(e)) from e
        self.stats.phases_completed.append(phase)
        logger.info(f"<== {phase.value} ({time.monotonic() - start:.1f}s)")

    @property
    def source_tracker(self) -> Tracker:
        if self._source_tracker is None:
            self.config.source.require("source")
            tracker = self._tracker_factory(self.config.source, "source")
            tracker.connect()
            self._source_tracker = tracker
        return self._source_tracker

    @property
    def destination_tracker(self) -> Tracker:
        if self._destination_tracker is None:
            self.config.destination.require("destination")
            tracker = self._tracker_factory(self.config.destination, "destination")
            tracker.connect()
            self._destination_tracker = tracker
        return self._destination_tracker

    def _require_destination_project(self) -> Project:
        if self.destination_project is None:
            msg = "Destination project not resolved; run setdestproj first"
            raise TransferError(msg)
        return self.destination_project

    # Queries

    def list_users(self, *, destination: bool = False) -> list[User]:
        phase = Phase.LIST_DESTINATION_USERS if destination else Phase.LIST_SOURCE_USERS
        with self._phase(phase):
            tracker = self.destination_tracker if destination else self.source_tracker
            return tracker.list_users()

    def list_projects(self, *, destination: bool = False) -> list[Project]:
        phase = Phase.LIST_DESTINATION_PROJECTS if destination else Phase.LIST_SOURCE_PROJECTS
        with self._phase(phase):
            tracker = self.destination_tracker if destination else self.source_tracker
            return tracker.list_projects()

    # Source side

    def pull(self) -> ProjectData:
        """Read the whole source project into ``self.source``."""
        with self._phase(Phase.PULL):
            tracker = self.source_tracker
            name = self.config.source.project_name or ""
            project = tracker.find_project(name)
            if project is None:
                msg = f"Can't find source project '{name}'"
                raise TransferError(msg)
            logger.info(f"Found source project: {project.name}, ID={project.id}")

            data = ProjectData(project=project)
            data.users = tracker.list_users()
            logger.info(f"Pulled {len(data.users)} users")

            data.milestones.extend(tracker.list_milestones(project.id))
            if not data.milestones:
                logger.info("No milestones in source project")
            logger.info(f"Pulled {len(data.milestones)} milestones")

            data.issues.extend(tracker.list_issues(project.id))
            logger.info(f"Pulled {len(data.issues)} issues")

            for issue in data.issues:
                data.set_issue_notes(issue.iid, tracker.list_notes(project.id, issue.iid))
            logger.info(f"Pulled {data.note_count()} notes on {len(data.issue_notes)} issues")

            self.source = data
            self.stats.milestones_pulled = len(data.milestones)
            self.stats.issues_pulled = len(data.issues)
            self.stats.notes_pulled = data.note_count()
        return self.source

    def stage(self) -> list[Path]:
        """Write the pulled source data to the staging files."""
        with self._phase(Phase.STAGE):
            if self.source.project is None:
                msg = "Nothing pulled yet; run pull first"
                raise TransferError(msg)
            try:
                return staging.save_project_data(self.source, self.config.source_prefix)
            except OSError as e:
                msg = f"Cannot write staging files with prefix {self.config.source_prefix}: {e}"
                raise TransferError(msg) from e

    def pull_and_stage(self) -> list[Path]:
        self.pull()
        return self.stage()

    # Destination side

    def load(self) -> ProjectData:
        """Read the staging files into ``self.destination``."""
        with self._phase(Phase.LOAD):
            self.destination = staging.load_project_data(self.config.destination_prefix)
        return self.destination

    def resolve_destination_project(self) -> Project:
        with self._phase(Phase.RESOLVE_DESTINATION_PROJECT):
            name = self.config.destination.project_name or ""
            project = self.destination_tracker.find_project(name)
            if project is None:
                msg = f"Can't find destination project '{name}'"
                raise TransferError(msg)
            logger.info(f"Found destination project: {project.name}, ID={project.id}")
            self.destination_project = project
        return project

    def apply_milestones(self) -> ReconcileResult:
        with self._phase(Phase.APPLY_MILESTONES):
            project = self._require_destination_project()
            result = reconcile_milestones(self.destination_tracker, project.id, self.destination.milestones)
            self.milestone_result = result
            self.milestone_table = result.translation
            self.stats.milestones_created = len(result.created)
            self.stats.milestones_skipped = len(result.skipped)
        return result

    def apply_issues(self) -> ReconcileResult:
        with self._phase(Phase.APPLY_ISSUES):
            project = self._require_destination_project()
            assignee_id = self.config.require_assignee()
            if not self.milestone_table and self.destination.milestones:
                self.milestone_table = rebuild_milestone_table(
                    self.destination_tracker, project.id, self.destination.milestones
                )
                logger.info(
                    f"Milestones not applied in this run; rebuilt milestone table from destination: "
                    f"{len(self.milestone_table)} of {len(self.destination.milestones)} present"
                )
            result = reconcile_issues(
                self.destination_tracker,
                project.id,
                self.destination.issues,
                self.milestone_table,
                assignee_id,
            )
            self.issue_result = result
            self.issue_table = result.translation
            self.stats.issues_created = len(result.created)
            self.stats.issues_skipped = len(result.skipped)
            self.stats.issues_closed = sum(1 for o in result.outcomes if o.closed)
            self.stats.unresolved_milestone_refs = sum(1 for o in result.outcomes if o.milestone_unresolved)
        return result

    def apply_notes(self) -> int:
        """Append all staged notes; returns the number of notes created."""
        with self._phase(Phase.APPLY_NOTES):
            project = self._require_destination_project()
            if not self.issue_table and self.destination.issues:
                self.issue_table = rebuild_issue_table(self.destination_tracker, project.id, self.destination.issues)
                logger.info(
                    f"Issues not applied in this run; rebuilt issue table from destination: "
                    f"{len(self.issue_table)} of {len(self.destination.issues)} present"
                )
            appended = append_notes(
                self.destination_tracker,
                project.id,
                self.destination.issue_notes,
                self.issue_table,
            )
            self.stats.notes_created += appended.notes_created
        return appended.notes_created

    def apply_all(self) -> TransferStats:
        """Load, resolve and apply everything, in order."""
        self.load()
        self.resolve_destination_project()
        self.apply_milestones()
        self.apply_issues()
        self.apply_notes()
        return self.stats

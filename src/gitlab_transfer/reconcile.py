"""Reconciliation of source milestones and issues against the destination.

For one entity kind, every source item (in IID order) is looked up in a
snapshot of the destination taken once at the start of the pass:

- present (same IID): nothing is created; the existing destination ID is
  recorded in the translation table and the item is reported as skipped;
- absent: the item is created at the destination and the new ID recorded.

This makes milestone and issue replay safe to re-run: a second pass over the
same destination creates nothing and yields the same translation table.

A failing create/edit aborts the rest of the pass. Items created before the
failure stay created; the partial result travels with the ``ReconcileError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, Literal, TypeVar

from .exceptions import ReconcileError, TransferError
from .ordering import issue_collection, milestone_collection
from .relations import build_issue_request, resolve_milestone_id

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from .models import Issue, Milestone
    from .ordering import SortedCollection
    from .protocols import Tracker

logger: logging.Logger = logging.getLogger(__name__)

E = TypeVar("E", "Milestone", "Issue")

Action = Literal["created", "skipped"]


@dataclass
class ReconcileOutcome:
    """What happened to one source item."""

    iid: int
    title: str
    action: Action
    destination_id: int
    milestone_unresolved: bool = False
    closed: bool = False
    """True when the created item was closed after creation."""


@dataclass
class ReconcileResult:
    """Translation table and per-item audit of one reconciliation pass."""

    kind: str
    translation: dict[int, int] = field(default_factory=dict)
    """Source IID -> destination ID."""
    outcomes: list[ReconcileOutcome] = field(default_factory=list)

    @property
    def created(self) -> list[ReconcileOutcome]:
        return [o for o in self.outcomes if o.action == "created"]

    @property
    def skipped(self) -> list[ReconcileOutcome]:
        return [o for o in self.outcomes if o.action == "skipped"]

    def record(self, outcome: ReconcileOutcome) -> None:
        self.translation[outcome.iid] = outcome.destination_id
        self.outcomes.append(outcome)


@dataclass
class _Created(Generic[E]):
    entity: E
    milestone_unresolved: bool = False


def reconcile(
    kind: str,
    source: SortedCollection[E],
    destination: SortedCollection[E],
    create: Callable[[E], _Created[E]],
    close: Callable[[E], None] | None = None,
) -> ReconcileResult:
    """Skip source items present at the destination, create the others.

    Args:
        kind: Entity kind, for logging and errors ("milestone" or "issue")
        source: Source items sorted by IID
        destination: Destination snapshot sorted by IID
        create: Creates one item at the destination and returns it with its new ID
        close: Closes a freshly created destination item whose source item is
            closed; None leaves created items open

    Returns:
        ReconcileResult with the complete translation table

    Raises:
        ReconcileError: If a create/close call fails; remaining items are not attempted.
            An item that was created but could not be closed is already in the
            partial result.
    """
    result = ReconcileResult(kind=kind)

    for item in source:
        existing = destination.find(item.iid)
        if existing is not None:
            result.record(ReconcileOutcome(item.iid, item.title, "skipped", existing.id))
            logger.info(f"Skipping existing {kind}: {item.title} (IID={item.iid}, ID={existing.id})")
            continue

        try:
            created = create(item)
        except TransferError as e:
            logger.error(
                f"Error while creating {kind}: {item.title} (IID={item.iid}); "
                f"{len(result.created)} created and {len(result.skipped)} skipped before the failure"
            )
            msg = f"Failed to create {kind} IID={item.iid}: {e}"
            raise ReconcileError(msg, kind=kind, iid=item.iid, partial=result) from e

        outcome = ReconcileOutcome(
            item.iid,
            item.title,
            "created",
            created.entity.id,
            milestone_unresolved=created.milestone_unresolved,
        )
        result.record(outcome)
        logger.info(f"Created {kind}: {item.title} (IID={item.iid}) -> ID={created.entity.id}")

        if close is not None and item.state == "closed":
            try:
                close(created.entity)
            except TransferError as e:
                logger.error(
                    f"{kind.capitalize()} IID={item.iid} was created as ID={created.entity.id} "
                    "but could not be closed; it stays open at the destination and a re-run will skip it"
                )
                msg = f"Failed to close {kind} IID={item.iid} (created as ID={created.entity.id}): {e}"
                raise ReconcileError(msg, kind=kind, iid=item.iid, partial=result) from e
            outcome.closed = True

    logger.info(f"Final {kind} IID-to-ID mapping: {dict(sorted(result.translation.items()))}")
    return result


def reconcile_milestones(
    tracker: Tracker,
    project_id: int,
    milestones: SortedCollection[Milestone],
) -> ReconcileResult:
    """Create the milestones missing at the destination.

    Closed source milestones are created but left open.
    """
    destination = milestone_collection(tracker.list_milestones(project_id))
    logger.debug(f"Destination project {project_id} has {len(destination)} milestones")

    def create(milestone: Milestone) -> _Created[Milestone]:
        return _Created(tracker.create_milestone(project_id, milestone))

    return reconcile("milestone", milestones, destination, create)


def reconcile_issues(
    tracker: Tracker,
    project_id: int,
    issues: SortedCollection[Issue],
    milestone_table: Mapping[int, int],
    assignee_id: int | None,
) -> ReconcileResult:
    """Create the issues missing at the destination.

    The milestone reference of each created issue is rewritten through the
    milestone table. Closed source issues are closed right after creation.
    """
    destination = issue_collection(tracker.list_issues(project_id))
    logger.debug(f"Destination project {project_id} has {len(destination)} issues")

    def create(issue: Issue) -> _Created[Issue]:
        resolution = resolve_milestone_id(issue, milestone_table)
        request = build_issue_request(issue, resolution.milestone_id, assignee_id)
        return _Created(tracker.create_issue(project_id, request), milestone_unresolved=resolution.unresolved)

    def close(created: Issue) -> None:
        tracker.edit_issue(project_id, created.iid, "close")
        logger.debug(f"Closed destination issue IID={created.iid}")

    return reconcile("issue", issues, destination, create, close)


def rebuild_translation(
    source: SortedCollection[E],
    destination: SortedCollection[E],
) -> dict[int, int]:
    """Translation table for the source items already present at the destination.

    Used when a later phase runs without the reconciliation pass that would
    have produced the table (e.g. issues applied in a separate invocation).
    Nothing is created.
    """
    translation: dict[int, int] = {}
    for item in source:
        existing = destination.find(item.iid)
        if existing is not None:
            translation[item.iid] = existing.id
    return translation


def rebuild_milestone_table(
    tracker: Tracker, project_id: int, milestones: SortedCollection[Milestone]
) -> dict[int, int]:
    return rebuild_translation(milestones, milestone_collection(tracker.list_milestones(project_id)))


def rebuild_issue_table(tracker: Tracker, project_id: int, issues: SortedCollection[Issue]) -> dict[int, int]:
    return rebuild_translation(issues, issue_collection(tracker.list_issues(project_id)))

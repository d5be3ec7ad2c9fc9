"""Rewriting of cross-entity references for the destination.

Source entities reference each other by IID. At the destination those
references must point at destination IDs:

- an issue's milestone IID is translated through the milestone table before
  the issue is created;
- an issue IID owning a note collection is translated through the issue
  table to find the destination issue the notes are appended to.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, NamedTuple

from .exceptions import TransferError, TranslationError
from .protocols import IssueRequest

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .models import Issue, Note
    from .ordering import SortedCollection
    from .protocols import Tracker

logger: logging.Logger = logging.getLogger(__name__)


class MilestoneResolution(NamedTuple):
    """Destination milestone of an issue, if any."""

    milestone_id: int | None
    """Destination milestone ID to send, or None for no milestone."""
    unresolved: bool
    """True when the issue referenced a milestone IID missing from the table."""


class NoteAppendResult(NamedTuple):
    """Result of appending notes to destination issues."""

    notes_created: int
    issues_touched: int


def resolve_milestone_id(issue: Issue, milestone_table: Mapping[int, int]) -> MilestoneResolution:
    """Translate the issue's milestone IID into a destination milestone ID.

    A reference that cannot be translated (e.g. milestones were never
    applied) results in an issue without milestone, and is logged so the
    operator can fix it by hand.
    """
    if issue.milestone_iid is None:
        return MilestoneResolution(None, unresolved=False)

    milestone_id = milestone_table.get(issue.milestone_iid)
    if milestone_id is None:
        logger.warning(
            f"Issue IID={issue.iid} references milestone IID={issue.milestone_iid}, "
            "which has no destination milestone; creating it without milestone"
        )
        return MilestoneResolution(None, unresolved=True)
    return MilestoneResolution(milestone_id, unresolved=False)


def label_string(labels: Iterable[str]) -> str:
    """GitLab's comma-separated label list, sorted for stable requests."""
    return ",".join(sorted(labels))


def build_issue_request(issue: Issue, milestone_id: int | None, assignee_id: int | None) -> IssueRequest:
    return IssueRequest(
        title=issue.title,
        description=issue.description,
        labels=label_string(issue.labels),
        assignee_id=assignee_id,
        milestone_id=milestone_id,
    )


def locate_destination_issues(
    tracker: Tracker,
    project_id: int,
    issue_iids: Iterable[int],
    issue_table: Mapping[int, int],
) -> dict[int, Issue]:
    """Find the destination issue for each source issue IID.

    The destination issues are listed once; each source IID is translated to
    a destination ID through the issue table and matched on that ID.

    Raises:
        TranslationError: If an IID has no translation or its destination issue is gone
    """
    destination_by_id = {issue.id: issue for issue in tracker.list_issues(project_id)}
    located: dict[int, Issue] = {}
    for issue_iid in issue_iids:
        destination_id = issue_table.get(issue_iid)
        if destination_id is None:
            msg = f"Source issue IID={issue_iid} has no destination issue; apply issues first"
            raise TranslationError(msg)
        destination_issue = destination_by_id.get(destination_id)
        if destination_issue is None:
            msg = f"Destination issue ID={destination_id} (source IID={issue_iid}) not found in project {project_id}"
            raise TranslationError(msg)
        located[issue_iid] = destination_issue
    return located


def append_notes(
    tracker: Tracker,
    project_id: int,
    issue_notes: Mapping[int, SortedCollection[Note]],
    issue_table: Mapping[int, int],
) -> NoteAppendResult:
    """Append every note to its destination issue, in note ID order.

    Notes are always appended: existing destination notes are not inspected,
    so running this twice duplicates every note.
    """
    issue_iids = sorted(issue_notes)
    located = locate_destination_issues(tracker, project_id, issue_iids, issue_table)

    notes_created = 0
    for issue_iid in issue_iids:
        notes = issue_notes[issue_iid]
        destination_issue = located[issue_iid]
        for count, note in enumerate(notes, start=1):
            try:
                tracker.create_note(project_id, destination_issue.iid, note.body)
            except TransferError:
                logger.error(
                    f"Failed on note {count}/{len(notes)} (source ID={note.id}) of issue IID={issue_iid}; "
                    f"{notes_created} notes were appended before the failure"
                )
                raise
            notes_created += 1
            logger.debug(
                f"Created note {count}/{len(notes)} (source ID={note.id}) "
                f"on issue IID={issue_iid} -> destination IID={destination_issue.iid}"
            )
        logger.info(f"Appended {len(notes)} notes to destination issue IID={destination_issue.iid}")

    return NoteAppendResult(notes_created=notes_created, issues_touched=len(issue_iids))

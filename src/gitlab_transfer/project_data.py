"""The full data set held for one side of a transfer."""

from __future__ import annotations

from dataclasses import dataclass, field

from .models import Issue, Milestone, Note, Project, User
from .ordering import SortedCollection, issue_collection, milestone_collection, note_collection


@dataclass
class ProjectData:
    """Project, users, milestones, issues and notes of one tracker side.

    Populated either by pulling from a tracker or by loading staged files.
    ``issue_notes`` only has entries for issues with at least one note.
    """

    project: Project | None = None
    users: list[User] = field(default_factory=list)
    milestones: SortedCollection[Milestone] = field(default_factory=milestone_collection)
    issues: SortedCollection[Issue] = field(default_factory=issue_collection)
    issue_notes: dict[int, SortedCollection[Note]] = field(default_factory=dict)

    def set_issue_notes(self, issue_iid: int, notes: list[Note]) -> None:
        """Store the notes of one issue, sorted by ID; empty lists are dropped."""
        collection = note_collection(notes)
        if collection:
            self.issue_notes[issue_iid] = collection
        else:
            self.issue_notes.pop(issue_iid, None)

    def note_count(self) -> int:
        return sum(len(notes) for notes in self.issue_notes.values())

    def sorted_issue_notes(self) -> list[tuple[int, SortedCollection[Note]]]:
        """Note collections keyed by issue IID, ascending."""
        return sorted(self.issue_notes.items())

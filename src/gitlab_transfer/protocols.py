"""Protocol defining the contract of a tracker instance.

The transfer keeps tracker access behind this protocol so that:

- the reconciliation engine and the orchestrator never touch python-gitlab
  objects, only the entities of ``models.py``;
- tests can drive the whole engine against an in-memory tracker.

``GitlabTracker`` in ``tracker.py`` is the production implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Protocol

if TYPE_CHECKING:
    from .models import Issue, Milestone, Note, Project, User

StateAction = Literal["leave", "close"]


@dataclass(frozen=True)
class IssueRequest:
    """Fields sent to the destination when creating an issue.

    ``milestone_id`` is already the destination milestone ID (or None);
    ``labels`` is GitLab's comma-separated label string.
    """

    title: str
    description: str
    labels: str
    assignee_id: int | None
    milestone_id: int | None


class Tracker(Protocol):
    """Operations consumed from one GitLab instance.

    Every method may raise:
        TrackerConnectionError: The instance is unreachable or rejects the token
        QueryError: A listing/read call fails (list_* and find_project)
        WriteError: A create/edit call is rejected (create_*, edit_issue)
    """

    def connect(self) -> None:
        """Authenticate against the instance."""
        ...

    def list_users(self) -> list[User]:
        ...

    def list_projects(self) -> list[Project]:
        ...

    def find_project(self, name: str) -> Project | None:
        """Return the project whose name or full path equals ``name``."""
        ...

    def list_milestones(self, project_id: int) -> list[Milestone]:
        """All milestones of the project, any state. Empty when there are none."""
        ...

    def create_milestone(self, project_id: int, milestone: Milestone) -> Milestone:
        """Create a milestone from the descriptive fields; return it with its new IID/ID."""
        ...

    def list_issues(self, project_id: int) -> list[Issue]:
        """All issues of the project, any state."""
        ...

    def create_issue(self, project_id: int, request: IssueRequest) -> Issue:
        ...

    def edit_issue(self, project_id: int, issue_iid: int, state_action: StateAction) -> None:
        ...

    def list_notes(self, project_id: int, issue_iid: int) -> list[Note]:
        ...

    def create_note(self, project_id: int, issue_iid: int, body: str) -> Note:
        ...

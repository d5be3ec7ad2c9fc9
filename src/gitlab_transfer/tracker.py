"""GitLab tracker access through python-gitlab.

Converts python-gitlab objects into the entities of ``models.py`` and maps
client failures onto the transfer's error kinds:

- authentication or transport failures -> ``TrackerConnectionError``
- failing listing/read calls -> ``QueryError``
- rejected create/edit calls -> ``WriteError``
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import requests
from gitlab.exceptions import GitlabAuthenticationError, GitlabError

from . import gitlab_utils as glu
from .exceptions import QueryError, TrackerConnectionError, TransferError, WriteError
from .models import Issue, Milestone, Note, Project, User, parse_state

if TYPE_CHECKING:
    from gitlab import Gitlab
    from gitlab.v4.objects import Project as GitlabProject
    from gitlab.v4.objects import ProjectIssue as GitlabProjectIssue

    from .config import TrackerSettings
    from .protocols import IssueRequest, StateAction

logger: logging.Logger = logging.getLogger(__name__)


def project_from_gitlab(gitlab_project: Any) -> Project:  # noqa: ANN401 - gitlab has no type stubs
    namespace = getattr(gitlab_project, "namespace", None) or {}
    return Project(
        id=gitlab_project.id,
        name=gitlab_project.name,
        path_with_namespace=getattr(gitlab_project, "path_with_namespace", "") or "",
        namespace=namespace.get("full_path", "") if isinstance(namespace, dict) else str(namespace),
        visibility=getattr(gitlab_project, "visibility", "") or "",
    )


def user_from_gitlab(gitlab_user: Any) -> User:  # noqa: ANN401
    return User(id=gitlab_user.id, name=gitlab_user.name, username=getattr(gitlab_user, "username", "") or "")


def milestone_from_gitlab(gitlab_milestone: Any) -> Milestone:  # noqa: ANN401
    return Milestone(
        iid=gitlab_milestone.iid,
        id=gitlab_milestone.id,
        title=gitlab_milestone.title,
        description=gitlab_milestone.description or "",
        state=parse_state(gitlab_milestone.state),
        due_date=getattr(gitlab_milestone, "due_date", None),
    )


def issue_from_gitlab(gitlab_issue: Any) -> Issue:  # noqa: ANN401
    milestone = getattr(gitlab_issue, "milestone", None)
    return Issue(
        iid=gitlab_issue.iid,
        id=gitlab_issue.id,
        title=gitlab_issue.title,
        description=gitlab_issue.description or "",
        state=parse_state(gitlab_issue.state),
        labels=frozenset(getattr(gitlab_issue, "labels", None) or []),
        milestone_iid=milestone["iid"] if milestone else None,
    )


def note_from_gitlab(gitlab_note: Any, issue_iid: int) -> Note:  # noqa: ANN401
    return Note(
        id=gitlab_note.id,
        issue_iid=issue_iid,
        body=gitlab_note.body or "",
        system=bool(getattr(gitlab_note, "system", False)),
    )


class GitlabTracker:
    """One GitLab instance, accessed with a single token."""

    def __init__(self, client: Gitlab, *, label: str = "gitlab") -> None:
        self.client: Gitlab = client
        self.label: str = label

    @classmethod
    def from_settings(cls, settings: TrackerSettings, *, label: str = "gitlab") -> GitlabTracker:
        client = glu.get_client(settings.url, settings.token, ssl_verify=settings.ssl_verify)
        return cls(client, label=label)

    @contextmanager
    def _reading(self, what: str) -> Iterator[None]:
        try:
            yield
        except TransferError:
            raise
        except GitlabAuthenticationError as e:
            msg = f"{self.label}: authentication failed while {what}: {e}"
            raise TrackerConnectionError(msg) from e
        except requests.exceptions.RequestException as e:
            msg = f"{self.label}: connection failed while {what}: {e}"
            raise TrackerConnectionError(msg) from e
        except GitlabError as e:
            msg = f"{self.label}: error while {what}: {e}"
            raise QueryError(msg) from e

    @contextmanager
    def _writing(self, what: str) -> Iterator[None]:
        try:
            yield
        except GitlabAuthenticationError as e:
            msg = f"{self.label}: authentication failed while {what}: {e}"
            raise TrackerConnectionError(msg) from e
        except requests.exceptions.RequestException as e:
            msg = f"{self.label}: connection failed while {what}: {e}"
            raise TrackerConnectionError(msg) from e
        except GitlabError as e:
            msg = f"{self.label}: error while {what}: {e}"
            raise WriteError(msg) from e

    def _project(self, project_id: int) -> GitlabProject:
        return self.client.projects.get(project_id, lazy=True)

    def _issue(self, project_id: int, issue_iid: int) -> GitlabProjectIssue:
        return self._project(project_id).issues.get(issue_iid, lazy=True)

    def connect(self) -> None:
        if not self.client.private_token:
            logger.debug(f"{self.label}: no token, using anonymous access to {self.client.url}")
            return
        try:
            self.client.auth()
        except (GitlabError, requests.exceptions.RequestException) as e:
            msg = f"{self.label}: cannot connect to {self.client.url}: {e}"
            raise TrackerConnectionError(msg) from e
        logger.info(f"{self.label}: connected to {self.client.url}")

    def list_users(self) -> list[User]:
        with self._reading("listing users"):
            return [user_from_gitlab(u) for u in self.client.users.list(get_all=True)]

    def list_projects(self) -> list[Project]:
        with self._reading("listing projects"):
            return [project_from_gitlab(p) for p in self.client.projects.list(get_all=True, membership=True)]

    def find_project(self, name: str) -> Project | None:
        for project in self.list_projects():
            if name in (project.name, project.path_with_namespace):
                return project
        return None

    def list_milestones(self, project_id: int) -> list[Milestone]:
        with self._reading(f"listing milestones of project {project_id}"):
            milestones = self._project(project_id).milestones.list(get_all=True)
            return [milestone_from_gitlab(m) for m in milestones]

    def create_milestone(self, project_id: int, milestone: Milestone) -> Milestone:
        data: dict[str, Any] = {"title": milestone.title, "description": milestone.description}
        if milestone.due_date:
            data["due_date"] = milestone.due_date
        with self._writing(f"creating milestone '{milestone.title}' (IID={milestone.iid})"):
            created = self._project(project_id).milestones.create(data)
        return milestone_from_gitlab(created)

    def list_issues(self, project_id: int) -> list[Issue]:
        with self._reading(f"listing issues of project {project_id}"):
            issues = self._project(project_id).issues.list(get_all=True, state="all")
            return [issue_from_gitlab(i) for i in issues]

    def create_issue(self, project_id: int, request: IssueRequest) -> Issue:
        data: dict[str, Any] = {
            "title": request.title,
            "description": request.description,
            "labels": request.labels,
        }
        if request.assignee_id is not None:
            data["assignee_ids"] = [request.assignee_id]
        if request.milestone_id is not None:
            data["milestone_id"] = request.milestone_id
        with self._writing(f"creating issue '{request.title}'"):
            created = self._project(project_id).issues.create(data)
        return issue_from_gitlab(created)

    def edit_issue(self, project_id: int, issue_iid: int, state_action: StateAction) -> None:
        if state_action == "leave":
            return
        with self._writing(f"setting state of issue IID={issue_iid} ({state_action})"):
            issue = self._issue(project_id, issue_iid)
            issue.state_event = state_action
            issue.save()

    def list_notes(self, project_id: int, issue_iid: int) -> list[Note]:
        with self._reading(f"listing notes of issue IID={issue_iid}"):
            notes = self._issue(project_id, issue_iid).notes.list(get_all=True)
            return [note_from_gitlab(n, issue_iid) for n in notes]

    def create_note(self, project_id: int, issue_iid: int, body: str) -> Note:
        with self._writing(f"creating note on issue IID={issue_iid}"):
            created = self._issue(project_id, issue_iid).notes.create({"body": body})
        return note_from_gitlab(created, issue_iid)

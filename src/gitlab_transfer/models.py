"""Data models for the entities transferred between GitLab instances.

Every project-scoped entity carries two identifiers:

- ``iid``: the sequence number inside its project (``#12``). It is stable
  across instances as long as items are created in the same order, and is
  what presence detection at the destination keys on.
- ``id``: the instance-wide identifier assigned by the owning GitLab. It is
  never meaningful on the other instance, which is why references between
  entities are held by IID and translated at replay time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final, Literal

from .exceptions import DataIntegrityError

State = Literal["open", "closed"]

# Raw state values reported by GitLab for issues and milestones
_OPEN_STATES: Final[frozenset[str]] = frozenset({"open", "opened", "reopened", "active", "locked"})
_CLOSED_STATES: Final[frozenset[str]] = frozenset({"closed"})


def parse_state(raw: str) -> State:
    """Map a raw GitLab state value onto ``open``/``closed``.

    Raises:
        DataIntegrityError: If the value is not a known state
    """
    value = (raw or "").strip().lower()
    if value in _CLOSED_STATES:
        return "closed"
    if value in _OPEN_STATES:
        return "open"
    msg = f"Unknown state value: {raw!r}"
    raise DataIntegrityError(msg)


@dataclass
class Project:
    """A GitLab project.

    Namespace and visibility are carried along for the operator's benefit
    only; the destination project is set up by hand.
    """

    id: int
    name: str
    path_with_namespace: str = ""
    namespace: str = ""
    visibility: str = ""


@dataclass
class User:
    """A GitLab user, as listed by the instance. Never remapped."""

    id: int
    name: str
    username: str = ""


@dataclass
class Milestone:
    """A project milestone."""

    iid: int
    id: int
    title: str
    description: str = ""
    state: State = "open"
    due_date: str | None = None  # ISO date, e.g. "2024-03-31"


@dataclass
class Issue:
    """A project issue.

    The milestone is referenced by its IID; the destination milestone ID is
    looked up in the milestone translation table when the issue is created.
    """

    iid: int
    id: int
    title: str
    description: str = ""
    state: State = "open"
    labels: frozenset[str] = field(default_factory=frozenset)
    milestone_iid: int | None = None

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"


@dataclass
class Note:
    """A discussion note on an issue.

    Note IDs increase monotonically on an instance, so they double as the
    chronological order of the discussion.
    """

    id: int
    issue_iid: int
    body: str
    system: bool = False

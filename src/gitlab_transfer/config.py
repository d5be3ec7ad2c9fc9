"""Settings for one transfer run.

All settings live in an explicit ``TransferConfig`` handed to the
``Transfer`` orchestrator; nothing is read from module-level state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from .exceptions import ConfigurationError

DEFAULT_PREFIX: Final[str] = "sourceProjectData"

SOURCE_TOKEN_ENV_VAR: Final[str] = "SOURCE_GITLAB_TOKEN"  # noqa: S105
DEST_TOKEN_ENV_VAR: Final[str] = "DEST_GITLAB_TOKEN"  # noqa: S105
SOURCE_DEFAULT_TOKEN_PASS_PATH: Final[str] = "gitlab/source/token"  # noqa: S105
DEST_DEFAULT_TOKEN_PASS_PATH: Final[str] = "gitlab/dest/token"  # noqa: S105


@dataclass
class TrackerSettings:
    """Connection settings for one GitLab instance and project."""

    url: str | None = None
    project_name: str | None = None
    token: str | None = field(default=None, repr=False)
    ssl_verify: bool = True

    def require(self, side: str) -> None:
        """Raise ConfigurationError unless the instance URL and project name are set."""
        missing = [name for name, value in (("url", self.url), ("project name", self.project_name)) if not value]
        if missing:
            msg = f"Missing {side} setting(s): {', '.join(missing)}"
            raise ConfigurationError(msg)


@dataclass
class TransferConfig:
    """Everything a transfer needs besides the staged files themselves.

    ``source_prefix`` is where pulled data is written, ``destination_prefix``
    where it is read from before replay; they differ when files are moved.
    """

    source: TrackerSettings = field(default_factory=TrackerSettings)
    destination: TrackerSettings = field(default_factory=TrackerSettings)
    assignee_id: int | None = None
    source_prefix: str = DEFAULT_PREFIX
    destination_prefix: str = DEFAULT_PREFIX

    def require_assignee(self) -> int:
        if self.assignee_id is None:
            msg = "A destination user ID is required to create issues (use --dest-user-id)"
            raise ConfigurationError(msg)
        return self.assignee_id

"""Staging of one side's project data as JSON files.

Five artifacts are written per filename prefix::

    <prefix>_project.json     the project record
    <prefix>_users.json       list of users
    <prefix>_milestones.json  list of milestones, sorted by IID
    <prefix>_issues.json      list of issues, sorted by IID
    <prefix>_inotes.json      {issue IID: list of notes sorted by ID}, IIDs ascending

The files are meant to be carried across a network boundary and may be
inspected or edited by hand before replay, so they are pretty-printed with a
fixed field order. Reading is strict: a missing file, a malformed record or a
duplicate IID/ID fails the whole load, before anything reaches a tracker.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Final, TypeVar

from .exceptions import ArtifactMalformedError, ArtifactMissingError, DataIntegrityError, DuplicateKeyError
from .models import Issue, Milestone, Note, Project, User, parse_state
from .ordering import issue_collection, milestone_collection
from .project_data import ProjectData

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")

PROJECT: Final[str] = "project"
USERS: Final[str] = "users"
MILESTONES: Final[str] = "milestones"
ISSUES: Final[str] = "issues"
ISSUE_NOTES: Final[str] = "inotes"

ARTIFACTS: Final[tuple[str, ...]] = (PROJECT, USERS, MILESTONES, ISSUES, ISSUE_NOTES)


def artifact_path(prefix: str | Path, artifact: str) -> Path:
    return Path(f"{prefix}_{artifact}.json")


def artifact_paths(prefix: str | Path) -> dict[str, Path]:
    return {artifact: artifact_path(prefix, artifact) for artifact in ARTIFACTS}


# Encoding


def project_to_dict(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "path_with_namespace": project.path_with_namespace,
        "namespace": project.namespace,
        "visibility": project.visibility,
    }


def user_to_dict(user: User) -> dict[str, Any]:
    return {"id": user.id, "name": user.name, "username": user.username}


def milestone_to_dict(milestone: Milestone) -> dict[str, Any]:
    return {
        "iid": milestone.iid,
        "id": milestone.id,
        "title": milestone.title,
        "description": milestone.description,
        "state": milestone.state,
        "due_date": milestone.due_date,
    }


def issue_to_dict(issue: Issue) -> dict[str, Any]:
    return {
        "iid": issue.iid,
        "id": issue.id,
        "title": issue.title,
        "description": issue.description,
        "state": issue.state,
        "labels": sorted(issue.labels),
        "milestone_iid": issue.milestone_iid,
    }


def note_to_dict(note: Note) -> dict[str, Any]:
    return {"id": note.id, "issue_iid": note.issue_iid, "body": note.body, "system": note.system}


def encode_project_data(data: ProjectData) -> dict[str, Any]:
    """JSON-ready content of every artifact, keyed by artifact name."""
    return {
        PROJECT: project_to_dict(data.project) if data.project else None,
        USERS: [user_to_dict(u) for u in data.users],
        MILESTONES: [milestone_to_dict(m) for m in data.milestones],
        ISSUES: [issue_to_dict(i) for i in data.issues],
        ISSUE_NOTES: {str(iid): [note_to_dict(n) for n in notes] for iid, notes in data.sorted_issue_notes()},
    }


def save_project_data(data: ProjectData, prefix: str | Path) -> list[Path]:
    """Write all five artifacts for ``data`` and return their paths."""
    paths = artifact_paths(prefix)
    content = encode_project_data(data)

    for artifact in ARTIFACTS:
        path = paths[artifact]
        path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(content[artifact], indent=2, ensure_ascii=False) + "\n"
        path.write_text(text, encoding="utf-8")
        logger.info(f"Wrote {artifact} to {path.resolve()}")

    return list(paths.values())


# Decoding


class _FieldError(ValueError):
    """A record field is missing or has the wrong type."""


def _field(record: Mapping[str, Any], name: str, kind: type | tuple[type, ...], *, optional: bool = False) -> Any:  # noqa: ANN401
    if name not in record:
        if optional:
            return None
        msg = f"missing field '{name}'"
        raise _FieldError(msg)
    value = record[name]
    if value is None and optional:
        return None
    # bool is an int subclass; never accept it where an identifier is expected
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        msg = f"field '{name}' has invalid value {value!r}"
        raise _FieldError(msg)
    return value


def _text(record: Mapping[str, Any], name: str) -> str:
    return _field(record, name, str, optional=True) or ""


def project_from_dict(record: Mapping[str, Any]) -> Project:
    return Project(
        id=_field(record, "id", int),
        name=_field(record, "name", str),
        path_with_namespace=_text(record, "path_with_namespace"),
        namespace=_text(record, "namespace"),
        visibility=_text(record, "visibility"),
    )


def user_from_dict(record: Mapping[str, Any]) -> User:
    return User(id=_field(record, "id", int), name=_field(record, "name", str), username=_text(record, "username"))


def milestone_from_dict(record: Mapping[str, Any]) -> Milestone:
    return Milestone(
        iid=_field(record, "iid", int),
        id=_field(record, "id", int),
        title=_field(record, "title", str),
        description=_text(record, "description"),
        state=parse_state(_field(record, "state", str)),
        due_date=_field(record, "due_date", str, optional=True),
    )


def issue_from_dict(record: Mapping[str, Any]) -> Issue:
    labels = _field(record, "labels", list, optional=True) or []
    if not all(isinstance(label, str) for label in labels):
        msg = "field 'labels' must be a list of strings"
        raise _FieldError(msg)
    return Issue(
        iid=_field(record, "iid", int),
        id=_field(record, "id", int),
        title=_field(record, "title", str),
        description=_text(record, "description"),
        state=parse_state(_field(record, "state", str)),
        labels=frozenset(labels),
        milestone_iid=_field(record, "milestone_iid", int, optional=True),
    )


def note_from_dict(record: Mapping[str, Any], issue_iid: int) -> Note:
    # The map key is authoritative for the owning issue
    return Note(
        id=_field(record, "id", int),
        issue_iid=issue_iid,
        body=_field(record, "body", str),
        system=bool(_field(record, "system", bool, optional=True)),
    )


class _RepeatedKeyError(ValueError):
    """A JSON object names the same key twice."""

    def __init__(self, key: str) -> None:
        self.key: str = key
        super().__init__(f"duplicate key {key!r}")


def _unique_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise _RepeatedKeyError(key)
        result[key] = value
    return result


def _read_json(path: Path) -> Any:  # noqa: ANN401
    if not path.is_file():
        msg = f"Staging file not found: {path}"
        raise ArtifactMissingError(msg, path)
    try:
        return json.loads(path.read_text(encoding="utf-8"), object_pairs_hook=_unique_keys)
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Cannot read staging file {path}: {e}"
        raise ArtifactMalformedError(msg, path, "file") from e
    except _RepeatedKeyError as e:
        # A repeated note map key is a repeated issue IID
        msg = f"{path}: duplicate key {e.key!r}"
        raise DataIntegrityError(msg) from e
    except ValueError as e:
        msg = f"Staging file {path} is not valid JSON: {e}"
        raise ArtifactMalformedError(msg, path, "file") from e


def _decode_records(path: Path, kind: str, content: Any, decode: Callable[[Mapping[str, Any]], T]) -> list[T]:  # noqa: ANN401
    if not isinstance(content, list):
        msg = f"{path}: expected a list of {kind} records"
        raise ArtifactMalformedError(msg, path, kind)
    items: list[T] = []
    for index, record in enumerate(content):
        if not isinstance(record, dict):
            msg = f"{path}: {kind} record #{index} is not an object"
            raise ArtifactMalformedError(msg, path, kind)
        try:
            items.append(decode(record))
        except _FieldError as e:
            msg = f"{path}: {kind} record #{index}: {e}"
            raise ArtifactMalformedError(msg, path, kind) from e
        except DataIntegrityError as e:
            msg = f"{path}: {kind} record #{index}: {e}"
            raise ArtifactMalformedError(msg, path, kind) from e
    return items


def _duplicate(path: Path, error: DuplicateKeyError) -> DataIntegrityError:
    msg = f"{path}: duplicate {error.kind} {'ID' if error.kind == 'note' else 'IID'} {error.key}"
    return DataIntegrityError(msg)


def load_project_data(prefix: str | Path) -> ProjectData:
    """Read all five artifacts into a new ProjectData.

    Raises:
        ArtifactMissingError: If any artifact file does not exist
        ArtifactMalformedError: If an artifact cannot be decoded
        DataIntegrityError: If a collection holds a duplicate IID/ID or a JSON object repeats a key
    """
    paths = artifact_paths(prefix)

    # Fail on the first missing file before parsing anything
    for path in paths.values():
        if not path.is_file():
            msg = f"Staging file not found: {path}"
            raise ArtifactMissingError(msg, path)

    data = ProjectData()

    path = paths[PROJECT]
    content = _read_json(path)
    if content is not None:
        if not isinstance(content, dict):
            msg = f"{path}: expected a project record"
            raise ArtifactMalformedError(msg, path, "project")
        try:
            data.project = project_from_dict(content)
        except _FieldError as e:
            msg = f"{path}: project record: {e}"
            raise ArtifactMalformedError(msg, path, "project") from e
    logger.info(f"Read project ({data.project.name if data.project else 'none'}) from {path}")

    path = paths[USERS]
    data.users = _decode_records(path, "user", _read_json(path), user_from_dict)
    logger.info(f"Read {len(data.users)} users from {path}")

    path = paths[MILESTONES]
    milestones = _decode_records(path, "milestone", _read_json(path), milestone_from_dict)
    try:
        data.milestones = milestone_collection(milestones)
    except DuplicateKeyError as e:
        raise _duplicate(path, e) from e
    logger.info(f"Read {len(data.milestones)} milestones from {path}")

    path = paths[ISSUES]
    issues = _decode_records(path, "issue", _read_json(path), issue_from_dict)
    try:
        data.issues = issue_collection(issues)
    except DuplicateKeyError as e:
        raise _duplicate(path, e) from e
    logger.info(f"Read {len(data.issues)} issues from {path}")

    path = paths[ISSUE_NOTES]
    content = _read_json(path)
    if not isinstance(content, dict):
        msg = f"{path}: expected a map of issue IID to note lists"
        raise ArtifactMalformedError(msg, path, "note")
    for key, records in content.items():
        try:
            issue_iid = int(key)
        except ValueError as e:
            msg = f"{path}: note map key {key!r} is not an issue IID"
            raise ArtifactMalformedError(msg, path, "note") from e
        if issue_iid in data.issue_notes:
            msg = f"{path}: duplicate note map key for issue IID {issue_iid}"
            raise DataIntegrityError(msg)
        notes = _decode_records(path, "note", records, lambda r, iid=issue_iid: note_from_dict(r, iid))
        try:
            data.set_issue_notes(issue_iid, notes)
        except DuplicateKeyError as e:
            raise _duplicate(path, e) from e
    logger.info(f"Read {len(data.issue_notes)} sets of issue notes ({data.note_count()} notes) from {path}")

    return data

"""
Command-line interface for the GitLab transfer tool.

Commands run in the order given and the run stops at the first failing one:

    (source network)       gitlab-transfer pullsave
    (destination network)  gitlab-transfer readsrc setdestproj putmile putissues putissuenotes
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Final

from . import gitlab_utils as glu
from .config import (
    DEFAULT_PREFIX,
    DEST_DEFAULT_TOKEN_PASS_PATH,
    DEST_TOKEN_ENV_VAR,
    SOURCE_DEFAULT_TOKEN_PASS_PATH,
    SOURCE_TOKEN_ENV_VAR,
    TrackerSettings,
    TransferConfig,
)
from .exceptions import PhaseError, TransferError
from .orchestrator import Transfer
from .utils import PassError, setup_logging

if TYPE_CHECKING:
    from .models import Project, User
    from .project_data import ProjectData
    from .reconcile import ReconcileResult

logger: logging.Logger = logging.getLogger(__name__)


def _print_users(title: str, users: Sequence[User]) -> None:
    print(title)
    if not users:
        print("  (no users)")
    for user in users:
        print(f"  ID={user.id}, Name={user.name}, Username={user.username}")


def _print_projects(title: str, projects: Sequence[Project]) -> None:
    print(title)
    if not projects:
        print("  Zero projects found.")
    for project in projects:
        print(f"  Found Project: {project.name} ({project.path_with_namespace}), ID={project.id}")


def _print_project_data(data: ProjectData) -> None:
    """Print what was read from the staging files."""
    if data.project is not None:
        print(f"Project: {data.project.name} ({data.project.path_with_namespace}), ID={data.project.id}")
    _print_users("Users:", data.users)
    print("Milestones:")
    for milestone in data.milestones:
        print(f"  IID={milestone.iid}, Title={milestone.title}, State={milestone.state}")
    print("Issues:")
    for issue in data.issues:
        notes = data.issue_notes.get(issue.iid)
        note_text = f"[{len(notes)} notes]" if notes else "(no notes)"
        print(f"  IID={issue.iid}, Title={issue.title}, State={issue.state} {note_text}")


def _print_reconcile_result(result: ReconcileResult) -> None:
    print(f"{result.kind.capitalize()}s: {len(result.created)} created, {len(result.skipped)} skipped")
    for outcome in result.outcomes:
        flag = " (milestone not found)" if outcome.milestone_unresolved else ""
        if outcome.closed:
            flag += " (closed)"
        print(f"  {outcome.action:<8} IID={outcome.iid} -> ID={outcome.destination_id}: {outcome.title}{flag}")


def _cmd_pullsave(transfer: Transfer) -> None:
    paths = transfer.pull_and_stage()
    for path in paths:
        print(f"Wrote {path}")


def _cmd_readsrc(transfer: Transfer) -> None:
    _print_project_data(transfer.load())


def _cmd_setdestproj(transfer: Transfer) -> None:
    project = transfer.resolve_destination_project()
    print(f"Found Project: {project.name}, ID={project.id}")


def _cmd_putissuenotes(transfer: Transfer) -> None:
    count = transfer.apply_notes()
    print(f"Appended {count} notes")


COMMANDS: Final[dict[str, tuple[str, Callable[[Transfer], None]]]] = {
    "suserlist": (
        "Pull (and display) the source users",
        lambda t: _print_users("Source users are:", t.list_users()),
    ),
    "duserlist": (
        "Pull (and display) the destination users",
        lambda t: _print_users("Destination users are:", t.list_users(destination=True)),
    ),
    "sprojlist": (
        "Pull (and display) the source projects",
        lambda t: _print_projects("Source projects are:", t.list_projects()),
    ),
    "dprojlist": (
        "Pull (and display) the destination projects",
        lambda t: _print_projects("Destination projects are:", t.list_projects(destination=True)),
    ),
    "pullsave": ("Pull all project data from the source and save it to files", _cmd_pullsave),
    "readsrc": ("Read the staged data from files (before any put command)", _cmd_readsrc),
    "setdestproj": ("Find the destination project", _cmd_setdestproj),
    "putmile": (
        "Put the milestones into the destination project (after setdestproj)",
        lambda t: _print_reconcile_result(t.apply_milestones()),
    ),
    "putissues": (
        "Put the issues into the destination project (after putmile)",
        lambda t: _print_reconcile_result(t.apply_issues()),
    ),
    "putissuenotes": (
        "Put all issue notes into the destination project (after putissues); never run twice",
        _cmd_putissuenotes,
    ),
}


def run_commands(transfer: Transfer, commands: Sequence[str]) -> bool:
    """Run commands in order; stop and return False at the first failure."""
    for command in commands:
        description, action = COMMANDS[command]
        logger.info(f"Running {command}: {description}")
        try:
            action(transfer)
        except PhaseError as e:
            logger.error(f"Command {command} failed in phase {e.phase.value}")
            print(f"{command} failed: {e}", file=sys.stderr)
            print("Quitting on failure.", file=sys.stderr)
            return False
    return True


def _commands_epilog() -> str:
    lines = ["commands:"]
    lines += [f"  {name:<14} {description}" for name, (description, _) in COMMANDS.items()]
    lines += [
        "",
        "example:",
        "  (source network)      %(prog)s pullsave",
        "  (destination network) %(prog)s readsrc setdestproj putmile putissues putissuenotes",
    ]
    return "\n".join(lines)


def _env_int(parser: argparse.ArgumentParser, name: str) -> int | None:
    value = os.environ.get(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        parser.error(f"environment variable {name} must be an integer, got {value!r}")


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Transfer GitLab milestones, issues and notes between GitLab instances via staging files",
        epilog=_commands_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    _ = parser.add_argument("commands", nargs="+", choices=list(COMMANDS), metavar="command", help="Commands to run")

    source = parser.add_argument_group("source instance")
    _ = source.add_argument("--source-url", default=os.environ.get("SOURCE_GITLAB_URL"), help="Source GitLab URL")
    _ = source.add_argument(
        "--source-project", default=os.environ.get("SOURCE_GITLAB_PROJECT"), help="Source project name or path"
    )
    _ = source.add_argument(
        "--source-pass-token", help=f"Path for the source token in pass (default: {SOURCE_DEFAULT_TOKEN_PASS_PATH})"
    )
    _ = source.add_argument(
        "--source-prefix", default=DEFAULT_PREFIX, help=f"Staging file prefix to write (default: {DEFAULT_PREFIX})"
    )

    dest = parser.add_argument_group("destination instance")
    _ = dest.add_argument("--dest-url", default=os.environ.get("DEST_GITLAB_URL"), help="Destination GitLab URL")
    _ = dest.add_argument(
        "--dest-project", default=os.environ.get("DEST_GITLAB_PROJECT"), help="Destination project name or path"
    )
    _ = dest.add_argument(
        "--dest-pass-token", help=f"Path for the destination token in pass (default: {DEST_DEFAULT_TOKEN_PASS_PATH})"
    )
    _ = dest.add_argument(
        "--dest-user-id",
        type=int,
        default=_env_int(parser, "DEST_GITLAB_USER_ID"),
        help="Destination user ID assigned to every created issue (see duserlist)",
    )
    _ = dest.add_argument(
        "--dest-prefix", default=DEFAULT_PREFIX, help=f"Staging file prefix to read (default: {DEFAULT_PREFIX})"
    )

    _ = parser.add_argument(
        "--insecure", action="store_true", help="Do not verify TLS certificates of either instance"
    )
    _ = parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase console verbosity (-v info, -vv debug)"
    )

    return parser.parse_args(argv)


def _needs(commands: Sequence[str], side: str) -> bool:
    source_commands = {"suserlist", "sprojlist", "pullsave"}
    dest_commands = {"duserlist", "dprojlist", "setdestproj", "putmile", "putissues", "putissuenotes"}
    return any(c in (source_commands if side == "source" else dest_commands) for c in commands)


def build_config(args: argparse.Namespace) -> TransferConfig:
    """Build the transfer configuration; tokens are only looked up for the sides in use."""
    source_token = None
    if _needs(args.commands, "source"):
        source_token = glu.get_token(SOURCE_TOKEN_ENV_VAR, SOURCE_DEFAULT_TOKEN_PASS_PATH, args.source_pass_token)
    dest_token = None
    if _needs(args.commands, "destination"):
        dest_token = glu.get_token(DEST_TOKEN_ENV_VAR, DEST_DEFAULT_TOKEN_PASS_PATH, args.dest_pass_token)

    return TransferConfig(
        source=TrackerSettings(
            url=args.source_url,
            project_name=args.source_project,
            token=source_token,
            ssl_verify=not args.insecure,
        ),
        destination=TrackerSettings(
            url=args.dest_url,
            project_name=args.dest_project,
            token=dest_token,
            ssl_verify=not args.insecure,
        ),
        assignee_id=args.dest_user_id,
        source_prefix=args.source_prefix,
        destination_prefix=args.dest_prefix,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)

    verbosity: int = getattr(args, "verbose", 0)
    setup_logging(verbosity=verbosity)
    logger.info(f"Invoked with: {' '.join(args.commands)}")

    try:
        config = build_config(args)
        transfer = Transfer(config)
        success = run_commands(transfer, args.commands)
    except (TransferError, PassError, ValueError):
        logger.exception("Transfer failed")
        sys.exit(1)

    sys.exit(0 if success else 1)

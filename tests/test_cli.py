"""
Tests for CLI module.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from unittest.mock import Mock, patch

import pytest

from gitlab_transfer.cli import COMMANDS, build_config, main, parse_arguments, run_commands
from gitlab_transfer.config import DEFAULT_PREFIX
from gitlab_transfer.exceptions import PhaseError
from gitlab_transfer.orchestrator import Phase
from gitlab_transfer.utils import InvalidPassPathError, setup_logging

if TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.unit
class TestSetupLogging:
    """Test setup_logging verbosity levels."""

    def _get_console_handler(self, root_logger: logging.Logger) -> logging.StreamHandler[Any]:
        console_handlers = [
            h
            for h in root_logger.handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        ]
        assert console_handlers, "Expected at least one console StreamHandler"
        return console_handlers[0]

    @pytest.mark.parametrize(
        ("verbosity", "level"),
        [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG)],
    )
    def test_console_level_follows_verbosity(self, verbosity: int, level: int, tmp_path: Path) -> None:
        root_logger = logging.getLogger()
        original_handlers = root_logger.handlers[:]
        root_logger.handlers.clear()

        try:
            setup_logging(verbosity=verbosity, log_file=str(tmp_path / "transfer.log"))
            assert self._get_console_handler(root_logger).level == level
        finally:
            for h in root_logger.handlers:
                h.close()
            root_logger.handlers = original_handlers

    def test_log_file_records_debug(self, tmp_path: Path) -> None:
        """The log file keeps everything, even with a quiet console."""
        root_logger = logging.getLogger()
        original_handlers = root_logger.handlers[:]
        original_level = root_logger.level
        root_logger.handlers.clear()
        log_file = tmp_path / "transfer.log"

        try:
            setup_logging(verbosity=0, log_file=str(log_file))
            logging.getLogger("gitlab_transfer.test").debug("created milestone IID=1")
        finally:
            for h in root_logger.handlers:
                h.close()
            root_logger.handlers = original_handlers
            root_logger.setLevel(original_level)

        assert "created milestone IID=1" in log_file.read_text(encoding="utf-8")


@pytest.mark.unit
class TestParseArguments:
    def test_commands_in_order(self) -> None:
        args = parse_arguments(["readsrc", "setdestproj", "putmile"])
        assert args.commands == ["readsrc", "setdestproj", "putmile"]
        assert args.source_prefix == DEFAULT_PREFIX
        assert args.dest_prefix == DEFAULT_PREFIX
        assert args.insecure is False
        assert args.verbose == 0

    def test_unknown_command_rejected(self) -> None:
        with pytest.raises(SystemExit):
            parse_arguments(["pushall"])

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            parse_arguments([])

    def test_environment_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SOURCE_GITLAB_URL", "https://source.example.com")
        monkeypatch.setenv("DEST_GITLAB_PROJECT", "ops/dest")
        monkeypatch.setenv("DEST_GITLAB_USER_ID", "42")

        args = parse_arguments(["putissues"])

        assert args.source_url == "https://source.example.com"
        assert args.dest_project == "ops/dest"
        assert args.dest_user_id == 42

    def test_options(self) -> None:
        args = parse_arguments(
            ["--dest-url", "https://d", "--dest-user-id", "7", "--dest-prefix", "in/data", "--insecure", "-vv", "putmile"]
        )
        assert args.dest_url == "https://d"
        assert args.dest_user_id == 7
        assert args.dest_prefix == "in/data"
        assert args.insecure is True
        assert args.verbose == 2


@pytest.mark.unit
class TestBuildConfig:
    @patch("gitlab_transfer.cli.glu.get_token", return_value="tok")
    def test_only_needed_tokens_are_fetched(self, mock_get_token: Mock) -> None:
        config = build_config(parse_arguments(["--dest-url", "https://d", "--dest-project", "p", "setdestproj"]))

        mock_get_token.assert_called_once_with("DEST_GITLAB_TOKEN", "gitlab/dest/token", None)
        assert config.destination.token == "tok"
        assert config.source.token is None
        assert config.destination.ssl_verify is True

    @patch("gitlab_transfer.cli.glu.get_token")
    def test_offline_commands_fetch_no_token(self, mock_get_token: Mock) -> None:
        config = build_config(parse_arguments(["--source-prefix", "out/x", "readsrc"]))

        mock_get_token.assert_not_called()
        assert config.source_prefix == "out/x"

    @patch("gitlab_transfer.cli.glu.get_token", return_value="tok")
    def test_insecure_applies_to_both_sides(self, mock_get_token: Mock) -> None:
        config = build_config(parse_arguments(["--insecure", "--source-pass-token", "my/src", "pullsave", "putmile"]))

        assert mock_get_token.call_count == 2
        mock_get_token.assert_any_call("SOURCE_GITLAB_TOKEN", "gitlab/source/token", "my/src")
        assert config.source.ssl_verify is False
        assert config.destination.ssl_verify is False


@pytest.mark.unit
class TestRunCommands:
    def test_stops_at_first_failure(self, capsys: pytest.CaptureFixture[str]) -> None:
        transfer = Mock()
        transfer.resolve_destination_project.return_value = Mock(id=70)
        transfer.apply_milestones.side_effect = PhaseError(Phase.APPLY_MILESTONES, "boom")

        ok = run_commands(transfer, ["setdestproj", "putmile", "putissues"])

        assert ok is False
        transfer.apply_issues.assert_not_called()
        assert "Quitting on failure." in capsys.readouterr().err

    def test_all_succeed(self, capsys: pytest.CaptureFixture[str]) -> None:
        transfer = Mock()
        transfer.list_users.return_value = []
        transfer.apply_notes.return_value = 3

        ok = run_commands(transfer, ["duserlist", "putissuenotes"])

        assert ok is True
        transfer.list_users.assert_called_once_with(destination=True)
        out = capsys.readouterr().out
        assert "Destination users are:" in out
        assert "Appended 3 notes" in out

    def test_every_command_is_described(self) -> None:
        assert set(COMMANDS) == {
            "suserlist",
            "duserlist",
            "sprojlist",
            "dprojlist",
            "pullsave",
            "readsrc",
            "setdestproj",
            "putmile",
            "putissues",
            "putissuenotes",
        }


@pytest.mark.unit
class TestMain:
    def _run(self, argv: list[str]) -> int:
        with pytest.raises(SystemExit) as exc_info:
            main(argv)
        return exc_info.value.code  # type: ignore[return-value]

    @patch("gitlab_transfer.cli.setup_logging")
    @patch("gitlab_transfer.cli.run_commands", return_value=True)
    @patch("gitlab_transfer.cli.Transfer")
    def test_success_exits_zero(self, mock_transfer: Mock, mock_run: Mock, _mock_logging: Mock) -> None:
        assert self._run(["readsrc"]) == 0
        mock_run.assert_called_once_with(mock_transfer.return_value, ["readsrc"])

    @patch("gitlab_transfer.cli.setup_logging")
    @patch("gitlab_transfer.cli.run_commands", return_value=False)
    @patch("gitlab_transfer.cli.Transfer")
    def test_failed_command_exits_one(self, _mock_transfer: Mock, _mock_run: Mock, _mock_logging: Mock) -> None:
        assert self._run(["readsrc"]) == 1

    @patch("gitlab_transfer.cli.setup_logging")
    @patch("gitlab_transfer.cli.glu.get_token", side_effect=InvalidPassPathError("Pass path 'x' not found"))
    @patch("gitlab_transfer.cli.Transfer")
    def test_token_failure_exits_one(self, mock_transfer: Mock, _mock_token: Mock, _mock_logging: Mock) -> None:
        assert self._run(["--dest-pass-token", "x", "setdestproj"]) == 1
        mock_transfer.assert_not_called()

    @patch("gitlab_transfer.cli.setup_logging")
    @patch("gitlab_transfer.cli.Transfer")
    def test_malformed_pass_path_exits_one(self, mock_transfer: Mock, _mock_logging: Mock) -> None:
        with patch("gitlab_transfer.utils.subprocess.run") as mock_run:
            assert self._run(["--dest-pass-token", "bad path;rm", "setdestproj"]) == 1
        mock_run.assert_not_called()
        mock_transfer.assert_not_called()

    def test_non_numeric_user_id_env_is_usage_error(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("DEST_GITLAB_USER_ID", "importer")

        assert self._run(["putissues"]) == 2
        assert "DEST_GITLAB_USER_ID must be an integer" in capsys.readouterr().err

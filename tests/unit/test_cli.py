"""Tests for the click-based CLI."""

import logging
import os
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from stream_copier.cli.commands import cli, handle_exception
from stream_copier.cli.copy_cmd import ProgressBar, exit_code_for, wait_for_run
from stream_copier.exceptions import (
    APIError,
    ConfigError,
    FetchFailedError,
    InvalidConfigError,
)
from stream_copier.types import RunStatus, StreamInfo, TransferSnapshot
from tests.unit.conftest import FakeStreamsAPI, make_messages


@pytest.fixture()
def runner():
    return CliRunner()


def _copy_args(tmp_path, *extra):
    return [
        "copy",
        "--config",
        str(tmp_path / "missing.yaml"),
        "--source",
        "A",
        "--target",
        "B",
        "--output_dir",
        str(tmp_path / "out"),
        "--no_progress",
        *extra,
    ]


class TestCLIGroup:
    """Tests for the CLI group structure."""

    def test_cli_has_all_subcommands(self):
        assert set(cli.commands.keys()) == {"copy", "streams", "init-config"}

    def test_version_flag(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "stream-copier" in result.output

    def test_help_output(self, runner):
        result = runner.invoke(cli, ["-h"])
        assert result.exit_code == 0
        for name in ("copy", "streams", "init-config"):
            assert name in result.output

    def test_no_subcommand_prints_help(self, runner):
        result = runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "Usage" in result.output


class TestCopyCommand:
    """Tests for the copy subcommand."""

    def test_help_shows_all_options(self, runner):
        result = runner.invoke(cli, ["copy", "--help"])
        assert result.exit_code == 0
        for opt in [
            "--source",
            "--target",
            "--subject_filter",
            "--max_messages",
            "--dry_run",
            "--output_dir",
            "--no_report",
            "--config",
            "--api_url",
            "--token",
            "--verbose",
            "--debug_api",
            "--json_logs",
        ]:
            assert opt in result.output

    def test_missing_required_options(self, runner):
        result = runner.invoke(cli, ["copy", "--source", "A"])
        assert result.exit_code != 0
        assert "--target" in result.output

    def test_successful_copy(self, runner, tmp_path):
        api = FakeStreamsAPI(make_messages([10, 11, 12]))
        with patch(
            "stream_copier.cli.copy_cmd.StreamsAPI.from_config", return_value=api
        ):
            result = runner.invoke(
                cli, _copy_args(tmp_path, "--subject_filter", "orders.>", "--max_messages", "3")
            )

        assert result.exit_code == 0, result.output
        assert "COPY SUMMARY: COMPLETE" in result.output
        assert "Progress: 3/3 (100%)" in result.output
        assert api.fetch_calls == [("A", 3, "orders.>")]
        assert len(api.published) == 3
        run_dirs = os.listdir(tmp_path / "out")
        assert len(run_dirs) == 1
        files = set(os.listdir(tmp_path / "out" / run_dirs[0]))
        assert {"transfer.log", "transfer_report.yaml"} <= files
        assert api.closed is True

    def test_per_message_errors_still_exit_zero(self, runner, tmp_path):
        api = FakeStreamsAPI(make_messages([10, 11, 12]), fail_sequences=(11,))
        with patch(
            "stream_copier.cli.copy_cmd.StreamsAPI.from_config", return_value=api
        ):
            result = runner.invoke(cli, _copy_args(tmp_path))
        assert result.exit_code == 0
        assert "COMPLETE WITH WARNINGS" in result.output

    def test_fetch_failure_exits_one(self, runner, tmp_path):
        api = FakeStreamsAPI(fetch_error=FetchFailedError("stream not found"))
        with patch(
            "stream_copier.cli.copy_cmd.StreamsAPI.from_config", return_value=api
        ):
            result = runner.invoke(cli, _copy_args(tmp_path))
        assert result.exit_code == 1
        assert "COPY SUMMARY: FAILED" in result.output
        assert api.closed is True

    def test_internal_error_mid_copy_exits_one(self, runner, tmp_path):
        def crash(index, subject, payload):
            raise RuntimeError("driver bug")

        api = FakeStreamsAPI(make_messages([1, 2]), on_publish=crash)
        with patch(
            "stream_copier.cli.copy_cmd.StreamsAPI.from_config", return_value=api
        ):
            result = runner.invoke(cli, _copy_args(tmp_path))
        assert result.exit_code == 1
        assert "COPY SUMMARY: FAILED" in result.output
        assert "Failure: driver bug" in result.output
        assert api.closed is True

    def test_same_source_and_target_exits_one(self, runner, tmp_path):
        api = FakeStreamsAPI(make_messages([1]))
        args = _copy_args(tmp_path)
        args[args.index("B")] = "A"
        with patch(
            "stream_copier.cli.copy_cmd.StreamsAPI.from_config", return_value=api
        ):
            result = runner.invoke(cli, args)
        assert result.exit_code == 1
        assert api.fetch_calls == []

    def test_no_report(self, runner, tmp_path):
        api = FakeStreamsAPI(make_messages([1]))
        with patch(
            "stream_copier.cli.copy_cmd.StreamsAPI.from_config", return_value=api
        ):
            result = runner.invoke(cli, _copy_args(tmp_path, "--no_report"))
        assert result.exit_code == 0
        run_dir = tmp_path / "out" / os.listdir(tmp_path / "out")[0]
        assert "transfer_report.yaml" not in os.listdir(run_dir)

    def test_dry_run_does_not_publish(self, runner, tmp_path):
        api = FakeStreamsAPI(make_messages([1, 2]))
        with patch(
            "stream_copier.cli.copy_cmd.StreamsAPI.from_config", return_value=api
        ):
            result = runner.invoke(cli, _copy_args(tmp_path, "--dry_run"))
        assert result.exit_code == 0
        assert "DRY RUN COPY SUMMARY" in result.output
        assert len(api.fetch_calls) == 1
        assert api.published == []
        assert api.closed is True

    def test_cli_overrides_reach_config(self, runner, tmp_path):
        api = FakeStreamsAPI([])
        with patch(
            "stream_copier.cli.copy_cmd.StreamsAPI.from_config", return_value=api
        ) as from_config:
            runner.invoke(
                cli,
                _copy_args(tmp_path, "--api_url", "http://x/query", "--token", "tok"),
            )
        config = from_config.call_args.args[0]
        assert config.api_url == "http://x/query"
        assert config.api_token == "tok"

    def test_token_from_environment(self, runner, tmp_path):
        api = FakeStreamsAPI([])
        with patch(
            "stream_copier.cli.copy_cmd.StreamsAPI.from_config", return_value=api
        ) as from_config:
            runner.invoke(cli, _copy_args(tmp_path), env={"STREAM_COPIER_TOKEN": "envtok"})
        assert from_config.call_args.args[0].api_token == "envtok"


class TestWaitForRun:
    """Tests for the Ctrl-C handling while a run is in flight."""

    def test_first_interrupt_cancels(self):
        copier = MagicMock()
        copier.wait.side_effect = [KeyboardInterrupt(), False, True]
        run = MagicMock(run_id="r1")

        wait_for_run(copier, run)

        copier.cancel.assert_called_once_with(run)
        assert copier.wait.call_count == 3

    def test_second_interrupt_propagates(self):
        copier = MagicMock()
        copier.wait.side_effect = [KeyboardInterrupt(), KeyboardInterrupt()]
        with pytest.raises(KeyboardInterrupt):
            wait_for_run(copier, MagicMock(run_id="r1"))
        copier.cancel.assert_called_once()

    def test_returns_when_worker_is_gone(self):
        copier = MagicMock()
        copier.wait.return_value = False
        copier.is_running.return_value = False

        wait_for_run(copier, MagicMock(run_id="r1"))

        copier.wait.assert_called_once()
        copier.cancel.assert_not_called()

    @pytest.mark.parametrize(
        "status,code",
        [(RunStatus.COMPLETED, 0), (RunStatus.CANCELLED, 130), (RunStatus.FAILED, 1)],
    )
    def test_exit_codes(self, status, code):
        assert exit_code_for(status) == code


class TestProgressBar:
    """Tests for the tqdm progress adapter."""

    def _snap(self, total, copied, errors=0):
        return TransferSnapshot("r", RunStatus.TRANSFERRING, total, copied, errors, False)

    def test_waits_for_total(self):
        bar = ProgressBar("A -> B", disable=True)
        bar(self._snap(0, 0))
        assert bar._bar is None
        bar.close()

    def test_tracks_processed(self):
        bar = ProgressBar("A -> B", disable=True)
        bar(self._snap(3, 1))
        bar(self._snap(3, 1, errors=1))
        assert bar._bar.total == 3
        assert bar._bar.n == 2
        bar.close()


class TestStreamsCommand:
    """Tests for the streams subcommand."""

    def _invoke(self, runner, tmp_path, *extra):
        self.api = api = MagicMock()
        api.list_streams.return_value = [
            StreamInfo("ORDERS", ("orders.>",), 1250),
            StreamInfo("KV_sessions", ("$KV.sessions.>",), 17),
        ]
        with patch(
            "stream_copier.cli.streams_cmd.StreamsAPI.from_config", return_value=api
        ):
            return runner.invoke(
                cli, ["streams", "--config", str(tmp_path / "missing.yaml"), *extra]
            )

    def test_hides_kv_streams(self, runner, tmp_path):
        result = self._invoke(runner, tmp_path)
        assert result.exit_code == 0
        assert "ORDERS" in result.output
        assert "1,250 msgs" in result.output
        assert "KV_sessions" not in result.output
        self.api.close.assert_called_once_with()

    def test_all_shows_hidden(self, runner, tmp_path):
        result = self._invoke(runner, tmp_path, "--all")
        assert "KV_sessions" in result.output

    def test_api_error_exits_one(self, runner, tmp_path):
        with patch(
            "stream_copier.cli.streams_cmd.StreamsAPI.from_config",
            side_effect=ConfigError("bad"),
        ):
            result = runner.invoke(
                cli, ["streams", "--config", str(tmp_path / "missing.yaml")]
            )
        assert result.exit_code == 1

    def test_no_streams(self, runner, tmp_path):
        api = MagicMock()
        api.list_streams.return_value = []
        with patch(
            "stream_copier.cli.streams_cmd.StreamsAPI.from_config", return_value=api
        ):
            result = runner.invoke(
                cli, ["streams", "--config", str(tmp_path / "missing.yaml")]
            )
        assert "No streams found." in result.output

    def test_api_closed_when_listing_fails(self, runner, tmp_path):
        api = MagicMock()
        api.list_streams.side_effect = APIError("denied", status_code=401)
        with patch(
            "stream_copier.cli.streams_cmd.StreamsAPI.from_config", return_value=api
        ):
            result = runner.invoke(
                cli, ["streams", "--config", str(tmp_path / "missing.yaml")]
            )
        assert result.exit_code == 1
        api.close.assert_called_once_with()


class TestInitConfigCommand:
    """Tests for the init-config subcommand."""

    def test_writes_file(self, runner, tmp_path):
        path = tmp_path / "config.yaml"
        result = runner.invoke(cli, ["init-config", "--path", str(path)])
        assert result.exit_code == 0
        assert path.exists()

    def test_refuses_to_overwrite(self, runner, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("api_token: keep\n")
        result = runner.invoke(cli, ["init-config", "--path", str(path)])
        assert result.exit_code == 1
        assert path.read_text() == "api_token: keep\n"


class TestHandleException:
    """Tests for handle_exception()."""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (InvalidConfigError("Select both source and target streams"), "Invalid copy request"),
            (ConfigError("bad yaml"), "Configuration error"),
            (FetchFailedError("down"), "Could not read source stream"),
            (APIError("denied", status_code=401), "API rejected the request (401)"),
            (APIError("slow down", status_code=429), "Rate limit exceeded"),
            (APIError("oops", status_code=502), "Server error from API"),
            (APIError("weird"), "API error: weird"),
            (KeyboardInterrupt(), "Copy interrupted by user."),
            (RuntimeError("bug"), "Copy failed: bug"),
        ],
    )
    def test_messages(self, caplog, error, expected):
        with caplog.at_level(logging.INFO, logger="stream_copier"):
            handle_exception(error)
        assert any(expected in r.message for r in caplog.records)

"""Tests for actionpack.runtime -- the process-level stdio exchange.

Covers:
- ``metadata`` and ``actions`` modes (stdin never read)
- Action execution via ``<name>`` and ``execute <name>``, and plugins that
  register their own ``execute`` action
- Unknown actions, decode failures and handler faults as envelopes
- Missing mode argument exits non-zero
- Exactly one JSON document on stdout for every exchange
- Settings errors and crash logs
- SIGTERM/SIGINT cancelling an action and killing its children
"""

from __future__ import annotations

import io
import json
import os
import signal
import sys
import threading
import time
from pathlib import Path

import pytest

from actionpack.exit_codes import EXIT_INVALID_USAGE, EXIT_SUCCESS
from actionpack.models import Metadata, ParamSpec, RuntimeSettings
from actionpack.output import OutputFormat, OutputManager
from actionpack.plugins.base import Plugin
from actionpack.registry import ActionRegistry
from actionpack.runtime import PluginRuntime


class ExplodingStdin(io.BytesIO):
    """A stdin that fails the test if anything reads it."""

    def read(self, *args, **kwargs):  # noqa: ANN002, ANN003
        raise AssertionError("stdin must not be read")


def _assert_single_document(stdout: str) -> None:
    decoder = json.JSONDecoder()
    _, end = decoder.raw_decode(stdout)
    assert stdout[end:] == "\n"


# ---------------------------------------------------------------------------
# Discovery modes
# ---------------------------------------------------------------------------


class TestDiscoveryModes:
    def test_metadata(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["metadata"])
        assert result.exit_code == EXIT_SUCCESS
        assert result.document == {
            "name": "sample",
            "version": "1.2.3",
            "description": "Plugin used by the test suite",
            "author": "tests",
            "tags": ["test", "sample"],
        }

    def test_actions(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["actions"])
        assert result.exit_code == EXIT_SUCCESS
        assert list(result.document) == ["echo", "fail", "boom", "deadline"]
        assert result.document["echo"]["inputs"]["message"]["required"] is True

    @pytest.mark.parametrize("mode", ["metadata", "actions"])
    def test_discovery_does_not_read_stdin(self, sample_plugin: Plugin, mode: str) -> None:
        out = io.StringIO()
        runtime = PluginRuntime(
            sample_plugin,
            output=OutputManager(format=OutputFormat.JSON, no_color=True, stdout=out,
                                 stderr=io.StringIO()),
            stdin=ExplodingStdin(),
            handle_signals=False,
        )
        assert runtime.run([mode]) == EXIT_SUCCESS
        _assert_single_document(out.getvalue())

    def test_discovery_ignores_extra_arguments(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["metadata", "extra"], b"garbage")
        assert result.document["name"] == "sample"


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class TestExecute:
    def test_action_by_name(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["echo"], b'{"message": "hi", "times": 3}')
        assert result.exit_code == EXIT_SUCCESS
        assert result.document == {"message": "hihihi", "tags": [], "extra": None}

    def test_execute_alias(self, sample_plugin: Plugin, invoke) -> None:
        direct = invoke(sample_plugin, ["echo"], b'{"message": "x"}')
        aliased = invoke(sample_plugin, ["execute", "echo"], b'{"message": "x"}')
        assert direct.document == aliased.document

    def test_execute_without_name(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["execute"])
        assert result.exit_code == EXIT_INVALID_USAGE
        assert result.document == {"error": "action required"}

    def test_registered_execute_action_wins(self, invoke) -> None:
        registry = ActionRegistry()

        @registry.action(
            "execute", inputs={"statement": ParamSpec(type="string", required=True)}
        )
        def execute(params, ctx):
            return {"affected_rows": 1, "statement": params["statement"]}

        registry.action("echo")(lambda params, ctx: {"echoed": True})
        plugin = Plugin(Metadata(name="sql", version="1.0.0"), registry)
        body = b'{"statement": "DELETE FROM t"}'

        result = invoke(plugin, ["execute"], body)
        assert result.exit_code == EXIT_SUCCESS
        assert result.document == {"affected_rows": 1, "statement": "DELETE FROM t"}

        result = invoke(plugin, ["execute", "echo"], body)
        assert result.document == {"affected_rows": 1, "statement": "DELETE FROM t"}

    def test_passthrough_keys_reach_handler(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["echo"], b'{"message": "x", "extra": {"k": 1}}')
        assert result.document["extra"] == {"k": 1}

    def test_unknown_action(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["badaction"], b"{}")
        assert result.exit_code == EXIT_SUCCESS
        assert result.document == {"error": "unknown action: badaction"}

    def test_unknown_action_ignores_invalid_body(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["badaction"], b"{not json")
        assert result.document == {"error": "unknown action: badaction"}

    def test_missing_required_parameter(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["echo"], b"")
        assert result.exit_code == EXIT_SUCCESS
        assert result.document == {
            "error": "missing required parameter: message",
            "parameter": "message",
        }

    def test_type_mismatch(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["echo"], b'{"message": "x", "times": "two"}')
        assert result.document["error"] == "parameter 'times' must be of type number, got string"
        assert result.document["actual"] == "string"

    def test_invalid_json(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["echo"], b"{oops")
        assert result.exit_code == EXIT_SUCCESS
        assert result.document["error"].startswith("invalid input: ")

    def test_handled_failure(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["fail"])
        assert result.exit_code == EXIT_SUCCESS
        assert result.document == {"error": "it failed", "success": False, "status": "failed"}

    def test_unexpected_fault_writes_crash_log(
        self, sample_plugin: Plugin, invoke, isolated_env: Path
    ) -> None:
        result = invoke(sample_plugin, ["boom"])
        assert result.exit_code == EXIT_SUCCESS
        assert result.document["error"] == "internal error: RuntimeError: kaboom"
        crash_log = Path(result.document["crash_log"])
        assert crash_log.is_file()
        assert crash_log.is_relative_to(isolated_env)
        assert "kaboom" in crash_log.read_text()

    def test_crash_log_disabled(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["boom"], settings=RuntimeSettings(crash_log=False))
        assert result.document == {"error": "internal error: RuntimeError: kaboom"}

    def test_stdout_holds_single_document(self, sample_plugin: Plugin, invoke) -> None:
        for argv, body in [
            (["echo"], b'{"message": "line1\\nline2"}'),
            (["boom"], b""),
            (["badaction"], b""),
            (["echo"], b"[]"),
        ]:
            result = invoke(sample_plugin, argv, body)
            _assert_single_document(result.stdout)

    def test_diagnostics_go_to_stderr(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["boom"])
        assert "kaboom" in result.stderr
        _assert_single_document(result.stdout)

    def test_accepts_text_stdin(self, sample_plugin: Plugin) -> None:
        out = io.StringIO()
        runtime = PluginRuntime(
            sample_plugin,
            output=OutputManager(format=OutputFormat.JSON, no_color=True, stdout=out,
                                 stderr=io.StringIO()),
            stdin=io.StringIO('{"message": "t"}'),
            handle_signals=False,
        )
        runtime.run(["echo"])
        assert json.loads(out.getvalue())["message"] == "t"

    def test_execute_with_raw_body(self, sample_plugin: Plugin) -> None:
        runtime = PluginRuntime(sample_plugin, stdin=ExplodingStdin(), handle_signals=False)
        assert runtime.execute("echo", raw='{"message": "m"}')["message"] == "m"


# ---------------------------------------------------------------------------
# Deadlines
# ---------------------------------------------------------------------------


class TestDeadlines:
    def test_timeout_parameter_sets_deadline(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, ["deadline"], b'{"timeout": 5}')
        assert 0 < result.document["remaining"] <= 5
        assert result.document["action"] == "deadline"

    def test_default_timeout_setting(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(
            sample_plugin, ["deadline"], settings=RuntimeSettings(default_timeout=7)
        )
        assert 0 < result.document["remaining"] <= 7

    def test_unbounded_without_timeout(self, sample_plugin: Plugin, invoke) -> None:
        assert invoke(sample_plugin, ["deadline"]).document["remaining"] is None


# ---------------------------------------------------------------------------
# Protocol faults and settings
# ---------------------------------------------------------------------------


class TestProtocolFaults:
    def test_missing_argv(self, sample_plugin: Plugin, invoke) -> None:
        result = invoke(sample_plugin, [])
        assert result.exit_code == EXIT_INVALID_USAGE
        assert result.document == {"error": "action required"}


class TestSettingsErrors:
    def test_invalid_setting_reported_for_actions(
        self, sample_plugin: Plugin, invoke, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ACTIONPACK_TIMEOUT", "soon")
        result = invoke(sample_plugin, ["echo"], b'{"message": "x"}')
        assert result.exit_code == EXIT_SUCCESS
        assert result.document["error"].startswith("Invalid runtime settings: ACTIONPACK_TIMEOUT")

    def test_invalid_setting_does_not_break_discovery(
        self, sample_plugin: Plugin, invoke, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ACTIONPACK_LOG_LEVEL", "loud")
        assert invoke(sample_plugin, ["metadata"]).document["name"] == "sample"

    def test_settings_read_from_environment(
        self, sample_plugin: Plugin, invoke, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ACTIONPACK_TIMEOUT", "3")
        result = invoke(sample_plugin, ["deadline"])
        assert 0 < result.document["remaining"] <= 3


class TestPluginRun:
    def test_run_forwards_runtime_kwargs(self, sample_plugin: Plugin) -> None:
        out = io.StringIO()
        code = sample_plugin.run(
            ["echo"],
            stdin=io.BytesIO(b'{"message": "via run"}'),
            output=OutputManager(format=OutputFormat.JSON, no_color=True, stdout=out,
                                 stderr=io.StringIO()),
            handle_signals=False,
        )
        assert code == EXIT_SUCCESS
        assert json.loads(out.getvalue())["message"] == "via run"

    def test_main_exits_with_code(
        self, sample_plugin: Plugin, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            sample_plugin.main([])
        assert exc_info.value.code == EXIT_INVALID_USAGE
        assert json.loads(capsys.readouterr().out) == {"error": "action required"}


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


def _child_plugin() -> Plugin:
    """A plugin whose ``wait`` action blocks on a child that records its pid."""
    registry = ActionRegistry()

    @registry.action("wait", inputs={"pid_file": ParamSpec(type="string", required=True)})
    def wait(params, ctx):
        script = 'echo $$ > "$1"; exec sleep 30'
        return ctx.commands.run(["/bin/sh", "-c", script, "sh", params["pid_file"]]).to_fields()

    return Plugin(Metadata(name="waiter", version="0.1.0"), registry)


def _signal_once_started(pid_file: Path, signum: int) -> threading.Thread:
    """Deliver *signum* to the main thread once the child has written its pid."""

    def _run() -> None:
        give_up = time.monotonic() + 10
        while time.monotonic() < give_up:
            if pid_file.exists() and pid_file.read_text().strip():
                # Let the runner register the child before it is signalled.
                time.sleep(0.2)
                signal.pthread_kill(threading.main_thread().ident, signum)
                return
            time.sleep(0.05)

    thread = threading.Thread(target=_run, daemon=True)
    thread.start()
    return thread


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals and /bin/sh")
class TestSignals:
    @pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGINT], ids=["term", "int"])
    def test_signal_cancels_action_and_kills_child(self, tmp_path: Path, signum: int) -> None:
        pid_file = tmp_path / "child.pid"
        out = io.StringIO()
        runtime = PluginRuntime(
            _child_plugin(),
            output=OutputManager(format=OutputFormat.JSON, no_color=True, stdout=out,
                                 stderr=io.StringIO()),
            stdin=io.BytesIO(json.dumps({"pid_file": str(pid_file), "timeout": 20}).encode()),
            handle_signals=True,
        )
        previous = signal.getsignal(signum)

        thread = _signal_once_started(pid_file, signum)
        code = runtime.run(["wait"])
        thread.join(timeout=5)

        assert code == EXIT_SUCCESS
        _assert_single_document(out.getvalue())
        assert json.loads(out.getvalue()) == {
            "error": f"cancelled: received {signal.Signals(signum).name}"
        }
        child = int(pid_file.read_text())
        with pytest.raises(ProcessLookupError):
            os.kill(child, 0)
        assert signal.getsignal(signum) is previous


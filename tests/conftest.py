"""Shared test fixtures for actionpack.

Provides reusable fixtures for building small plugins, running them through
the real runtime with captured streams, isolating the environment, and
invoking the developer CLI. These fixtures are automatically discovered by
pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

import io
import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from actionpack.exceptions import ActionFailed
from actionpack.models import Metadata, ParamSpec, RuntimeSettings
from actionpack.output import OutputFormat, OutputManager, reset_output, set_output
from actionpack.plugins.base import Plugin
from actionpack.registry import ActionRegistry


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_DATA_HOME at tmp_path and clear ACTIONPACK_* / SLACK_* variables.

    Crash logs written during a test land under ``tmp_path / "data"``.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("actionpack.config._is_xdg_platform", lambda: True)
    for var in [
        "ACTIONPACK_TIMEOUT",
        "ACTIONPACK_LOG_LEVEL",
        "ACTIONPACK_HTTP_RETRIES",
        "ACTIONPACK_NO_CRASH_LOG",
        "SLACK_BOT_TOKEN",
        "SLACK_WEBHOOK_URL",
    ]:
        monkeypatch.delenv(var, raising=False)
    return tmp_path


# ---------------------------------------------------------------------------
# Sample plugin
# ---------------------------------------------------------------------------


SAMPLE_METADATA = Metadata(
    name="sample",
    version="1.2.3",
    description="Plugin used by the test suite",
    author="tests",
    tags=["test", "sample"],
)


def build_sample_registry() -> ActionRegistry:
    """A registry exercising success, handled failure and faults."""
    registry = ActionRegistry()

    @registry.action(
        "echo",
        description="Return the message and its repeat count",
        inputs={
            "message": ParamSpec(type="string", required=True, description="Text"),
            "times": ParamSpec(type="number", default=1, description="Repeat count"),
            "tags": ParamSpec(type="array", default=[], description="Labels"),
        },
        outputs={"message": ParamSpec(type="string", description="Echoed text")},
    )
    def echo(params, ctx):
        return {
            "message": params["message"] * int(params["times"]),
            "tags": params["tags"],
            "extra": params.get("extra"),
        }

    @registry.action("fail", description="Always reports a handled failure")
    def fail(params, ctx):
        raise ActionFailed("it failed", success=False, status="failed")

    @registry.action("boom", description="Raises an unexpected error")
    def boom(params, ctx):
        raise RuntimeError("kaboom")

    @registry.action("deadline", description="Reports the invocation deadline")
    def deadline(params, ctx):
        return {"remaining": ctx.remaining(), "action": ctx.action}

    return registry


@pytest.fixture
def sample_registry() -> ActionRegistry:
    return build_sample_registry()


@pytest.fixture
def sample_plugin(sample_registry: ActionRegistry) -> Plugin:
    return Plugin(SAMPLE_METADATA, sample_registry)


# ---------------------------------------------------------------------------
# Runtime invocation helper
# ---------------------------------------------------------------------------


@dataclass
class Invocation:
    """Captured result of one runtime invocation."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def document(self) -> Any:
        return json.loads(self.stdout)


@pytest.fixture
def invoke() -> Callable[..., Invocation]:
    """Run a plugin through :class:`PluginRuntime` with captured streams.

    Usage::

        result = invoke(plugin, ["echo"], b'{"message": "hi"}')
        assert result.document == {...}
    """
    from actionpack.runtime import PluginRuntime

    def _invoke(
        plugin: Plugin,
        argv: list[str],
        stdin: bytes = b"",
        settings: Optional[RuntimeSettings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> Invocation:
        out, err = io.StringIO(), io.StringIO()
        output = OutputManager(
            format=OutputFormat.JSON, no_color=True, stdout=out, stderr=err
        )
        runtime = PluginRuntime(
            plugin,
            settings=settings,
            output=output,
            stdin=io.BytesIO(stdin),
            http_transport=transport,
            handle_signals=False,
        )
        code = runtime.run(argv)
        return Invocation(exit_code=code, stdout=out.getvalue(), stderr=err.getvalue())

    return _invoke


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()

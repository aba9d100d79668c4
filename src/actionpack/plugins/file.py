"""File plugin -- read, write, copy and move files on the plugin host.

Filesystem errors are handled failures: the envelope carries the OS error
text and ``success: false``.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any

from actionpack.codec import ParameterSet
from actionpack.context import ActionContext
from actionpack.exceptions import ActionFailed
from actionpack.models import Metadata, ParamSpec
from actionpack.plugins.base import Plugin
from actionpack.registry import ActionRegistry

METADATA = Metadata(
    name="file",
    version="1.0.0",
    description="File system operations (read, write, copy, move)",
    author="actionpack",
    tags=["file", "filesystem", "io"],
    license="MIT",
)

registry = ActionRegistry()

_CREATE_DIRS = ParamSpec(
    type="boolean", default=False, description="Create destination directories"
)

_TRANSFER_INPUTS = {
    "source": ParamSpec(type="string", required=True, description="Source path"),
    "destination": ParamSpec(
        type="string", required=True, description="Destination path"
    ),
    "create_dirs": _CREATE_DIRS,
}


def _path(params: ParameterSet, key: str) -> Path:
    value = params[key]
    if not value:
        raise ActionFailed(f"{key} is required", success=False)
    return Path(value).expanduser()


def _make_parent(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ActionFailed(f"failed to create directories: {exc}", success=False) from exc


@registry.action(
    "read",
    description="Read file contents",
    inputs={"path": ParamSpec(type="string", required=True, description="File path to read")},
    outputs={
        "content": ParamSpec(type="string", description="File content"),
        "size": ParamSpec(type="number", description="File size in bytes"),
    },
)
def read(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    path = _path(params, "path")
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ActionFailed(f"failed to read file: {exc}", success=False) from exc
    return {"content": data.decode("utf-8", errors="replace"), "size": len(data)}


@registry.action(
    "write",
    description="Write content to files with directory creation",
    inputs={
        "path": ParamSpec(type="string", required=True, description="File path to write"),
        "content": ParamSpec(type="string", required=True, description="Content to write"),
        "create_dirs": ParamSpec(
            type="boolean",
            default=False,
            description="Create directories if they don't exist",
        ),
        "append": ParamSpec(
            type="boolean",
            default=False,
            description="Append to file instead of overwriting",
        ),
    },
    outputs={
        "success": ParamSpec(type="boolean", description="Write success"),
        "size": ParamSpec(type="number", description="Bytes written"),
    },
)
def write(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    path = _path(params, "path")
    if params["create_dirs"]:
        _make_parent(path)

    data = params["content"].encode("utf-8")
    mode = "ab" if params["append"] else "wb"
    try:
        with path.open(mode) as fh:
            fh.write(data)
    except OSError as exc:
        raise ActionFailed(f"failed to write file: {exc}", success=False) from exc
    return {"success": True, "size": len(data)}


@registry.action(
    "copy",
    description="Copy files and directories",
    inputs=_TRANSFER_INPUTS,
    outputs={"success": ParamSpec(type="boolean", description="Copy success")},
)
def copy(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    source = _path(params, "source")
    destination = _path(params, "destination")
    if params["create_dirs"]:
        _make_parent(destination)

    try:
        if source.is_dir():
            shutil.copytree(source, destination, dirs_exist_ok=True)
        else:
            shutil.copyfile(source, destination)
    except (OSError, shutil.Error) as exc:
        raise ActionFailed(f"failed to copy: {exc}", success=False) from exc
    return {"success": True}


@registry.action(
    "move",
    description="Move or rename files",
    inputs=_TRANSFER_INPUTS,
    outputs={"success": ParamSpec(type="boolean", description="Move success")},
)
def move(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    source = _path(params, "source")
    destination = _path(params, "destination")
    if params["create_dirs"]:
        _make_parent(destination)

    try:
        shutil.move(str(source), str(destination))
    except (OSError, shutil.Error) as exc:
        raise ActionFailed(f"failed to move file: {exc}", success=False) from exc
    return {"success": True}


PLUGIN = Plugin(METADATA, registry)


def main() -> None:
    PLUGIN.main()

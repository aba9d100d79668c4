"""Slack plugin -- messages, channels and status through the Slack Web API.

Credentials come from the request or the environment:

* ``token`` parameter (a literal token, ``env:VAR`` or ``file:/path``), else
  ``SLACK_BOT_TOKEN``.
* ``webhook_url`` parameter, else ``SLACK_WEBHOOK_URL`` (``webhook`` only).

The Web API answers ``200`` with ``{"ok": false, "error": ...}`` for most
failures, so every response is checked for ``ok`` and turned into an
:class:`~actionpack.exceptions.ActionFailed` when it is not set.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from actionpack.codec import ParameterSet
from actionpack.config import credential_from
from actionpack.context import ActionContext
from actionpack.exceptions import ActionFailed
from actionpack.models import EnvOption, Metadata, ParamSpec
from actionpack.plugins.base import Plugin
from actionpack.registry import ActionRegistry

logger = logging.getLogger(__name__)

METADATA = Metadata(
    name="slack",
    version="1.0.0",
    description="Slack workspace messaging and notifications",
    author="actionpack",
    tags=["communication", "notifications", "collaboration", "messaging"],
    license="MIT",
)

ENV_OPTIONS = [
    EnvOption(
        name="SLACK_BOT_TOKEN",
        description="Bot or user token used when no 'token' parameter is given",
        secret=True,
    ),
    EnvOption(
        name="SLACK_WEBHOOK_URL",
        description="Incoming webhook URL used by 'webhook' when no 'webhook_url' is given",
        secret=True,
    ),
]

API_BASE_URL = "https://slack.com/api"
DEFAULT_USERNAME = "actionpack"
_TOKEN_PREFIXES = ("xoxb-", "xoxp-")

registry = ActionRegistry()

_TOKEN_INPUT = ParamSpec(
    type="string",
    description="Slack token, or env:VAR / file:/path (default: $SLACK_BOT_TOKEN)",
)


# ---------------------------------------------------------------------------
# Web API helpers
# ---------------------------------------------------------------------------


def _token(params: ParameterSet) -> str:
    token = credential_from(params, "token", "SLACK_BOT_TOKEN")
    if not token.startswith(_TOKEN_PREFIXES):
        raise ActionFailed(
            "invalid slack token format (should start with xoxb- or xoxp-)",
            success=False,
        )
    return token


def _call(ctx: ActionContext, method: str, token: str, payload: dict[str, Any]) -> dict[str, Any]:
    """POST *payload* to a Web API *method* and return the decoded reply.

    Raises:
        ActionFailed: On a non-JSON reply or ``"ok": false``.
    """
    response = ctx.http.post(
        f"{API_BASE_URL}/{method}",
        headers={
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json; charset=utf-8",
        },
        json_body=payload,
    )
    try:
        body = response.json()
    except ValueError as exc:
        raise ActionFailed(
            f"slack API returned a non-JSON response (HTTP {response.status_code})",
            success=False,
            status_code=response.status_code,
        ) from exc

    if not isinstance(body, dict) or not body.get("ok"):
        reason = body.get("error", "unknown_error") if isinstance(body, dict) else "unknown_error"
        logger.info("Slack %s failed: %s", method, reason)
        raise ActionFailed(
            f"slack API error: {reason}",
            success=False,
            status_code=response.status_code,
        )
    return body


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@registry.action(
    "send_message",
    description="Send a message to a Slack channel",
    inputs={
        "token": _TOKEN_INPUT,
        "channel": ParamSpec(
            type="string",
            required=True,
            description="Channel ID or name (#general, @username, C1234567890)",
        ),
        "text": ParamSpec(
            type="string", required=True, description="Message text (supports markdown)"
        ),
        "username": ParamSpec(
            type="string", default=DEFAULT_USERNAME, description="Bot username override"
        ),
        "icon_emoji": ParamSpec(
            type="string", default=":robot_face:", description="Bot icon emoji"
        ),
        "thread_ts": ParamSpec(type="string", description="Reply in this thread"),
    },
    outputs={
        "success": ParamSpec(type="boolean", description="Whether the message was posted"),
        "ts": ParamSpec(type="string", description="Message timestamp ID"),
        "channel": ParamSpec(type="string", description="Channel ID where message was sent"),
    },
)
def send_message(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "channel": params["channel"],
        "text": params["text"],
        "username": params["username"],
        "icon_emoji": params["icon_emoji"],
    }
    thread_ts = params.get_str("thread_ts")
    if thread_ts:
        payload["thread_ts"] = thread_ts

    body = _call(ctx, "chat.postMessage", _token(params), payload)
    return {
        "success": True,
        "ts": body.get("ts", ""),
        "channel": body.get("channel", params["channel"]),
    }


@registry.action(
    "create_channel",
    description="Create a new Slack channel",
    inputs={
        "token": _TOKEN_INPUT,
        "name": ParamSpec(
            type="string",
            required=True,
            description="Channel name (no #, lowercase, no spaces)",
        ),
        "is_private": ParamSpec(
            type="boolean", default=False, description="Create as private channel"
        ),
    },
    outputs={
        "success": ParamSpec(type="boolean", description="Whether the channel was created"),
        "channel_id": ParamSpec(type="string", description="Created channel ID"),
    },
)
def create_channel(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    name = params["name"].lstrip("#")
    body = _call(
        ctx,
        "conversations.create",
        _token(params),
        {"name": name, "is_private": params["is_private"]},
    )
    channel = body.get("channel") or {}
    return {"success": True, "channel_id": channel.get("id", "")}


@registry.action(
    "set_status",
    description="Set user status message",
    inputs={
        "token": ParamSpec(
            type="string",
            description="User token with users.profile:write scope (default: $SLACK_BOT_TOKEN)",
        ),
        "status_text": ParamSpec(type="string", required=True, description="Status message text"),
        "status_emoji": ParamSpec(
            type="string", default=":speech_balloon:", description="Status emoji"
        ),
        "status_expiration": ParamSpec(
            type="number",
            default=0,
            description="Status expiration timestamp (0 for no expiration)",
        ),
    },
    outputs={
        "success": ParamSpec(type="boolean", description="Whether the status was set"),
    },
)
def set_status(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    profile = {
        "status_text": params["status_text"],
        "status_emoji": params["status_emoji"],
        "status_expiration": int(params["status_expiration"]),
    }
    _call(ctx, "users.profile.set", _token(params), {"profile": profile})
    return {"success": True}


@registry.action(
    "webhook",
    description="Send a message through an incoming webhook",
    inputs={
        "text": ParamSpec(type="string", required=True, description="Message text"),
        "webhook_url": ParamSpec(
            type="string", description="Webhook URL (default: $SLACK_WEBHOOK_URL)"
        ),
        "username": ParamSpec(
            type="string", default=DEFAULT_USERNAME, description="Bot username"
        ),
        "channel": ParamSpec(type="string", description="Override channel"),
    },
    outputs={
        "success": ParamSpec(type="boolean", description="Whether the webhook accepted the message"),
        "status_code": ParamSpec(type="number", description="HTTP status code"),
    },
)
def webhook(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    url = credential_from(params, "webhook_url", "SLACK_WEBHOOK_URL")
    payload: dict[str, Any] = {"text": params["text"], "username": params["username"]}
    channel = params.get_str("channel")
    if channel:
        payload["channel"] = channel

    response: httpx.Response = ctx.http.post(url, json_body=payload)
    if response.status_code != 200:
        raise ActionFailed(
            f"webhook rejected the message: HTTP {response.status_code} {response.text.strip()}",
            success=False,
            status_code=response.status_code,
        )
    return {"success": True, "status_code": response.status_code}


PLUGIN = Plugin(METADATA, registry, ENV_OPTIONS)


def main() -> None:
    PLUGIN.main()

"""HTTP plugin -- GET and POST requests for REST API calls.

Requests go through the handler context's
:class:`~actionpack.collaborators.http.HttpClient`, so they share its retry
policy and never outlive the invocation deadline. Any status code is a
successful exchange: the handler reports ``status_code`` and leaves the
interpretation to the workflow.
"""

from __future__ import annotations

from typing import Any, Optional

from actionpack.codec import ParameterSet
from actionpack.collaborators.http import describe_response
from actionpack.context import ActionContext
from actionpack.exceptions import ActionFailed
from actionpack.models import Metadata, ParamSpec
from actionpack.plugins.base import Plugin
from actionpack.registry import ActionRegistry

METADATA = Metadata(
    name="http",
    version="1.0.0",
    description="HTTP client for REST API calls and web requests",
    author="actionpack",
    tags=["http", "web", "api", "rest"],
    license="MIT",
)

registry = ActionRegistry()

_COMMON_INPUTS = {
    "url": ParamSpec(type="string", required=True, description="Request URL"),
    "headers": ParamSpec(type="object", description="HTTP headers"),
    "timeout": ParamSpec(
        type="number", default=30, description="Request timeout in seconds"
    ),
    "auth": ParamSpec(
        type="object", description="Basic auth with username/password"
    ),
}

_RESPONSE_OUTPUTS = {
    "status_code": ParamSpec(type="number", description="HTTP status code"),
    "headers": ParamSpec(type="object", description="Response headers"),
    "content": ParamSpec(type="string", description="Response body"),
    "json": ParamSpec(
        type="object", description="Parsed JSON response (if applicable)"
    ),
}


def _headers(params: ParameterSet) -> dict[str, str]:
    """String-valued entries of the ``headers`` object; others are dropped."""
    return {
        str(key): value
        for key, value in params.get_object("headers").items()
        if isinstance(value, str)
    }


def _basic_auth(params: ParameterSet) -> Optional[tuple[str, str]]:
    auth = params.get_object("auth")
    username, password = auth.get("username"), auth.get("password")
    if isinstance(username, str) and isinstance(password, str):
        return username, password
    return None


def _require_url(params: ParameterSet) -> str:
    url = params["url"]
    if not url.strip():
        raise ActionFailed("url is required")
    return url


@registry.action(
    "get",
    description="Make HTTP GET requests with headers",
    inputs=_COMMON_INPUTS,
    outputs=_RESPONSE_OUTPUTS,
)
def get(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    response = ctx.http.get(
        _require_url(params),
        headers=_headers(params),
        auth=_basic_auth(params),
        timeout=params.get_number("timeout"),
    )
    return describe_response(response)


@registry.action(
    "post",
    description="Make HTTP POST requests with JSON data",
    inputs={
        "url": _COMMON_INPUTS["url"],
        "headers": _COMMON_INPUTS["headers"],
        "body": ParamSpec(type="string", description="Request body as string"),
        "json": ParamSpec(type="object", description="Request body as JSON"),
        "timeout": _COMMON_INPUTS["timeout"],
        "auth": _COMMON_INPUTS["auth"],
        "content_type": ParamSpec(
            type="string",
            default="application/json",
            description="Content-Type header",
        ),
    },
    outputs=_RESPONSE_OUTPUTS,
)
def post(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    headers = {"Content-Type": params["content_type"]}
    headers.update(_headers(params))

    response = ctx.http.post(
        _require_url(params),
        headers=headers,
        json_body=params.get("json"),
        content=params.get_str("body"),
        auth=_basic_auth(params),
        timeout=params.get_number("timeout"),
    )
    return describe_response(response)


PLUGIN = Plugin(METADATA, registry)


def main() -> None:
    PLUGIN.main()

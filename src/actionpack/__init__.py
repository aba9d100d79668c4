"""actionpack -- JSON-over-stdio action plugins for workflow orchestrators.

Every plugin built on this package is a standalone executable that an
orchestrator invokes once per workflow step::

    $ actionpack-calculator metadata
    $ actionpack-calculator actions
    $ echo '{"expression": "2 + 2 * 3"}' | actionpack-calculator calculate
    {"result": 8, "expression": "2 + 2 * 3"}

The plugin reads its request from stdin, writes exactly one JSON document to
stdout and exits ``0`` for every completed exchange. Failures are reported
inside the document under an ``error`` key.

Modules:
    models: Pydantic models for metadata, action and parameter specs.
    codec: Decoding of raw request bytes into a typed ParameterSet.
    registry: Action table with registration, listing and dispatch.
    envelope: Canonical success/failure response shapes.
    runtime: The process-level stdin/stdout contract.
    context: Per-invocation handler context (deadline, collaborators).
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric process exit codes.
    output: stdout/stderr discipline with Rich diagnostics.
    config: Environment-driven settings, XDG paths and credentials.
    app: Typer developer CLI (``actionpack``).
"""

__version__ = "0.1.0"

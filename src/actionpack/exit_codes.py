"""Numeric process exit codes.

A plugin process exits :data:`EXIT_SUCCESS` for every completed protocol
exchange, including exchanges whose JSON body reports an ``error``. The
orchestrator's contract is "always parse stdout as JSON", so non-zero codes
are reserved for failures where no meaningful envelope could be produced.

The developer CLI (``actionpack``) uses the remaining codes the same way any
command-line tool would.

Example::

    $ actionpack-calculator
    {"error": "action required"}
    $ echo $?
    2   # EXIT_INVALID_USAGE -- no mode argument
"""

EXIT_SUCCESS = 0
"""The exchange completed (the body may still carry an ``error``)."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred outside the plugin protocol."""

EXIT_INVALID_USAGE = 2
"""The process was invoked without a mode or action argument."""

EXIT_CONFIG_ERROR = 3
"""Runtime settings or credentials could not be resolved."""

EXIT_PLUGIN_ERROR = 10
"""A plugin failed to load, or an action table is malformed."""

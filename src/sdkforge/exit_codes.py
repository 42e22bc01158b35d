"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~sdkforge.exceptions.SdkforgeError` subclass.
CI scripts can inspect the exit code to tell a broken OpenAPI document
apart from a failing generator without parsing stderr.

Example::

    $ sdkforge build php
    $ echo $?
    9   # EXIT_GENERATOR_ERROR -- the external generator reported a failure
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or an unknown generator."""

EXIT_SPEC_PARSE_ERROR = 7
"""The OpenAPI document could not be loaded or morphed."""

EXIT_SCRIBE_ERROR = 8
"""The scribe description file is malformed."""

EXIT_GENERATOR_ERROR = 9
"""The external code generator failed or could not be started."""

EXIT_HOOK_ERROR = 10
"""A build hook failed to load."""

EXIT_WATCH_ERROR = 11
"""A watched source directory disappeared during development mode."""

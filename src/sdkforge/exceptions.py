"""Exception hierarchy for sdkforge.

All exceptions inherit from :class:`SdkforgeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`sdkforge.exit_codes`.
The top-level error handler in :func:`sdkforge.app.main` catches
``SdkforgeError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Library code never terminates the process itself. Fatal conditions (a
malformed ``$ref``, an operationId collision, a vanished source directory)
are raised as the matching subclass and left to the entry point.

Subclass hierarchy::

    SdkforgeError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- ConfigError         (exit 1)
    +-- SpecParseError      (exit 7)
    |   +-- SpecMorphError  (exit 7)
    +-- ScribeError         (exit 8)
    +-- GeneratorError      (exit 9)
    +-- HookError           (exit 10)
    +-- WatchError          (exit 11)
    +-- SdkTestError        (exit status of the SDK test run)
"""

from sdkforge.exit_codes import (
    EXIT_GENERATOR_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_HOOK_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_SCRIBE_ERROR,
    EXIT_SPEC_PARSE_ERROR,
    EXIT_WATCH_ERROR,
)


class SdkforgeError(Exception):
    """Base exception for all sdkforge errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`sdkforge.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SdkforgeError):
    """Raised for invalid CLI arguments, unknown generators or bad variant names."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(SdkforgeError):
    """Raised for unreadable or malformed configuration files."""

    exit_code = EXIT_GENERIC_FAILURE


class SpecParseError(SdkforgeError):
    """Raised when the OpenAPI document cannot be loaded or parsed."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class SpecMorphError(SpecParseError):
    """Raised when the OpenAPI document cannot be morphed.

    Covers request-body alternatives that do not point at
    ``#/components/schemas/`` and operationId collisions that the fallback
    naming scheme cannot resolve. The document author has to fix the source.
    """


class ScribeError(SdkforgeError):
    """Raised when ``scribe.yml`` is not a valid description document or a scribe template is broken."""

    exit_code = EXIT_SCRIBE_ERROR


class GeneratorError(SdkforgeError):
    """Raised when the external generator exits non-zero, writes to stderr, or cannot start."""

    exit_code = EXIT_GENERATOR_ERROR


class HookError(SdkforgeError):
    """Raised when a generator hook module fails to load or defines no hook class."""

    exit_code = EXIT_HOOK_ERROR


class WatchError(SdkforgeError):
    """Raised when a watched generator source directory disappears."""

    exit_code = EXIT_WATCH_ERROR


class SdkTestError(SdkforgeError):
    """Raised when a generated SDK's test suite exits non-zero.

    The exit code is the test runner's own status.
    """

    exit_code = EXIT_GENERIC_FAILURE

"""Exception types for dpmon-core.

This module defines the root of the exception hierarchy used by every dpmon
package. Catching :class:`DpmonError` handles any framework-specific failure,
which is what the command-line entry point does to decide the exit code.

Exception hierarchy:
    DpmonError (base)
    +-- ConfigError: Invalid configuration file or values
    +-- InvalidChannelError: Value outside the channel enumeration
    +-- ScpiError (dpmon_scpi): Protocol and transport failures
"""


class DpmonError(Exception):
    """Base exception for all dpmon errors.

    This is the root of the dpmon exception hierarchy. Catch this to handle
    any framework-specific error.
    """


class ConfigError(DpmonError, ValueError):
    """Raised when configuration content is missing or invalid.

    Also a :class:`ValueError` so callers validating plain values can keep
    catching the builtin type.
    """


class InvalidChannelError(DpmonError):
    """Raised when a channel lookup is given a value outside the enumeration.

    Attributes:
        value: The offending value as it was passed in.
    """

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid channel: {value!r}")

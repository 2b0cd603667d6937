"""SCPI protocol error types.

This module defines exception classes for failures that may occur while
talking to an instrument. All exceptions inherit from
:class:`dpmon_core.errors.DpmonError`.

None of these errors is retried anywhere in dpmon: each one terminates the
operation that raised it and propagates to the top-level handler.
"""

from __future__ import annotations

from dataclasses import dataclass

from dpmon_core.errors import DpmonError


class ScpiError(DpmonError):
    """Base exception for SCPI protocol errors.

    All SCPI-related exceptions inherit from this class, allowing callers
    to catch all SCPI errors with a single except clause.
    """


class ScpiConnectError(ScpiError):
    """Raised when the stream to the instrument cannot be established.

    Covers resolution failures, refused connections, unreachable hosts and
    malformed addresses.

    Attributes:
        address: The ``host:port`` address that was dialed.
    """

    def __init__(self, address: str, reason: str) -> None:
        self.address = address
        super().__init__(f"Failed to connect to {address}: {reason}")


class ScpiIOError(ScpiError):
    """Raised when an exchange fails after the connection was established.

    Examples are a failed write, or the peer closing the stream before a
    reply terminator arrived.
    """


class ScpiTimeoutError(ScpiError):
    """Raised when a configured I/O deadline expires.

    Only raised by transports created with a timeout. Without one, reads
    block until the instrument answers or the connection drops.
    """


class ScpiParseError(ScpiError):
    """Raised when a reply does not have the expected shape.

    Attributes:
        response: The reply payload that failed to parse.
        field: Name of the field that failed, if the failure is per-field.
        index: Zero-based position of that field in the reply.
    """

    def __init__(
        self,
        message: str,
        *,
        response: str = "",
        field: str | None = None,
        index: int | None = None,
    ) -> None:
        self.response = response
        self.field = field
        self.index = index
        super().__init__(message)


class ModelMismatchError(ScpiError):
    """Raised when the identified instrument is not the expected model.

    Attributes:
        expected: Model string the caller asked for.
        observed: Model string reported by the instrument.
    """

    def __init__(self, expected: str, observed: str) -> None:
        self.expected = expected
        self.observed = observed
        super().__init__(f"Expected model {expected}, found {observed}")


@dataclass(frozen=True)
class ScpiInstrumentError:
    """Single error from an instrument's error queue.

    Attributes:
        code: SCPI error code (negative for standard errors, positive for device-specific).
        message: Human-readable error description from the instrument.
    """

    code: int
    message: str

    def __str__(self) -> str:
        """Return SCPI-format error string.

        Returns:
            Error formatted as ``code,"message"``.
        """
        return f'{self.code},"{self.message}"'


class ScpiCommandError(ScpiError):
    """Raised when an instrument reports errors after a command or query.

    Only raised by connections created with ``check_errors=True``.

    Attributes:
        errors: One or more errors drained from the instrument's error queue.
    """

    def __init__(self, errors: tuple[ScpiInstrumentError, ...]) -> None:
        self.errors = errors
        messages = "; ".join(str(e) for e in errors)
        super().__init__(f"SCPI instrument error(s): {messages}")

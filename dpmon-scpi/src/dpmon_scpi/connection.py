"""SCPI connection: one command, one reply.

This module provides the :class:`ScpiConnection` class, which wraps a
transport to provide the command/response exchange used by every higher
layer, plus optional instrument error queue checking.

Typical usage::

    from dpmon_scpi import connect

    conn = connect("192.168.0.200:5555")
    print(conn.query("*IDN?"))
    conn.close()
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from dpmon_scpi.errors import ScpiCommandError, ScpiInstrumentError
from dpmon_scpi.transport import SocketTransport

if TYPE_CHECKING:
    from dpmon_scpi.transport import ScpiTransport

logger = logging.getLogger(__name__)

# Matches SCPI error responses: optional +/- code, comma, optional quoted message.
_ERROR_RE = re.compile(r"^\s*([+-]?\d+)\s*,\s*\"?([^\"]*)\"?\s*$")


class ScpiConnection:
    """SCPI connection wrapping a transport.

    Every :meth:`query` is a single exchange: one write, one read, and the
    reply payload handed back exactly as the transport produced it. Nothing
    is retried.

    With ``check_errors=True`` each command or query is followed by draining
    the instrument's ``SYST:ERR?`` queue, and queued errors raise
    :class:`ScpiCommandError`. This is off by default, which keeps the wire
    traffic to exactly the commands the caller issues.

    Args:
        transport: An open :class:`ScpiTransport` instance.
        check_errors: Enable automatic error queue checking.

    Example:
        >>> conn = ScpiConnection(transport)
        >>> payload = conn.query("MEAS:ALL? CH1")
    """

    def __init__(self, transport: ScpiTransport, *, check_errors: bool = False) -> None:
        self._transport = transport
        self._check_errors = check_errors

    @property
    def transport(self) -> ScpiTransport:
        """The underlying transport."""
        return self._transport

    @property
    def check_errors(self) -> bool:
        """Whether the error queue is drained after every exchange."""
        return self._check_errors

    # -- Core operations -----------------------------------------------------

    def command(self, cmd: str, *, check: bool | None = None) -> None:
        """Send a SCPI command (no response expected).

        Args:
            cmd: The SCPI command string (e.g. ``"OUTP CH1,ON"``).
            check: Override the instance-level error check setting.

        Raises:
            ScpiIOError: If the write fails.
            ScpiCommandError: If error checking is on and the instrument
                reports errors.
        """
        logger.debug("-> %s", cmd)
        self._transport.write(cmd)
        self._check(check)

    def query(self, cmd: str, *, check: bool | None = None) -> str:
        """Send a SCPI query and return the reply payload.

        Args:
            cmd: The SCPI query string (e.g. ``"*IDN?"``).
            check: Override the instance-level error check setting.

        Returns:
            The reply payload with its terminator removed.

        Raises:
            ScpiIOError: If the write or read fails.
            ScpiTimeoutError: If the transport deadline expires.
            ScpiParseError: If the reply framing is malformed.
            ScpiCommandError: If error checking is on and the instrument
                reports errors.
        """
        logger.debug("-> %s", cmd)
        self._transport.write(cmd)
        response = self._transport.read()
        logger.debug("<- %s", response)
        self._check(check)
        return response

    # -- Error queue ---------------------------------------------------------

    def get_errors(self) -> tuple[ScpiInstrumentError, ...]:
        """Drain the instrument error queue.

        Repeatedly queries ``SYST:ERR?`` until the instrument returns a
        ``0,"No error"`` response.

        Returns:
            A tuple of :class:`ScpiInstrumentError` for every queued error.
            Empty if no errors.
        """
        errors: list[ScpiInstrumentError] = []
        while True:
            self._transport.write("SYST:ERR?")
            raw = self._transport.read().strip()
            error = self._parse_error_response(raw)
            if error is None:
                break
            errors.append(error)
        return tuple(errors)

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()

    # -- Private helpers -----------------------------------------------------

    def _check(self, override: bool | None) -> None:
        """Drain the error queue and raise if errors are found."""
        should_check = self._check_errors if override is None else override
        if not should_check:
            return
        errors = self.get_errors()
        if errors:
            raise ScpiCommandError(errors)

    @staticmethod
    def _parse_error_response(raw: str) -> ScpiInstrumentError | None:
        """Parse a ``SYST:ERR?`` response into an error object.

        Returns ``None`` when the response indicates no error (code 0).
        """
        match = _ERROR_RE.match(raw)
        if match is None:
            return None
        code = int(match.group(1))
        message = match.group(2).strip()
        if code == 0:
            return None
        return ScpiInstrumentError(code=code, message=message)


def connect(
    address: str,
    *,
    timeout: float | None = None,
    check_errors: bool = False,
) -> ScpiConnection:
    """Open a raw socket connection to an instrument.

    Args:
        address: Instrument address in ``host:port`` form.
        timeout: Optional I/O deadline in seconds. ``None`` blocks forever.
        check_errors: Enable automatic error queue checking.

    Returns:
        A connection over an open :class:`SocketTransport`.

    Raises:
        ScpiConnectError: If the connection cannot be established.
    """
    transport = SocketTransport(address, timeout=timeout)
    transport.open()
    return ScpiConnection(transport, check_errors=check_errors)

"""SCPI transport protocol and raw TCP socket transport.

This module defines the :class:`ScpiTransport` protocol, which specifies the
interface that all SCPI transport implementations must provide, and
:class:`SocketTransport`, the raw stream socket transport used to talk to
LAN instruments on their SCPI socket port.

Framing contract of :class:`SocketTransport`:

- Every command is sent as ASCII text followed by a single line feed.
- A reply is everything read up to and including the first line feed. The
  instrument terminates replies with ``\\r\\n``, so the payload handed back is
  the line minus the last :data:`TERMINATOR_WIDTH` bytes. A device that
  answered with a bare ``\\n`` would lose its last payload byte; the width is
  a per-transport setting for that reason.

Implementations include:
- :class:`SocketTransport`: raw TCP socket for real hardware
- :class:`dpmon_rigol.emulator.Dp832Emulator`: in-process emulator
"""

from __future__ import annotations

import logging
import math
import socket
from typing import Protocol

from dpmon_scpi.errors import (
    ScpiConnectError,
    ScpiIOError,
    ScpiParseError,
    ScpiTimeoutError,
)

logger = logging.getLogger(__name__)

WRITE_TERMINATOR = b"\n"
"""Byte appended to every outgoing command."""

READ_TERMINATOR = b"\r\n"
"""End-of-line sequence the instrument appends to every reply."""

TERMINATOR_WIDTH = len(READ_TERMINATOR)
"""Number of trailing bytes stripped from every reply line."""

_RECV_SIZE = 4096


class ScpiTransport(Protocol):
    """Protocol for SCPI message transport.

    Implementations provide the physical layer for sending commands to and
    receiving responses from SCPI instruments. Callers are responsible for
    opening the transport before passing it to :class:`ScpiConnection`.

    This is a structural subtyping protocol (duck typing). Any class that
    implements ``write()``, ``read()``, and ``close()`` methods with the
    correct signatures is considered a valid transport.
    """

    def write(self, message: str) -> None:
        """Send a message to the instrument.

        Args:
            message: The SCPI command or query string to send, without
                terminator.
        """
        ...

    def read(self) -> str:
        """Read one response from the instrument.

        Returns:
            The response payload without its terminator.
        """
        ...

    def close(self) -> None:
        """Close the transport and release resources."""
        ...


def parse_address(address: str) -> tuple[str, int]:
    """Split a ``host:port`` address.

    IPv6 hosts must be written in brackets (``[::1]:5555``).

    Args:
        address: The address string.

    Returns:
        Tuple of (host, port).

    Raises:
        ScpiConnectError: If the address is malformed.
    """
    host, sep, port_text = address.rpartition(":")
    if not sep or not host:
        raise ScpiConnectError(address, "address must be in host:port form")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_text)
    except ValueError:
        raise ScpiConnectError(address, f"invalid port {port_text!r}") from None
    if not 0 < port < 65536:
        raise ScpiConnectError(address, f"port out of range: {port}")
    return host, port


class SocketTransport:
    """SCPI transport over a raw TCP stream socket.

    The socket is exclusively owned by one caller; there is no locking.
    Nothing is retried: every failure is raised to the caller.

    Attributes:
        address: The ``host:port`` address of the instrument.
        is_open: Whether the socket is currently connected.

    Args:
        address: Instrument address in ``host:port`` form.
        timeout: Optional deadline in seconds for connect, write, and each
            read. ``None`` (default) blocks indefinitely.
        terminator_width: Number of trailing bytes stripped from every
            reply line. Defaults to :data:`TERMINATOR_WIDTH`.

    Example:
        >>> transport = SocketTransport("192.168.0.200:5555")
        >>> transport.open()
        >>> transport.write("*IDN?")
        >>> print(transport.read())
        >>> transport.close()
    """

    def __init__(
        self,
        address: str,
        *,
        timeout: float | None = None,
        terminator_width: int = TERMINATOR_WIDTH,
    ) -> None:
        if timeout is not None and (not math.isfinite(timeout) or timeout <= 0):
            raise ValueError(f"timeout must be finite and > 0, got {timeout}")
        if terminator_width < 1:
            raise ValueError(f"terminator_width must be >= 1, got {terminator_width}")
        self._address = address
        self._timeout = timeout
        self._terminator_width = terminator_width
        self._sock: socket.socket | None = None
        self._buffer = bytearray()

    # -- Properties ----------------------------------------------------------

    @property
    def address(self) -> str:
        """The ``host:port`` address of the instrument."""
        return self._address

    @property
    def timeout(self) -> float | None:
        """I/O deadline in seconds, or None when blocking indefinitely."""
        return self._timeout

    @property
    def is_open(self) -> bool:
        """Return True if the socket is currently connected."""
        return self._sock is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Connect to the instrument.

        Raises:
            ScpiConnectError: If the address is malformed, cannot be
                resolved, or the connection is refused or times out.
        """
        if self._sock is not None:
            return
        host, port = parse_address(self._address)
        try:
            sock = socket.create_connection((host, port), timeout=self._timeout)
        except OSError as exc:
            raise ScpiConnectError(self._address, str(exc) or type(exc).__name__) from exc
        self._sock = sock
        self._buffer.clear()
        logger.debug("Connected to %s", self._address)

    def close(self) -> None:
        """Close the socket.

        Safe to call multiple times.
        """
        if self._sock is None:
            return
        try:
            self._sock.close()
        finally:
            self._sock = None
            self._buffer.clear()
        logger.debug("Closed connection to %s", self._address)

    # -- Transport interface -------------------------------------------------

    def write(self, message: str) -> None:
        """Send a command followed by a single line feed.

        Args:
            message: The SCPI command or query string.

        Raises:
            ScpiIOError: If the transport is not open, the message is not
                ASCII, or the socket write fails.
            ScpiTimeoutError: If the write does not complete in time.
        """
        sock = self._require_open()
        try:
            data = message.encode("ascii") + WRITE_TERMINATOR
        except UnicodeEncodeError as exc:
            raise ScpiIOError(f"Command is not ASCII: {message!r}") from exc
        try:
            sock.sendall(data)
        except socket.timeout as exc:
            raise ScpiTimeoutError(
                f"Timed out after {self._timeout}s writing to {self._address}"
            ) from exc
        except OSError as exc:
            raise ScpiIOError(f"Write to {self._address} failed: {exc}") from exc

    def read(self) -> str:
        """Read one reply line and strip its terminator.

        Returns:
            The reply payload.

        Raises:
            ScpiIOError: If the transport is not open, the peer closes the
                stream before a line feed arrives, or the socket read fails.
            ScpiTimeoutError: If no complete line arrives in time.
            ScpiParseError: If the line is shorter than the terminator or the
                payload is not ASCII.
        """
        line = self._read_line()
        if len(line) < self._terminator_width:
            raise ScpiParseError(
                f"Reply {bytes(line)!r} is shorter than its {self._terminator_width}-byte terminator",
                response=bytes(line).decode("ascii", errors="replace"),
            )
        payload = bytes(line[: len(line) - self._terminator_width])
        try:
            return payload.decode("ascii")
        except UnicodeDecodeError as exc:
            raise ScpiParseError(
                f"Reply is not ASCII: {payload!r}",
                response=payload.decode("ascii", errors="replace"),
            ) from exc

    # -- Private helpers -----------------------------------------------------

    def _require_open(self) -> socket.socket:
        if self._sock is None:
            raise ScpiIOError("Transport is not open")
        return self._sock

    def _read_line(self) -> bytearray:
        """Return bytes up to and including the first line feed.

        Bytes received past the line feed are kept for the next call.
        """
        sock = self._require_open()
        while True:
            end = self._buffer.find(b"\n")
            if end >= 0:
                line = self._buffer[: end + 1]
                del self._buffer[: end + 1]
                return line
            try:
                chunk = sock.recv(_RECV_SIZE)
            except socket.timeout as exc:
                raise ScpiTimeoutError(
                    f"Timed out after {self._timeout}s waiting for reply from {self._address}"
                ) from exc
            except OSError as exc:
                raise ScpiIOError(f"Read from {self._address} failed: {exc}") from exc
            if not chunk:
                raise ScpiIOError(
                    f"Connection to {self._address} closed before reply terminator"
                )
            self._buffer.extend(chunk)

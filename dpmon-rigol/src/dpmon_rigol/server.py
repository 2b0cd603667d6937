"""TCP server exposing the DP832 emulator on a raw socket.

Serves any ``ScpiTransport`` over TCP the way a DP832 serves its LAN port:
one command per line, and one reply line per query. Replies end with
``\\r\\n`` by default, the same two-byte terminator the real instrument
sends, so :class:`dpmon_scpi.SocketTransport` can talk to it unchanged.

Example:
    Start an emulator server on an ephemeral port::

        from dpmon_rigol import EmulatorServer, make_dp832_emulator

        server = EmulatorServer(make_dp832_emulator(), port=0)
        server.start()

        host, port = server.address
        # nc {host} {port}
        # > *IDN?
        # < RIGOL TECHNOLOGIES,DP832,DP8A000000001,00.01.14

        server.stop()
"""

from __future__ import annotations

import logging
import socketserver
import threading
from typing import Any

from dpmon_scpi import ScpiTransport

logger = logging.getLogger(__name__)

DEFAULT_EMULATOR_PORT = 5555


class _ScpiRequestHandler(socketserver.StreamRequestHandler):
    """Handle one TCP connection, forwarding lines to the emulator."""

    server: _ScpiTcpServer

    def handle(self) -> None:
        """Process lines until the client disconnects.

        Every non-empty line is written to the transport. Lines containing
        ``?`` are answered with the transport's reply plus the line ending.
        """
        logger.debug("Client connected: %s:%s", *self.client_address[:2])
        for raw_line in self.rfile:
            line = raw_line.decode("ascii", errors="replace").strip()
            if not line:
                continue
            transport = self.server.transport
            transport.write(line)
            if "?" in line:
                response = transport.read()
                self.wfile.write((response + self.server.line_ending).encode("ascii"))
                self.wfile.flush()
        logger.debug("Client disconnected: %s:%s", *self.client_address[:2])


class _ScpiTcpServer(socketserver.TCPServer):
    """TCPServer that holds the transport and reply line ending."""

    allow_reuse_address = True

    def __init__(
        self,
        server_address: tuple[str, int],
        transport: ScpiTransport,
        line_ending: str,
        **kwargs: Any,
    ) -> None:
        self.transport = transport
        self.line_ending = line_ending
        super().__init__(server_address, _ScpiRequestHandler, **kwargs)


class EmulatorServer:
    """TCP server wrapping any ``ScpiTransport`` for socket access.

    Handles one client connection at a time.

    Args:
        transport: The SCPI transport (typically an emulator) to serve.
        host: Bind address.
        port: Bind port. Use ``0`` for an OS-assigned ephemeral port.
        line_ending: Appended to every reply.
    """

    def __init__(
        self,
        transport: ScpiTransport,
        host: str = "127.0.0.1",
        port: int = DEFAULT_EMULATOR_PORT,
        line_ending: str = "\r\n",
    ) -> None:
        if not line_ending:
            raise ValueError("line_ending must be non-empty")
        self._server = _ScpiTcpServer((host, port), transport, line_ending)
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start serving in a daemon thread."""
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.debug("Emulator listening on %s:%d", *self.address)

    def serve_forever(self) -> None:
        """Serve in the calling thread until interrupted."""
        logger.info("Emulator listening on %s:%d", *self.address)
        try:
            self._server.serve_forever()
        finally:
            self._server.server_close()

    def stop(self) -> None:
        """Shut down the background thread, if any, and close the socket."""
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join()
            self._thread = None
        self._server.server_close()

    @property
    def address(self) -> tuple[str, int]:
        """Actual bound ``(host, port)``; useful when binding to port 0."""
        addr = self._server.server_address
        return (str(addr[0]), int(addr[1]))

    @property
    def address_string(self) -> str:
        """Bound address in ``host:port`` form, as accepted by ``connect``."""
        host, port = self.address
        return f"{host}:{port}"

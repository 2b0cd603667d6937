"""Tests for ScpiConnection using a mock transport."""

from __future__ import annotations

import logging
import socket
from collections import deque

import pytest

from dpmon_scpi.connection import ScpiConnection, connect
from dpmon_scpi.errors import ScpiCommandError, ScpiConnectError, ScpiInstrumentError

# ---------------------------------------------------------------------------
# Mock transport
# ---------------------------------------------------------------------------


class MockTransport:
    """In-memory transport that replays pre-loaded responses."""

    def __init__(self, responses: list[str] | None = None) -> None:
        self.responses: deque[str] = deque(responses or [])
        self.written: list[str] = []
        self.closed: bool = False

    def write(self, message: str) -> None:
        self.written.append(message)

    def read(self) -> str:
        return self.responses.popleft()

    def close(self) -> None:
        self.closed = True


def _no_error() -> str:
    """Standard 'no error' response."""
    return '0,"No error"'


# ---------------------------------------------------------------------------
# query
# ---------------------------------------------------------------------------


class TestQuery:
    """Tests for ScpiConnection.query."""

    def test_one_write_one_read(self) -> None:
        transport = MockTransport(["RIGOL TECHNOLOGIES,DP832,DP8A1,00.01"])
        conn = ScpiConnection(transport)
        assert conn.query("*IDN?") == "RIGOL TECHNOLOGIES,DP832,DP8A1,00.01"
        assert transport.written == ["*IDN?"]
        assert not transport.responses

    def test_payload_returned_unchanged(self) -> None:
        transport = MockTransport(["  0.1200,5.0000,0.6000 "])
        conn = ScpiConnection(transport)
        assert conn.query("MEAS:ALL? CH1") == "  0.1200,5.0000,0.6000 "

    def test_logs_wire_traffic_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        transport = MockTransport(["1"])
        conn = ScpiConnection(transport)
        with caplog.at_level(logging.DEBUG, logger="dpmon_scpi.connection"):
            conn.query("*OPC?")
        assert "-> *OPC?" in caplog.text
        assert "<- 1" in caplog.text

    def test_error_after_query_raises_when_checking(self) -> None:
        transport = MockTransport(["0.0", '-100,"Command error"', _no_error()])
        conn = ScpiConnection(transport, check_errors=True)
        with pytest.raises(ScpiCommandError):
            conn.query("MEAS?")

    def test_no_error_check_by_default(self) -> None:
        transport = MockTransport(["0.0"])
        conn = ScpiConnection(transport)
        conn.query("MEAS:ALL? CH1")
        assert transport.written == ["MEAS:ALL? CH1"]


# ---------------------------------------------------------------------------
# command
# ---------------------------------------------------------------------------


class TestCommand:
    """Tests for ScpiConnection.command."""

    def test_sends_command_only(self) -> None:
        transport = MockTransport([])
        conn = ScpiConnection(transport)
        conn.command("*RST")
        assert transport.written == ["*RST"]

    def test_instance_check_errors_true(self) -> None:
        transport = MockTransport([_no_error()])
        conn = ScpiConnection(transport, check_errors=True)
        conn.command("*RST")
        assert transport.written == ["*RST", "SYST:ERR?"]

    def test_error_raises_scpi_command_error(self) -> None:
        transport = MockTransport(['-220,"Parameter error"', _no_error()])
        conn = ScpiConnection(transport, check_errors=True)
        with pytest.raises(ScpiCommandError) as exc_info:
            conn.command("APPL CH9,1,1")
        assert exc_info.value.errors == (ScpiInstrumentError(-220, "Parameter error"),)

    def test_per_call_check_overrides_instance(self) -> None:
        transport = MockTransport([_no_error()])
        conn = ScpiConnection(transport)
        conn.command("*RST", check=True)
        assert transport.written == ["*RST", "SYST:ERR?"]

    def test_per_call_check_false_skips(self) -> None:
        transport = MockTransport([])
        conn = ScpiConnection(transport, check_errors=True)
        conn.command("*RST", check=False)
        assert transport.written == ["*RST"]


# ---------------------------------------------------------------------------
# Error queue
# ---------------------------------------------------------------------------


class TestGetErrors:
    """Tests for ScpiConnection.get_errors."""

    def test_empty_queue(self) -> None:
        conn = ScpiConnection(MockTransport([_no_error()]))
        assert conn.get_errors() == ()

    def test_drains_until_no_error(self) -> None:
        transport = MockTransport(['-100,"Command error"', '-222,"Data out of range"', _no_error()])
        conn = ScpiConnection(transport)
        errors = conn.get_errors()
        assert [e.code for e in errors] == [-100, -222]
        assert errors[1].message == "Data out of range"
        assert transport.written == ["SYST:ERR?"] * 3

    def test_instrument_error_str(self) -> None:
        assert str(ScpiInstrumentError(-100, "Command error")) == '-100,"Command error"'


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    """Tests for close and connect."""

    def test_close_closes_transport(self) -> None:
        transport = MockTransport()
        conn = ScpiConnection(transport)
        conn.close()
        assert transport.closed

    def test_properties(self) -> None:
        transport = MockTransport()
        conn = ScpiConnection(transport, check_errors=True)
        assert conn.transport is transport
        assert conn.check_errors

    def test_connect_opens_socket(self) -> None:
        with socket.create_server(("127.0.0.1", 0)) as srv:
            port = srv.getsockname()[1]
            conn = connect(f"127.0.0.1:{port}", timeout=2)
            peer, _ = srv.accept()
            with peer:
                assert conn.transport.is_open  # type: ignore[attr-defined]
                conn.close()
                assert not conn.transport.is_open  # type: ignore[attr-defined]

    def test_connect_failure(self) -> None:
        with pytest.raises(ScpiConnectError):
            connect("not-an-address")

"""SCPI protocol library for dpmon.

This package provides the SCPI (Standard Commands for Programmable
Instruments) communication layer used to talk to LAN power supplies. It
includes:

- Transport abstraction and a raw TCP socket transport with the reply
  framing contract
- A connection providing the one-command/one-reply exchange
- The ``*IDN?`` identification handshake with model verification
- Number parsing utilities for SCPI responses
- Custom exception types for SCPI protocol errors

Typical usage::

    from dpmon_scpi import connect_and_verify

    conn, identity = connect_and_verify("192.168.0.200:5555", "DP832")
    print(f"Connected to {identity.manufacturer} {identity.model}")
    print(conn.query("MEAS:ALL? CH1"))
"""

from dpmon_scpi.connection import ScpiConnection, connect
from dpmon_scpi.errors import (
    ModelMismatchError,
    ScpiCommandError,
    ScpiConnectError,
    ScpiError,
    ScpiInstrumentError,
    ScpiIOError,
    ScpiParseError,
    ScpiTimeoutError,
)
from dpmon_scpi.handshake import (
    connect_and_verify,
    identify,
    parse_idn_response,
    verify_model,
)
from dpmon_scpi.number import parse_fields, parse_number
from dpmon_scpi.transport import (
    READ_TERMINATOR,
    TERMINATOR_WIDTH,
    WRITE_TERMINATOR,
    ScpiTransport,
    SocketTransport,
    parse_address,
)

__all__ = [
    # Connection
    "ScpiConnection",
    "connect",
    # Handshake
    "connect_and_verify",
    "identify",
    "parse_idn_response",
    "verify_model",
    # Errors
    "ModelMismatchError",
    "ScpiCommandError",
    "ScpiConnectError",
    "ScpiError",
    "ScpiInstrumentError",
    "ScpiIOError",
    "ScpiParseError",
    "ScpiTimeoutError",
    # Number parsing
    "parse_fields",
    "parse_number",
    # Transport
    "READ_TERMINATOR",
    "TERMINATOR_WIDTH",
    "WRITE_TERMINATOR",
    "ScpiTransport",
    "SocketTransport",
    "parse_address",
]

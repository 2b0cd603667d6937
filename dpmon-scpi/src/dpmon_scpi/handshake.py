"""Identification handshake.

Before any other traffic the instrument is asked for its identity with
``*IDN?`` and the reported model is compared with the one the caller
expects. A different model may use a different command set, so a mismatch
aborts the session before a single measurement command is sent.
"""

from __future__ import annotations

import logging

from dpmon_core.types import InstrumentIdentity

from dpmon_scpi.connection import ScpiConnection, connect
from dpmon_scpi.errors import ModelMismatchError, ScpiParseError

logger = logging.getLogger(__name__)

IDN_QUERY = "*IDN?"


def parse_idn_response(response: str) -> InstrumentIdentity:
    """Parse a SCPI ``*IDN?`` response into an :class:`InstrumentIdentity`.

    The standard ``*IDN?`` response format is four comma-separated fields::

        manufacturer,model,serial_number,firmware_version

    If the response contains more than four comma-separated fields, the
    extra fields are joined into the version string.

    Args:
        response: The ``*IDN?`` reply payload.

    Returns:
        Parsed identity with manufacturer, model, serial, and version.

    Raises:
        ScpiParseError: If the response has fewer than four fields.
    """
    parts = [p.strip() for p in response.split(",")]
    if len(parts) < 4:
        raise ScpiParseError(
            f"Expected 4 comma-separated fields in *IDN? response, "
            f"got {len(parts)}: {response!r}",
            response=response,
        )
    return InstrumentIdentity(
        manufacturer=parts[0],
        model=parts[1],
        serial=parts[2],
        version=",".join(parts[3:]),
    )


def identify(connection: ScpiConnection) -> InstrumentIdentity:
    """Query and parse the instrument identification (``*IDN?``).

    Args:
        connection: An open connection.

    Returns:
        The parsed identity.

    Raises:
        ScpiIOError: If the exchange fails.
        ScpiParseError: If the reply is malformed.
    """
    return parse_idn_response(connection.query(IDN_QUERY))


def verify_model(identity: InstrumentIdentity, expected_model: str) -> None:
    """Check that an identity reports exactly the expected model.

    Raises:
        ModelMismatchError: If the model strings differ.
    """
    if identity.model != expected_model:
        raise ModelMismatchError(expected=expected_model, observed=identity.model)


def connect_and_verify(
    address: str,
    expected_model: str,
    *,
    timeout: float | None = None,
    check_errors: bool = False,
) -> tuple[ScpiConnection, InstrumentIdentity]:
    """Connect, identify, and verify the instrument model.

    If identification or verification fails, the connection is closed
    before the error propagates.

    Args:
        address: Instrument address in ``host:port`` form.
        expected_model: Model string the instrument must report.
        timeout: Optional I/O deadline in seconds.
        check_errors: Enable automatic error queue checking on the
            returned connection.

    Returns:
        Tuple of (connection, identity).

    Raises:
        ScpiConnectError: If the connection cannot be established.
        ScpiIOError: If the identification exchange fails.
        ScpiParseError: If the identification reply is malformed.
        ModelMismatchError: If the instrument is a different model.
    """
    connection = connect(address, timeout=timeout, check_errors=check_errors)
    try:
        identity = identify(connection)
        verify_model(identity, expected_model)
    except BaseException:
        connection.close()
        raise
    logger.info(
        "Connected to %s %s (serial %s, firmware %s) at %s",
        identity.manufacturer,
        identity.model,
        identity.serial,
        identity.version,
        address,
    )
    return connection, identity

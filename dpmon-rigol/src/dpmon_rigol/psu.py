"""Rigol DP832 measurement driver.

Wraps a ``ScpiConnection`` to read live output measurements from a Rigol
DP832 triple-output power supply.

The ``MEAS:ALL?`` reply lists current first, then voltage, then power. This
order is what the instrument sends and must not be rearranged. Readings are
passed through as reported: no unit conversion and no clamping to the rated
channel ranges.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from dpmon_core.types import InstrumentIdentity
from dpmon_scpi import ScpiConnection, connect_and_verify, parse_fields

from dpmon_rigol.channel import PHYSICAL_CHANNELS, REGISTRY, Channel

EXPECTED_MODEL = "DP832"

MEASURE_FIELDS: tuple[str, ...] = ("current", "voltage", "power")
"""Field names of a ``MEAS:ALL?`` reply, in reply order."""


@dataclass(frozen=True)
class Measurement:
    """One reading of a channel.

    Attributes:
        channel: The channel that was queried.
        voltage: Output voltage in volts.
        current: Output current in amps.
        power: Output power in watts.
    """

    channel: Channel
    voltage: float
    current: float
    power: float

    def __str__(self) -> str:
        return f"{self.channel.label}: {self.voltage:f}V {self.current:f}A {self.power:f}W"


def measure_query(channel: Channel) -> str:
    """Build the ``MEAS:ALL?`` query for a channel.

    Raises:
        InvalidChannelError: If *channel* is not a registered channel.
    """
    return f"MEAS:ALL? {REGISTRY.token(channel)}"


def parse_measurement(channel: Channel, payload: str) -> Measurement:
    """Decode a ``MEAS:ALL?`` reply.

    Args:
        channel: The channel that was queried. The reply itself carries no
            channel identity.
        payload: Reply payload, e.g. ``"1.234,5.678,9.012"``.

    Returns:
        The measurement for *channel*.

    Raises:
        ScpiParseError: If the reply does not have exactly three fields or a
            field is not a number.
    """
    current, voltage, power = parse_fields(payload, MEASURE_FIELDS)
    return Measurement(channel=channel, voltage=voltage, current=current, power=power)


def measure(connection: ScpiConnection, channel: Channel) -> Measurement:
    """Query and decode the live readings of one channel.

    Args:
        connection: An open connection to a verified DP832.
        channel: The channel to read.

    Returns:
        A fresh measurement whose channel is *channel*.

    Raises:
        InvalidChannelError: If *channel* is not a registered channel.
        ScpiIOError: If the exchange fails.
        ScpiParseError: If the reply is malformed.
    """
    return parse_measurement(channel, connection.query(measure_query(channel)))


class Dp832:
    """High-level driver for the Rigol DP832.

    Args:
        connection: An open ``ScpiConnection`` to the instrument.
        identity: Identity reported during the handshake, if known.
    """

    def __init__(
        self,
        connection: ScpiConnection,
        identity: InstrumentIdentity | None = None,
    ) -> None:
        self._conn = connection
        self._identity = identity

    @property
    def identity(self) -> InstrumentIdentity | None:
        """Identity reported during the handshake."""
        return self._identity

    @property
    def connection(self) -> ScpiConnection:
        """The underlying connection."""
        return self._conn

    def measure(self, channel: Channel) -> Measurement:
        """Measure voltage, current, and power of one channel."""
        return measure(self._conn, channel)

    def measure_all(self, channels: Iterable[Channel] = PHYSICAL_CHANNELS) -> list[Measurement]:
        """Measure several channels in order.

        The first failure propagates; later channels are not queried.
        """
        return [self.measure(channel) for channel in channels]

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()


def create_instrument(
    address: str,
    *,
    timeout: float | None = None,
    expected_model: str = EXPECTED_MODEL,
    check_errors: bool = False,
) -> Dp832:
    """Connect to a DP832 and verify its identity.

    Standard factory entry point for the CLI and programmatic use.

    Args:
        address: Instrument address in ``host:port`` form.
        timeout: Optional I/O deadline in seconds.
        expected_model: Model the instrument must report.
        check_errors: Drain the instrument error queue after every exchange.

    Returns:
        A connected driver.

    Raises:
        ScpiConnectError: If the connection cannot be established.
        ScpiIOError: If the identification exchange fails.
        ScpiParseError: If the identification reply is malformed.
        ModelMismatchError: If the instrument is not *expected_model*.
    """
    connection, identity = connect_and_verify(
        address,
        expected_model,
        timeout=timeout,
        check_errors=check_errors,
    )
    return Dp832(connection, identity)

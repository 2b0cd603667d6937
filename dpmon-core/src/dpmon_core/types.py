"""Common types shared across dpmon packages."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class InstrumentIdentity:
    """Instrument identification metadata.

    Represents the four standard fields returned by the SCPI ``*IDN?`` query.
    Produced once by the handshake and held for the lifetime of the
    connection.

    Attributes:
        manufacturer: Instrument manufacturer name (e.g., "RIGOL TECHNOLOGIES").
        model: Instrument model number or name (e.g., "DP832").
        serial: Serial number string.
        version: Firmware version string.

    Example:
        >>> identity = InstrumentIdentity(
        ...     manufacturer="RIGOL TECHNOLOGIES",
        ...     model="DP832",
        ...     serial="DP8A123456789",
        ...     version="00.01.02.03",
        ... )
    """

    manufacturer: str
    model: str
    serial: str
    version: str

    def __str__(self) -> str:
        """Return the identity in ``*IDN?`` field order."""
        return f"{self.manufacturer},{self.model},{self.serial},{self.version}"

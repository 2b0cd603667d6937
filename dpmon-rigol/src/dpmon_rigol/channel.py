"""Output channels of the Rigol DP832 and their rated envelopes.

The DP832 has three physical outputs plus an "aggregate" argument form in
which the channel is omitted from a query. Each channel has two names:

- a display label (``Ch1``) used in logs and reports,
- a protocol token (``CH1``) used as the query argument. The aggregate
  channel encodes as an empty argument.

The registry is built once at import time and cannot be modified. Rated
ranges are advisory data only; readings are never checked against them.

Example:
    >>> REGISTRY.token(Channel.CH2)
    'CH2'
    >>> REGISTRY.lookup("ch3")
    <Channel.CH3: 3>
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping

from dpmon_core.errors import InvalidChannelError


class Channel(Enum):
    """Closed enumeration of DP832 channel arguments.

    Attributes:
        AGGREGATE: Channel argument omitted from the query.
        CH1: Output 1 (30 V / 3 A).
        CH2: Output 2 (30 V / 3 A).
        CH3: Output 3 (5 V / 3 A).
    """

    AGGREGATE = 0
    CH1 = 1
    CH2 = 2
    CH3 = 3

    @property
    def label(self) -> str:
        """Display label, e.g. ``Ch1``."""
        return REGISTRY.label(self)

    @property
    def token(self) -> str:
        """Protocol argument token, e.g. ``CH1`` (empty for AGGREGATE)."""
        return REGISTRY.token(self)

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class ChannelRange:
    """Rated voltage and current envelope of one output.

    Args:
        voltage_min: Lowest rated voltage in volts.
        voltage_max: Highest rated voltage in volts.
        current_min: Lowest rated current in amps.
        current_max: Highest rated current in amps.

    Raises:
        ValueError: If any bound is negative or a minimum exceeds its maximum.
    """

    voltage_min: float
    voltage_max: float
    current_min: float
    current_max: float

    def __post_init__(self) -> None:
        for name in ("voltage_min", "voltage_max", "current_min", "current_max"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.voltage_min > self.voltage_max:
            raise ValueError(
                f"voltage_min ({self.voltage_min}) must be <= voltage_max ({self.voltage_max})"
            )
        if self.current_min > self.current_max:
            raise ValueError(
                f"current_min ({self.current_min}) must be <= current_max ({self.current_max})"
            )


@dataclass(frozen=True)
class ChannelSpec:
    """Registry entry for one channel.

    Attributes:
        channel: The channel this entry describes.
        label: Display label.
        token: Protocol argument token.
        rated: Rated envelope, or None for the aggregate channel.
    """

    channel: Channel
    label: str
    token: str
    rated: ChannelRange | None = None


class ChannelRegistry:
    """Read-only registry of channel labels, tokens, and rated ranges.

    Lookups are total: anything outside the enumeration raises
    :class:`InvalidChannelError` instead of failing in some other way.

    Args:
        specs: One entry per channel. Labels and tokens must be unique
            (compared case-insensitively).

    Raises:
        ValueError: If a channel, label, or token appears twice.
    """

    def __init__(self, specs: tuple[ChannelSpec, ...]) -> None:
        by_channel: dict[Channel, ChannelSpec] = {}
        by_name: dict[str, Channel] = {}
        for spec in specs:
            if spec.channel in by_channel:
                raise ValueError(f"Channel {spec.channel.name} registered twice")
            by_channel[spec.channel] = spec
            for name in {spec.label.upper(), spec.token.upper()}:
                if not name:
                    continue
                if name in by_name:
                    raise ValueError(f"Channel name {name!r} already registered")
                by_name[name] = spec.channel
        self._specs: Mapping[Channel, ChannelSpec] = MappingProxyType(by_channel)
        self._by_name: Mapping[str, Channel] = MappingProxyType(by_name)
        self._physical = tuple(s.channel for s in specs if s.rated is not None)

    def get(self, channel: object) -> ChannelSpec:
        """Return the registry entry for a channel.

        Args:
            channel: A :class:`Channel` member.

        Raises:
            InvalidChannelError: If *channel* is not a registered member.
        """
        spec = self._specs.get(channel) if isinstance(channel, Channel) else None
        if spec is None:
            raise InvalidChannelError(channel)
        return spec

    def label(self, channel: object) -> str:
        """Return the display label of a channel."""
        return self.get(channel).label

    def token(self, channel: object) -> str:
        """Return the protocol token of a channel."""
        return self.get(channel).token

    def rated(self, channel: object) -> ChannelRange | None:
        """Return the rated envelope of a channel (None for AGGREGATE)."""
        return self.get(channel).rated

    def lookup(self, name: str) -> Channel:
        """Resolve a label or token, case-insensitively.

        Args:
            name: e.g. ``"Ch1"``, ``"CH1"`` or ``"ChC"``.

        Raises:
            InvalidChannelError: If no channel has that label or token.
        """
        channel = self._by_name.get(name.strip().upper())
        if channel is None:
            raise InvalidChannelError(name)
        return channel

    @property
    def physical(self) -> tuple[Channel, ...]:
        """Physical outputs, in polling order."""
        return self._physical

    def __iter__(self) -> Iterator[ChannelSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)


_CH12_RANGE = ChannelRange(voltage_min=0.0, voltage_max=32.0, current_min=0.0, current_max=3.2)
_CH3_RANGE = ChannelRange(voltage_min=0.0, voltage_max=5.3, current_min=0.0, current_max=3.2)

REGISTRY = ChannelRegistry(
    (
        ChannelSpec(Channel.AGGREGATE, label="ChC", token=""),
        ChannelSpec(Channel.CH1, label="Ch1", token="CH1", rated=_CH12_RANGE),
        ChannelSpec(Channel.CH2, label="Ch2", token="CH2", rated=_CH12_RANGE),
        ChannelSpec(Channel.CH3, label="Ch3", token="CH3", rated=_CH3_RANGE),
    )
)
"""The DP832 channel registry."""

PHYSICAL_CHANNELS: tuple[Channel, ...] = REGISTRY.physical
"""Physical outputs in fixed polling order: CH1, CH2, CH3."""

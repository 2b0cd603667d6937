"""Monitor configuration loading.

Every key is optional. Command-line options override file values.

Example YAML:
    instrument:
      address: "192.168.0.200:5555"
      expected_model: "DP832"
      timeout: 2.0
      check_errors: false

    poll:
      interval: 0.1
      channels: [Ch1, Ch2, Ch3]

    output:
      csv: "readings.csv"
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from dpmon_core.errors import ConfigError, InvalidChannelError

from dpmon_rigol.channel import PHYSICAL_CHANNELS, REGISTRY, Channel
from dpmon_rigol.poller import DEFAULT_POLL_INTERVAL
from dpmon_rigol.psu import EXPECTED_MODEL

DEFAULT_ADDRESS = "192.168.0.200:5555"


@dataclass(frozen=True)
class MonitorConfig:
    """Settings for one monitoring session.

    Attributes:
        address: Instrument address in ``host:port`` form.
        expected_model: Model the instrument must report.
        timeout: I/O deadline in seconds, or None to block.
        check_errors: Drain the instrument error queue after every exchange.
        interval: Poll period in seconds.
        channels: Channels queried on each pass, in order.
        csv_path: CSV output file, or None for log output only.
    """

    address: str = DEFAULT_ADDRESS
    expected_model: str = EXPECTED_MODEL
    timeout: float | None = None
    check_errors: bool = False
    interval: float = DEFAULT_POLL_INTERVAL
    channels: tuple[Channel, ...] = PHYSICAL_CHANNELS
    csv_path: Path | None = None

    def __post_init__(self) -> None:
        if not self.address:
            raise ConfigError("address must be non-empty")
        if not self.expected_model:
            raise ConfigError("expected_model must be non-empty")
        if self.timeout is not None and (not math.isfinite(self.timeout) or self.timeout <= 0):
            raise ConfigError(f"timeout must be finite and > 0, got {self.timeout}")
        if not math.isfinite(self.interval) or self.interval <= 0:
            raise ConfigError(f"interval must be finite and > 0, got {self.interval}")
        if not self.channels:
            raise ConfigError("channels must not be empty")
        if len(set(self.channels)) != len(self.channels):
            raise ConfigError("channels must not repeat")


def parse_channels(names: Any) -> tuple[Channel, ...]:
    """Resolve a list of channel labels or tokens.

    Raises:
        ConfigError: If *names* is not a list or a name is unknown.
    """
    if not isinstance(names, (list, tuple)):
        raise ConfigError("poll.channels must be a list")
    channels = []
    for name in names:
        try:
            channels.append(REGISTRY.lookup(str(name)))
        except InvalidChannelError as exc:
            raise ConfigError(f"Unknown channel in poll.channels: {name!r}") from exc
    return tuple(channels)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return section


def _number(section: dict[str, Any], key: str, default: float | None) -> float | None:
    value = section.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} must be a number, got {value!r}")
    return float(value)


def _string(section: dict[str, Any], key: str, default: str) -> str:
    value = section.get(key, default)
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string, got {value!r}")
    return value


def _flag(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false, got {value!r}")
    return value


def load_monitor_config(path: str | Path) -> MonitorConfig:
    """Load monitor configuration from a YAML file.

    Args:
        path: Path to the configuration YAML file.

    Returns:
        Parsed MonitorConfig.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigError: If the content is malformed or fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Monitor config not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Monitor config must be a YAML mapping")

    instrument = _section(data, "instrument")
    poll = _section(data, "poll")
    output = _section(data, "output")

    channels = PHYSICAL_CHANNELS
    if "channels" in poll:
        channels = parse_channels(poll["channels"])

    csv_value = output.get("csv")
    if csv_value is not None and not isinstance(csv_value, str):
        raise ConfigError(f"csv must be a string, got {csv_value!r}")
    interval = _number(poll, "interval", DEFAULT_POLL_INTERVAL)

    return MonitorConfig(
        address=_string(instrument, "address", DEFAULT_ADDRESS) or DEFAULT_ADDRESS,
        expected_model=_string(instrument, "expected_model", EXPECTED_MODEL),
        timeout=_number(instrument, "timeout", None),
        check_errors=_flag(instrument, "check_errors", False),
        interval=DEFAULT_POLL_INTERVAL if interval is None else interval,
        channels=channels,
        csv_path=Path(csv_value) if csv_value else None,
    )

"""Rigol DP832 power supply emulator.

Provides an in-process SCPI emulator implementing the ``ScpiTransport``
protocol, covering the subset of the DP832 command set dpmon uses plus the
setpoint commands needed to give the measurements meaningful values.
Serve it over TCP with :class:`dpmon_rigol.server.EmulatorServer`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from dpmon_core.errors import InvalidChannelError

from dpmon_rigol.channel import REGISTRY, Channel

# ---------------------------------------------------------------------------
# Long-form -> short-form SCPI keyword map
# ---------------------------------------------------------------------------

_LONG_TO_SHORT: dict[str, str] = {
    "MEASURE": "MEAS",
    "OUTPUT": "OUTP",
    "STATE": "STAT",
    "INSTRUMENT": "INST",
    "NSELECT": "NSEL",
    "SYSTEM": "SYST",
    "ERROR": "ERR",
    "APPLY": "APPL",
}

# Segments that are optional and should be stripped during normalization
_OPTIONAL_SEGMENTS: set[str] = {"DC", "STAT"}


def _normalize_header(header: str) -> str:
    """Normalize a SCPI header to canonical short form.

    Uppercases, strips a leading colon, maps long forms to short forms and
    drops optional segments.
    """
    upper = header.upper()
    if upper.startswith(":"):
        upper = upper[1:]
    segments = upper.split(":")
    short_segments = [_LONG_TO_SHORT.get(seg, seg) for seg in segments]
    filtered = [seg for seg in short_segments if seg not in _OPTIONAL_SEGMENTS]
    return ":".join(filtered)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Dp832EmulatorConfig:
    """Configuration for a DP832 emulator instance.

    Args:
        identity: ``*IDN?`` response string.
    """

    identity: str

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")


# ---------------------------------------------------------------------------
# Internal channel state
# ---------------------------------------------------------------------------


@dataclass
class _ChannelState:
    voltage_setpoint: float = 0.0
    current_limit: float = 0.0
    output_enabled: bool = False
    measured_voltage: float | None = None
    measured_current: float | None = None

    @property
    def voltage(self) -> float:
        if self.measured_voltage is not None:
            return self.measured_voltage
        return self.voltage_setpoint if self.output_enabled else 0.0

    @property
    def current(self) -> float:
        if self.measured_current is not None:
            return self.measured_current
        return 0.0


class _ParameterError(Exception):
    """Internal signal for SCPI error -220 / -222."""

    def __init__(self, code: int = -220, message: str = "Parameter error") -> None:
        self.code = code
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class Dp832Emulator:
    """In-process Rigol DP832 emulator implementing ``ScpiTransport``.

    Supported commands: ``*IDN?``, ``*RST``, ``*CLS``, ``*OPC?``,
    ``SYST:ERR?``, ``INST:NSEL``, ``APPL``, ``OUTP`` and ``MEAS:ALL?``
    with their query forms. ``MEAS:ALL?`` answers ``current,voltage,power``
    and, without a channel argument, reports the selected channel.

    Attributes:
        history: Every non-empty line received, in order.

    Args:
        config: Emulator configuration.
    """

    def __init__(self, config: Dp832EmulatorConfig) -> None:
        self._config = config
        self._channels: dict[Channel, _ChannelState] = {
            ch: _ChannelState() for ch in REGISTRY.physical
        }
        self._selected: Channel = Channel.CH1
        self._response_buffer: str = ""
        self._error_queue: list[tuple[int, str]] = []
        self.history: list[str] = []

        # Build dispatch tables
        self._set_handlers: dict[str, Callable[[str], None]] = {
            "INST:NSEL": self._set_selected,
            "APPL": self._set_apply,
            "OUTP": self._set_output,
        }

        self._query_handlers: dict[str, Callable[[str], str]] = {
            "INST:NSEL?": self._get_selected,
            "APPL?": self._get_apply,
            "OUTP?": self._get_output,
            "MEAS:ALL?": self._measure_all,
        }

    # -- Transport interface ------------------------------------------------

    def write(self, message: str) -> None:
        """Process a SCPI command or query string."""
        line = message.strip()
        if not line:
            return
        self.history.append(line)

        is_query, header, args = self._parse_line(line)

        if self._handle_common_command(header, is_query):
            return

        self._dispatch(header, args, is_query)

    def read(self) -> str:
        """Return and clear the buffered response."""
        resp = self._response_buffer
        self._response_buffer = ""
        return resp

    def close(self) -> None:
        """Close the emulator (no-op for in-process transport)."""

    # -- Test helpers -------------------------------------------------------

    def set_measurement(
        self,
        channel: Channel,
        *,
        voltage: float | None = None,
        current: float | None = None,
    ) -> None:
        """Force the readings reported by ``MEAS:ALL?`` for a channel.

        Args:
            channel: Physical channel to override.
            voltage: Voltage reading, or None to follow the setpoint.
            current: Current reading, or None to report zero.
        """
        state = self._channels.get(channel)
        if state is None:
            raise ValueError(f"{channel!r} is not a physical channel")
        state.measured_voltage = voltage
        state.measured_current = current

    # -- Parsing ------------------------------------------------------------

    def _parse_line(self, line: str) -> tuple[bool, str, str]:
        """Parse a SCPI line into (is_query, header, args)."""
        is_query = "?" in line
        if is_query:
            qmark_idx = line.index("?")
            header = line[: qmark_idx + 1]
            args = line[qmark_idx + 1 :].strip()
        else:
            parts = line.split(None, 1)
            header = parts[0]
            args = parts[1] if len(parts) > 1 else ""
        return is_query, header, args

    def _handle_common_command(self, header: str, is_query: bool) -> bool:
        """Handle IEEE 488.2 and SYST:ERR? commands. Returns True if handled."""
        upper_header = header.upper()
        if upper_header == "*IDN?":
            self._response_buffer = self._config.identity
            return True
        if upper_header == "*OPC?":
            self._response_buffer = "1"
            return True
        if upper_header == "*RST":
            self._reset()
            return True
        if upper_header == "*CLS":
            self._error_queue.clear()
            return True
        if is_query and _normalize_header(header.rstrip("?")) == "SYST:ERR":
            self._response_buffer = self._pop_error()
            return True
        return False

    def _dispatch(self, header: str, args: str, is_query: bool) -> None:
        """Dispatch a normalized command or query to handler tables."""
        try:
            if is_query:
                handler_query = self._query_handlers.get(_normalize_header(header.rstrip("?")) + "?")
                if handler_query is None:
                    self._error_queue.append((-100, "Command error"))
                    return
                self._response_buffer = handler_query(args)
            else:
                handler_set = self._set_handlers.get(_normalize_header(header))
                if handler_set is None:
                    self._error_queue.append((-100, "Command error"))
                    return
                handler_set(args)
        except _ParameterError as exc:
            self._error_queue.append((exc.code, exc.message))

    def _parse_channel(self, token: str) -> Channel:
        """Resolve a ``CHn`` argument; empty means the selected channel."""
        token = token.strip()
        if not token:
            return self._selected
        try:
            channel = REGISTRY.lookup(token)
        except InvalidChannelError:
            raise _ParameterError() from None
        if channel not in self._channels:
            raise _ParameterError()
        return channel

    def _reset(self) -> None:
        """Reset all channels to defaults."""
        for state in self._channels.values():
            state.voltage_setpoint = 0.0
            state.current_limit = 0.0
            state.output_enabled = False
            state.measured_voltage = None
            state.measured_current = None
        self._selected = Channel.CH1

    def _pop_error(self) -> str:
        if self._error_queue:
            code, msg = self._error_queue.pop(0)
            return f'{code},"{msg}"'
        return '0,"No error"'

    # -- Set handlers -------------------------------------------------------

    def _set_selected(self, args: str) -> None:
        try:
            number = int(args.strip())
        except ValueError:
            raise _ParameterError() from None
        self._selected = self._parse_channel(f"CH{number}")

    def _set_apply(self, args: str) -> None:
        """Parse ``APPL CHn,<v>,<i>``."""
        parts = [p.strip() for p in args.split(",")]
        if len(parts) != 3:
            raise _ParameterError()
        channel = self._parse_channel(parts[0])
        try:
            voltage = float(parts[1])
            current = float(parts[2])
        except ValueError:
            raise _ParameterError() from None
        rated = REGISTRY.rated(channel)
        if rated is not None and not (
            rated.voltage_min <= voltage <= rated.voltage_max
            and rated.current_min <= current <= rated.current_max
        ):
            raise _ParameterError(-222, "Data out of range")
        state = self._channels[channel]
        state.voltage_setpoint = voltage
        state.current_limit = current

    def _set_output(self, args: str) -> None:
        """Parse ``OUTP [CHn,]ON|OFF``."""
        parts = [p.strip() for p in args.split(",")]
        if len(parts) == 1:
            channel, value = self._selected, parts[0]
        elif len(parts) == 2:
            channel, value = self._parse_channel(parts[0]), parts[1]
        else:
            raise _ParameterError()
        token = value.upper()
        if token in ("ON", "1"):
            self._channels[channel].output_enabled = True
        elif token in ("OFF", "0"):
            self._channels[channel].output_enabled = False
        else:
            raise _ParameterError()

    # -- Query handlers -----------------------------------------------------

    def _get_selected(self, args: str) -> str:
        return str(self._selected.value)

    def _get_apply(self, args: str) -> str:
        state = self._channels[self._parse_channel(args)]
        return f"{state.voltage_setpoint:.3f},{state.current_limit:.4f}"

    def _get_output(self, args: str) -> str:
        state = self._channels[self._parse_channel(args)]
        return "ON" if state.output_enabled else "OFF"

    def _measure_all(self, args: str) -> str:
        state = self._channels[self._parse_channel(args)]
        voltage = state.voltage
        current = state.current
        return f"{current:.4f},{voltage:.4f},{voltage * current:.4f}"


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_dp832_emulator(
    serial: str = "DP8A000000001",
    *,
    model: str = "DP832",
    version: str = "00.01.14",
) -> Dp832Emulator:
    """Create a Rigol DP832 emulator.

    Args:
        serial: Serial number for the ``*IDN?`` response.
        model: Model for the ``*IDN?`` response; change it to emulate a
            different instrument.
        version: Firmware version for the ``*IDN?`` response.

    Returns:
        Configured emulator instance.
    """
    config = Dp832EmulatorConfig(identity=f"RIGOL TECHNOLOGIES,{model},{serial},{version}")
    return Dp832Emulator(config)

"""Rigol DP832 monitor, driver and emulator for dpmon.

Modules:
    channel: Channel registry with labels, protocol tokens and rated ranges.
    psu: Measurement reader and high-level driver.
    poller: Fixed-interval, drop-if-late poll loop.
    sink: Measurement consumers (log, CSV).
    config: YAML monitor configuration.
    emulator: In-process SCPI emulator for testing without hardware.
    server: TCP server exposing the emulator on a raw socket.
    cli: The ``dpmon`` command.

Example:
    Poll a real instrument::

        from dpmon_rigol import LoggingSink, PollLoop, create_instrument

        psu = create_instrument("192.168.0.200:5555")
        PollLoop(psu, LoggingSink()).run()

    Use an emulator for testing::

        from dpmon_rigol import EmulatorServer, make_dp832_emulator

        server = EmulatorServer(make_dp832_emulator(), port=0)
        server.start()
"""

from dpmon_rigol.channel import (
    PHYSICAL_CHANNELS,
    REGISTRY,
    Channel,
    ChannelRange,
    ChannelRegistry,
    ChannelSpec,
)
from dpmon_rigol.config import MonitorConfig, load_monitor_config
from dpmon_rigol.emulator import Dp832Emulator, Dp832EmulatorConfig, make_dp832_emulator
from dpmon_rigol.poller import DEFAULT_POLL_INTERVAL, PollLoop, PollState, Ticker
from dpmon_rigol.psu import (
    EXPECTED_MODEL,
    Dp832,
    Measurement,
    create_instrument,
    measure,
    parse_measurement,
)
from dpmon_rigol.server import EmulatorServer
from dpmon_rigol.sink import CsvSink, FanoutSink, LoggingSink, MeasurementSink

__all__ = [
    # Channels
    "PHYSICAL_CHANNELS",
    "REGISTRY",
    "Channel",
    "ChannelRange",
    "ChannelRegistry",
    "ChannelSpec",
    # Driver
    "EXPECTED_MODEL",
    "Dp832",
    "Measurement",
    "create_instrument",
    "measure",
    "parse_measurement",
    # Polling
    "DEFAULT_POLL_INTERVAL",
    "PollLoop",
    "PollState",
    "Ticker",
    # Sinks
    "CsvSink",
    "FanoutSink",
    "LoggingSink",
    "MeasurementSink",
    # Configuration
    "MonitorConfig",
    "load_monitor_config",
    # Emulator
    "Dp832Emulator",
    "Dp832EmulatorConfig",
    "make_dp832_emulator",
    "EmulatorServer",
]

"""Command-line interface for dpmon.

Usage:
    # Poll all three outputs every 100 ms and log the readings
    dpmon monitor --addr 192.168.0.200:5555

    # Same, from a config file, also writing a CSV file
    dpmon monitor --config bench.yaml --csv readings.csv

    # Print the instrument identity
    dpmon identify --addr 192.168.0.200:5555

    # Show channel labels, tokens and rated ranges
    dpmon channels

    # Serve an emulated DP832 on localhost:5555
    dpmon emulate --port 5555
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import math
import sys
from pathlib import Path
from typing import Callable

from dpmon_core.errors import DpmonError

from dpmon_rigol.channel import REGISTRY
from dpmon_rigol.config import DEFAULT_ADDRESS, MonitorConfig, load_monitor_config, parse_channels
from dpmon_rigol.emulator import make_dp832_emulator
from dpmon_rigol.poller import PollLoop
from dpmon_rigol.psu import EXPECTED_MODEL, create_instrument
from dpmon_rigol.server import DEFAULT_EMULATOR_PORT, EmulatorServer
from dpmon_rigol.sink import CsvSink, FanoutSink, LoggingSink, MeasurementSink

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def positive_int(value: str) -> int:
    """argparse type for counts."""
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def positive_float(value: str) -> float:
    """argparse type for durations."""
    number = float(value)
    if not math.isfinite(number) or number <= 0:
        raise argparse.ArgumentTypeError(f"must be finite and > 0, got {number}")
    return number


def build_monitor_config(args: argparse.Namespace) -> MonitorConfig:
    """Merge the config file (if any) with command-line overrides."""
    config = load_monitor_config(args.config) if args.config else MonitorConfig()
    overrides: dict[str, object] = {}
    if args.addr is not None:
        overrides["address"] = args.addr
    if args.interval is not None:
        overrides["interval"] = args.interval
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    if args.csv is not None:
        overrides["csv_path"] = Path(args.csv)
    if args.channels is not None:
        overrides["channels"] = parse_channels(args.channels.split(","))
    if args.check_errors:
        overrides["check_errors"] = True
    return dataclasses.replace(config, **overrides)


def cmd_monitor(args: argparse.Namespace) -> int:
    """Handshake, then poll until interrupted or a query fails."""
    config = build_monitor_config(args)

    psu = create_instrument(
        config.address,
        timeout=config.timeout,
        expected_model=config.expected_model,
        check_errors=config.check_errors,
    )
    csv_sink: CsvSink | None = None
    try:
        sink: MeasurementSink = LoggingSink()
        if config.csv_path is not None:
            csv_sink = CsvSink(config.csv_path)
            sink = FanoutSink(sink, csv_sink)
            logger.info("Writing measurements to %s", config.csv_path)
        loop = PollLoop(psu, sink, interval=config.interval, channels=config.channels)
        loop.run(max_passes=args.count)
    finally:
        if csv_sink is not None:
            csv_sink.close()
        psu.close()
    return 0


def cmd_identify(args: argparse.Namespace) -> int:
    """Print the identity of the instrument."""
    psu = create_instrument(args.addr, timeout=args.timeout, expected_model=args.model)
    try:
        identity = psu.identity
        if identity is None:
            raise DpmonError(f"No identity reported by {args.addr}")
        print(f"Manufacturer: {identity.manufacturer}")
        print(f"Model:        {identity.model}")
        print(f"Serial:       {identity.serial}")
        print(f"Version:      {identity.version}")
    finally:
        psu.close()
    return 0


def cmd_channels(args: argparse.Namespace) -> int:  # pylint: disable=unused-argument
    """Print the channel registry."""
    print(f"{'Label':<6} {'Token':<6} {'Voltage':<12} {'Current':<12}")
    for spec in REGISTRY:
        token = spec.token or "(none)"
        if spec.rated is None:
            print(f"{spec.label:<6} {token:<6} {'-':<12} {'-':<12}")
            continue
        voltage = f"{spec.rated.voltage_min:g}-{spec.rated.voltage_max:g} V"
        current = f"{spec.rated.current_min:g}-{spec.rated.current_max:g} A"
        print(f"{spec.label:<6} {token:<6} {voltage:<12} {current:<12}")
    return 0


def cmd_emulate(args: argparse.Namespace) -> int:
    """Serve an emulated DP832 until interrupted."""
    emulator = make_dp832_emulator(args.serial, model=args.model)
    server = EmulatorServer(emulator, host=args.host, port=args.port)
    print(f"Emulating {args.model} on {server.address_string}")
    server.serve_forever()
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="dpmon",
        description="Rigol DP832 power supply monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # monitor command
    mon_parser = subparsers.add_parser("monitor", help="Poll channel measurements")
    mon_parser.add_argument(
        "--addr",
        help=f"Instrument address host:port (default: {DEFAULT_ADDRESS})",
    )
    mon_parser.add_argument("--config", "-c", help="YAML config file")
    mon_parser.add_argument(
        "--interval", type=positive_float,
        help="Poll interval in seconds (default: 0.1)"
    )
    mon_parser.add_argument(
        "--timeout", type=positive_float,
        help="I/O timeout in seconds (default: none)"
    )
    mon_parser.add_argument("--csv", help="Also write measurements to this CSV file")
    mon_parser.add_argument(
        "--channels",
        help="Comma-separated channels to poll (default: Ch1,Ch2,Ch3)"
    )
    mon_parser.add_argument(
        "--count", "-n", type=positive_int,
        help="Stop after this many passes (default: run forever)"
    )
    mon_parser.add_argument(
        "--check-errors", action="store_true",
        help="Query SYST:ERR? after every exchange"
    )

    # identify command
    idn_parser = subparsers.add_parser("identify", help="Print the instrument identity")
    idn_parser.add_argument(
        "--addr", default=DEFAULT_ADDRESS,
        help=f"Instrument address host:port (default: {DEFAULT_ADDRESS})"
    )
    idn_parser.add_argument("--timeout", type=positive_float, help="I/O timeout in seconds")
    idn_parser.add_argument(
        "--model", default=EXPECTED_MODEL,
        help=f"Expected model (default: {EXPECTED_MODEL})"
    )

    # channels command
    subparsers.add_parser("channels", help="List channels and rated ranges")

    # emulate command
    emu_parser = subparsers.add_parser("emulate", help="Serve an emulated DP832 over TCP")
    emu_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    emu_parser.add_argument(
        "--port", type=int, default=DEFAULT_EMULATOR_PORT,
        help=f"Bind port (default: {DEFAULT_EMULATOR_PORT})"
    )
    emu_parser.add_argument(
        "--model", default=EXPECTED_MODEL,
        help=f"Model reported by *IDN? (default: {EXPECTED_MODEL})"
    )
    emu_parser.add_argument(
        "--serial", default="DP8A000000001",
        help="Serial number reported by *IDN?"
    )

    return parser


_COMMANDS: dict[str, Callable[[argparse.Namespace], int]] = {
    "monitor": cmd_monitor,
    "identify": cmd_identify,
    "channels": cmd_channels,
    "emulate": cmd_emulate,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code: 0 on success, 1 on any dpmon or file system failure,
        130 on Ctrl-C.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.debug)

    try:
        return _COMMANDS[args.command](args)
    except (DpmonError, OSError) as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())

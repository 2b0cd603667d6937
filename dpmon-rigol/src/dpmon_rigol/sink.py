"""Measurement sinks.

A sink receives every measurement the poll loop reads. Sinks only present
data; they never feed anything back into the protocol layer.
"""

from __future__ import annotations

import csv
import logging
import time
from pathlib import Path
from typing import Any, Protocol, TextIO

from dpmon_rigol.psu import Measurement

logger = logging.getLogger(__name__)


class MeasurementSink(Protocol):
    """Protocol for consumers of measurements."""

    def emit(self, measurement: Measurement) -> None:
        """Receive one measurement."""
        ...


class LoggingSink:
    """Report each measurement as one log record.

    Args:
        log: Logger to write to. Defaults to this module's logger.
        level: Log level of the records.
    """

    def __init__(self, log: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._log = log or logger
        self._level = level

    def emit(self, measurement: Measurement) -> None:
        self._log.log(self._level, "%s", measurement)


class CsvSink:
    """Append measurements to a CSV file.

    CSV format:
        timestamp_ns,channel,voltage,current,power
        1705329052000000000,Ch1,5.001000,0.120000,0.600120

    The file is created (truncated) on construction and stays open until
    :meth:`close`. Rows are flushed to disk every ``buffer_size`` rows.

    Args:
        path: Output file path. Parent directories are created.
        buffer_size: Number of rows to buffer before flushing to disk.
    """

    HEADER = ("timestamp_ns", "channel", "voltage", "current", "power")

    def __init__(self, path: str | Path, *, buffer_size: int = 100) -> None:
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be >= 1, got {buffer_size}")
        self._path = Path(path)
        self._buffer_size = buffer_size
        self._path.parent.mkdir(parents=True, exist_ok=True)
        # File stays open for streaming writes and is closed in close().
        self._file: TextIO | None = open(  # pylint: disable=consider-using-with
            self._path, "w", newline="", encoding="utf-8"
        )
        self._writer: Any = csv.writer(self._file)
        self._writer.writerow(self.HEADER)
        self._pending = 0

    @property
    def path(self) -> Path:
        """Output file path."""
        return self._path

    def emit(self, measurement: Measurement) -> None:
        """Write one row.

        Raises:
            RuntimeError: If the sink has been closed.
        """
        if self._file is None:
            raise RuntimeError("CsvSink is closed")
        self._writer.writerow(
            [
                time.time_ns(),
                measurement.channel.label,
                f"{measurement.voltage:f}",
                f"{measurement.current:f}",
                f"{measurement.power:f}",
            ]
        )
        self._pending += 1
        if self._pending >= self._buffer_size:
            self._file.flush()
            self._pending = 0

    def close(self) -> None:
        """Flush and close the file. Safe to call multiple times."""
        if self._file is None:
            return
        self._file.flush()
        self._file.close()
        self._file = None


class FanoutSink:
    """Forward each measurement to several sinks, in order."""

    def __init__(self, *sinks: MeasurementSink) -> None:
        self._sinks = sinks

    def emit(self, measurement: Measurement) -> None:
        for sink in self._sinks:
            sink.emit(measurement)

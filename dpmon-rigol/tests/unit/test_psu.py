"""Tests for the DP832 measurement reader and driver."""

from __future__ import annotations

from collections import deque

import pytest

from dpmon_core.errors import InvalidChannelError
from dpmon_core.types import InstrumentIdentity
from dpmon_scpi import ModelMismatchError, ScpiConnection, ScpiParseError

from dpmon_rigol.channel import Channel
from dpmon_rigol.emulator import make_dp832_emulator
from dpmon_rigol.psu import (
    EXPECTED_MODEL,
    Dp832,
    Measurement,
    create_instrument,
    measure,
    measure_query,
    parse_measurement,
)
from dpmon_rigol.server import EmulatorServer


class MockTransport:
    """In-memory transport that replays pre-loaded responses."""

    def __init__(self, responses: list[str] | None = None) -> None:
        self.responses: deque[str] = deque(responses or [])
        self.written: list[str] = []
        self.closed = False

    def write(self, message: str) -> None:
        self.written.append(message)

    def read(self) -> str:
        return self.responses.popleft()

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Query and parse
# ---------------------------------------------------------------------------


class TestMeasureQuery:
    """Tests for measure_query."""

    @pytest.mark.parametrize(
        ("channel", "query"),
        [
            (Channel.CH1, "MEAS:ALL? CH1"),
            (Channel.CH2, "MEAS:ALL? CH2"),
            (Channel.CH3, "MEAS:ALL? CH3"),
            (Channel.AGGREGATE, "MEAS:ALL? "),
        ],
    )
    def test_query_text(self, channel: Channel, query: str) -> None:
        assert measure_query(channel) == query

    def test_invalid_channel(self) -> None:
        with pytest.raises(InvalidChannelError):
            measure_query(5)  # type: ignore[arg-type]


class TestParseMeasurement:
    """Tests for parse_measurement."""

    def test_reply_order_is_current_voltage_power(self) -> None:
        m = parse_measurement(Channel.CH2, "1.234,5.678,9.012")
        assert m == Measurement(channel=Channel.CH2, voltage=5.678, current=1.234, power=9.012)

    def test_channel_one_reply(self) -> None:
        m = parse_measurement(Channel.CH1, "1.234,5.678,9.012")
        assert m == Measurement(channel=Channel.CH1, voltage=5.678, current=1.234, power=9.012)
        assert str(m) == "Ch1: 5.678000V 1.234000A 9.012000W"

    def test_power_passed_through(self) -> None:
        # Power is reported, not computed from voltage and current.
        m = parse_measurement(Channel.CH1, "1.0,2.0,100.0")
        assert m.power == 100.0

    def test_no_clamping_to_rated_range(self) -> None:
        m = parse_measurement(Channel.CH3, "10.0,99.0,990.0")
        assert m.voltage == 99.0
        assert m.current == 10.0

    def test_bad_current_field(self) -> None:
        with pytest.raises(ScpiParseError) as exc_info:
            parse_measurement(Channel.CH1, "abc,1.0,2.0")
        assert exc_info.value.field == "current"
        assert exc_info.value.index == 0

    def test_bad_voltage_field(self) -> None:
        with pytest.raises(ScpiParseError) as exc_info:
            parse_measurement(Channel.CH1, "1.0,x,2.0")
        assert exc_info.value.field == "voltage"
        assert exc_info.value.index == 1

    def test_too_few_fields(self) -> None:
        with pytest.raises(ScpiParseError):
            parse_measurement(Channel.CH1, "1.0,2.0")

    def test_too_many_fields(self) -> None:
        with pytest.raises(ScpiParseError):
            parse_measurement(Channel.CH1, "1.0,2.0,3.0,4.0")

    def test_underscore_literal_rejected(self) -> None:
        with pytest.raises(ScpiParseError) as exc_info:
            parse_measurement(Channel.CH1, "1_0,2.0,3.0")
        assert exc_info.value.field == "current"


class TestMeasurement:
    """Tests for the Measurement value type."""

    def test_str(self) -> None:
        m = Measurement(channel=Channel.CH1, voltage=5.0, current=0.12, power=0.6)
        assert str(m) == "Ch1: 5.000000V 0.120000A 0.600000W"

    def test_frozen(self) -> None:
        m = Measurement(channel=Channel.CH1, voltage=5.0, current=0.12, power=0.6)
        with pytest.raises(AttributeError):
            m.voltage = 1.0  # type: ignore[misc]


class TestMeasure:
    """Tests for measure over a mock connection."""

    def test_single_exchange(self) -> None:
        transport = MockTransport(["0.1200,5.0010,0.6001"])
        m = measure(ScpiConnection(transport), Channel.CH1)
        assert transport.written == ["MEAS:ALL? CH1"]
        assert m.channel is Channel.CH1
        assert m.voltage == 5.001

    def test_measurement_tagged_with_queried_channel(self) -> None:
        transport = MockTransport(["0,0,0"])
        m = measure(ScpiConnection(transport), Channel.CH3)
        assert m.channel is Channel.CH3


# ---------------------------------------------------------------------------
# Dp832 driver
# ---------------------------------------------------------------------------


class TestDp832:
    """Tests for the Dp832 driver with the in-process emulator."""

    def test_measure_all_in_order(self) -> None:
        emu = make_dp832_emulator()
        emu.set_measurement(Channel.CH1, voltage=5.0, current=0.1)
        emu.set_measurement(Channel.CH2, voltage=12.0, current=0.5)
        emu.set_measurement(Channel.CH3, voltage=3.3, current=1.0)
        psu = Dp832(ScpiConnection(emu))
        results = psu.measure_all()
        assert [m.channel for m in results] == [Channel.CH1, Channel.CH2, Channel.CH3]
        assert [m.voltage for m in results] == [5.0, 12.0, 3.3]
        assert results[1].power == pytest.approx(6.0)
        assert emu.history == ["MEAS:ALL? CH1", "MEAS:ALL? CH2", "MEAS:ALL? CH3"]

    def test_measure_all_stops_at_first_failure(self) -> None:
        transport = MockTransport(["0,1,0", "bad"])
        psu = Dp832(ScpiConnection(transport))
        with pytest.raises(ScpiParseError):
            psu.measure_all()
        assert transport.written == ["MEAS:ALL? CH1", "MEAS:ALL? CH2"]

    def test_identity_and_close(self) -> None:
        transport = MockTransport()
        identity = InstrumentIdentity("RIGOL TECHNOLOGIES", "DP832", "SN1", "1.0")
        psu = Dp832(ScpiConnection(transport), identity)
        assert psu.identity is identity
        psu.close()
        assert transport.closed


class TestCreateInstrument:
    """Tests for create_instrument against the TCP emulator server."""

    def test_connects_and_measures(self) -> None:
        emu = make_dp832_emulator()
        emu.set_measurement(Channel.CH2, voltage=12.0, current=0.25)
        server = EmulatorServer(emu, port=0)
        server.start()
        try:
            psu = create_instrument(server.address_string, timeout=5)
            try:
                assert psu.identity is not None
                assert psu.identity.model == EXPECTED_MODEL
                m = psu.measure(Channel.CH2)
                assert m.voltage == 12.0
                assert m.current == 0.25
                assert m.power == 3.0
            finally:
                psu.close()
        finally:
            server.stop()

    def test_model_mismatch_sends_no_measurement(self) -> None:
        emu = make_dp832_emulator(model="DP831")
        server = EmulatorServer(emu, port=0)
        server.start()
        try:
            with pytest.raises(ModelMismatchError) as exc_info:
                create_instrument(server.address_string, timeout=5)
            assert exc_info.value.observed == "DP831"
        finally:
            server.stop()
        assert emu.history == ["*IDN?"]

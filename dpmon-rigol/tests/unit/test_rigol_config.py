"""Tests for monitor configuration loading."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from dpmon_core.errors import ConfigError

from dpmon_rigol.channel import PHYSICAL_CHANNELS, Channel
from dpmon_rigol.config import DEFAULT_ADDRESS, MonitorConfig, load_monitor_config, parse_channels


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A complete monitor config."""
    path = tmp_path / "monitor.yaml"
    path.write_text(
        textwrap.dedent("""\
            instrument:
              address: "10.0.0.5:5555"
              expected_model: "DP832"
              timeout: 2.5
              check_errors: true

            poll:
              interval: 0.5
              channels: [Ch3, CH1]

            output:
              csv: "readings.csv"
        """),
        encoding="utf-8",
    )
    return path


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "monitor.yaml"
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


class TestLoadMonitorConfig:
    """Tests for load_monitor_config."""

    def test_load_full(self, config_file: Path) -> None:
        config = load_monitor_config(config_file)
        assert config.address == "10.0.0.5:5555"
        assert config.expected_model == "DP832"
        assert config.timeout == 2.5
        assert config.check_errors is True
        assert config.interval == 0.5
        assert config.channels == (Channel.CH3, Channel.CH1)
        assert config.csv_path == Path("readings.csv")

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        config = load_monitor_config(_write(tmp_path, ""))
        assert config == MonitorConfig()
        assert config.address == DEFAULT_ADDRESS
        assert config.interval == 0.1
        assert config.timeout is None
        assert config.channels == PHYSICAL_CHANNELS
        assert config.csv_path is None

    def test_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_monitor_config(tmp_path / "missing.yaml")

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="mapping"):
            load_monitor_config(_write(tmp_path, "- a\n- b\n"))

    def test_section_not_a_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="poll"):
            load_monitor_config(_write(tmp_path, "poll: 5\n"))

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_monitor_config(_write(tmp_path, "instrument: [unclosed\n"))

    def test_unknown_channel(self, tmp_path: Path) -> None:
        path = _write(tmp_path, """\
            poll:
              channels: [Ch1, Ch9]
        """)
        with pytest.raises(ConfigError, match="Ch9"):
            load_monitor_config(path)

    def test_non_numeric_interval(self, tmp_path: Path) -> None:
        path = _write(tmp_path, """\
            poll:
              interval: fast
        """)
        with pytest.raises(ConfigError, match="interval"):
            load_monitor_config(path)

    def test_zero_interval(self, tmp_path: Path) -> None:
        path = _write(tmp_path, """\
            poll:
              interval: 0
        """)
        with pytest.raises(ConfigError, match="interval"):
            load_monitor_config(path)

    @pytest.mark.parametrize("value", [".nan", ".inf"])
    def test_non_finite_interval(self, tmp_path: Path, value: str) -> None:
        path = _write(tmp_path, f"""\
            poll:
              interval: {value}
        """)
        with pytest.raises(ConfigError, match="interval"):
            load_monitor_config(path)

    def test_quoted_check_errors_rejected(self, tmp_path: Path) -> None:
        path = _write(tmp_path, """\
            instrument:
              check_errors: "false"
        """)
        with pytest.raises(ConfigError, match="check_errors"):
            load_monitor_config(path)

    def test_null_expected_model_rejected(self, tmp_path: Path) -> None:
        path = _write(tmp_path, """\
            instrument:
              expected_model: null
        """)
        with pytest.raises(ConfigError, match="expected_model"):
            load_monitor_config(path)

    def test_numeric_address_rejected(self, tmp_path: Path) -> None:
        path = _write(tmp_path, """\
            instrument:
              address: 5555
        """)
        with pytest.raises(ConfigError, match="address"):
            load_monitor_config(path)


class TestMonitorConfig:
    """Tests for MonitorConfig validation."""

    def test_config_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            MonitorConfig(address="")

    def test_negative_timeout(self) -> None:
        with pytest.raises(ConfigError, match="timeout"):
            MonitorConfig(timeout=-1.0)

    @pytest.mark.parametrize("interval", [float("nan"), float("inf")])
    def test_non_finite_interval(self, interval: float) -> None:
        with pytest.raises(ConfigError, match="interval"):
            MonitorConfig(interval=interval)

    def test_non_finite_timeout(self) -> None:
        with pytest.raises(ConfigError, match="timeout"):
            MonitorConfig(timeout=float("inf"))

    def test_duplicate_channels(self) -> None:
        with pytest.raises(ConfigError, match="repeat"):
            MonitorConfig(channels=(Channel.CH1, Channel.CH1))

    def test_empty_channels(self) -> None:
        with pytest.raises(ConfigError, match="empty"):
            MonitorConfig(channels=())

    def test_frozen(self) -> None:
        config = MonitorConfig()
        with pytest.raises(AttributeError):
            config.interval = 1.0  # type: ignore[misc]


class TestParseChannels:
    """Tests for parse_channels."""

    def test_labels_and_tokens(self) -> None:
        assert parse_channels(["ch2", "CH3"]) == (Channel.CH2, Channel.CH3)

    def test_not_a_list(self) -> None:
        with pytest.raises(ConfigError):
            parse_channels("Ch1")

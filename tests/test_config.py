"""Unit tests for command-line configuration."""

import pytest

from serialfanout import config
from serialfanout.config import parse_args


class TestParseArgs:
    """Tests for parse_args."""

    def test_defaults(self):
        """Test defaults when no options are given."""
        args = parse_args([])

        assert args.serial_port == config.DEFAULT_SERIAL_PORT
        assert args.tcp_host == "0.0.0.0"
        assert args.tcp_port == 5000
        assert args.verbose is False

    def test_overrides(self):
        """Test every option can be overridden."""
        args = parse_args(
            [
                "--serial-port",
                "/dev/ttyACM0",
                "--tcp-host",
                "127.0.0.1",
                "--tcp-port",
                "6000",
                "-v",
            ]
        )

        assert args.serial_port == "/dev/ttyACM0"
        assert args.tcp_host == "127.0.0.1"
        assert args.tcp_port == 6000
        assert args.verbose is True

    def test_baud_rate_is_fixed(self):
        """Test the baud rate is not a command-line option."""
        assert config.BAUD_RATE == 115200
        with pytest.raises(SystemExit):
            parse_args(["--baud", "9600"])

    def test_empty_serial_port(self):
        """Test an empty serial port is rejected."""
        with pytest.raises(ValueError, match="--serial-port"):
            parse_args(["--serial-port", "  "])

    @pytest.mark.parametrize("port", ["0", "65536", "-1"])
    def test_tcp_port_out_of_range(self, port):
        """Test TCP ports outside 1-65535 are rejected."""
        with pytest.raises(ValueError, match="--tcp-port"):
            parse_args(["--tcp-port", port])

"""Configuration and command-line argument parsing for the serial fan-out bridge."""

import argparse
import sys


DEFAULT_SERIAL_PORT = "COM7" if sys.platform == "win32" else "/dev/ttyUSB0"
DEFAULT_TCP_HOST = "0.0.0.0"
DEFAULT_TCP_PORT = 5000

# Not configurable from the command line.
BAUD_RATE = 115200


def parse_args(argv=None):
    """Parse command-line arguments and return a validated namespace."""
    parser = argparse.ArgumentParser(
        prog="serialfanout",
        description=(
            "Bridge a serial device to TCP. Multiple TCP clients can connect "
            "simultaneously; serial output is sent to all of them."
        ),
    )
    parser.add_argument(
        "--serial-port",
        default=DEFAULT_SERIAL_PORT,
        help=f"Serial device path or pyserial URL (default: {DEFAULT_SERIAL_PORT})",
    )
    parser.add_argument(
        "--tcp-host",
        default=DEFAULT_TCP_HOST,
        help=f"TCP listen address (default: {DEFAULT_TCP_HOST})",
    )
    parser.add_argument(
        "--tcp-port",
        type=int,
        default=DEFAULT_TCP_PORT,
        help=f"TCP listen port (default: {DEFAULT_TCP_PORT})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging (discarded chunks, per-client write failures)",
    )
    args = parser.parse_args(argv)
    _validate(args)
    return args


def _validate(args):
    """Validate parsed arguments; raise ValueError on invalid values."""
    if not (args.serial_port and args.serial_port.strip()):
        raise ValueError("Serial port (--serial-port) must be non-empty")
    if not (1 <= args.tcp_port <= 65535):
        raise ValueError("TCP port (--tcp-port) must be between 1 and 65535")

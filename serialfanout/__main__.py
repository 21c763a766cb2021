"""Entry point: parse config and run the serial fan-out bridge until signalled."""

import logging
import sys

from serialfanout.config import parse_args
from serialfanout.bridge import StartupError, run_bridge

logger = logging.getLogger("serialfanout")


def main():
    try:
        args = parse_args()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    try:
        run_bridge(
            serial_port=args.serial_port,
            tcp_host=args.tcp_host,
            tcp_port=args.tcp_port,
            verbose=args.verbose,
        )
    except StartupError as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()

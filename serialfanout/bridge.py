"""Asyncio-based bridge between a serial port and any number of TCP clients."""

import asyncio
import logging
import signal
import sys
from datetime import datetime
from typing import Optional, Tuple

import serial

from serialfanout.clients import ClientRegistry, abort_quietly
from serialfanout.config import BAUD_RATE
from serialfanout.serial_endpoint import SerialEndpoint

logger = logging.getLogger("serialfanout")

READ_CHUNK = 4096


class StartupError(RuntimeError):
    """The bridge could not open the serial port or bind its listener."""


class Bridge:
    """
    Relay between one serial endpoint and a set of TCP clients.

    Serial data is written to every connected client; data from any
    client is written to the serial port. Writes from different clients
    are not arbitrated: they reach the device whole, in arrival order.
    """

    def __init__(
        self,
        serial_path: str,
        tcp_host: str,
        tcp_port: int,
        baud: int = BAUD_RATE,
    ):
        self.tcp_host = tcp_host
        self.tcp_port = tcp_port
        self.serial = SerialEndpoint(serial_path, baud)
        self.clients = ClientRegistry()
        self._server: Optional[asyncio.Server] = None
        self._stop_requested = asyncio.Event()
        self._shut_down = False

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Bound (host, port) of the listener, or None before start()."""
        if self._server is None or not self._server.sockets:
            return None
        sockname = self._server.sockets[0].getsockname()
        return sockname[0], sockname[1]

    async def start(self) -> None:
        """Open the serial port, then start listening; raises StartupError on failure."""
        try:
            self.serial.open(self.on_serial_data)
        except (serial.SerialException, ValueError) as e:
            raise StartupError(f"Failed to open serial port {self.serial.path}: {e}") from e

        try:
            self._server = await asyncio.start_server(
                self._handle_client, self.tcp_host, self.tcp_port
            )
        except OSError as e:
            await self.serial.close()
            raise StartupError(
                f"Failed to listen on {self.tcp_host}:{self.tcp_port}: {e}"
            ) from e

        host, port = self.address
        logger.info("TCP server started on %s:%s", host, port)

    def on_serial_data(self, data: bytes) -> None:
        """Send one serial chunk to every live client and drop the ones that fail."""
        if not len(self.clients):
            logger.debug("No TCP clients connected, discarding %d bytes", len(data))
            return

        dead = []
        for client in self.clients.snapshot():
            if client.is_closing:
                dead.append(client)
                continue
            try:
                client.writer.write(data)
            except (OSError, RuntimeError) as e:
                logger.error("Error writing to TCP client %s: %s", client.address, e)
                dead.append(client)

        for client in dead:
            self.clients.remove(client.client_id)
            abort_quietly(client.writer)

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Forward everything one TCP client sends to the serial port."""
        client = self.clients.add(writer)
        address = client.address
        logger.info("TCP client connected: %s", address)
        try:
            while True:
                data = await reader.read(READ_CHUNK)
                if not data:
                    break
                self.serial.write(data)
        except OSError as e:
            logger.error("TCP client error (%s): %s", address, e)
        finally:
            self.clients.remove(client.client_id)
            connected_for = (datetime.now() - client.connected_at).total_seconds()
            logger.info(
                "TCP client disconnected: %s (connected %.1fs)", address, connected_for
            )
            try:
                writer.close()
                await writer.wait_closed()
            except (OSError, RuntimeError):
                pass

    def stop(self) -> None:
        """Ask serve() to shut the bridge down; extra calls are ignored."""
        if not self._stop_requested.is_set():
            logger.info("Shutting down...")
        self._stop_requested.set()

    async def shutdown(self) -> None:
        """Close serial, drop every client and close the listener. Idempotent."""
        if self._shut_down:
            return
        self._shut_down = True

        await self.serial.close()

        for client in self.clients.snapshot():
            self.clients.remove(client.client_id)
            abort_quietly(client.writer)

        if self._server is not None:
            self._server.close()
            logger.info("TCP server closed")

    async def serve(self) -> None:
        """Run until stop() is called or SIGINT/SIGTERM arrives, then shut down."""
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # Windows: Ctrl+C surfaces as KeyboardInterrupt instead.
                pass
        try:
            await self._stop_requested.wait()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self.shutdown()


async def run_bridge_async(serial_port: str, tcp_host: str, tcp_port: int) -> None:
    """Start the bridge and serve until a termination signal."""
    bridge = Bridge(serial_port, tcp_host, tcp_port)
    await bridge.start()
    await bridge.serve()


def run_bridge(
    serial_port: str,
    tcp_host: str,
    tcp_port: int,
    verbose: bool = False,
):
    """Synchronous entry: run the asyncio bridge until interrupted."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    logger.info("Starting serial to TCP bridge")
    logger.info("Serial: %s @ %s baud", serial_port, BAUD_RATE)
    logger.info("TCP: %s:%s", tcp_host, tcp_port)
    try:
        asyncio.run(run_bridge_async(serial_port, tcp_host, tcp_port))
    except KeyboardInterrupt:
        pass

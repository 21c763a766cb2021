"""Serial side of the bridge: one pyserial handle pumped from the event loop."""

import asyncio
import logging
from typing import Callable, List, Optional

import serial

from serialfanout.config import BAUD_RATE

logger = logging.getLogger("serialfanout")

POLL_INTERVAL = 0.01
STOP_TIMEOUT = 0.5


def open_serial(path: str, baud: int) -> serial.Serial:
    """Open the serial port (or pyserial URL such as loop://) with the given settings."""
    return serial.serial_for_url(path, baudrate=baud)


class SerialEndpoint:
    """
    A serial device opened once and read/written without blocking the loop.

    Inbound chunks are delivered to the ``on_data`` callback given to
    :meth:`open`, in the order the device produced them. Outbound chunks
    go through a queue drained by a single writer task, so chunks handed
    to :meth:`write` reach the device whole and in call order.
    """

    def __init__(self, path: str, baud: int = BAUD_RATE):
        self.path = path
        self.baud = baud
        self._serial: Optional[serial.Serial] = None
        self._closed = False
        self._outbox: "asyncio.Queue[Optional[bytes]]" = asyncio.Queue()
        self._tasks: List[asyncio.Task] = []

    @property
    def is_open(self) -> bool:
        return self._serial is not None and not self._closed

    def open(self, on_data: Callable[[bytes], None]) -> None:
        """Open the device and start pumping data; raises serial.SerialException."""
        if self._serial is not None:
            raise RuntimeError(f"Serial port {self.path} was already opened")
        self._serial = open_serial(self.path, self.baud)
        logger.info("Serial port opened: %s @ %s baud", self.path, self.baud)
        self._tasks = [
            asyncio.create_task(self._read_loop(self._serial, on_data)),
            asyncio.create_task(self._write_loop(self._serial)),
        ]

    def write(self, data: bytes) -> None:
        """Queue data for the device; dropped with a warning if the port is not open."""
        if not self.is_open:
            logger.warning("Serial port not open, dropping %d bytes of TCP data", len(data))
            return
        self._outbox.put_nowait(data)

    async def close(self) -> None:
        """Stop the pumps and release the device. Safe to call more than once."""
        if self._serial is None or self._closed:
            return
        self._mark_closed()
        # A write stuck on a device that stopped draining must not hold up
        # shutdown; pyserial can interrupt it on platforms that support it.
        cancel_write = getattr(self._serial, "cancel_write", None)
        if cancel_write is not None:
            cancel_write()
        current = asyncio.current_task()
        tasks = [t for t in self._tasks if t is not current]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=STOP_TIMEOUT)
            for task in pending:
                task.cancel()
        self._release()

    def _mark_closed(self) -> None:
        self._closed = True
        # Wake the writer so it can exit; anything still queued is dropped.
        self._outbox.put_nowait(None)

    def _release(self) -> None:
        try:
            self._serial.close()
        except (serial.SerialException, OSError) as e:
            logger.error("Error closing serial port %s: %s", self.path, e)
        logger.info("Serial port closed")

    async def _read_loop(self, ser: serial.Serial, on_data: Callable[[bytes], None]):
        """Read from serial and hand chunks to on_data until closed or the device fails."""
        try:
            while not self._closed:
                n = ser.in_waiting
                if n > 0:
                    data = await asyncio.to_thread(ser.read, n)
                    if data and not self._closed:
                        on_data(data)
                else:
                    await asyncio.sleep(POLL_INTERVAL)
        except (serial.SerialException, OSError) as e:
            if self._closed:
                return
            logger.error("Serial port error: %s", e)
            # No reconnect: the endpoint stays closed for the rest of the run.
            self._mark_closed()
            self._release()

    async def _write_loop(self, ser: serial.Serial):
        """Write queued chunks to serial one at a time until closed."""
        while True:
            data = await self._outbox.get()
            if data is None or self._closed:
                break
            try:
                await asyncio.to_thread(ser.write, data)
            except (serial.SerialException, OSError) as e:
                logger.error("Serial write error: %s", e)

import contextlib
import io
import os
import pty
import select
import time
import typing

import pytest


class PseudoTtySerial(typing.NamedTuple):
    path: str
    control: io.FileIO
    simulated: io.FileIO

    def read(self, size: int, timeout: float = 2.0) -> bytes:
        """Read what the bridge wrote to the device, up to size bytes."""
        deadline = time.monotonic() + timeout
        data = b""
        while len(data) < size:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            ready, _, _ = select.select([self.control], [], [], remaining)
            if ready:
                data += os.read(self.control.fileno(), size - len(data))
        return data


@pytest.fixture
def pty_serial():
    with contextlib.ExitStack() as cleanup:
        ctrl_fd, sim_fd = pty.openpty()
        path = os.ttyname(sim_fd)
        ctrl = cleanup.enter_context(os.fdopen(ctrl_fd, "r+b", buffering=0))
        sim = cleanup.enter_context(os.fdopen(sim_fd, "r+b", buffering=0))
        yield PseudoTtySerial(path=path, control=ctrl, simulated=sim)

"""Bookkeeping for connected TCP clients."""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class Client:
    """Represents a connected TCP client."""

    client_id: str
    writer: asyncio.StreamWriter
    connected_at: datetime = field(default_factory=datetime.now)

    @property
    def address(self) -> str:
        """Get client address as host:port."""
        peername = self.writer.get_extra_info("peername")
        if peername:
            return f"{peername[0]}:{peername[1]}"
        return "unknown"

    @property
    def is_closing(self) -> bool:
        return self.writer.is_closing()


class ClientRegistry:
    """
    The live client set, keyed by a stable id.

    Only the bridge mutates it, and only from event loop callbacks, so
    no locking is needed. Iterate over :meth:`snapshot` when the set may
    change during the pass.
    """

    def __init__(self):
        self._clients: Dict[str, Client] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._clients

    def add(self, writer: asyncio.StreamWriter) -> Client:
        client = Client(client_id=str(uuid.uuid4()), writer=writer)
        self._clients[client.client_id] = client
        return client

    def remove(self, client_id: str) -> Optional[Client]:
        """Remove a client; returns None if it was already gone."""
        return self._clients.pop(client_id, None)

    def snapshot(self) -> List[Client]:
        return list(self._clients.values())


def abort_quietly(writer: asyncio.StreamWriter) -> None:
    """Force-close a client transport, ignoring errors from an already failing socket."""
    try:
        writer.transport.abort()
    except (OSError, RuntimeError):
        pass

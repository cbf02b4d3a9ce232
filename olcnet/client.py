"""The client side: one connection to a server and a queue of what it sent."""

from __future__ import annotations

import socket
import sys
from typing import Any, Callable, Optional

from .connection import Connection, Owner
from .message import Message
from .tsqueue import TSQueue


class ClientInterface:
    """Connects to a server and exposes received messages through ``incoming``."""

    def __init__(self, msg_type: Optional[Callable[[int], Any]] = None) -> None:
        self.msg_type = msg_type
        self.incoming = TSQueue()
        self._connection: Optional[Connection] = None

    def connect(self, host: str, port: int) -> bool:
        """Open a link to ``host``:``port``; False if it could not be made."""
        self.disconnect()
        try:
            sock = socket.create_connection((host, port))
        except OSError as exc:
            print(f"Client Exception: {exc}", file=sys.stderr)
            return False
        self._connection = Connection(Owner.CLIENT, sock, self.incoming, self.msg_type)
        self._connection.connect_to_server()
        return True

    def disconnect(self) -> None:
        """Close the link to the server, if any."""
        if self._connection is not None:
            self._connection.disconnect()
        self._connection = None

    def is_connected(self) -> bool:
        """Whether a link to the server is open."""
        return self._connection is not None and self._connection.is_connected()

    def send(self, msg: Message) -> None:
        """Send ``msg`` to the server; dropped when not connected."""
        if self.is_connected():
            self._connection.send(msg)

    def __enter__(self) -> "ClientInterface":
        return self

    def __exit__(self, *args: Any) -> None:
        self.disconnect()
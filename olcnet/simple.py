"""A small chat-style client and server: pings are echoed, broadcasts are relayed."""

from __future__ import annotations

import enum
import time
from typing import Any, Optional

from .client import ClientInterface
from .message import Message
from .server import ServerInterface


class CustomMsgTypes(enum.IntEnum):
    """Message identifiers shared by the simple client and server."""

    SERVER_ACCEPT = 0
    SERVER_DENY = 1
    SERVER_PING = 2
    MESSAGE_ALL = 3
    SERVER_MESSAGE = 4


class CustomClient(ClientInterface):
    """A client that can ping the server and ask it to greet everyone else."""

    def __init__(self) -> None:
        super().__init__(CustomMsgTypes)

    def ping_server(self) -> None:
        """Send a ping carrying the current wall-clock time in nanoseconds."""
        msg = Message(CustomMsgTypes.SERVER_PING)
        msg.push("q", time.time_ns())
        self.send(msg)

    def message_all(self) -> None:
        """Ask the server to tell every other client that this one said hello."""
        self.send(Message(CustomMsgTypes.MESSAGE_ALL))


class CustomServer(ServerInterface):
    """Accepts every client, echoes pings and relays broadcasts."""

    def __init__(self, port: int) -> None:
        super().__init__(port, CustomMsgTypes)

    def on_client_connect(self, client: Any) -> bool:
        client.send(Message(CustomMsgTypes.SERVER_ACCEPT))
        return True

    def on_client_disconnect(self, client: Optional[Any]) -> None:
        uid = client.id if client is not None else "-"
        print(f"Removing client [{uid}]")

    def on_message(self, client: Any, msg: Message) -> None:
        if msg.id == CustomMsgTypes.SERVER_PING:
            print(f"[{client.id}]: Server Ping")
            client.send(msg)
        elif msg.id == CustomMsgTypes.MESSAGE_ALL:
            print(f"[{client.id}]: Message All")
            reply = Message(CustomMsgTypes.SERVER_MESSAGE)
            reply.push("I", client.id)
            self.message_all_clients(reply, client)
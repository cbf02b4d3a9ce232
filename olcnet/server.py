"""The server side: accepts clients, tracks their connections, dispatches messages."""

from __future__ import annotations

import socket
import threading
from typing import Any, Callable, Optional

from .connection import Connection, Owner
from .message import Message
from .tsqueue import TSQueue

_FIRST_ID = 10000


class ServerInterface:
    """A TCP server; subclasses override the ``on_*`` hooks to give it behaviour."""

    def __init__(
        self, port: int, msg_type: Optional[Callable[[int], Any]] = None
    ) -> None:
        self.msg_type = msg_type
        self.incoming = TSQueue()
        self.connections: list[Connection] = []
        self.validated: list[Connection] = []
        self._connections_lock = threading.RLock()
        self._id_counter = _FIRST_ID
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._listener.bind(("", port))
            self._listener.listen()
            self._listener.settimeout(0.1)
        except OSError:
            self._listener.close()
            raise
        self.port = self._listener.getsockname()[1]

    def start(self) -> bool:
        """Begin accepting clients in the background; False on failure."""
        if self._thread is not None and self._thread.is_alive():
            return True
        try:
            if self._listener.fileno() == -1:
                raise OSError("listening socket is closed")
            self._stopping.clear()
            self._thread = threading.Thread(target=self._accept_loop, daemon=True)
            self._thread.start()
        except (OSError, RuntimeError) as exc:
            print(f"[SERVER] Exception: {exc}")
            return False
        print("[SERVER] Started!")
        return True

    def stop(self) -> None:
        """Stop accepting, close the listening socket and every connection."""
        self._stopping.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._listener.close()
        with self._connections_lock:
            connections = list(self.connections)
        for conn in connections:
            conn.disconnect()
        print("[SERVER] Stopped!")

    def _accept_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                sock, address = self._listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._stopping.is_set() or self._listener.fileno() == -1:
                    return
                print(f"[SERVER] New Connection Error: {exc}")
                continue
            self._admit(sock, address)

    def _admit(self, sock: socket.socket, address: Any) -> None:
        sock.setblocking(True)
        print(f"[SERVER] New Connection: {address[0]}:{address[1]}")
        conn = Connection(Owner.SERVER, sock, self.incoming, self.msg_type)
        if self.on_client_connect(conn):
            with self._connections_lock:
                self.connections.append(conn)
                uid = self._id_counter
                self._id_counter += 1
            conn.connect_to_client(self, uid)
            print(f"[{conn.id}] Connection Approved")
        else:
            print("[-----] Connection Denied")
            conn.disconnect()

    def _forget(self, gone: list[Optional[Connection]]) -> None:
        with self._connections_lock:
            self.connections[:] = [
                c for c in self.connections if all(c is not g for g in gone)
            ]
            self.validated[:] = [
                c for c in self.validated if all(c is not g for g in gone)
            ]

    def message_client(self, client: Optional[Connection], msg: Message) -> None:
        """Send ``msg`` to one client, dropping it from the server if it has gone."""
        if client is not None and client.is_connected():
            client.send(msg)
            return
        self.on_client_disconnect(client)
        self._forget([client])

    def message_all_clients(
        self, msg: Message, ignore_client: Optional[Connection] = None
    ) -> None:
        """Send ``msg`` to every connected client except ``ignore_client``."""
        with self._connections_lock:
            connections = list(self.connections)
        dead: list[Optional[Connection]] = []
        for client in connections:
            if client.is_connected():
                if client is not ignore_client:
                    client.send(msg)
            else:
                self.on_client_disconnect(client)
                dead.append(client)
        if dead:
            self._forget(dead)

    def update(self, max_messages: Optional[int] = None, wait: bool = False) -> int:
        """Hand queued messages to ``on_message``; returns how many were handled.

        ``max_messages`` of None or below zero means no limit. With ``wait`` the
        call first blocks until a message is queued.
        """
        if wait:
            self.incoming.wait()
        limit = None if max_messages is None or max_messages < 0 else max_messages
        handled = 0
        while (limit is None or handled < limit) and not self.incoming.empty():
            owned = self.incoming.pop_front()
            self.on_message(owned.remote, owned.msg)
            handled += 1
        return handled

    def on_client_connect(self, client: Connection) -> bool:
        """Decide whether to keep a newly accepted client; refuses by default."""
        return False

    def on_client_disconnect(self, client: Optional[Connection]) -> None:
        """Called when a client is found to have gone."""

    def on_message(self, client: Connection, msg: Message) -> None:
        """Called by ``update`` for each message received."""

    def on_client_validated(self, client: Connection) -> None:
        """Called once a client has passed the handshake; records it in ``validated``."""
        with self._connections_lock:
            if all(c is not client for c in self.validated):
                self.validated.append(client)
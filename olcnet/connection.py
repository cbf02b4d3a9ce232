"""One end of a validated, framed TCP link between a server and a client."""

from __future__ import annotations

import enum
import queue
import socket
import struct
import threading
import time
from typing import Any, Callable, Optional

from .message import HEADER_SIZE, Message, OwnedMessage, decode_header
from .tsqueue import TSQueue

_MASK64 = 0xFFFF_FFFF_FFFF_FFFF
_HANDSHAKE = struct.Struct("<Q")


def scramble(value: int) -> int:
    """The 64-bit transform a client applies to the server's challenge."""
    out = (value & _MASK64) ^ 0xDEADBEEFC0DECAFE
    out = ((out & 0xF0F0F0F0F0F0F0F0) >> 4) | ((out & 0x0F0F0F0F0F0F0F0F) << 4)
    return (out ^ 0xC0DEFACE12345678) & _MASK64


class Owner(enum.Enum):
    """Which side of the link a connection object lives on."""

    SERVER = "server"
    CLIENT = "client"


class Connection:
    """A socket that performs the handshake, then reads and writes framed messages.

    Received messages go to ``incoming``; outgoing messages are written in order
    by a writer thread that starts once the handshake has been completed.
    """

    def __init__(
        self,
        owner: Owner,
        sock: socket.socket,
        incoming: TSQueue,
        msg_type: Optional[Callable[[int], Any]] = None,
    ) -> None:
        self.owner = owner
        self.id = 0
        self.msg_type = msg_type
        self._sock = sock
        self._incoming = incoming
        self._outgoing: "queue.SimpleQueue[Optional[bytes]]" = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._closed = sock.fileno() == -1
        if owner is Owner.SERVER:
            self._handshake_out = time.time_ns() & _MASK64
            self._handshake_check = scramble(self._handshake_out)
        else:
            self._handshake_out = 0
            self._handshake_check = 0
        if sock.family in (socket.AF_INET, socket.AF_INET6):
            try:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError:
                pass

    def __repr__(self) -> str:
        state = "open" if self.is_connected() else "closed"
        return f"<Connection {self.owner.value} id={self.id} {state}>"

    def connect_to_client(self, server: Any, uid: int = 0) -> None:
        """On a server connection: assign ``uid`` and start validating the client."""
        if self.owner is Owner.SERVER and self.is_connected():
            self.id = uid
            self._spawn(self._run_server_side, server)

    def connect_to_server(self) -> None:
        """On a client connection: answer the server's challenge, then exchange messages."""
        if self.owner is Owner.CLIENT and self.is_connected():
            self._spawn(self._run_client_side)

    def disconnect(self) -> None:
        """Close the link if it is open."""
        if self.is_connected():
            self._close()

    def is_connected(self) -> bool:
        """Whether the socket is still open."""
        return not self._closed

    def send(self, msg: Message) -> None:
        """Queue a copy of ``msg`` for writing; ignored once the link is closed."""
        if self.is_connected():
            self._outgoing.put(msg.encode())

    def _spawn(self, target: Callable[..., None], *args: Any) -> None:
        threading.Thread(target=target, args=args, daemon=True).start()

    def _close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()
        self._outgoing.put(None)

    def _fail(self, what: str, exc: BaseException) -> None:
        if self.is_connected():
            print(f"{what}: {exc}")
            self._close()

    def _recv_exact(self, count: int) -> bytes:
        buf = bytearray()
        while len(buf) < count:
            chunk = self._sock.recv(count - len(buf))
            if not chunk:
                raise ConnectionError("connection closed by peer")
            buf += chunk
        return bytes(buf)

    def _run_server_side(self, server: Any) -> None:
        try:
            self._sock.sendall(_HANDSHAKE.pack(self._handshake_out))
        except OSError as exc:
            self._fail("Error writing validation", exc)
            return
        try:
            (answer,) = _HANDSHAKE.unpack(self._recv_exact(_HANDSHAKE.size))
        except OSError as exc:
            self._fail("Error reading validation", exc)
            return
        if answer != self._handshake_check:
            print("Client Validation Failed")
            self._close()
            return
        print("Client Validated")
        server.on_client_validated(self)
        self._spawn(self._write_messages)
        self._read_messages()

    def _run_client_side(self) -> None:
        try:
            (challenge,) = _HANDSHAKE.unpack(self._recv_exact(_HANDSHAKE.size))
        except OSError as exc:
            self._fail("Error reading validation", exc)
            return
        try:
            self._sock.sendall(_HANDSHAKE.pack(scramble(challenge)))
        except OSError as exc:
            self._fail("Error writing validation", exc)
            return
        self._spawn(self._write_messages)
        self._read_messages()

    def _read_messages(self) -> None:
        remote = self if self.owner is Owner.SERVER else None
        while True:
            try:
                msg_id, length = decode_header(
                    self._recv_exact(HEADER_SIZE), self.msg_type
                )
            except (OSError, ValueError) as exc:
                self._fail("Error reading header", exc)
                return
            try:
                body = self._recv_exact(length) if length else b""
            except OSError as exc:
                self._fail("Error reading body", exc)
                return
            self._incoming.push_back(OwnedMessage(remote, Message(msg_id, body)))

    def _write_messages(self) -> None:
        while True:
            data = self._outgoing.get()
            if data is None:
                return
            try:
                self._sock.sendall(data)
            except OSError:
                if self.is_connected():
                    print(f"[{self.id}] Write Body Fail.")
                    self._close()
                return
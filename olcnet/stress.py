"""Load tools: an echo server that counts pings, and clients that measure or flood it."""

from __future__ import annotations

import enum
import re
import struct
import sys
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from .client import ClientInterface
from .message import Message
from .server import ServerInterface
from .simple import CustomMsgTypes

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 60000

_TIMESTAMP = struct.Struct("<Q")


class StressMsg(enum.IntEnum):
    """Message identifiers of the stress protocol."""

    ACCEPT = 0
    PING = 1


class _Counter:
    """A thread-safe counter that can be read and reset in one step."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def add(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    def exchange(self, new: int = 0) -> int:
        with self._lock:
            old, self._value = self._value, new
            return old

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


def _now_us() -> int:
    return time.time_ns() // 1000


def _atoi(text: str) -> int:
    match = re.match(r"\s*[+-]?\d+", text)
    return int(match.group()) if match else 0


class StressClient(ClientInterface):
    """A client that sends timestamped pings."""

    def __init__(self) -> None:
        super().__init__(StressMsg)

    def ping_msg(self, timestamp_us: int) -> None:
        """Send a ping carrying ``timestamp_us`` as an unsigned 64-bit value."""
        msg = Message(StressMsg.PING)
        msg.push("Q", timestamp_us)
        self.send(msg)


class StressServer(ServerInterface):
    """Accepts every client and echoes each ping back, counting them."""

    def __init__(self, port: int) -> None:
        super().__init__(port, StressMsg)
        self._received = _Counter()

    def on_client_connect(self, client: Any) -> bool:
        client.send(Message(StressMsg.ACCEPT))
        print(f"[SERVER] Client connected: ID={client.id}")
        return True

    def on_client_disconnect(self, client: Optional[Any]) -> None:
        uid = client.id if client is not None else "-"
        print(f"[SERVER] Client disconnected: ID={uid}")

    def on_message(self, client: Any, msg: Message) -> None:
        if msg.id == StressMsg.PING:
            self._received.add()
            client.send(msg)

    def print_stats(self) -> int:
        """Print the client count and pings since the last call; return that ping count."""
        count = self._received.exchange(0)
        print(f"[SERVER] Clients: {len(self.connections)} | Msgs/sec: {count}")
        return count


class FloodClient(ClientInterface):
    """Sends bare pings as fast as it can and drains whatever comes back."""

    def __init__(
        self, sent: Optional[_Counter] = None, received: Optional[_Counter] = None
    ) -> None:
        super().__init__(CustomMsgTypes)
        self.sent = sent if sent is not None else _Counter()
        self.received = received if received is not None else _Counter()

    def flood(
        self,
        duration_sec: float,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
    ) -> bool:
        """Flood ``host``:``port`` for ``duration_sec`` seconds; False if it could not connect."""
        if not self.connect(host, port):
            print("[Client] Connect failed", file=sys.stderr)
            return False
        end = time.monotonic() + duration_sec
        try:
            while time.monotonic() < end:
                self.send(Message(CustomMsgTypes.SERVER_PING))
                self.sent.add()
                while not self.incoming.empty():
                    self.incoming.pop_front()
                    self.received.add()
        finally:
            self.disconnect()
        return True


@dataclass(frozen=True)
class StressResult:
    """What one stress client sent, got back, and the round-trip times in milliseconds."""

    sent: int
    received: int
    avg_rtt_ms: float
    max_rtt_ms: float


def client_task(
    host: str, port: int, client_id: int, messages_per_client: int
) -> Optional[StressResult]:
    """Connect, wait for the server's accept, send pings and measure their round trips.

    Returns None when the connection or the handshake failed.
    """
    with StressClient() as client:
        if not client.connect(host, port):
            print(f"[CLIENT {client_id}] Connection failed", file=sys.stderr)
            return None

        accepted = False
        while client.is_connected() and not accepted:
            try:
                owned = client.incoming.pop_front(timeout=0.001)
            except TimeoutError:
                continue
            if owned.msg.id == StressMsg.ACCEPT:
                accepted = True
                print(f"[CLIENT {client_id}] Accepted by server")
        if not accepted:
            print(
                f"[CLIENT {client_id}] No Accept from server, aborting",
                file=sys.stderr,
            )
            return None

        for _ in range(messages_per_client):
            client.ping_msg(_now_us())

        time.sleep(1)

        latencies = []
        while not client.incoming.empty():
            msg = client.incoming.pop_front().msg
            if msg.id == StressMsg.PING and len(msg.body) >= _TIMESTAMP.size:
                (t0,) = _TIMESTAMP.unpack_from(msg.body)
                latencies.append((_now_us() - t0) / 1000.0)

    received = len(latencies)
    avg = sum(latencies) / received if received else 0.0
    max_lat = max(latencies, default=0.0)
    print(
        f"[CLIENT {client_id}] Sent: {messages_per_client}"
        f"  Received: {received}"
        f"  Avg RTT: {avg:g} ms"
        f"  Max RTT: {max_lat:g} ms"
    )
    return StressResult(messages_per_client, received, avg, max(max_lat, 0.0))


def client_main(argv: Optional[Sequence[str]] = None) -> int:
    """Run several stress clients at once: ``[host port clients messages]``."""
    args = list(sys.argv[1:] if argv is None else argv)
    host, port, num_clients, messages = DEFAULT_HOST, DEFAULT_PORT, 4, 50000
    if len(args) == 4:
        host = args[0]
        port = int(args[1]) & 0xFFFF
        num_clients = int(args[2])
        messages = int(args[3])
    else:
        print(
            f"[StressClient] Using defaults: host={host} port={port}"
            f" clients={num_clients} messages={messages}"
        )

    threads = []
    for client_id in range(num_clients):
        thread = threading.Thread(
            target=client_task, args=(host, port, client_id, messages)
        )
        thread.start()
        threads.append(thread)
        time.sleep(0.01)
    for thread in threads:
        thread.join()

    print("\nDone. Press Enter to exit...", end="", flush=True)
    try:
        input()
    except EOFError:
        pass
    return 0


def server_main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the echo server: ``[port]``; prints statistics about once a second."""
    args = list(sys.argv[1:] if argv is None else argv)
    port = DEFAULT_PORT
    if len(args) == 1:
        port = int(args[0]) & 0xFFFF
    else:
        print(f"Usage: StressServer [port]\nUsing default port {port}")

    server = StressServer(port)
    if not server.start():
        return 1
    last_print = time.monotonic()
    try:
        while True:
            server.update(wait=True)
            now = time.monotonic()
            if now - last_print >= 1.0:
                server.print_stats()
                last_print = now
            time.sleep(0.001)
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0


def flood_main(argv: Optional[Sequence[str]] = None) -> int:
    """Flood the local server: ``[threads [seconds]]``; prints rates each second."""
    args = list(sys.argv[1:] if argv is None else argv)
    thread_count = _atoi(args[0]) if len(args) > 0 else 1
    duration_sec = _atoi(args[1]) if len(args) > 1 else 10

    sent, received = _Counter(), _Counter()
    workers = [
        threading.Thread(
            target=lambda: FloodClient(sent, received).flood(duration_sec)
        )
        for _ in range(thread_count)
    ]
    for worker in workers:
        worker.start()

    for _ in range(duration_sec):
        time.sleep(1)
        print(f"[Client] Sent/s: {sent.exchange(0)}  Recv/s: {received.exchange(0)}")

    for worker in workers:
        worker.join()
    return 0
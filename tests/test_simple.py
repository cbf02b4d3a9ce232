import threading
import time

import pytest

from olcnet.message import Message
from olcnet.simple import CustomClient, CustomMsgTypes, CustomServer


class _Peer:
    def __init__(self, uid, connected=True):
        self.id = uid
        self.connected = connected
        self.sent = []

    def is_connected(self):
        return self.connected

    def send(self, msg):
        self.sent.append(msg)


@pytest.fixture
def idle_server():
    srv = CustomServer(0)
    yield srv
    srv.stop()


@pytest.fixture
def running_server():
    srv = CustomServer(0)
    assert srv.start()
    stop = threading.Event()

    def pump():
        while not stop.is_set():
            srv.update()
            time.sleep(0.001)

    thread = threading.Thread(target=pump, daemon=True)
    thread.start()
    yield srv
    stop.set()
    thread.join()
    srv.stop()


def test_ping_header_on_the_wire():
    header = Message(CustomMsgTypes.SERVER_PING).encode_header()
    assert header == b"\x02\x00\x00\x00\x00\x00\x00\x00"


def test_on_client_connect_sends_accept(idle_server):
    peer = _Peer(1)
    assert idle_server.on_client_connect(peer) is True
    assert [m.id for m in peer.sent] == [CustomMsgTypes.SERVER_ACCEPT]


def test_ping_is_echoed_to_sender(idle_server):
    peer = _Peer(3)
    msg = Message(CustomMsgTypes.SERVER_PING).push("q", 12345)
    idle_server.on_message(peer, msg)
    assert len(peer.sent) == 1
    assert peer.sent[0].id == CustomMsgTypes.SERVER_PING
    assert peer.sent[0].pop("q") == 12345


def test_on_client_disconnect_reports_id(idle_server, capsys):
    idle_server.on_client_disconnect(_Peer(42))
    assert "Removing client [42]" in capsys.readouterr().out


def test_unconnected_client_drops_ping():
    client = CustomClient()
    client.ping_server()
    assert client.is_connected() is False
    assert client.incoming.empty()


def test_ping_round_trip(running_server):
    with CustomClient() as client:
        assert client.connect("127.0.0.1", running_server.port)
        first = client.incoming.pop_front(timeout=5).msg
        assert first.id == CustomMsgTypes.SERVER_ACCEPT
        before = time.time_ns()
        client.ping_server()
        echo = client.incoming.pop_front(timeout=5).msg
        after = time.time_ns()
        assert echo.id == CustomMsgTypes.SERVER_PING
        stamp = echo.pop("q")
        assert before <= stamp <= after


def test_broadcast_reaches_other_client(running_server):
    with CustomClient() as first, CustomClient() as second:
        assert first.connect("127.0.0.1", running_server.port)
        assert first.incoming.pop_front(timeout=5).msg.id == CustomMsgTypes.SERVER_ACCEPT
        assert second.connect("127.0.0.1", running_server.port)
        assert second.incoming.pop_front(timeout=5).msg.id == CustomMsgTypes.SERVER_ACCEPT
        first.message_all()
        relayed = second.incoming.pop_front(timeout=5).msg
        assert relayed.id == CustomMsgTypes.SERVER_MESSAGE
        assert relayed.pop("I") == running_server.connections[0].id
        assert first.incoming.wait(timeout=0.2) is False
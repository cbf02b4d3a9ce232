import socket
import struct
import time
from enum import IntEnum

import pytest

from olcnet.connection import Connection, Owner, scramble
from olcnet.message import Message
from olcnet.tsqueue import TSQueue


def wait_until(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def recv_exact(sock, count):
    buf = b""
    while len(buf) < count:
        chunk = sock.recv(count - len(buf))
        if not chunk:
            break
        buf += chunk
    return buf


class Recorder:
    def __init__(self):
        self.validated = []

    def on_client_validated(self, client):
        self.validated.append(client)


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    b.settimeout(3)
    yield a, b
    a.close()
    b.close()


def test_scramble_of_zero():
    assert scramble(0) == 0x2D0411301ED9FA97


def test_scramble_is_64_bit_and_injective():
    values = [0, 1, 2, 42, 0x0123456789ABCDEF, 2**64 - 1]
    results = [scramble(v) for v in values]
    assert all(0 <= r < 2**64 for r in results)
    assert len(set(results)) == len(values)


def test_scramble_ignores_bits_above_64():
    assert scramble(2**64 + 5) == scramble(5)


def test_handshake_and_messages_both_ways(pair):
    a, b = pair
    server_in, client_in = TSQueue(), TSQueue()
    server_conn = Connection(Owner.SERVER, a, server_in)
    client_conn = Connection(Owner.CLIENT, b, client_in)
    recorder = Recorder()
    server_conn.connect_to_client(recorder, 7)
    client_conn.connect_to_server()

    client_conn.send(Message(3, b"hello"))
    owned = server_in.pop_front(timeout=3)
    assert owned.remote is server_conn
    assert owned.msg.id == 3
    assert owned.msg.body == b"hello"
    assert recorder.validated == [server_conn]
    assert server_conn.id == 7

    server_conn.send(Message(4))
    reply = client_in.pop_front(timeout=3)
    assert reply.remote is None
    assert reply.msg.id == 4
    assert reply.msg.body == b""


def test_large_body_round_trip(pair):
    a, b = pair
    server_in, client_in = TSQueue(), TSQueue()
    server_conn = Connection(Owner.SERVER, a, server_in)
    client_conn = Connection(Owner.CLIENT, b, client_in)
    server_conn.connect_to_client(Recorder(), 1)
    client_conn.connect_to_server()
    payload = bytes(range(256)) * 400
    client_conn.send(Message(1, payload))
    assert server_in.pop_front(timeout=3).msg.body == payload


def test_server_accepts_raw_peer_with_correct_answer(pair):
    a, b = pair
    incoming = TSQueue()
    server_conn = Connection(Owner.SERVER, a, incoming)
    recorder = Recorder()
    server_conn.connect_to_client(recorder, 1)
    (challenge,) = struct.unpack("<Q", recv_exact(b, 8))
    b.sendall(struct.pack("<Q", scramble(challenge)))
    b.sendall(Message(9, b"ab").encode())
    owned = incoming.pop_front(timeout=3)
    assert owned.msg.id == 9
    assert owned.msg.body == b"ab"
    assert recorder.validated == [server_conn]


def test_server_rejects_wrong_answer(pair):
    a, b = pair
    server_conn = Connection(Owner.SERVER, a, TSQueue())
    recorder = Recorder()
    server_conn.connect_to_client(recorder, 1)
    (challenge,) = struct.unpack("<Q", recv_exact(b, 8))
    b.sendall(struct.pack("<Q", scramble(challenge) ^ 1))
    assert wait_until(lambda: not server_conn.is_connected())
    assert recorder.validated == []
    assert b.recv(1) == b""


def test_client_answers_challenge(pair):
    a, b = pair
    client_conn = Connection(Owner.CLIENT, a, TSQueue())
    client_conn.connect_to_server()
    b.sendall(struct.pack("<Q", 12345))
    assert recv_exact(b, 8) == struct.pack("<Q", scramble(12345))


def test_client_holds_messages_until_handshake(pair):
    a, b = pair
    client_conn = Connection(Owner.CLIENT, a, TSQueue())
    client_conn.send(Message(5, b"x"))
    client_conn.connect_to_server()
    b.sendall(struct.pack("<Q", 77))
    assert recv_exact(b, 8) == struct.pack("<Q", scramble(77))
    expected = Message(5, b"x").encode()
    assert recv_exact(b, len(expected)) == expected


def test_unknown_id_closes_connection(pair):
    class Kind(IntEnum):
        A = 0
        B = 1

    a, b = pair
    incoming = TSQueue()
    client_conn = Connection(Owner.CLIENT, a, incoming, Kind)
    client_conn.connect_to_server()
    b.sendall(struct.pack("<Q", 1))
    recv_exact(b, 8)
    b.sendall(Message(99).encode())
    assert wait_until(lambda: not client_conn.is_connected())
    assert len(incoming) == 0


def test_typed_ids_are_decoded(pair):
    class Kind(IntEnum):
        A = 0
        B = 1

    a, b = pair
    incoming = TSQueue()
    client_conn = Connection(Owner.CLIENT, a, incoming, Kind)
    client_conn.connect_to_server()
    b.sendall(struct.pack("<Q", 1))
    recv_exact(b, 8)
    b.sendall(Message(Kind.B, b"z").encode())
    owned = incoming.pop_front(timeout=3)
    assert owned.msg.id is Kind.B


def test_disconnect_closes_socket(pair):
    a, b = pair
    conn = Connection(Owner.CLIENT, a, TSQueue())
    assert conn.is_connected()
    conn.disconnect()
    assert not conn.is_connected()
    assert b.recv(1) == b""


def test_connect_to_client_ignored_for_client_owner(pair):
    a, b = pair
    conn = Connection(Owner.CLIENT, a, TSQueue())
    conn.connect_to_client(Recorder(), 5)
    assert conn.id == 0
    b.settimeout(0.2)
    with pytest.raises(socket.timeout):
        b.recv(8)
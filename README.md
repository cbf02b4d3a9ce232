# olcnet

A small TCP messaging framework built on the standard library alone.
Every message is an 8-byte header (the message id and the body length,
both little-endian unsigned 32-bit integers) followed by a raw byte body.
Before any messages flow, the server sends a 64-bit challenge and the
client must answer with its scrambled value (`olcnet.connection.scramble`);
a client that answers wrongly is dropped. Received messages are collected
in a thread-safe queue that your code drains when it suits it.

## Installing

    pip install .

To run the test suite:

    pip install .[test]
    pytest

## Messages

`olcnet.message.Message` holds an `id` (usually a member of an `IntEnum`)
and a `body` that behaves like a stack of packed values. `push(fmt, *args)`
packs values onto the end with a `struct` format, and `pop(fmt)` takes the
last ones off again. Formats without a byte-order mark are read as
little-endian with standard sizes.

```python
import enum
from olcnet.message import Message, decode_header

class MyMsg(enum.IntEnum):
    HELLO = 0
    DATA = 1

msg = Message(MyMsg.DATA)
msg.push("Q", 12345).push("I", 7)
assert msg.pop("I") == 7          # one field: a single value
assert msg.pop("Q") == 12345

wire = Message(MyMsg.HELLO, b"hi").encode()
msg_id, length = decode_header(wire[:8], MyMsg)   # (MyMsg.HELLO, 2)
```

`pop` raises `ValueError` when the body is too short, and `decode_header`
raises `ValueError` for a header of the wrong size or, when given an enum
class, for an unknown id. `msg.size` is the header plus body length.
`OwnedMessage` pairs a message with the connection it came from (`remote`,
which is `None` on the client side).

## The queue

`olcnet.tsqueue.TSQueue` is a FIFO that many threads may use at once:
`push_back(item)`, `front(timeout=None)`, `pop_front(timeout=None)`,
`empty()`, `wait(timeout=None)` and `len()`. `front` and `pop_front` block
until an item is there and raise `TimeoutError` if the timeout runs out;
`wait` returns `False` in that case.

## Writing a server

Subclass `olcnet.server.ServerInterface(port, msg_type=None)` and override
its hooks:

- `on_client_connect(client)` returns `True` to keep a new connection
  (the default refuses every client)
- `on_client_validated(client)` is called once the handshake succeeds; the
  default records the client in `validated`
- `on_message(client, msg)` is called for each message handed out by `update`
- `on_client_disconnect(client)` is called when a client is found to be gone

Call `start()` to accept clients in a background thread, then call
`update(max_messages=None, wait=False)` in a loop; it returns how many
messages it handled (`None` or a negative limit means no limit, and
`wait=True` blocks until a message arrives). `message_client(client, msg)`
and `message_all_clients(msg, ignore_client=None)` send to one or all
clients and drop those that have disconnected. Accepted clients are in
`connections` and get ids counting up from 10000. Passing port 0 picks a
free port, which is then in `port`. `stop()` closes the listener and every
connection.

## Writing a client

`olcnet.client.ClientInterface(msg_type=None)` offers `connect(host, port)`
(returns `False` if the link cannot be made), `send(msg)`, `is_connected()`
and `disconnect()`. Messages from the server arrive in its `incoming`
queue. It is also a context manager that disconnects on exit.

Passing an `IntEnum` class as `msg_type` makes received messages carry
members of that enum as their ids.

## Ready-made examples

`olcnet.simple` has `CustomServer(port)` and `CustomClient`, sharing the
`CustomMsgTypes` ids. The server accepts every client and sends it
`SERVER_ACCEPT`, echoes `SERVER_PING` messages back, and answers
`MESSAGE_ALL` by sending a `SERVER_MESSAGE` carrying the sender's id to
every other client. The client's `ping_server()` sends a ping holding the
current time in nanoseconds, and `message_all()` sends the broadcast
request.

`olcnet.stress` has `StressServer(port)`, which echoes `StressMsg.PING`
messages and counts them (`print_stats()` prints and returns the count
since its last call), `StressClient` with `ping_msg(timestamp_us)`, and
`FloodClient`, whose `flood(duration_sec, host, port)` sends pings as
fast as it can. `client_task(host, port, client_id, messages_per_client)`
waits for the server's accept, sends its pings, waits a second and returns
a `StressResult` with the counts and average and maximum round-trip times
in milliseconds, or `None` if it could not connect or was not accepted.

## Commands

Start the stress server (default port 60000); it prints the client count
and messages per second about once a second until interrupted:

    olcnet-stress-server [port]

Run the latency clients; with anything other than exactly four arguments
it uses host 127.0.0.1, port 60000, 4 clients and 50000 messages per
client, and it waits for Enter before exiting:

    olcnet-stress-client [host port clients messages]

Flood a server on 127.0.0.1:60000 with pings from several threads
(default 1 thread for 10 seconds) and print send and receive rates each
second:

    olcnet-flood [threads [seconds]]

## What it does not do

There is no command for the `olcnet.simple` client and server; start them
from your own code. Links are plain TCP: the handshake only checks that
the peer speaks this protocol and provides no encryption or
authentication.
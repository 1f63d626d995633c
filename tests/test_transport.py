import socket
import struct

import pytest

from dvrouter import message
from dvrouter.transport import ConnectError, RelayChannel, TransportError


@pytest.fixture
def channel_pair():
  left, right = socket.socketpair()
  router_side = RelayChannel(left)
  relay_side = RelayChannel(right)
  yield router_side, relay_side
  router_side.close()
  relay_side.close()


def test_messages_keep_order_across_the_stream(channel_pair):
  router_side, relay_side = channel_pair

  router_side.send_message(message.build_hello(0))
  router_side.send_message(message.build_route(0, 1, [0, 1, 4]))

  first = relay_side.receive_message()
  second = relay_side.receive_message()
  assert first.msg_type == message.MessageType.HELLO
  assert second.cost_vector == [0, 1, 4]


def test_peer_hangup_surfaces_as_transport_error(channel_pair):
  router_side, relay_side = channel_pair
  relay_side.close()

  with pytest.raises(TransportError):
    router_side.receive_message()


def test_undecodable_frame_is_a_transport_error(channel_pair):
  router_side, relay_side = channel_pair
  payload = b"{not json"
  relay_side._sock.sendall(struct.pack("!I", len(payload)) + payload)

  with pytest.raises(TransportError, match="undecodable"):
    router_side.receive_message()


def test_oversized_frame_rejected(channel_pair):
  router_side, relay_side = channel_pair
  relay_side._sock.sendall(struct.pack("!I", 1 << 30))

  with pytest.raises(TransportError, match="exceeds"):
    router_side.receive_message()


def test_closed_channel_refuses_io(channel_pair):
  router_side, _ = channel_pair
  router_side.close()
  router_side.close()

  assert router_side.closed
  with pytest.raises(TransportError):
    router_side.send_message(message.build_hello(0))
  with pytest.raises(TransportError):
    router_side.receive_message()


def test_connect_failure_raises_connect_error():
  listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
  listener.bind(("127.0.0.1", 0))
  port = listener.getsockname()[1]
  listener.close()

  with pytest.raises(ConnectError):
    RelayChannel.connect("127.0.0.1", port, timeout=1.0)


def test_connect_to_listening_relay():
  listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
  listener.bind(("127.0.0.1", 0))
  listener.listen(1)
  try:
    channel = RelayChannel.connect("127.0.0.1", listener.getsockname()[1])
    conn, _ = listener.accept()
    relay_side = RelayChannel(conn)
    channel.send_message(message.build_hello(4))
    assert relay_side.receive_message().source_id == 4
    channel.close()
    relay_side.close()
  finally:
    listener.close()

from __future__ import annotations

import collections
from typing import Callable, List, Optional

import pytest

from dvrouter import message
from dvrouter.router import Router
from dvrouter.transport import TransportError


class FakeChannel:
  """In-memory stand-in for the relay connection.

  Inbound items are packets, exceptions (raised from ``receive_message``) or
  callables (run inline, handy to fire a tick between two packets).  Once the
  queue is drained the channel behaves like a relay that hung up.
  """

  def __init__(self, inbound=(), *, fail_send_after: Optional[int] = None) -> None:
    self.inbound = collections.deque(inbound)
    self.sent: List[message.Message] = []
    self.fail_send_after = fail_send_after
    self.closed = False

  def push(self, *items) -> None:
    self.inbound.extend(items)

  def send_message(self, msg: message.Message) -> None:
    if self.closed:
      raise TransportError("channel is closed")
    if self.fail_send_after is not None and len(self.sent) >= self.fail_send_after:
      raise TransportError("broken pipe")
    self.sent.append(msg)

  def receive_message(self) -> message.Message:
    while True:
      if self.closed:
        raise TransportError("channel is closed")
      if not self.inbound:
        raise TransportError("connection closed by relay")
      item = self.inbound.popleft()
      if isinstance(item, BaseException):
        raise item
      if callable(item):
        item()
        continue
      return item

  def close(self) -> None:
    self.closed = True

  def routes(self) -> List[message.Message]:
    return [m for m in self.sent if m.msg_type == message.MessageType.ROUTE]


class FakeTask:
  def __init__(self, delay, callback, repeat, interval) -> None:
    self.delay = delay
    self.callback = callback
    self.repeat = repeat
    self.interval = interval
    self.cancelled = False


class FakeLoop:
  def __init__(self) -> None:
    self.tasks: List[FakeTask] = []

  def schedule(self, delay: float, callback: Callable[[], None], *, repeat: bool = False, interval=None) -> FakeTask:
    task = FakeTask(delay, callback, repeat, interval)
    self.tasks.append(task)
    return task

  def cancel(self, task: FakeTask) -> None:
    task.cancelled = True


def server_costs(router_id: int, costs, msg_type=message.MessageType.HELLO) -> message.Message:
  return message.Message(
      source_id=message.SERVER,
      dest_id=router_id,
      msg_type=msg_type,
      cost_vector=list(costs),
  )


def peer_route(source_id: int, router_id: int, costs) -> message.Message:
  return message.build_route(source_id, router_id, costs)


def quit_msg(router_id: int) -> message.Message:
  return message.Message(source_id=message.SERVER, dest_id=router_id, msg_type=message.MessageType.QUIT)


@pytest.fixture
def loop() -> FakeLoop:
  return FakeLoop()


@pytest.fixture
def make_router(loop):
  def factory(router_id: int = 0, inbound=(), **channel_kwargs):
    channel = FakeChannel(inbound, **channel_kwargs)
    router = Router(router_id, update_interval=500, event_loop=loop, channel=channel)
    return router, channel

  return factory

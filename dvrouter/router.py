"""
Protocol engine of the distance-vector router.

The router:
1. connects to the relay and announces itself with a HELLO;
2. installs the link costs the relay hands back and starts the periodic
   broadcast of its minimum-cost vector to every direct neighbor;
3. relaxes its table on every ROUTE received from a neighbor and resets it on
   every topology update from the relay;
4. stops broadcasting on QUIT (or on any channel failure) and returns the
   final forwarding table.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import List, Optional, Sequence

from . import message, timers
from .events import EventLoop
from .table import DistanceVectorTable, RoutingTable
from .transport import RelayChannel, TransportError

LOGGER = logging.getLogger(__name__)


class SessionState(str, Enum):
  UNINITIALIZED = "uninitialized"
  INITIALIZED = "initialized"
  TERMINATED = "terminated"


class ProtocolViolation(RuntimeError):
  """A packet from the relay cannot be applied to the current table."""


class Router:
  """
  Single participant of the distance-vector routing session.
  """

  def __init__(
      self,
      router_id: int,
      server_host: str = timers.DEFAULT_RELAY_HOST,
      server_port: int = timers.DEFAULT_RELAY_PORT,
      update_interval: int = timers.UPDATE_INTERVAL_MS,
      *,
      event_loop: EventLoop,
      channel: Optional[RelayChannel] = None,
  ) -> None:
    if update_interval <= 0:
      raise ValueError("update_interval must be positive")
    self.router_id = router_id
    self.server_host = server_host
    self.server_port = server_port
    self.update_interval = update_interval
    self.loop = event_loop

    self.table = DistanceVectorTable(router_id)
    self._state = SessionState.UNINITIALIZED
    self._lock = threading.RLock()
    self._tick_task = None

    # Raises ConnectError when the relay is unreachable.
    self.channel = channel if channel is not None else RelayChannel.connect(server_host, server_port)

  # ---------------------------------------------------------------- lifecycle
  @property
  def state(self) -> SessionState:
    return self._state

  def start(self) -> Optional[RoutingTable]:
    """
    Run the session until QUIT or a channel failure.

    Returns the final forwarding table, or ``None`` when the session ended
    before the relay supplied any link costs.
    """
    try:
      with self._lock:
        self._send(message.build_hello(self.router_id))
      while True:
        msg = self.channel.receive_message()
        LOGGER.debug("<<<< %s", msg)
        with self._lock:
          if self._state == SessionState.TERMINATED:
            break
          if msg.msg_type == message.MessageType.QUIT:
            LOGGER.info("quit received from %s", msg.source_id)
            break
          self._dispatch(msg)
    except TransportError as exc:
      if self._state == SessionState.TERMINATED:
        LOGGER.debug("receive loop stopped after termination: %s", exc)
      else:
        LOGGER.error("relay channel failed, terminating: %s", exc)
    except ProtocolViolation as exc:
      LOGGER.error("protocol violation, terminating: %s", exc)

    with self._lock:
      self._terminate()
      table = self.table.forwarding_table()
    if table is None:
      LOGGER.warning("router %s terminated before initialisation", self.router_id)
    else:
      LOGGER.info("router %s terminated", self.router_id)
    return table

  def shutdown(self) -> None:
    """Stop broadcasting and release the relay channel.  Safe to call twice."""
    with self._lock:
      self._terminate()

  # ------------------------------------------------------------------- timers
  def on_tick(self) -> None:
    """Broadcast the current minimum-cost vector to every direct neighbor."""
    with self._lock:
      if self._state != SessionState.INITIALIZED:
        return
      snapshot = self.table.snapshot()
      try:
        for neighbor in self.table.neighbors():
          self._send(message.build_route(self.router_id, neighbor, snapshot))
      except TransportError as exc:
        LOGGER.error("connection to relay lost during update, terminating: %s", exc)
        self._terminate()

  # --------------------------------------------------------------- messaging
  def _dispatch(self, msg: message.Message) -> None:
    if msg.from_server and msg.cost_vector is not None:
      self._apply_link_costs(msg.cost_vector)
    elif msg.msg_type == message.MessageType.ROUTE and not msg.from_server:
      self._process_route(msg)
    else:
      LOGGER.warning("ignoring unexpected %s in state %s", msg, self._state.value)

  def _apply_link_costs(self, cost_vector: Sequence[int]) -> None:
    if self.table.initialized and len(cost_vector) != self.table.size:
      raise ProtocolViolation(
          f"topology update has {len(cost_vector)} entries, expected {self.table.size}"
      )
    try:
      self.table.initialize(cost_vector)
    except ValueError as exc:
      raise ProtocolViolation(str(exc)) from exc

    if self._state == SessionState.UNINITIALIZED:
      LOGGER.info("initialisation complete, link costs %s", list(cost_vector))
      self._state = SessionState.INITIALIZED
      self._tick_task = self.loop.schedule(
          timers.FIRST_UPDATE_DELAY_MS / 1000.0,
          self.on_tick,
          repeat=True,
          interval=self.update_interval / 1000.0,
      )
    else:
      LOGGER.info("topology update, link costs %s", list(cost_vector))

  def _process_route(self, msg: message.Message) -> None:
    if self._state != SessionState.INITIALIZED:
      LOGGER.warning("ignoring route from %s before initialisation", msg.source_id)
      return
    if msg.source_id == self.router_id:
      LOGGER.warning("ignoring route claiming to come from this router: %s", msg)
      return
    vector = msg.cost_vector or []
    if not 0 <= msg.source_id < self.table.size:
      raise ProtocolViolation(f"route from unknown router {msg.source_id}")
    if len(vector) != self.table.size:
      raise ProtocolViolation(
          f"route from {msg.source_id} has {len(vector)} entries, expected {self.table.size}"
      )
    if self.table.relax(msg.source_id, vector):
      LOGGER.info("mincost updated from %s: %s", msg.source_id, list(self.table.snapshot()))

  def _send(self, msg: message.Message) -> None:
    self.channel.send_message(msg)
    LOGGER.debug(">>>> %s", msg)

  def _terminate(self) -> None:
    if self._tick_task is not None:
      self.loop.cancel(self._tick_task)
      self._tick_task = None
    if self._state != SessionState.TERMINATED:
      LOGGER.debug("router %s: %s -> terminated", self.router_id, self._state.value)
    self._state = SessionState.TERMINATED
    self.channel.close()

  # --------------------------------------------------------------- utilities
  def get_neighbors(self) -> List[int]:
    with self._lock:
      return self.table.neighbors()

  def get_routes(self) -> Optional[RoutingTable]:
    with self._lock:
      return self.table.forwarding_table()

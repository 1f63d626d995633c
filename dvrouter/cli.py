"""
Simple interactive CLI used to inspect a running router.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Iterable, Optional

if TYPE_CHECKING:
  from .router import Router

LOGGER = logging.getLogger(__name__)


class CliShell:
  def __init__(self, router: "Router", input_fn: Optional[Callable[[str], str]] = None) -> None:
    self.router = router
    self._input = input_fn or input
    self._running = threading.Event()
    self._running.set()
    self._commands = {
        "show": self._cmd_show,
        "send": self._cmd_send,
        "quit": self._cmd_quit,
        "exit": self._cmd_quit,
        "help": self._cmd_help,
    }

  def run(self) -> None:
    while self._running.is_set():
      try:
        line = self._input("> ").strip()
      except EOFError:
        break
      if not line:
        continue
      self.execute(line)

  def execute(self, line: str) -> None:
    tokens = line.split()
    command = tokens[0]
    handler = self._commands.get(command)
    if handler is None:
      LOGGER.warning("unknown command: %s", command)
      return
    try:
      handler(tokens[1:])
    except Exception:  # pragma: no cover - interactive diagnostics
      LOGGER.exception("command failed")

  def stop(self) -> None:
    self._running.clear()

  @property
  def running(self) -> bool:
    return self._running.is_set()

  # ----------------------------------------------------------------- commands
  def _cmd_show(self, args: Iterable[str]) -> None:
    sub = list(args)
    if not sub:
      LOGGER.info("usage: show <table|neighbors|state>")
      return
    topic = sub[0]
    if topic == "table":
      self._show_table()
    elif topic == "neighbors":
      LOGGER.info("neighbors: %s", self.router.get_neighbors())
    elif topic == "state":
      LOGGER.info("router %s state=%s", self.router.router_id, self.router.state.value)
    else:
      LOGGER.warning("unsupported show topic: %s", topic)

  def _cmd_send(self, args: Iterable[str]) -> None:
    sub = list(args)
    if sub != ["update"]:
      LOGGER.info("usage: send update")
      return
    self.router.on_tick()
    LOGGER.info("mincost update sent to %s", self.router.get_neighbors())

  def _cmd_quit(self, _: Iterable[str]) -> None:
    LOGGER.info("exiting CLI")
    self.stop()

  def _cmd_help(self, _: Iterable[str]) -> None:
    LOGGER.info("commands: show table|neighbors|state, send update, quit/exit")

  # ------------------------------------------------------------------- views
  def _show_table(self) -> None:
    routes = self.router.get_routes()
    if routes is None:
      LOGGER.info("routing table empty")
      return
    for entry in routes:
      LOGGER.info(
          "%s -> next-hop %s cost %s",
          entry.destination,
          entry.next_hop,
          entry.cost,
      )

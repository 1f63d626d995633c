#!/usr/bin/env python3
"""
Entry point running one distance-vector router against the relay.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from . import timers
from .cli import CliShell
from .events import EventLoop
from .router import Router
from .transport import ConnectError


@dataclass
class Settings:
  host: str = timers.DEFAULT_RELAY_HOST
  port: int = timers.DEFAULT_RELAY_PORT
  update_interval: int = timers.UPDATE_INTERVAL_MS


def parse_args(argv: list[str]) -> argparse.Namespace:
  parser = argparse.ArgumentParser(
      description="Distance-vector routing node connected to a central relay.",
  )
  parser.add_argument("--router", required=True, type=int, help="Router id, starting at 0")
  parser.add_argument("--config", default=None, help="Optional YAML file with relay and timer settings")
  parser.add_argument("--host", default=None, help="Relay host name")
  parser.add_argument("--port", default=None, type=int, help="Relay TCP port")
  parser.add_argument("--interval", default=None, type=int, help="Routing update interval in milliseconds")
  parser.add_argument("--log-level", default="info", choices=["trace", "debug", "info", "warning", "error"])
  parser.add_argument("--interactive", action="store_true", help="Start an inspection shell on stdin")
  return parser.parse_args(argv)


def load_config(path: Path) -> Dict[str, Any]:
  if not path.exists():
    raise FileNotFoundError(f"config file not found: {path}")
  with path.open("r", encoding="utf-8") as stream:
    data = yaml.safe_load(stream)
  if data is None:
    return {}
  if not isinstance(data, dict):
    raise ValueError("config file must contain a mapping at the root")
  return data


def resolve_settings(args: argparse.Namespace, config: Optional[Dict[str, Any]] = None) -> Settings:
  """Merge defaults, file values and command line options, in that order."""
  settings = Settings()
  config = config or {}

  relay = config.get("relay", {})
  if not isinstance(relay, dict):
    raise ValueError("'relay' must be a mapping")
  if "host" in relay:
    settings.host = str(relay["host"])
  if "port" in relay:
    settings.port = int(relay["port"])
  if "update_interval" in config:
    settings.update_interval = int(config["update_interval"])

  if args.host is not None:
    settings.host = args.host
  if args.port is not None:
    settings.port = args.port
  if args.interval is not None:
    settings.update_interval = args.interval

  if settings.update_interval <= 0:
    raise ValueError("update interval must be positive")
  return settings


def setup_logging(level_name: str) -> None:
  if level_name == "trace":
    logging.addLevelName(5, "TRACE")
  level = logging.getLevelName(level_name.upper())
  if isinstance(level, str):
    level = logging.INFO

  logging.basicConfig(
      level=level,
      format="%(asctime)s %(levelname)-5s [%(threadName)s] %(name)s: %(message)s",
  )


def main(argv: Optional[list[str]] = None) -> int:
  args = parse_args(sys.argv[1:] if argv is None else argv)
  setup_logging(args.log_level)

  config = load_config(Path(args.config)) if args.config else {}
  settings = resolve_settings(args, config)

  print(f"starting Router #{args.router} with parameters:")
  print(f"Relay server host name: {settings.host}")
  print(f"Relay server port number: {settings.port}")
  print(f"Routing update interval: {settings.update_interval} (milli-seconds)")

  loop = EventLoop()
  try:
    router = Router(
        args.router,
        settings.host,
        settings.port,
        settings.update_interval,
        event_loop=loop,
    )
  except ConnectError as exc:
    logging.error("%s", exc)
    return 2

  timer_thread = threading.Thread(target=loop.run, name="timer", daemon=True)
  timer_thread.start()

  cli: Optional[CliShell] = None
  if args.interactive:
    cli = CliShell(router=router)
    threading.Thread(target=cli.run, name="cli", daemon=True).start()

  try:
    table = router.start()
  except KeyboardInterrupt:
    logging.warning("interrupt received, shutting down")
    table = router.get_routes()
  finally:
    with contextlib.suppress(Exception):
      router.shutdown()
    loop.stop()
    if cli is not None:
      cli.stop()
    timer_thread.join(timeout=1)

  if table is None:
    print("Router terminated without a routing table")
    return 1

  print("Router terminated normally")
  print()
  print(f"Routing Table at Router #{args.router}")
  print(table, end="")
  return 0


if __name__ == "__main__":
  sys.exit(main())

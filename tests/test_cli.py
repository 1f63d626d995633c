import logging

from conftest import server_costs
from dvrouter.cli import CliShell


def test_show_commands_log_router_state(make_router, caplog):
  router, channel = make_router(0, [server_costs(0, [0, 1, 4])])
  seen = []

  def inspect():
    shell = CliShell(router)
    with caplog.at_level(logging.INFO, logger="dvrouter.cli"):
      shell.execute("show table")
      shell.execute("show neighbors")
      shell.execute("show state")
    seen.extend(r.getMessage() for r in caplog.records)

  channel.push(inspect)
  router.start()

  assert "2 -> next-hop 2 cost 4" in seen
  assert "neighbors: [1, 2]" in seen
  assert "router 0 state=initialized" in seen


def test_send_update_triggers_broadcast(make_router):
  router, channel = make_router(0, [server_costs(0, [0, 1, 4])])
  channel.push(lambda: CliShell(router).execute("send update"))

  router.start()

  assert [m.dest_id for m in channel.routes()] == [1, 2]


def test_run_reads_commands_until_quit(make_router, caplog):
  router, _ = make_router(0, [])
  lines = iter(["", "help", "bogus", "quit", "show state"])
  shell = CliShell(router, input_fn=lambda prompt: next(lines))

  with caplog.at_level(logging.INFO, logger="dvrouter.cli"):
    shell.run()

  messages = [r.getMessage() for r in caplog.records]
  assert "unknown command: bogus" in messages
  assert "exiting CLI" in messages
  assert not any("state=" in m for m in messages)
  assert not shell.running


def test_run_stops_on_eof(make_router):
  router, _ = make_router(0, [])

  def eof(prompt):
    raise EOFError

  shell = CliShell(router, input_fn=eof)
  shell.run()
  assert shell.running


def test_show_table_before_initialization(make_router, caplog):
  router, _ = make_router(0, [])

  with caplog.at_level(logging.INFO, logger="dvrouter.cli"):
    CliShell(router).execute("show table")

  assert "routing table empty" in [r.getMessage() for r in caplog.records]

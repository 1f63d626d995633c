"""
Minimal timer loop driving the periodic routing updates.

Only what the router needs is implemented:
- ``schedule``: register one-shot or fixed-rate periodic tasks;
- ``cancel``: prevent a task from running again;
- ``run`` / ``stop``: drive and terminate the loop.

The router's receive loop blocks on the relay socket, so the timer loop runs
on its own thread.  Callbacks run on that thread and must not block.
"""

from __future__ import annotations

import heapq
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)


@dataclass(order=True)
class _ScheduledTask:
  deadline: float
  priority: int
  callback: Callable[[], None] = field(compare=False)
  interval: Optional[float] = field(default=None, compare=False)
  cancelled: bool = field(default=False, compare=False)


class EventLoop:
  """
  Heap based scheduler for one-shot and fixed-rate tasks.
  """

  def __init__(self) -> None:
    self._tasks: list[_ScheduledTask] = []
    self._task_seq = 0
    self._running = False
    self._stopped = False
    self._cond = threading.Condition()

  # ------------------------------------------------------------------ timers
  def schedule(
      self,
      delay: float,
      callback: Callable[[], None],
      *,
      repeat: bool = False,
      interval: Optional[float] = None,
  ) -> _ScheduledTask:
    """
    Schedule ``callback`` to be executed after ``delay`` seconds.

    When ``repeat`` is true the callback runs again every ``interval`` seconds
    (``delay`` when no interval is given) until :meth:`cancel` is invoked.
    Periodic tasks keep a fixed rate: a late run does not shift later ones.
    """
    if delay < 0:
      raise ValueError("delay must be non-negative")
    if not callable(callback):
      raise TypeError("callback must be callable")
    period = None
    if repeat:
      period = delay if interval is None else interval
      if period <= 0:
        raise ValueError("interval of a repeating task must be positive")

    with self._cond:
      self._task_seq += 1
      task = _ScheduledTask(
          deadline=time.monotonic() + delay,
          priority=self._task_seq,
          callback=callback,
          interval=period,
      )
      heapq.heappush(self._tasks, task)
      self._cond.notify()
    return task

  def cancel(self, task: _ScheduledTask) -> None:
    """
    Mark a scheduled task as cancelled.  The callback will no longer run.
    """
    task.cancelled = True

  # ------------------------------------------------------------------- loop
  def run(self) -> None:
    """
    Run the loop until :meth:`stop` is called.
    """
    with self._cond:
      if self._stopped:
        return
      self._running = True
    while True:
      with self._cond:
        if not self._running:
          break
      self._run_once()

  def stop(self) -> None:
    """
    Request loop termination.  Pending tasks are dropped.
    """
    with self._cond:
      self._running = False
      self._stopped = True
      for task in self._tasks:
        task.cancelled = True
      self._cond.notify_all()

  @property
  def running(self) -> bool:
    return self._running

  # ------------------------------------------------------------ internals
  def _run_once(self) -> None:
    with self._cond:
      while self._running:
        if self._tasks and self._tasks[0].cancelled:
          heapq.heappop(self._tasks)
          continue
        timeout: Optional[float] = None
        if self._tasks:
          timeout = self._tasks[0].deadline - time.monotonic()
          if timeout <= 0:
            break
        self._cond.wait(timeout)
      if not self._running:
        return
      task = heapq.heappop(self._tasks)

    try:
      task.callback()
    except Exception:  # pragma: no cover - diagnostics
      LOGGER.exception("scheduled task failed")

    if task.interval and not task.cancelled:
      with self._cond:
        task.deadline += task.interval
        heapq.heappush(self._tasks, task)

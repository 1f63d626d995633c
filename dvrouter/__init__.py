"""
Distance-vector routing node for the relay based routing lab.

Main components:
- `Router`: protocol engine, owns the session and the relay channel;
- `DistanceVectorTable`: link/min cost and next hop vectors with relaxation;
- `EventLoop`: timer loop driving the periodic routing updates;
- `CliShell`: interactive shell used to inspect a running router.
"""

from .router import Router, SessionState, ProtocolViolation  # re-export for convenience
from .table import DistanceVectorTable, RoutingTable, RouteEntry
from .events import EventLoop
from .cli import CliShell

__all__ = [
    "Router",
    "SessionState",
    "ProtocolViolation",
    "DistanceVectorTable",
    "RoutingTable",
    "RouteEntry",
    "EventLoop",
    "CliShell",
]

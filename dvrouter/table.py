"""
Distance-vector state of a single router.

The table keeps three parallel vectors indexed by router id: the direct link
costs announced by the relay, the best known total cost to every destination
and the neighbor used to reach it.  Updates follow the plain Bellman-Ford
relaxation without split horizon or poison reverse, so the usual
count-to-infinity behaviour after a link cost increase is preserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from .message import INFINITY


def is_reachable(cost: int) -> bool:
  return cost < INFINITY


@dataclass(frozen=True)
class RouteEntry:
  destination: int
  cost: int
  next_hop: int


@dataclass(frozen=True)
class RoutingTable:
  """
  Forwarding table produced when the session terminates.
  """

  router_id: int
  entries: Tuple[RouteEntry, ...]

  @classmethod
  def from_vectors(cls, router_id: int, mincost: Sequence[int], nexthop: Sequence[int]) -> "RoutingTable":
    if len(mincost) != len(nexthop):
      raise ValueError("mincost and nexthop must have the same length")
    return cls(
        router_id=router_id,
        entries=tuple(
            RouteEntry(destination=dest, cost=cost, next_hop=hop)
            for dest, (cost, hop) in enumerate(zip(mincost, nexthop))
        ),
    )

  @property
  def mincost(self) -> List[int]:
    return [entry.cost for entry in self.entries]

  @property
  def nexthop(self) -> List[int]:
    return [entry.next_hop for entry in self.entries]

  def __len__(self) -> int:
    return len(self.entries)

  def __iter__(self) -> Iterator[RouteEntry]:
    return iter(self.entries)

  def __getitem__(self, destination: int) -> RouteEntry:
    return self.entries[destination]

  def __str__(self) -> str:
    lines = []
    for entry in self.entries:
      lines.append(f"[{entry.destination}] cost={entry.cost} next-hop={entry.next_hop}")
    return "\n".join(lines) + "\n" if lines else ""


class DistanceVectorTable:
  """
  Link cost, minimum cost and next hop vectors of one router.

  The table does no locking and no I/O; the owning router serialises access.
  """

  def __init__(self, router_id: int) -> None:
    self.router_id = router_id
    self._linkcost: List[int] = []
    self._mincost: List[int] = []
    self._nexthop: List[int] = []

  @property
  def initialized(self) -> bool:
    return bool(self._linkcost)

  @property
  def size(self) -> int:
    return len(self._linkcost)

  @property
  def linkcost(self) -> Tuple[int, ...]:
    return tuple(self._linkcost)

  @property
  def nexthop(self) -> Tuple[int, ...]:
    return tuple(self._nexthop)

  def initialize(self, cost_vector: Sequence[int]) -> None:
    """
    Reset the table to the given link costs.

    Any previous minimum cost and next hop state is discarded.
    """
    costs = list(cost_vector)
    if not costs:
      raise ValueError("cost vector must not be empty")
    if not 0 <= self.router_id < len(costs):
      raise ValueError(f"router id {self.router_id} outside cost vector of size {len(costs)}")
    if costs[self.router_id] != 0:
      raise ValueError(f"link cost to self must be 0, got {costs[self.router_id]}")
    self._linkcost = costs
    self._mincost = list(costs)
    self._nexthop = list(range(len(costs)))

  def relax(self, source_id: int, announced: Sequence[int]) -> bool:
    """
    Apply one Bellman-Ford step using the vector announced by ``source_id``.

    Returns ``True`` when at least one destination improved.  Nothing is
    modified when the arguments are invalid or ``source_id`` is not a direct
    neighbor.
    """
    if not self.initialized:
      raise RuntimeError("table has not been initialized")
    if not 0 <= source_id < self.size:
      raise ValueError(f"source id {source_id} outside table of size {self.size}")
    if len(announced) != self.size:
      raise ValueError(f"announced vector has {len(announced)} entries, expected {self.size}")

    link = self._linkcost[source_id]
    if not is_reachable(link):
      return False

    changed = False
    for dest, cost in enumerate(announced):
      candidate = cost + link
      if candidate < self._mincost[dest]:
        self._mincost[dest] = candidate
        self._nexthop[dest] = source_id
        changed = True
    return changed

  def snapshot(self) -> Tuple[int, ...]:
    return tuple(self._mincost)

  def neighbors(self) -> List[int]:
    """Routers other than ourselves with a finite direct link cost."""
    return [
        dest for dest, cost in enumerate(self._linkcost)
        if dest != self.router_id and is_reachable(cost)
    ]

  def forwarding_table(self) -> Optional[RoutingTable]:
    if not self.initialized:
      return None
    return RoutingTable.from_vectors(self.router_id, self._mincost, self._nexthop)

from __future__ import annotations

import heapq
import time
from collections.abc import Collection
from dataclasses import dataclass, field

from .errors import NotFoundError, RouteTimeoutError
from .graph_store import GraphStore
from .logging_utils import log_event
from .route_result import RouteOutcome, RouteResult, Unreachable


@dataclass
class SearchState:
    source_id: str
    distances: dict[str, float] = field(default_factory=dict)
    # node id -> (previous node id, edge id used to reach it)
    predecessors: dict[str, tuple[str, str]] = field(default_factory=dict)
    settled: list[str] = field(default_factory=list)
    reached: str | None = None

    def route_to(self, target_id: str) -> RouteResult:
        nodes = [target_id]
        edges: list[str] = []
        current = target_id
        while current != self.source_id:
            prev, edge_id = self.predecessors[current]
            nodes.append(prev)
            edges.append(edge_id)
            current = prev
        nodes.reverse()
        edges.reverse()
        return RouteResult(
            path=tuple(nodes),
            total_cost=self.distances[target_id],
            edge_ids=tuple(edges),
        )


def _check_deadline(deadline_monotonic_s: float | None, state: SearchState) -> None:
    if deadline_monotonic_s is not None and time.monotonic() >= float(deadline_monotonic_s):
        raise RouteTimeoutError(
            reason_code="route_compute_timeout",
            message="route search deadline exceeded",
            details={"source_id": state.source_id, "settled_nodes": len(state.settled)},
        )


def single_source_search(
    store: GraphStore,
    source_id: str,
    *,
    targets: Collection[str] | None = None,
    deadline_monotonic_s: float | None = None,
) -> SearchState:
    """Dijkstra from ``source_id`` over open edges.

    Frontier entries are ``(distance, node_id)`` so equal distances settle in
    node-id order. With ``targets`` the run stops at the first settled target,
    which is therefore the cheapest one (lowest id among equals); without it
    every reachable node is settled.
    """
    state = SearchState(source_id=source_id, distances={source_id: 0.0})
    target_set = frozenset(targets) if targets is not None else None
    settled: set[str] = set()
    frontier: list[tuple[float, str]] = [(0.0, source_id)]

    while frontier:
        _check_deadline(deadline_monotonic_s, state)
        dist, node_id = heapq.heappop(frontier)
        if node_id in settled or dist > state.distances[node_id]:
            continue
        settled.add(node_id)
        state.settled.append(node_id)
        if target_set is not None and node_id in target_set:
            state.reached = node_id
            break
        for neighbor_id, edge, weight in store.traversable_from(node_id):
            if neighbor_id in settled:
                continue
            candidate = dist + weight
            best = state.distances.get(neighbor_id)
            if best is not None and candidate >= best:
                continue
            state.distances[neighbor_id] = candidate
            state.predecessors[neighbor_id] = (node_id, edge.id)
            heapq.heappush(frontier, (candidate, neighbor_id))

    if target_set is not None and state.reached is None:
        # Tentative distances past the frontier are not final.
        state.distances = {node_id: state.distances[node_id] for node_id in state.settled}
    return state


def shortest_path(
    store: GraphStore,
    source_id: str,
    target_id: str,
    *,
    deadline_monotonic_s: float | None = None,
) -> RouteOutcome:
    with store.locked():
        if not store.has_node(source_id):
            raise NotFoundError.node(source_id)
        if not store.has_node(target_id):
            raise NotFoundError.node(target_id)
        try:
            state = single_source_search(
                store,
                source_id,
                targets=(target_id,),
                deadline_monotonic_s=deadline_monotonic_s,
            )
        except RouteTimeoutError as exc:
            log_event(
                "route_timeout",
                source_id=source_id,
                target_id=target_id,
                settled_nodes=(exc.details or {}).get("settled_nodes"),
            )
            raise
        revision = store.revision

    if state.reached is None:
        log_event(
            "route_unreachable",
            source_id=source_id,
            target_id=target_id,
            settled_nodes=len(state.settled),
            graph_revision=revision,
        )
        return Unreachable(source_id=source_id, target_ids=(target_id,), settled_nodes=len(state.settled))

    result = state.route_to(target_id)
    log_event(
        "route_computed",
        source_id=source_id,
        target_id=target_id,
        total_cost=result.total_cost,
        hops=len(result.edge_ids),
        settled_nodes=len(state.settled),
        graph_revision=revision,
    )
    return result

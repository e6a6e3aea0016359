from __future__ import annotations

from .dijkstra import single_source_search
from .errors import NoSafeZonesError, NotFoundError, RouteTimeoutError
from .graph_store import GraphStore
from .logging_utils import log_event
from .route_result import RouteOutcome, Unreachable


def nearest_safe(
    store: GraphStore,
    source_id: str,
    *,
    deadline_monotonic_s: float | None = None,
) -> RouteOutcome:
    """Cheapest route from ``source_id`` to any node classified safe.

    One Dijkstra run settles nodes in ``(cost, node_id)`` order, so the first
    safe node settled is the global minimum with ties going to the lowest id.
    A safe source yields the single-node, zero-cost route.
    """
    with store.locked():
        if not store.has_node(source_id):
            raise NotFoundError.node(source_id)
        candidates = tuple(node.id for node in store.safe_nodes())
        if not candidates:
            raise NoSafeZonesError(
                reason_code="no_safe_zones",
                message="graph has no locations classified as safe",
                details={"source_id": source_id},
            )
        try:
            state = single_source_search(
                store,
                source_id,
                targets=candidates,
                deadline_monotonic_s=deadline_monotonic_s,
            )
        except RouteTimeoutError as exc:
            log_event(
                "route_timeout",
                source_id=source_id,
                target_id="<nearest-safe>",
                settled_nodes=(exc.details or {}).get("settled_nodes"),
            )
            raise
        revision = store.revision

    if state.reached is None:
        log_event(
            "route_unreachable",
            source_id=source_id,
            target_id="<nearest-safe>",
            safe_candidates=len(candidates),
            settled_nodes=len(state.settled),
            graph_revision=revision,
        )
        return Unreachable(source_id=source_id, target_ids=candidates, settled_nodes=len(state.settled))

    result = state.route_to(state.reached)
    log_event(
        "nearest_safe_computed",
        source_id=source_id,
        target_id=state.reached,
        total_cost=result.total_cost,
        hops=len(result.edge_ids),
        safe_candidates=len(candidates),
        settled_nodes=len(state.settled),
        graph_revision=revision,
    )
    return result

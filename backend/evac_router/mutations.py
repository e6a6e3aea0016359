from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import Any, Literal

from .graph_store import GraphStore
from .logging_utils import log_event
from .weight_policy import TrafficLevel

MutationKind = Literal["report_hazard", "clear_hazard", "update_traffic", "set_blocked"]


@dataclass(frozen=True)
class MutationRequest:
    kind: MutationKind
    target_id: str
    traffic: TrafficLevel | None = None
    blocked: bool | None = None


@dataclass(frozen=True)
class MutationResult:
    kind: MutationKind
    target_id: str
    changed: bool
    before: dict[str, Any]
    after: dict[str, Any]
    # Effective weights of every edge touched by the change, keyed by edge id.
    affected_weights: dict[str, float | None]


def _edge_weights(store: GraphStore, edge_ids: Sequence[str]) -> dict[str, float | None]:
    return {edge_id: store.effective_weight_of(edge_id) for edge_id in edge_ids}


def _set_hazard(store: GraphStore, node_id: str, hazard: bool, kind: MutationKind) -> MutationResult:
    with store.locked():
        before, after = store.set_hazard(node_id, hazard)
        incident = [edge.id for edge in store.edges_incident(node_id)]
        weights = _edge_weights(store, incident)
        revision = store.revision
    changed = before != after
    log_event(
        "hazard_reported" if hazard else "hazard_cleared",
        node_id=node_id,
        changed=changed,
        affected_edges=len(incident),
        graph_revision=revision,
    )
    return MutationResult(
        kind=kind,
        target_id=node_id,
        changed=changed,
        before={"hazard": before.hazard},
        after={"hazard": after.hazard},
        affected_weights=weights,
    )


def report_hazard(store: GraphStore, node_id: str) -> MutationResult:
    """Flag ``node_id`` as hazardous. Reporting twice is the same as once."""
    return _set_hazard(store, node_id, True, "report_hazard")


def clear_hazard(store: GraphStore, node_id: str) -> MutationResult:
    return _set_hazard(store, node_id, False, "clear_hazard")


def update_traffic(store: GraphStore, edge_id: str, level: TrafficLevel | str) -> MutationResult:
    level = TrafficLevel(level)
    with store.locked():
        before, after = store.set_traffic(edge_id, level)
        weights = _edge_weights(store, [edge_id])
        revision = store.revision
    changed = before != after
    log_event(
        "traffic_updated",
        edge_id=edge_id,
        traffic=level.value,
        previous_traffic=before.traffic.value,
        effective_weight=weights[edge_id],
        changed=changed,
        graph_revision=revision,
    )
    return MutationResult(
        kind="update_traffic",
        target_id=edge_id,
        changed=changed,
        before={"traffic": before.traffic.value},
        after={"traffic": after.traffic.value},
        affected_weights=weights,
    )


def set_blocked(store: GraphStore, edge_id: str, blocked: bool) -> MutationResult:
    with store.locked():
        before, after = store.set_blocked(edge_id, blocked)
        weights = _edge_weights(store, [edge_id])
        revision = store.revision
    changed = before != after
    log_event(
        "edge_blocked_changed",
        edge_id=edge_id,
        blocked=after.blocked,
        changed=changed,
        graph_revision=revision,
    )
    return MutationResult(
        kind="set_blocked",
        target_id=edge_id,
        changed=changed,
        before={"blocked": before.blocked},
        after={"blocked": after.blocked},
        affected_weights=weights,
    )


def _prepare(store: GraphStore, request: MutationRequest) -> Callable[[], MutationResult]:
    """Validate ``request`` against ``store`` and return the write that applies it."""
    target_id = request.target_id
    if request.kind in ("report_hazard", "clear_hazard"):
        store.get_node(target_id)
        apply_hazard = report_hazard if request.kind == "report_hazard" else clear_hazard
        return partial(apply_hazard, store, target_id)
    if request.kind not in ("update_traffic", "set_blocked"):
        raise ValueError(f"unknown mutation kind: {request.kind}")
    store.get_edge(target_id)
    if request.kind == "update_traffic":
        if request.traffic is None:
            raise ValueError(f"update_traffic for '{target_id}' requires a traffic level")
        return partial(update_traffic, store, target_id, TrafficLevel(request.traffic))
    if request.blocked is None:
        raise ValueError(f"set_blocked for '{target_id}' requires a blocked flag")
    return partial(set_blocked, store, target_id, request.blocked)


def apply_mutations(store: GraphStore, requests: Sequence[MutationRequest]) -> list[MutationResult]:
    """Apply a batch all-or-nothing.

    Every request is validated before the first write, and the whole batch
    runs under the store lock, so queries see either none or all of it.
    """
    with store.locked():
        writes = [_prepare(store, request) for request in requests]
        results = [write() for write in writes]
        revision = store.revision
    log_event(
        "mutation_batch_applied",
        requests=len(requests),
        changed=sum(1 for item in results if item.changed),
        graph_revision=revision,
    )
    return results

from __future__ import annotations

import math
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .errors import InvalidWeightError, NotFoundError
from .weight_policy import TrafficLevel, WeightPolicy


class NodeClassification(str, Enum):
    NORMAL = "normal"
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class LocationNode:
    id: str
    name: str
    classification: NodeClassification = NodeClassification.NORMAL
    hazard: bool = False
    description: str | None = None
    lat: float | None = None
    lng: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "classification", NodeClassification(self.classification))

    @property
    def is_safe(self) -> bool:
        return self.classification is NodeClassification.SAFE


@dataclass(frozen=True)
class GraphEdge:
    id: str
    source: str
    target: str
    base_weight: float
    traffic: TrafficLevel = TrafficLevel.LOW
    blocked: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "traffic", TrafficLevel(self.traffic))

    def other_end(self, node_id: str) -> str:
        if node_id == self.source:
            return self.target
        if node_id == self.target:
            return self.source
        raise ValueError(f"edge '{self.id}' is not incident to node '{node_id}'")


def _validate_seed(
    nodes: list[LocationNode],
    edges: list[GraphEdge],
) -> tuple[dict[str, LocationNode], dict[str, GraphEdge]]:
    node_index: dict[str, LocationNode] = {}
    for node in nodes:
        if node.id in node_index:
            raise InvalidWeightError(
                reason_code="duplicate_id",
                message=f"duplicate node id '{node.id}'",
                details={"node_id": node.id},
            )
        node_index[node.id] = node

    edge_index: dict[str, GraphEdge] = {}
    for edge in edges:
        if edge.id in edge_index:
            raise InvalidWeightError(
                reason_code="duplicate_id",
                message=f"duplicate edge id '{edge.id}'",
                details={"edge_id": edge.id},
            )
        missing = [end for end in (edge.source, edge.target) if end not in node_index]
        if missing:
            raise InvalidWeightError(
                reason_code="missing_endpoint",
                message=f"edge '{edge.id}' references unknown node(s): {', '.join(missing)}",
                details={"edge_id": edge.id, "missing_node_ids": missing},
            )
        weight = edge.base_weight
        if isinstance(weight, bool) or not isinstance(weight, (int, float)) or not math.isfinite(weight) or weight <= 0:
            raise InvalidWeightError(
                reason_code="invalid_weight",
                message=f"edge '{edge.id}' has non-positive or non-finite base weight {weight!r}",
                details={"edge_id": edge.id, "base_weight": weight},
            )
        edge_index[edge.id] = edge
    return node_index, edge_index


class GraphStore:
    """Canonical in-memory graph of locations and paths.

    Nodes and edges are immutable values; mutations swap in a replaced value
    under the store lock, so readers never see a half-updated entity and
    callers can never alias the store's internals. Incident edges are indexed
    per node once at construction.
    """

    def __init__(
        self,
        nodes: Iterable[LocationNode],
        edges: Iterable[GraphEdge],
        *,
        policy: WeightPolicy | None = None,
        version: str = "",
        source: str = "",
    ) -> None:
        self._nodes, self._edges = _validate_seed(list(nodes), list(edges))
        self.policy = policy or WeightPolicy()
        self.version = version
        self.source = source
        self._lock = threading.RLock()
        self._revision = 0

        incident_mut: dict[str, list[str]] = {node_id: [] for node_id in self._nodes}
        for edge in self._edges.values():
            incident_mut[edge.source].append(edge.id)
            if edge.target != edge.source:
                incident_mut[edge.target].append(edge.id)
        self._incident: dict[str, tuple[str, ...]] = {
            node_id: tuple(sorted(edge_ids)) for node_id, edge_ids in incident_mut.items()
        }

    @property
    def revision(self) -> int:
        return self._revision

    @contextmanager
    def locked(self) -> Iterator["GraphStore"]:
        """Hold exclusive access for a multi-step read or a batch of writes."""
        with self._lock:
            yield self

    def __len__(self) -> int:
        return len(self._nodes)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edges

    def get_node(self, node_id: str) -> LocationNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise NotFoundError.node(node_id)
        return node

    def get_edge(self, edge_id: str) -> GraphEdge:
        edge = self._edges.get(edge_id)
        if edge is None:
            raise NotFoundError.edge(edge_id)
        return edge

    def edges_incident(self, node_id: str) -> tuple[GraphEdge, ...]:
        edge_ids = self._incident.get(node_id)
        if edge_ids is None:
            raise NotFoundError.node(node_id)
        edges = self._edges
        return tuple(edges[edge_id] for edge_id in edge_ids)

    def all_nodes(self) -> list[LocationNode]:
        with self._lock:
            return [self._nodes[node_id] for node_id in sorted(self._nodes)]

    def all_edges(self) -> list[GraphEdge]:
        with self._lock:
            return [self._edges[edge_id] for edge_id in sorted(self._edges)]

    def safe_nodes(self) -> list[LocationNode]:
        return [node for node in self.all_nodes() if node.is_safe]

    def effective_weight_of(self, edge: GraphEdge | str) -> float | None:
        if isinstance(edge, str):
            edge = self.get_edge(edge)
        return self.policy.effective_weight(
            base_weight=edge.base_weight,
            traffic=edge.traffic,
            blocked=edge.blocked,
            source_hazard=self._nodes[edge.source].hazard,
            target_hazard=self._nodes[edge.target].hazard,
        )

    def traversable_from(self, node_id: str) -> Iterator[tuple[str, GraphEdge, float]]:
        """Yield ``(neighbor_id, edge, weight)`` for every open edge at ``node_id``."""
        for edge in self.edges_incident(node_id):
            weight = self.effective_weight_of(edge)
            if weight is None:
                continue
            yield edge.other_end(node_id), edge, weight

    def set_hazard(self, node_id: str, hazard: bool) -> tuple[LocationNode, LocationNode]:
        with self._lock:
            before = self.get_node(node_id)
            after = replace(before, hazard=bool(hazard))
            if after != before:
                self._nodes[node_id] = after
                self._revision += 1
            return before, after

    def set_traffic(self, edge_id: str, level: TrafficLevel | str) -> tuple[GraphEdge, GraphEdge]:
        level = TrafficLevel(level)
        with self._lock:
            before = self.get_edge(edge_id)
            after = replace(before, traffic=level)
            if after != before:
                self._edges[edge_id] = after
                self._revision += 1
            return before, after

    def set_blocked(self, edge_id: str, blocked: bool) -> tuple[GraphEdge, GraphEdge]:
        with self._lock:
            before = self.get_edge(edge_id)
            after = replace(before, blocked=bool(blocked))
            if after != before:
                self._edges[edge_id] = after
                self._revision += 1
            return before, after

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "version": self.version,
                "source": self.source,
                "revision": self._revision,
                "nodes": [
                    {
                        "id": node.id,
                        "name": node.name,
                        "classification": node.classification.value,
                        "hazard": node.hazard,
                        "description": node.description,
                        "lat": node.lat,
                        "lng": node.lng,
                    }
                    for node in self.all_nodes()
                ],
                "edges": [
                    {
                        "id": edge.id,
                        "source": edge.source,
                        "target": edge.target,
                        "base_weight": edge.base_weight,
                        "traffic": edge.traffic.value,
                        "blocked": edge.blocked,
                        "effective_weight": self.effective_weight_of(edge),
                    }
                    for edge in self.all_edges()
                ],
            }

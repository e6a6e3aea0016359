from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "node_not_found",
        "edge_not_found",
        "unreachable",
        "no_safe_zones",
        "invalid_weight",
        "missing_endpoint",
        "duplicate_id",
        "invalid_seed",
        "route_compute_timeout",
        "graph_unavailable",
    }
)


@dataclass(eq=False)
class RoutingError(ValueError):
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class NotFoundError(RoutingError):
    """A referenced node or edge id does not exist in the current graph."""

    @classmethod
    def node(cls, node_id: str) -> "NotFoundError":
        return cls(
            reason_code="node_not_found",
            message=f"node '{node_id}' does not exist",
            details={"node_id": node_id},
        )

    @classmethod
    def edge(cls, edge_id: str) -> "NotFoundError":
        return cls(
            reason_code="edge_not_found",
            message=f"edge '{edge_id}' does not exist",
            details={"edge_id": edge_id},
        )


class UnreachableError(RoutingError):
    """Raised only by callers that need a route; the search itself returns ``Unreachable``."""


class NoSafeZonesError(RoutingError):
    pass


class InvalidWeightError(RoutingError):
    """Seed rejected at graph build time (non-positive weight, dangling endpoint, duplicate id)."""


class RouteTimeoutError(RoutingError):
    pass


class GraphUnavailableError(RoutingError):
    """No graph is loaded for the running service."""


def normalize_reason_code(reason_code: str, *, default: str = "graph_unavailable") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default

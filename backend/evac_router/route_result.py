from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .errors import UnreachableError
from .graph_store import GraphStore


@dataclass(frozen=True)
class RouteResult:
    path: tuple[str, ...]
    total_cost: float
    edge_ids: tuple[str, ...] = ()

    @property
    def source_id(self) -> str:
        return self.path[0]

    @property
    def target_id(self) -> str:
        return self.path[-1]

    def as_dict(self) -> dict[str, Any]:
        return {
            "path": list(self.path),
            "total_cost": self.total_cost,
            "edge_ids": list(self.edge_ids),
        }


@dataclass(frozen=True)
class Unreachable:
    """Both endpoints exist but no open path joins them."""

    source_id: str
    target_ids: tuple[str, ...]
    settled_nodes: int = 0

    def __bool__(self) -> bool:
        return False

    def as_error(self) -> UnreachableError:
        return UnreachableError(
            reason_code="unreachable",
            message=(
                f"no open path from '{self.source_id}' to "
                f"{', '.join(repr(t) for t in self.target_ids) or 'any target'}"
            ),
            details={"source_id": self.source_id, "target_ids": list(self.target_ids)},
        )


RouteOutcome = RouteResult | Unreachable


def require_route(outcome: RouteOutcome) -> RouteResult:
    if isinstance(outcome, Unreachable):
        raise outcome.as_error()
    return outcome


def route_cost(store: GraphStore, edge_ids: Sequence[str]) -> float:
    """Sum the current effective weights of ``edge_ids``; blocked edges make the route invalid."""
    total = 0.0
    for edge_id in edge_ids:
        weight = store.effective_weight_of(edge_id)
        if weight is None:
            raise ValueError(f"edge '{edge_id}' is blocked")
        total += weight
    return total

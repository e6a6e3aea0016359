from __future__ import annotations

import json
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .errors import InvalidWeightError, RoutingError
from .graph_store import GraphEdge, GraphStore, LocationNode, NodeClassification
from .logging_utils import log_event
from .models import GraphSeed
from .settings import settings
from .weight_policy import TrafficLevel, WeightPolicy

BUNDLED_SEED_PATH = Path(__file__).resolve().parent / "assets" / "dehradun_graph.json"


def _iso_utc_now() -> str:
    return datetime.now(UTC).isoformat()


def seed_path() -> Path:
    explicit = (settings.graph_seed_path or "").strip()
    if explicit:
        return Path(explicit)
    return BUNDLED_SEED_PATH


def parse_graph_seed(payload: Any) -> GraphSeed:
    try:
        return GraphSeed.model_validate(payload)
    except ValidationError as exc:
        raise InvalidWeightError(
            reason_code="invalid_seed",
            message=f"graph seed failed validation ({exc.error_count()} error(s))",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


def load_graph_seed(path: Path | None = None) -> GraphSeed:
    path = path or seed_path()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidWeightError(
            reason_code="invalid_seed",
            message=f"graph seed at {path} could not be read: {exc}",
            details={"seed_path": str(path)},
        ) from exc
    return parse_graph_seed(payload)


def build_graph_store(
    seed: GraphSeed,
    *,
    policy: WeightPolicy | None = None,
    apply_initial_hazards: bool = True,
) -> GraphStore:
    hazards = set(seed.initial_hazards) if apply_initial_hazards else set()
    known = {node.id for node in seed.nodes}
    unknown_hazards = sorted(hazards - known)
    if unknown_hazards:
        raise InvalidWeightError(
            reason_code="missing_endpoint",
            message=f"initial hazards reference unknown node(s): {', '.join(unknown_hazards)}",
            details={"missing_node_ids": unknown_hazards},
        )
    nodes = [
        LocationNode(
            id=node.id,
            name=node.name,
            classification=NodeClassification(node.type),
            hazard=node.is_hazard or node.id in hazards,
            description=node.description,
            lat=node.lat,
            lng=node.lng,
        )
        for node in seed.nodes
    ]
    edges = [
        GraphEdge(
            id=edge.id,
            source=edge.source,
            target=edge.target,
            base_weight=edge.weight,
            traffic=TrafficLevel(edge.traffic),
            blocked=edge.status == "blocked",
        )
        for edge in seed.edges
    ]
    return GraphStore(
        nodes,
        edges,
        policy=policy or WeightPolicy.from_settings(),
        version=seed.version,
        source=seed.source,
    )


class GraphSession:
    """Owns the live graph for a process.

    ``refresh`` discards the current store and rebuilds it from the seed; a
    failed rebuild leaves the previous store serving.
    """

    def __init__(self, *, path: Path | None = None, seed: GraphSeed | None = None) -> None:
        self._path = path
        self._seed = seed
        self._lock = threading.Lock()
        self._store: GraphStore | None = None
        self._state = "failed"
        self._loaded_at_utc: str | None = None
        self._last_error: str | None = None

    def _build(self) -> GraphStore:
        seed = self._seed if self._seed is not None else load_graph_seed(self._path)
        return build_graph_store(seed, apply_initial_hazards=bool(settings.apply_seed_hazards))

    def refresh(self) -> GraphStore:
        with self._lock:
            try:
                store = self._build()
            except RoutingError as exc:
                self._last_error = str(exc)
                if self._store is None:
                    self._state = "failed"
                log_event("graph_refresh_failed", reason_code=exc.reason_code, error=str(exc))
                raise
            first_load = self._store is None
            self._store = store
            self._state = "ready"
            self._loaded_at_utc = _iso_utc_now()
            self._last_error = None
        log_event(
            "graph_loaded" if first_load else "graph_refreshed",
            graph_version=store.version,
            node_count=len(store),
            edge_count=len(store.all_edges()),
            safe_nodes=len(store.safe_nodes()),
        )
        return store

    @property
    def store(self) -> GraphStore:
        current = self._store
        if current is None:
            return self.refresh()
        return current

    def status(self) -> dict[str, Any]:
        current = self._store
        return {
            "state": self._state,
            "version": current.version if current else "",
            "source": current.source if current else "",
            "revision": current.revision if current else 0,
            "nodes": len(current) if current else 0,
            "edges": len(current.all_edges()) if current else 0,
            "safe_nodes": len(current.safe_nodes()) if current else 0,
            "loaded_at_utc": self._loaded_at_utc,
            "last_error": self._last_error,
        }

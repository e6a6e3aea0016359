from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Sequence

from evac_router.dijkstra import single_source_search
from evac_router.graph_loader import BUNDLED_SEED_PATH, build_graph_store, load_graph_seed
from evac_router.graph_store import GraphStore


def _open_components(store: GraphStore) -> list[list[str]]:
    seen: set[str] = set()
    components: list[list[str]] = []
    for node in store.all_nodes():
        if node.id in seen:
            continue
        state = single_source_search(store, node.id)
        members = sorted(state.settled)
        seen.update(members)
        components.append(members)
    components.sort(key=lambda members: (-len(members), members[0]))
    return components


def validate(*, seed_path: Path, min_safe_nodes: int) -> dict[str, Any]:
    seed = load_graph_seed(seed_path)
    store = build_graph_store(seed)

    safe_ids = {node.id for node in store.safe_nodes()}
    if len(safe_ids) < min_safe_nodes:
        raise RuntimeError(f"Safe node count too low: {len(safe_ids)} < {min_safe_nodes}")

    components = _open_components(store)
    stranded = sorted(
        node_id
        for members in components
        if not safe_ids.intersection(members)
        for node_id in members
    )
    isolated = sorted(node.id for node in store.all_nodes() if not store.edges_incident(node.id))
    return {
        "seed_path": str(seed_path),
        "version": store.version,
        "nodes": len(store),
        "edges": len(store.all_edges()),
        "blocked_edges": sum(1 for edge in store.all_edges() if edge.blocked),
        "hazard_nodes": sorted(node.id for node in store.all_nodes() if node.hazard),
        "safe_nodes": len(safe_ids),
        "open_components": len(components),
        "largest_component_nodes": len(components[0]) if components else 0,
        "isolated_nodes": isolated,
        "nodes_without_safe_route": stranded,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate a graph seed and report routing coverage.")
    parser.add_argument("--seed", type=Path, default=BUNDLED_SEED_PATH, help="Graph seed JSON path.")
    parser.add_argument("--min-safe-nodes", type=int, default=1)
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    report = validate(seed_path=args.seed, min_safe_nodes=max(0, int(args.min_safe_nodes)))
    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()

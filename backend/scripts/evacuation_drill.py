from __future__ import annotations

import argparse
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Sequence

from evac_router.errors import NoSafeZonesError
from evac_router.graph_loader import BUNDLED_SEED_PATH, build_graph_store, load_graph_seed
from evac_router.mutations import MutationRequest, apply_mutations
from evac_router.nearest_safe import nearest_safe
from evac_router.route_result import Unreachable
from evac_router.weight_policy import TrafficLevel


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Route every location (or a chosen few) to its nearest safe zone and report coverage."
    )
    parser.add_argument("--seed", type=Path, default=BUNDLED_SEED_PATH, help="Graph seed JSON path.")
    parser.add_argument("--source", action="append", default=[], help="Source node id (repeatable).")
    parser.add_argument("--hazard", action="append", default=[], help="Report a hazard on a node id first.")
    parser.add_argument("--block", action="append", default=[], help="Block an edge id first.")
    parser.add_argument(
        "--traffic",
        action="append",
        default=[],
        metavar="EDGE=LEVEL",
        help="Set edge traffic first, e.g. e22=high.",
    )
    parser.add_argument("--no-seed-hazards", action="store_true", help="Ignore the seed's initial hazards.")
    parser.add_argument("--output", type=Path, default=None, help="Write the JSON report here as well.")
    return parser


def _parse_traffic(items: Sequence[str]) -> list[MutationRequest]:
    out: list[MutationRequest] = []
    for item in items:
        edge_id, sep, level = item.partition("=")
        if not sep or not edge_id.strip():
            raise ValueError(f"--traffic expects EDGE=LEVEL, got '{item}'")
        out.append(
            MutationRequest(kind="update_traffic", target_id=edge_id.strip(), traffic=TrafficLevel(level.strip().lower()))
        )
    return out


def run_drill(args: argparse.Namespace) -> dict[str, Any]:
    seed = load_graph_seed(args.seed)
    store = build_graph_store(seed, apply_initial_hazards=not args.no_seed_hazards)

    requests = [MutationRequest(kind="report_hazard", target_id=node_id) for node_id in args.hazard]
    requests += [MutationRequest(kind="set_blocked", target_id=edge_id, blocked=True) for edge_id in args.block]
    requests += _parse_traffic(args.traffic)
    if requests:
        apply_mutations(store, requests)

    sources = list(args.source) or [node.id for node in store.all_nodes()]
    routes: list[dict[str, Any]] = []
    unreachable: list[str] = []
    no_safe_zones = False
    for source_id in sources:
        try:
            outcome = nearest_safe(store, source_id)
        except NoSafeZonesError:
            no_safe_zones = True
            break
        if isinstance(outcome, Unreachable):
            unreachable.append(source_id)
            continue
        routes.append({"source_id": source_id, "target_id": outcome.target_id, **outcome.as_dict()})

    costs = [item["total_cost"] for item in routes]
    report = {
        "generated_at_utc": datetime.now(UTC).isoformat(),
        "seed_path": str(args.seed),
        "graph_version": store.version,
        "mutations_applied": len(requests),
        "sources": len(sources),
        "reachable": len(routes),
        "unreachable": unreachable,
        "no_safe_zones": no_safe_zones,
        "max_cost": max(costs) if costs else None,
        "routes": routes,
    }
    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(json.dumps(report, indent=2), encoding="utf-8")
    return report


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    print(json.dumps(run_drill(args), indent=2))


if __name__ == "__main__":
    main()

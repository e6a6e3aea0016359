from __future__ import annotations

import random

from evac_router.dijkstra import shortest_path
from evac_router.graph_store import GraphEdge, GraphStore, LocationNode
from evac_router.mutations import report_hazard, update_traffic
from evac_router.nearest_safe import nearest_safe
from evac_router.route_result import RouteResult, Unreachable, route_cost
from evac_router.weight_policy import TRAFFIC_ORDER

_CLASSES = ("normal", "safe", "warning", "danger")


def _random_store(rng: random.Random, *, node_count: int, edge_count: int) -> GraphStore:
    node_ids = [f"n{idx:02d}" for idx in range(node_count)]
    nodes = [
        LocationNode(
            id=node_id,
            name=node_id.upper(),
            classification=rng.choice(_CLASSES),
            hazard=rng.random() < 0.2,
        )
        for node_id in node_ids
    ]
    edges = []
    for idx in range(edge_count):
        source, target = rng.sample(node_ids, 2)
        edges.append(
            GraphEdge(
                id=f"e{idx:02d}",
                source=source,
                target=target,
                base_weight=rng.randint(1, 9),
                traffic=rng.choice(TRAFFIC_ORDER),
                blocked=rng.random() < 0.2,
            )
        )
    return GraphStore(nodes, edges)


def _brute_force_cost(store: GraphStore, source: str, target: str) -> float | None:
    best: float | None = None

    def walk(node_id: str, visited: set[str], cost: float) -> None:
        nonlocal best
        if best is not None and cost >= best:
            return
        if node_id == target:
            best = cost
            return
        for neighbor, _edge, weight in store.traversable_from(node_id):
            if neighbor in visited:
                continue
            visited.add(neighbor)
            walk(neighbor, visited, cost + weight)
            visited.discard(neighbor)

    walk(source, {source}, 0.0)
    return best


def _assert_valid_route(store: GraphStore, route: RouteResult, source: str, target: str) -> None:
    assert route.path[0] == source
    assert route.path[-1] == target
    assert len(route.edge_ids) == len(route.path) - 1
    for idx, edge_id in enumerate(route.edge_ids):
        edge = store.get_edge(edge_id)
        assert not edge.blocked
        assert {edge.source, edge.target} == {route.path[idx], route.path[idx + 1]}
    assert route_cost(store, route.edge_ids) == route.total_cost


def test_shortest_path_matches_exhaustive_search() -> None:
    rng = random.Random(20260219)

    for _ in range(40):
        store = _random_store(rng, node_count=7, edge_count=11)
        node_ids = [node.id for node in store.all_nodes()]
        for _pair in range(6):
            source, target = rng.choice(node_ids), rng.choice(node_ids)
            outcome = shortest_path(store, source, target)
            expected = _brute_force_cost(store, source, target)
            if expected is None:
                assert isinstance(outcome, Unreachable)
                continue
            assert isinstance(outcome, RouteResult)
            assert outcome.total_cost == expected
            _assert_valid_route(store, outcome, source, target)


def test_queries_are_deterministic() -> None:
    rng = random.Random(7)

    for _ in range(20):
        store = _random_store(rng, node_count=12, edge_count=24)
        node_ids = [node.id for node in store.all_nodes()]
        source, target = rng.choice(node_ids), rng.choice(node_ids)
        assert shortest_path(store, source, target) == shortest_path(store, source, target)
        safe_ids = [node.id for node in store.safe_nodes()]
        if safe_ids:
            assert nearest_safe(store, source) == nearest_safe(store, source)


def test_hazard_reports_are_idempotent() -> None:
    rng = random.Random(99)

    for _ in range(20):
        seed = rng.randint(0, 10_000)
        once = _random_store(random.Random(seed), node_count=8, edge_count=14)
        twice = _random_store(random.Random(seed), node_count=8, edge_count=14)
        node_id = rng.choice([node.id for node in once.all_nodes()])
        report_hazard(once, node_id)
        report_hazard(twice, node_id)
        report_hazard(twice, node_id)
        assert once.snapshot()["edges"] == twice.snapshot()["edges"]


def test_raising_traffic_never_lowers_route_cost() -> None:
    rng = random.Random(314)

    for _ in range(30):
        store = _random_store(rng, node_count=8, edge_count=14)
        node_ids = [node.id for node in store.all_nodes()]
        source, target = rng.choice(node_ids), rng.choice(node_ids)
        route = shortest_path(store, source, target)
        if isinstance(route, Unreachable) or not route.edge_ids:
            continue
        edge_id = rng.choice(route.edge_ids)
        costs = []
        for level in TRAFFIC_ORDER:
            update_traffic(store, edge_id, level)
            costs.append(route_cost(store, route.edge_ids))
        assert costs == sorted(costs)


def test_nearest_safe_agrees_with_per_candidate_minimum() -> None:
    rng = random.Random(2024)

    for _ in range(30):
        store = _random_store(rng, node_count=9, edge_count=15)
        safe_ids = [node.id for node in store.safe_nodes()]
        if not safe_ids:
            continue
        source = rng.choice([node.id for node in store.all_nodes()])
        candidates = [shortest_path(store, source, safe_id) for safe_id in safe_ids]
        reachable = [item for item in candidates if isinstance(item, RouteResult)]
        outcome = nearest_safe(store, source)
        if not reachable:
            assert isinstance(outcome, Unreachable)
            continue
        assert isinstance(outcome, RouteResult)
        best_cost = min(item.total_cost for item in reachable)
        assert outcome.total_cost == best_cost
        assert outcome.target_id == min(item.target_id for item in reachable if item.total_cost == best_cost)
        _assert_valid_route(store, outcome, source, outcome.target_id)

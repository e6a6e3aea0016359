from __future__ import annotations

import json
from pathlib import Path

import pytest

import evac_router.graph_loader as graph_loader
from evac_router.errors import InvalidWeightError
from evac_router.graph_loader import (
    BUNDLED_SEED_PATH,
    GraphSession,
    build_graph_store,
    load_graph_seed,
    parse_graph_seed,
)
from evac_router.graph_store import NodeClassification
from evac_router.mutations import report_hazard, update_traffic
from evac_router.nearest_safe import nearest_safe
from evac_router.weight_policy import TrafficLevel, WeightPolicy


def _small_seed() -> dict:
    return {
        "version": "pytest",
        "nodes": [
            {"id": "A", "name": "A"},
            {"id": "B", "name": "B", "type": "warning"},
            {"id": "C", "name": "C", "type": "safe"},
        ],
        "edges": [
            {"id": "ab", "source": "A", "target": "B", "weight": 2},
            {"id": "bc", "source": "B", "target": "C", "weight": 2, "traffic": "high", "status": "blocked"},
        ],
        "initial_hazards": ["B"],
    }


def test_bundled_seed_builds_expected_graph() -> None:
    seed = load_graph_seed(BUNDLED_SEED_PATH)
    store = build_graph_store(seed, policy=WeightPolicy())
    assert store.version == "dehradun-v1"
    assert len(store) == 24
    assert len(store.all_edges()) == 30
    assert sorted(node.id for node in store.all_nodes() if node.hazard) == [
        "chemical_factory",
        "forest_fire",
        "gas_leak",
    ]
    assert sorted(edge.id for edge in store.all_edges() if edge.blocked) == ["e13", "e14", "e16", "e17"]
    assert store.get_node("central_shelter").classification is NodeClassification.SAFE
    assert store.get_edge("e1").traffic is TrafficLevel.HIGH
    assert store.effective_weight_of("e2") == 5.0
    assert store.effective_weight_of("e15") == 8.0
    assert store.effective_weight_of("e18") == 10.0


def test_bundled_seed_nearest_safe_routes() -> None:
    store = build_graph_store(load_graph_seed(), policy=WeightPolicy())

    clock = nearest_safe(store, "clock_tower")
    assert clock.path == ("clock_tower", "parade_ground")
    assert clock.total_cost == 1

    # doon_hospital and central_shelter both cost 3; the lower id wins.
    bazaar = nearest_safe(store, "paltan_bazaar")
    assert bazaar.path == ("paltan_bazaar", "central_shelter")
    assert bazaar.total_cost == 3

    fire = nearest_safe(store, "forest_fire")
    assert fire.path == ("forest_fire", "rajpur_road", "gandhi_park")
    assert fire.total_cost == 15

    assert not nearest_safe(store, "chemical_factory")


def test_bundled_seed_responds_to_hazards_and_traffic() -> None:
    store = build_graph_store(load_graph_seed(), policy=WeightPolicy())
    report_hazard(store, "central_shelter")
    route = nearest_safe(store, "paltan_bazaar")
    assert route.path == ("paltan_bazaar", "doon_hospital")
    update_traffic(store, "e4", "high")
    route = nearest_safe(store, "paltan_bazaar")
    assert route.target_id in {"central_shelter", "doon_hospital"}
    assert route.total_cost == 4


def test_seed_hazards_can_be_skipped() -> None:
    store = build_graph_store(parse_graph_seed(_small_seed()), apply_initial_hazards=False)
    assert store.get_node("B").hazard is False
    store = build_graph_store(parse_graph_seed(_small_seed()))
    assert store.get_node("B").hazard is True


def test_keyed_collections_and_field_app_aliases() -> None:
    seed = parse_graph_seed(
        {
            "nodes": {
                "A": {"name": "A", "isHazard": True},
                "B": {"name": "B", "type": "safe"},
            },
            "edges": {"e1": {"source": "A", "target": "B", "weight": 3, "traffic": "medium"}},
        }
    )
    store = build_graph_store(seed, policy=WeightPolicy())
    assert store.get_node("A").hazard is True
    assert store.get_edge("e1").source == "A"
    assert store.effective_weight_of("e1") == 10.0


def test_invalid_seed_shapes_are_rejected() -> None:
    with pytest.raises(InvalidWeightError) as exc:
        parse_graph_seed({"nodes": [{"id": "A", "name": "A", "type": "volcano"}], "edges": []})
    assert exc.value.reason_code == "invalid_seed"
    assert exc.value.details is not None and exc.value.details["errors"]


def test_non_positive_weight_rejected_at_build_time() -> None:
    payload = _small_seed()
    payload["edges"][0]["weight"] = 0
    seed = parse_graph_seed(payload)
    with pytest.raises(InvalidWeightError) as exc:
        build_graph_store(seed)
    assert exc.value.reason_code == "invalid_weight"


def test_dangling_edge_and_unknown_hazard_rejected() -> None:
    payload = _small_seed()
    payload["edges"].append({"id": "cx", "source": "C", "target": "X", "weight": 1})
    with pytest.raises(InvalidWeightError) as exc:
        build_graph_store(parse_graph_seed(payload))
    assert exc.value.reason_code == "missing_endpoint"

    payload = _small_seed()
    payload["initial_hazards"] = ["ghost"]
    with pytest.raises(InvalidWeightError) as hazard_exc:
        build_graph_store(parse_graph_seed(payload))
    assert hazard_exc.value.details == {"missing_node_ids": ["ghost"]}


def test_unreadable_seed_file(tmp_path: Path) -> None:
    bad = tmp_path / "broken.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(InvalidWeightError) as exc:
        load_graph_seed(bad)
    assert exc.value.reason_code == "invalid_seed"
    with pytest.raises(InvalidWeightError):
        load_graph_seed(tmp_path / "missing.json")


def test_seed_with_invalid_utf8_is_reason_coded(tmp_path: Path) -> None:
    bad = tmp_path / "binary.json"
    bad.write_bytes(b"\xff\xfe\x00garbage")
    with pytest.raises(InvalidWeightError) as exc:
        load_graph_seed(bad)
    assert exc.value.reason_code == "invalid_seed"

    session = GraphSession(path=bad)
    with pytest.raises(InvalidWeightError):
        session.refresh()
    status = session.status()
    assert status["state"] == "failed"
    assert status["last_error"]


def test_seed_path_prefers_setting(monkeypatch, tmp_path: Path) -> None:
    custom = tmp_path / "seed.json"
    monkeypatch.setattr(graph_loader.settings, "graph_seed_path", str(custom))
    assert graph_loader.seed_path() == custom
    monkeypatch.setattr(graph_loader.settings, "graph_seed_path", "")
    assert graph_loader.seed_path() == BUNDLED_SEED_PATH


def test_session_refresh_rebuilds_wholesale(tmp_path: Path) -> None:
    path = tmp_path / "seed.json"
    path.write_text(json.dumps(_small_seed()), encoding="utf-8")
    session = GraphSession(path=path)

    store = session.store
    report_hazard(store, "A")
    assert session.status()["revision"] == 1

    refreshed = session.refresh()
    assert refreshed is not store
    assert refreshed.get_node("A").hazard is False
    assert refreshed.get_node("B").hazard is True
    status = session.status()
    assert status["state"] == "ready"
    assert status["revision"] == 0
    assert status["nodes"] == 3
    assert status["safe_nodes"] == 1
    assert status["loaded_at_utc"]


def test_failed_refresh_keeps_previous_store(tmp_path: Path) -> None:
    path = tmp_path / "seed.json"
    path.write_text(json.dumps(_small_seed()), encoding="utf-8")
    session = GraphSession(path=path)
    store = session.refresh()

    path.write_text("[]", encoding="utf-8")
    with pytest.raises(InvalidWeightError):
        session.refresh()
    assert session.store is store
    status = session.status()
    assert status["state"] == "ready"
    assert status["last_error"]


def test_session_without_graph_reports_failure(tmp_path: Path) -> None:
    session = GraphSession(path=tmp_path / "absent.json")
    with pytest.raises(InvalidWeightError):
        session.refresh()
    assert session.status()["state"] == "failed"
    assert session.status()["nodes"] == 0

from __future__ import annotations

import pytest

from evac_router.errors import NotFoundError
from evac_router.graph_store import GraphStore, LocationNode
from evac_router.mutations import clear_hazard, report_hazard
from evac_router.safety_status import assess_location


def _store() -> GraphStore:
    return GraphStore(
        [
            LocationNode(id="shelter", name="Shelter", classification="safe"),
            LocationNode(id="market", name="Market", classification="warning"),
            LocationNode(id="plant", name="Plant", classification="danger"),
            LocationNode(id="street", name="Street"),
        ],
        [],
    )


@pytest.mark.parametrize(
    ("node_id", "status", "evacuate"),
    [
        ("shelter", "safe", False),
        ("market", "warning", False),
        ("plant", "danger", True),
        ("street", "unknown", False),
    ],
)
def test_status_follows_classification(node_id: str, status: str, evacuate: bool) -> None:
    assessment = assess_location(_store(), node_id)
    assert assessment.status == status
    assert assessment.evacuate is evacuate
    assert assessment.hazard_active is False
    assert not assessment.advisory.startswith("Active hazard")


def test_active_hazard_forces_evacuation_outside_safe_zones() -> None:
    store = _store()
    report_hazard(store, "market")
    report_hazard(store, "shelter")

    market = assess_location(store, "market")
    assert market.hazard_active is True
    assert market.evacuate is True
    assert market.advisory.startswith("Active hazard reported here.")

    shelter = assess_location(store, "shelter")
    assert shelter.hazard_active is True
    assert shelter.evacuate is False

    clear_hazard(store, "market")
    assert assess_location(store, "market").evacuate is False


def test_unknown_node_is_not_found() -> None:
    with pytest.raises(NotFoundError):
        assess_location(_store(), "nowhere")

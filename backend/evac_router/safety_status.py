from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .graph_store import GraphStore, NodeClassification

SafetyStatus = Literal["safe", "warning", "danger", "unknown"]

_ADVISORIES: dict[str, str] = {
    "safe": "This location is a designated safe zone.",
    "warning": "Potential risk zone. Stay alert and monitor official communications.",
    "danger": "High-risk area. Immediate evacuation is recommended.",
    "unknown": "Safety status could not be determined for this location.",
}


@dataclass(frozen=True)
class SafetyAssessment:
    node_id: str
    node_name: str
    status: SafetyStatus
    hazard_active: bool
    evacuate: bool
    advisory: str


def assess_location(store: GraphStore, node_id: str) -> SafetyAssessment:
    node = store.get_node(node_id)
    status: SafetyStatus
    if node.classification is NodeClassification.NORMAL:
        # Normal locations carry no designation of their own.
        status = "unknown"
    else:
        status = node.classification.value  # type: ignore[assignment]
    evacuate = status == "danger" or (node.hazard and status != "safe")
    advisory = _ADVISORIES[status]
    if node.hazard:
        advisory = f"Active hazard reported here. {advisory}"
    return SafetyAssessment(
        node_id=node.id,
        node_name=node.name,
        status=status,
        hazard_active=node.hazard,
        evacuate=evacuate,
        advisory=advisory,
    )

from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

Classification = Literal["normal", "safe", "warning", "danger"]
Traffic = Literal["low", "medium", "high"]


class NodeSeed(BaseModel):
    id: str = Field(..., min_length=1)
    name: str
    type: Classification = "normal"
    description: str | None = None
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    is_hazard: bool = False

    @model_validator(mode="before")
    @classmethod
    def accept_field_app_aliases(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        data = dict(value)
        if "is_hazard" not in data and "isHazard" in data:
            data["is_hazard"] = data.pop("isHazard")
        if "type" not in data and "classification" in data:
            data["type"] = data.pop("classification")
        return data


class EdgeSeed(BaseModel):
    id: str = Field(..., min_length=1)
    source: str
    target: str
    # Positivity is enforced when the graph is built so the failure carries an invalid_weight code.
    weight: float
    traffic: Traffic = "low"
    status: Literal["open", "blocked"] = "open"

    @field_validator("weight", mode="before")
    @classmethod
    def reject_booleans(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("weight must be a number")
        return v


class GraphSeed(BaseModel):
    version: str = "seed"
    source: str = ""
    nodes: list[NodeSeed]
    edges: list[EdgeSeed]
    initial_hazards: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_keyed_collections(cls, value: object) -> object:
        # The field app keeps nodes/edges as id-keyed objects; accept both shapes.
        if not isinstance(value, dict):
            return value
        data = dict(value)
        for key in ("nodes", "edges"):
            raw = data.get(key)
            if isinstance(raw, dict):
                data[key] = [
                    {"id": item_id, **item} if isinstance(item, dict) and "id" not in item else item
                    for item_id, item in raw.items()
                ]
        return data


class NodeView(BaseModel):
    id: str
    name: str
    classification: Classification
    hazard: bool
    description: str | None = None
    lat: float | None = None
    lng: float | None = None


class EdgeView(BaseModel):
    id: str
    source: str
    target: str
    base_weight: float
    traffic: Traffic
    blocked: bool
    effective_weight: float | None


class GraphResponse(BaseModel):
    version: str
    source: str
    revision: int
    nodes: list[NodeView]
    edges: list[EdgeView]


class HazardRequest(BaseModel):
    node_id: str = Field(..., min_length=1)


class TrafficRequest(BaseModel):
    level: Traffic


class BlockedRequest(BaseModel):
    blocked: bool


class MutationItem(BaseModel):
    kind: Literal["report_hazard", "clear_hazard", "update_traffic", "set_blocked"]
    target_id: str = Field(..., min_length=1)
    traffic: Traffic | None = None
    blocked: bool | None = None

    @model_validator(mode="after")
    def payload_matches_kind(self) -> "MutationItem":
        if self.kind == "update_traffic" and self.traffic is None:
            raise ValueError("update_traffic requires 'traffic'")
        if self.kind == "set_blocked" and self.blocked is None:
            raise ValueError("set_blocked requires 'blocked'")
        return self


class MutationBatchRequest(BaseModel):
    mutations: list[MutationItem] = Field(..., min_length=1, max_length=500)


class MutationResponse(BaseModel):
    kind: str
    target_id: str
    changed: bool
    before: dict[str, Any]
    after: dict[str, Any]
    affected_weights: dict[str, float | None]


class MutationBatchResponse(BaseModel):
    results: list[MutationResponse]
    revision: int


class RouteRequest(BaseModel):
    source_id: str = Field(..., min_length=1)
    target_id: str = Field(..., min_length=1)


class NearestSafeRequest(BaseModel):
    source_id: str = Field(..., min_length=1)


class RouteResponse(BaseModel):
    path: list[str]
    total_cost: float
    edge_ids: list[str]
    target_id: str
    target_name: str

    @field_validator("total_cost")
    @classmethod
    def finite(cls, v: float) -> float:
        if not math.isfinite(v) or v < 0:
            raise ValueError("total_cost must be finite and non-negative")
        return v


class SafetyResponse(BaseModel):
    node_id: str
    node_name: str
    status: Literal["safe", "warning", "danger", "unknown"]
    hazard_active: bool
    evacuate: bool
    advisory: str


class GraphStatusResponse(BaseModel):
    state: Literal["ready", "failed"]
    version: str
    source: str
    revision: int
    nodes: int
    edges: int
    safe_nodes: int
    loaded_at_utc: str | None = None
    last_error: str | None = None


class ErrorResponse(BaseModel):
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

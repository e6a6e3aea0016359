from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .dijkstra import shortest_path
from .errors import (
    GraphUnavailableError,
    InvalidWeightError,
    NoSafeZonesError,
    NotFoundError,
    RouteTimeoutError,
    RoutingError,
    UnreachableError,
    normalize_reason_code,
)
from .graph_loader import GraphSession
from .graph_store import GraphStore
from .logging_utils import log_event
from .models import (
    BlockedRequest,
    ErrorResponse,
    GraphResponse,
    GraphStatusResponse,
    HazardRequest,
    MutationBatchRequest,
    MutationBatchResponse,
    MutationResponse,
    NearestSafeRequest,
    RouteRequest,
    RouteResponse,
    SafetyResponse,
    TrafficRequest,
)
from .mutations import (
    MutationRequest,
    MutationResult,
    apply_mutations,
    clear_hazard,
    report_hazard,
    set_blocked,
    update_traffic,
)
from .nearest_safe import nearest_safe
from .route_result import RouteOutcome, require_route
from .safety_status import assess_location
from .settings import settings
from .weight_policy import TrafficLevel


@asynccontextmanager
async def lifespan(app: FastAPI):
    session = GraphSession()
    session.refresh()
    app.state.graph_session = session
    yield


app = FastAPI(title="Evacuation Route Engine", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_ERROR: tuple[tuple[type[RoutingError], int], ...] = (
    (NotFoundError, 404),
    (UnreachableError, 409),
    (NoSafeZonesError, 409),
    (RouteTimeoutError, 504),
    (InvalidWeightError, 500),
    (GraphUnavailableError, 503),
)


def _error_status(exc: RoutingError) -> int:
    return next((code for kind, code in _STATUS_BY_ERROR if isinstance(exc, kind)), 400)


def _error_payload(exc: RoutingError) -> dict[str, Any]:
    return ErrorResponse(
        reason_code=normalize_reason_code(exc.reason_code),
        message=exc.message,
        details=exc.details,
    ).model_dump()


def _error_responses(*codes: int) -> dict[int | str, dict[str, Any]]:
    return {code: {"model": ErrorResponse} for code in codes}


@app.exception_handler(RoutingError)
async def routing_error_handler(request: Request, exc: RoutingError) -> JSONResponse:
    status_code = _error_status(exc)
    payload = _error_payload(exc)
    log_event(
        "request_failed",
        path=request.url.path,
        status=status_code,
        reason_code=payload["reason_code"],
    )
    return JSONResponse(status_code=status_code, content=payload)


def graph_session(request: Request) -> GraphSession:
    session: GraphSession | None = getattr(request.app.state, "graph_session", None)
    if session is None:
        raise GraphUnavailableError(
            reason_code="graph_unavailable",
            message="graph not initialised",
        )
    return session


def graph_store(session: Annotated[GraphSession, Depends(graph_session)]) -> GraphStore:
    return session.store


SessionDep = Annotated[GraphSession, Depends(graph_session)]
StoreDep = Annotated[GraphStore, Depends(graph_store)]


def _route_deadline() -> float:
    return time.monotonic() + float(settings.route_compute_timeout_s)


def _route_response(store: GraphStore, outcome: RouteOutcome) -> RouteResponse:
    route = require_route(outcome)
    target = store.get_node(route.target_id)
    return RouteResponse(
        path=list(route.path),
        total_cost=route.total_cost,
        edge_ids=list(route.edge_ids),
        target_id=target.id,
        target_name=target.name,
    )


def _mutation_response(result: MutationResult) -> MutationResponse:
    return MutationResponse(
        kind=result.kind,
        target_id=result.target_id,
        changed=result.changed,
        before=result.before,
        after=result.after,
        affected_weights=result.affected_weights,
    )


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Backend is running. Visit /docs for the API UI.", "docs": "/docs"}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/graph", response_model=GraphResponse, responses=_error_responses(503))
def get_graph(store: StoreDep) -> GraphResponse:
    return GraphResponse.model_validate(store.snapshot())


@app.get("/graph/status", response_model=GraphStatusResponse, responses=_error_responses(503))
def get_graph_status(session: SessionDep) -> GraphStatusResponse:
    return GraphStatusResponse.model_validate(session.status())


@app.post("/graph/refresh", response_model=GraphStatusResponse, responses=_error_responses(500, 503))
def refresh_graph(session: SessionDep) -> GraphStatusResponse:
    session.refresh()
    return GraphStatusResponse.model_validate(session.status())


@app.get("/nodes/{node_id}/safety", response_model=SafetyResponse, responses=_error_responses(404))
def node_safety(node_id: str, store: StoreDep) -> SafetyResponse:
    assessment = assess_location(store, node_id)
    return SafetyResponse(
        node_id=assessment.node_id,
        node_name=assessment.node_name,
        status=assessment.status,
        hazard_active=assessment.hazard_active,
        evacuate=assessment.evacuate,
        advisory=assessment.advisory,
    )


@app.post("/hazards", response_model=MutationResponse, responses=_error_responses(404))
def post_hazard(req: HazardRequest, store: StoreDep) -> MutationResponse:
    return _mutation_response(report_hazard(store, req.node_id))


@app.delete("/hazards/{node_id}", response_model=MutationResponse, responses=_error_responses(404))
def delete_hazard(node_id: str, store: StoreDep) -> MutationResponse:
    return _mutation_response(clear_hazard(store, node_id))


@app.post("/edges/{edge_id}/traffic", response_model=MutationResponse, responses=_error_responses(404))
def post_traffic(edge_id: str, req: TrafficRequest, store: StoreDep) -> MutationResponse:
    return _mutation_response(update_traffic(store, edge_id, TrafficLevel(req.level)))


@app.post("/edges/{edge_id}/blocked", response_model=MutationResponse, responses=_error_responses(404))
def post_blocked(edge_id: str, req: BlockedRequest, store: StoreDep) -> MutationResponse:
    return _mutation_response(set_blocked(store, edge_id, req.blocked))


@app.post("/mutations", response_model=MutationBatchResponse, responses=_error_responses(404))
def post_mutations(req: MutationBatchRequest, store: StoreDep) -> MutationBatchResponse:
    requests = [
        MutationRequest(
            kind=item.kind,
            target_id=item.target_id,
            traffic=TrafficLevel(item.traffic) if item.traffic is not None else None,
            blocked=item.blocked,
        )
        for item in req.mutations
    ]
    results = apply_mutations(store, requests)
    return MutationBatchResponse(
        results=[_mutation_response(item) for item in results],
        revision=store.revision,
    )


@app.post("/route", response_model=RouteResponse, responses=_error_responses(404, 409, 504))
def compute_route(req: RouteRequest, store: StoreDep) -> RouteResponse:
    outcome = shortest_path(store, req.source_id, req.target_id, deadline_monotonic_s=_route_deadline())
    return _route_response(store, outcome)


@app.post("/route/nearest-safe", response_model=RouteResponse, responses=_error_responses(404, 409, 504))
def compute_nearest_safe(req: NearestSafeRequest, store: StoreDep) -> RouteResponse:
    outcome = nearest_safe(store, req.source_id, deadline_monotonic_s=_route_deadline())
    return _route_response(store, outcome)

# api/intent_graph.py
"""
Intent Graph API
Admin-dashboard adapter over the intent graph engine.

Signals are accepted as raw objects so a malformed signal is reported as
not accepted instead of failing validation; queries always answer 200.
Endpoints are plain functions: the engine takes a lock, so FastAPI runs
them in its threadpool instead of on the event loop.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Query
from pydantic import BaseModel
from loguru import logger

from ..ingestion.graph_builder import get_intent_graph_builder
from ..algorithms.graph_scorer import get_intent_graph_scorer
from ..queries.query_engine import get_intent_graph_query_engine
from ..schemas.graph_schemas import QueryResult


router = APIRouter(prefix="/api/intent-graph", tags=["intent-graph"])


# ============================================
# Models
# ============================================

class SignalAccepted(BaseModel):
    """Outcome of one ingested signal"""
    accepted: bool
    generation: int


class GraphCleared(BaseModel):
    status: str = "cleared"
    generation: int


# ============================================
# Endpoints
# ============================================

@router.post("/signals", response_model=SignalAccepted)
def ingest_signal(signal: Dict[str, Any] = Body(...)):
    """
    Ingest one visit / conversion / bounce signal.

    Example: {"type": "visit", "sessionId": "s1", "intent": "search",
              "contentId": "dubai-marina"}
    """
    builder = get_intent_graph_builder()
    accepted = builder.process_signal(signal)
    if not accepted:
        logger.warning(f"Rejected signal for session {signal.get('sessionId')!r}")
    return SignalAccepted(accepted=accepted, generation=builder.generation)


@router.post("/query", response_model=QueryResult)
def run_query(query: Dict[str, Any] = Body(...)):
    """
    Run a tagged query {type, limit, ...filters}.
    Unknown types answer with an empty result set.
    """
    return get_intent_graph_query_engine().execute(query)


@router.get("/summary", response_model=QueryResult)
def get_summary(
    hours: Optional[float] = Query(None, gt=0, description="Only sessions started in the last N hours"),
):
    """Graph totals and top traffic sources for the dashboard header"""
    return get_intent_graph_query_engine().get_summary(hours)


@router.delete("/graph", response_model=GraphCleared)
def clear_graph():
    """Drop the in-memory graph and its cached scores"""
    generation = get_intent_graph_builder().clear()
    get_intent_graph_scorer().clear_cache()
    return GraphCleared(generation=generation)

"""Pytest configuration and fixtures for intent graph tests."""

import pytest

from intent_graph.algorithms.graph_scorer import GraphScorer, reset_intent_graph_scorer
from intent_graph.ingestion.graph_builder import GraphBuilder, reset_intent_graph_builder
from intent_graph.queries.query_engine import (
    IntentGraphQueryEngine,
    reset_intent_graph_query_engine,
)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Every test starts and ends without process-wide instances."""
    reset_intent_graph_query_engine()
    reset_intent_graph_scorer()
    reset_intent_graph_builder()
    yield
    reset_intent_graph_query_engine()
    reset_intent_graph_scorer()
    reset_intent_graph_builder()


@pytest.fixture
def builder():
    """A builder over a fresh graph store."""
    return GraphBuilder(closed_session_policy="reject", bounce_outcome="bounce")


@pytest.fixture
def scorer(builder):
    return GraphScorer(builder.store)


@pytest.fixture
def engine(builder, scorer):
    return IntentGraphQueryEngine(builder, scorer)


@pytest.fixture
def scenario_a_signals():
    """Two search sessions that convert, three browse sessions that bounce."""
    signals = []
    for session_id, value in (("search-1", 100.0), ("search-2", 250.0)):
        signals.append({
            "type": "visit",
            "sessionId": session_id,
            "intent": "search",
            "source": "google",
            "contentId": "dubai-hotels",
        })
        signals.append({
            "type": "conversion",
            "sessionId": session_id,
            "outcome": "booking",
            "value": value,
        })
    for session_id in ("browse-1", "browse-2", "browse-3"):
        signals.append({
            "type": "visit",
            "sessionId": session_id,
            "intent": "browse",
            "source": "instagram",
            "contentId": "things-to-do",
        })
        signals.append({"type": "bounce", "sessionId": session_id})
    return signals


@pytest.fixture
def scenario_a(builder, scenario_a_signals):
    """Builder loaded with the scenario A dataset."""
    applied = builder.process_signals(scenario_a_signals)
    assert applied == len(scenario_a_signals)
    return builder

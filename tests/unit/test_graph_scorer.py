"""Unit tests for graph statistics and the generation-keyed cache."""

import pytest

from intent_graph.algorithms.graph_scorer import (
    GraphScorer,
    get_intent_graph_scorer,
    reset_intent_graph_scorer,
)
from intent_graph.algorithms.journeys import journey_key, journey_labels, reaches_steps
from intent_graph.cache.score_cache import ScoreCache
from intent_graph.ingestion.graph_builder import get_intent_graph_builder, reset_intent_graph_builder
from intent_graph.interfaces.graph_store import NodeRef


def visit(session_id, intent, content_id):
    return {"type": "visit", "sessionId": session_id, "intent": intent, "contentId": content_id}


SEARCH = NodeRef.intent("search")
BROWSE = NodeRef.intent("browse")
HOTELS = NodeRef.content("dubai-hotels")
THINGS = NodeRef.content("things-to-do")
BOOKING = NodeRef.outcome("booking")
BOUNCE = NodeRef.outcome("bounce")


# ============================================
# Journeys
# ============================================

@pytest.mark.unit
def test_journey_key_collapses_consecutive_repeats():
    path = [SEARCH, HOTELS, HOTELS, THINGS, HOTELS, BOOKING]
    assert journey_key(path) == (SEARCH, HOTELS, THINGS, HOTELS, BOOKING)
    assert journey_labels(journey_key([SEARCH, HOTELS])) == ["intent:search", "content:dubai-hotels"]


@pytest.mark.unit
def test_reaches_steps_in_order_with_gaps():
    path = [SEARCH, HOTELS, THINGS, BOOKING]
    assert reaches_steps(path, [HOTELS, BOOKING]) == 2
    assert reaches_steps(path, [THINGS, HOTELS]) == 1
    assert reaches_steps(path, [NodeRef.content("palm")]) == 0


# ============================================
# Score cache
# ============================================

@pytest.mark.unit
def test_score_cache_memoizes_per_generation():
    cache = ScoreCache()
    calls = []

    def compute():
        calls.append(1)
        return len(calls)

    assert cache.get_or_compute("failure_rate", "search", 1, compute) == 1
    assert cache.get_or_compute("failure_rate", "search", 1, compute) == 1
    assert cache.hits == 1

    assert cache.get_or_compute("failure_rate", "search", 2, compute) == 2
    assert len(cache) == 1


@pytest.mark.unit
def test_score_cache_clear():
    cache = ScoreCache()
    cache.get_or_compute("break_rate", "things-to-do", 3, lambda: 0.5)

    cache.clear()

    assert len(cache) == 0
    assert cache.stats()["hits"] == 0


# ============================================
# Statistics
# ============================================

@pytest.mark.unit
def test_failure_rate_scenario_a(scenario_a, scorer):
    assert scorer.failure_rate("browse") == 1.0
    assert scorer.failure_rate("search") == 0.0
    assert scorer.failure_rate(BROWSE) == 1.0


@pytest.mark.unit
def test_rates_are_zero_without_sessions(scorer):
    assert scorer.failure_rate("unknown") == 0.0
    assert scorer.break_rate("unknown") == 0.0
    assert scorer.drop_off_rate(SEARCH, HOTELS) == 0.0
    assert scorer.path_value([SEARCH, HOTELS, BOOKING]) == 0.0


@pytest.mark.unit
def test_failure_rate_bounded(builder, scorer):
    builder.process_signals([
        visit("a", "search", "dubai-hotels"),
        {"type": "bounce", "sessionId": "a"},
        visit("b", "search", "dubai-hotels"),
        {"type": "conversion", "sessionId": "b", "outcome": "booking", "value": 80},
        visit("c", "search", "dubai-hotels"),
        visit("d", "plan", "itinerary"),
    ])

    for intent in ("search", "plan"):
        assert 0.0 <= scorer.failure_rate(intent) <= 1.0
    assert scorer.failure_rate("search") == pytest.approx(1 / 3)
    assert scorer.failure_rate("plan") == 0.0


@pytest.mark.unit
def test_break_rate_counts_last_content_only(builder, scorer):
    builder.process_signals([
        visit("a", "browse", "dubai-hotels"),
        visit("a", "browse", "things-to-do"),
        {"type": "bounce", "sessionId": "a"},
        visit("b", "browse", "things-to-do"),
        {"type": "conversion", "sessionId": "b", "outcome": "booking", "value": 50},
    ])

    assert scorer.break_rate("dubai-hotels") == 0.0
    assert scorer.break_rate("things-to-do") == 0.5


@pytest.mark.unit
def test_drop_off_rate_counts_open_sessions_as_not_dropped(builder, scorer):
    builder.process_signals([
        visit("a", "browse", "things-to-do"),
        {"type": "bounce", "sessionId": "a"},
        visit("b", "browse", "things-to-do"),
    ])

    assert scorer.drop_off_rate(BROWSE, THINGS) == 0.5
    assert scorer.drop_off_rate(THINGS, BOUNCE) == 1.0


@pytest.mark.unit
def test_path_value_groups_reloads(builder, scorer):
    builder.process_signals([
        visit("a", "search", "dubai-hotels"),
        visit("a", "search", "dubai-hotels"),
        {"type": "conversion", "sessionId": "a", "outcome": "booking", "value": 120},
        visit("b", "search", "dubai-hotels"),
        {"type": "conversion", "sessionId": "b", "outcome": "booking", "value": 80},
    ])

    assert scorer.path_value([SEARCH, HOTELS, BOOKING]) == 200.0
    assert scorer.path_frequency([SEARCH, HOTELS, HOTELS, BOOKING]) == 2
    assert builder.store.edge(HOTELS, HOTELS)["count"] == 1


@pytest.mark.unit
def test_cached_value_is_reused_until_generation_changes(scenario_a, scorer):
    scorer.failure_rate("search")
    hits = scorer.cache.hits
    scorer.failure_rate("search")
    assert scorer.cache.hits == hits + 1

    scenario_a.process_signal(visit("search-3", "search", "dubai-hotels"))
    scenario_a.process_signal({"type": "bounce", "sessionId": "search-3"})

    assert scorer.failure_rate("search") == pytest.approx(1 / 3)


@pytest.mark.unit
def test_clear_cache_keeps_generation_and_results(scenario_a, scorer):
    cached = scorer.failure_rate("browse")
    generation = scorer.generation

    scorer.clear_cache()

    assert len(scorer.cache) == 0
    assert scorer.generation == generation
    assert scorer.failure_rate("browse") == cached


@pytest.mark.unit
def test_intent_flow_scoped_to_intent_sessions(scenario_a, scorer):
    flow = scorer.intent_flow("search")
    assert flow == {(SEARCH, HOTELS): 2, (HOTELS, BOOKING): 2}

    everything = scorer.intent_flow()
    assert everything[(BROWSE, THINGS)] == 3
    assert len(everything) == 4


@pytest.mark.unit
def test_funnel_counts(builder, scorer):
    builder.process_signals([
        visit("a", "search", "dubai-hotels"),
        visit("a", "search", "things-to-do"),
        visit("b", "search", "dubai-hotels"),
        visit("c", "search", "things-to-do"),
    ])

    assert scorer.funnel(["dubai-hotels", "things-to-do"]) == [2, 1]


@pytest.mark.unit
def test_shared_scorer_follows_builder_reset():
    scorer = get_intent_graph_scorer()
    assert scorer.store is get_intent_graph_builder().store
    assert get_intent_graph_scorer() is scorer

    reset_intent_graph_builder()

    rebuilt = get_intent_graph_scorer()
    assert rebuilt is not scorer
    assert rebuilt.store is get_intent_graph_builder().store

    reset_intent_graph_scorer()
    assert get_intent_graph_scorer() is not rebuilt

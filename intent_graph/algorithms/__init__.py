"""
Intent Graph Algorithms Module
Statistics over the journey graph and journey identity helpers
"""

from .journeys import journey_key, journey_labels, reaches_steps
from .graph_scorer import (
    GraphScorer,
    GraphAggregates,
    get_intent_graph_scorer,
    reset_intent_graph_scorer,
)

__all__ = [
    "journey_key",
    "journey_labels",
    "reaches_steps",
    "GraphScorer",
    "GraphAggregates",
    "get_intent_graph_scorer",
    "reset_intent_graph_scorer",
]

"""
Queries Package

Contains the analytic query catalogue:
- query_engine: named queries + execute() dispatcher, process-wide instance
"""

from .query_engine import (
    IntentGraphQueryEngine,
    get_intent_graph_query_engine,
    reset_intent_graph_query_engine,
)

__all__ = [
    "IntentGraphQueryEngine",
    "get_intent_graph_query_engine",
    "reset_intent_graph_query_engine",
]

# api/__init__.py
"""
API Routers Package

Contains FastAPI routers:
- intent_graph: /api/intent-graph (signals, queries, summary, clear)
"""

from .intent_graph import router as intent_graph_router

__all__ = [
    "intent_graph_router",
]

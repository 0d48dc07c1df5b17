# interfaces/__init__.py
"""
Interfaces Package

Contains data stores:
- graph_store: Nodes, traversal edges, sessions and the generation counter
"""

from .graph_store import GraphStore, NodeRef, Session, InvalidTransition

__all__ = [
    "GraphStore",
    "NodeRef",
    "Session",
    "InvalidTransition",
]

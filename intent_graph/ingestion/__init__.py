"""
Ingestion Module
Signal intake: per-signal graph mutation and signal-log replay
"""

from .graph_builder import (
    GraphBuilder,
    get_intent_graph_builder,
    reset_intent_graph_builder,
)
from .signal_log import ReplayStats, SignalLogError, read_signal_log, replay_signal_log

__all__ = [
    "GraphBuilder",
    "get_intent_graph_builder",
    "reset_intent_graph_builder",
    "ReplayStats",
    "SignalLogError",
    "read_signal_log",
    "replay_signal_log",
]

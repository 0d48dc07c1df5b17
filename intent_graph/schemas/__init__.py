# schemas/__init__.py
"""
Pydantic Schemas Package

Contains all Pydantic v2 models for:
- Inbound signals (visit / conversion / bounce)
- The query catalogue consumed by execute()
- QueryResult envelope and result rows
"""

from .graph_schemas import (
    # Enums
    NodeKind, SessionStatus, OutcomeType,
    # Signals
    SignalBase, VisitSignal, ConversionSignal, BounceSignal, Signal, signal_adapter,
    # Queries
    FailingIntentsQuery, BreakingContentQuery, HighValuePathsQuery,
    DropOffPointsQuery, ConversionPathsQuery, IntentFlowQuery,
    SessionJourneyQuery, FunnelQuery, SummaryQuery, UnrecognizedQuery,
    Query, QUERY_TYPES, parse_query,
    # Results
    IntentFailure, ContentBreak, DropOffPoint, JourneyPath, FlowLink,
    FunnelStep, SessionJourney, SourceCount, GraphSummary, QueryResult,
)

__all__ = [
    # Enums
    "NodeKind", "SessionStatus", "OutcomeType",
    # Signals
    "SignalBase", "VisitSignal", "ConversionSignal", "BounceSignal", "Signal",
    "signal_adapter",
    # Queries
    "FailingIntentsQuery", "BreakingContentQuery", "HighValuePathsQuery",
    "DropOffPointsQuery", "ConversionPathsQuery", "IntentFlowQuery",
    "SessionJourneyQuery", "FunnelQuery", "SummaryQuery", "UnrecognizedQuery",
    "Query", "QUERY_TYPES", "parse_query",
    # Results
    "IntentFailure", "ContentBreak", "DropOffPoint", "JourneyPath", "FlowLink",
    "FunnelStep", "SessionJourney", "SourceCount", "GraphSummary", "QueryResult",
]

# queries/query_engine.py
"""
Intent Graph Query Engine
Named analytic queries for the admin dashboards plus one generic dispatcher.

Every method returns a QueryResult envelope and never raises: an internal
fault (including a limit that is not a number) becomes an empty result with
metadata["error"] set, and an unknown query type becomes an empty result.
Each query reads one generation of the graph: its rows and metadata are
computed under the store lock, so a concurrent signal lands before or after
the whole query, never in the middle of it. Ordering is fully deterministic:
score descending, then session volume descending, then id ascending.
"""

import threading
import time
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger
from pydantic import BaseModel

from ..algorithms.graph_scorer import GraphScorer, get_intent_graph_scorer
from ..algorithms.journeys import journey_labels
from ..config import settings
from ..ingestion.graph_builder import GraphBuilder, get_intent_graph_builder
from ..schemas.graph_schemas import (
    BreakingContentQuery,
    ContentBreak,
    ConversionPathsQuery,
    DropOffPoint,
    DropOffPointsQuery,
    FailingIntentsQuery,
    FlowLink,
    FunnelQuery,
    FunnelStep,
    GraphSummary,
    HighValuePathsQuery,
    IntentFailure,
    IntentFlowQuery,
    JourneyPath,
    NodeKind,
    QueryResult,
    SessionJourney,
    SessionJourneyQuery,
    SourceCount,
    SummaryQuery,
    parse_query,
    utc_now,
)


Rows = List[Any]
Metadata = Dict[str, Any]

TOP_SOURCES = 10


class IntentGraphQueryEngine:
    """
    Stateless facade over a GraphBuilder (graph) and a GraphScorer (statistics).

    Usage:
        engine = IntentGraphQueryEngine(builder, scorer)
        result = engine.get_failing_intents(5)
        result = engine.execute({"type": "drop_off_points", "limit": 3})
    """

    def __init__(self, builder: GraphBuilder, scorer: GraphScorer):
        self.builder = builder
        self.scorer = scorer

    # ============================================
    # Envelope
    # ============================================

    def _run(
        self,
        query: Dict[str, Any],
        compute: Callable[[], Tuple[Rows, Metadata]],
    ) -> QueryResult:
        executed_at = utc_now()
        started = time.perf_counter()
        try:
            with self.builder.store.lock:
                results, metadata = compute()
        except Exception as e:
            logger.error(f"Intent graph query {query.get('type')} failed: {e}")
            results, metadata = [], {"error": str(e)}

        return QueryResult(
            results=results,
            duration=(time.perf_counter() - started) * 1000,
            query=query,
            executedAt=executed_at,
            metadata=metadata,
        )

    def _base_metadata(self) -> Metadata:
        agg = self.scorer.aggregates()
        return {
            "totalSessions": agg.total_sessions,
            "generation": agg.generation,
        }

    @staticmethod
    def _truncate(rows: List[Any], limit: Optional[int], metadata: Metadata) -> List[Any]:
        """
        Cut rows to the requested limit

        None means DEFAULT_LIMIT and anything above MAX_LIMIT is capped;
        the applied limit is reported as metadata["limit"], and a capped
        request also sets metadata["limitClamped"].
        """
        applied = settings.clamp_limit(limit)
        metadata["limit"] = applied
        if limit is not None and int(limit) > settings.MAX_LIMIT:
            metadata["limitClamped"] = True
        return rows[:applied]

    # ============================================
    # Named queries
    # ============================================

    def get_failing_intents(self, limit: Optional[int] = None) -> QueryResult:
        """Intents ranked by failure rate"""
        def compute() -> Tuple[Rows, Metadata]:
            agg = self.scorer.aggregates()
            rows = [
                IntentFailure(
                    intent=intent_id,
                    failureRate=self.scorer.failure_rate(intent_id),
                    sessions=agg.intent_sessions[intent_id],
                    bounces=agg.intent_bounces[intent_id],
                    conversions=agg.intent_conversions[intent_id],
                )
                for intent_id in agg.intent_sessions
            ]
            rows.sort(key=lambda r: (-r.failureRate, -r.sessions, r.intent))
            metadata = self._base_metadata()
            metadata["totalIntents"] = len(rows)
            return self._truncate(rows, limit, metadata), metadata

        return self._run({"type": "failing_intents", "limit": limit}, compute)

    def get_breaking_content(self, limit: Optional[int] = None) -> QueryResult:
        """Content nodes ranked by break rate"""
        def compute() -> Tuple[Rows, Metadata]:
            agg = self.scorer.aggregates()
            rows = [
                ContentBreak(
                    contentId=content_id,
                    breakRate=self.scorer.break_rate(content_id),
                    sessions=agg.content_sessions[content_id],
                    breaks=agg.content_breaks[content_id],
                )
                for content_id in agg.content_sessions
            ]
            rows.sort(key=lambda r: (-r.breakRate, -r.sessions, r.contentId))
            metadata = self._base_metadata()
            metadata["totalContent"] = len(rows)
            return self._truncate(rows, limit, metadata), metadata

        return self._run({"type": "breaking_content", "limit": limit}, compute)

    def get_drop_off_points(self, limit: Optional[int] = None) -> QueryResult:
        """Edges ranked by drop-off rate"""
        def compute() -> Tuple[Rows, Metadata]:
            agg = self.scorer.aggregates()
            ranked = sorted(
                agg.edge_sessions,
                key=lambda edge: (
                    -self.scorer.drop_off_rate(*edge),
                    -agg.edge_sessions[edge],
                    edge[0].key,
                    edge[1].key,
                ),
            )
            metadata = self._base_metadata()
            metadata["totalEdges"] = len(ranked)
            rows = [
                DropOffPoint(
                    from_=source.key,
                    to=target.key,
                    dropOffRate=self.scorer.drop_off_rate(source, target),
                    sessions=agg.edge_sessions[(source, target)],
                    dropOffs=agg.edge_drop_offs[(source, target)],
                )
                for source, target in self._truncate(ranked, limit, metadata)
            ]
            return rows, metadata

        return self._run({"type": "drop_off_points", "limit": limit}, compute)

    def get_high_value_paths(self, limit: Optional[int] = None) -> QueryResult:
        """Converting journeys ranked by aggregate value"""
        def compute() -> Tuple[Rows, Metadata]:
            rows = self._journey_rows()
            rows.sort(key=lambda r: (-r.value, -r.count, r.path))
            metadata = self._journey_metadata(rows)
            return self._truncate(rows, limit, metadata), metadata

        return self._run({"type": "high_value_paths", "limit": limit}, compute)

    def get_conversion_paths(self, limit: Optional[int] = None) -> QueryResult:
        """Converting journeys ranked by how often they were followed"""
        def compute() -> Tuple[Rows, Metadata]:
            rows = self._journey_rows()
            rows.sort(key=lambda r: (-r.count, -r.value, r.path))
            metadata = self._journey_metadata(rows)
            return self._truncate(rows, limit, metadata), metadata

        return self._run({"type": "conversion_paths", "limit": limit}, compute)

    def get_intent_flow(
        self,
        intent_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> QueryResult:
        """
        Sankey links {source, target, value}

        Args:
            intent_type: Restrict to journeys of sessions carrying this intent
            limit: Maximum number of links
        """
        def compute() -> Tuple[Rows, Metadata]:
            flow = self.scorer.intent_flow(intent_type)
            rows = [
                FlowLink(source=source.key, target=target.key, value=value)
                for (source, target), value in flow.items()
            ]
            rows.sort(key=lambda r: (-r.value, r.source, r.target))
            metadata = self._base_metadata()
            metadata["totalLinks"] = len(rows)
            if intent_type is not None:
                metadata["intentSessions"] = self.scorer.aggregates().intent_sessions[intent_type]
            return self._truncate(rows, limit, metadata), metadata

        return self._run(
            {"type": "intent_flow", "intentType": intent_type, "limit": limit},
            compute,
        )

    def get_session_journey(self, session_id: str) -> QueryResult:
        """Every logical session recorded under an id, oldest first"""

        def compute() -> Tuple[Rows, Metadata]:
            with self.builder.store.lock:
                history = self.builder.store.session_history(session_id)
                rows = [SessionJourney(**session.to_dict()) for session in history]
            metadata = self._base_metadata()
            metadata["logicalSessions"] = len(rows)
            return rows, metadata

        return self._run({"type": "session_journey", "sessionId": session_id}, compute)

    def get_funnel(self, steps: Sequence[str]) -> QueryResult:
        """
        Ordered conversion funnel over content ids

        Each row counts the sessions that visited steps 1..k in order,
        the drop-off from the previous step, and the share of step-1
        sessions that got this far.
        """
        steps = list(steps)

        def compute() -> Tuple[Rows, Metadata]:
            counts = self.scorer.funnel(steps) if steps else []
            if not counts or not counts[0]:
                return [], self._base_metadata()
            rows = []
            for index, (content_id, sessions) in enumerate(zip(steps, counts)):
                previous = counts[index - 1] if index > 0 else sessions
                rows.append(FunnelStep(
                    step=index + 1,
                    contentId=content_id,
                    sessions=sessions,
                    dropOff=1 - sessions / previous if previous else 0.0,
                    conversionRate=sessions / counts[0],
                ))
            return rows, self._base_metadata()

        return self._run({"type": "funnel", "steps": steps}, compute)

    def get_summary(self, hours: Optional[float] = None) -> QueryResult:
        """
        Single-row graph summary for the dashboard header

        Args:
            hours: Only count sessions started in the last N hours
                (None = every session in the graph)

        Returns:
            QueryResult: one GraphSummary row with the top traffic sources,
            or no rows when no session falls inside the window
        """

        def compute() -> Tuple[Rows, Metadata]:
            if hours is None:
                agg = self.scorer.aggregates()
            else:
                agg = self.scorer.window_aggregates(utc_now() - timedelta(hours=hours))
            stats = self.builder.store.stats()
            top_sources = sorted(
                agg.source_sessions.items(),
                key=lambda item: (-item[1], item[0]),
            )[:TOP_SOURCES]
            closed = agg.converted_sessions + agg.bounced_sessions
            summary = GraphSummary(
                windowHours=hours,
                totalSessions=agg.total_sessions,
                openSessions=agg.open_sessions,
                convertedSessions=agg.converted_sessions,
                bouncedSessions=agg.bounced_sessions,
                conversionRate=agg.converted_sessions / closed if closed else 0.0,
                bounceRate=agg.bounced_sessions / closed if closed else 0.0,
                totalValue=agg.total_value,
                intents=stats["intents"],
                content=stats["content"],
                outcomes=stats["outcomes"],
                edges=stats["edges"],
                topSources=[
                    SourceCount(
                        source=source,
                        sessions=sessions,
                        conversions=agg.source_conversions[source],
                    )
                    for source, sessions in top_sources
                ],
                generation=agg.generation,
            )
            rows = [summary] if agg.total_sessions else []
            metadata = self._base_metadata()
            metadata["totalSources"] = len(agg.source_sessions)
            return rows, metadata

        return self._run({"type": "summary", "hours": hours}, compute)

    # ============================================
    # Generic dispatch
    # ============================================

    def execute(self, query: Union[BaseModel, Dict[str, Any]]) -> QueryResult:
        """
        Dispatch a tagged query object {type, limit, ...filters}

        Unknown types return an empty result; invalid fields on a known type
        return an empty result with metadata["error"].
        """
        if isinstance(query, BaseModel):
            echoed = query.model_dump()
        elif isinstance(query, dict):
            echoed = dict(query)
        else:
            echoed = {}

        try:
            parsed = parse_query(query if isinstance(query, BaseModel) else echoed)
        except Exception as e:
            error = str(e)
            return self._run(echoed, lambda: ([], {"error": error}))

        if isinstance(parsed, FailingIntentsQuery):
            result = self.get_failing_intents(parsed.limit)
        elif isinstance(parsed, BreakingContentQuery):
            result = self.get_breaking_content(parsed.limit)
        elif isinstance(parsed, HighValuePathsQuery):
            result = self.get_high_value_paths(parsed.limit)
        elif isinstance(parsed, DropOffPointsQuery):
            result = self.get_drop_off_points(parsed.limit)
        elif isinstance(parsed, ConversionPathsQuery):
            result = self.get_conversion_paths(parsed.limit)
        elif isinstance(parsed, IntentFlowQuery):
            result = self.get_intent_flow(parsed.intentType, parsed.limit)
        elif isinstance(parsed, SessionJourneyQuery):
            result = self.get_session_journey(parsed.sessionId)
        elif isinstance(parsed, FunnelQuery):
            result = self.get_funnel(parsed.steps)
        elif isinstance(parsed, SummaryQuery):
            result = self.get_summary(parsed.hours)
        else:
            # UnrecognizedQuery, or a model outside the catalogue
            logger.debug(f"Unrecognized intent graph query type: {echoed.get('type')}")
            return self._run(echoed, lambda: ([], {"unrecognized": True}))

        result.query = echoed
        return result

    # ============================================
    # Helpers
    # ============================================

    def _journey_rows(self) -> List[JourneyPath]:
        agg = self.scorer.aggregates()
        return [
            JourneyPath(
                path=journey_labels(key),
                outcome=key[-1].id,
                value=self.scorer.path_value(key),
                count=self.scorer.path_frequency(key),
            )
            for key in agg.journeys
            if key and key[-1].kind == NodeKind.OUTCOME
        ]

    def _journey_metadata(self, rows: List[JourneyPath]) -> Metadata:
        agg = self.scorer.aggregates()
        metadata = self._base_metadata()
        metadata["totalJourneys"] = len(rows)
        metadata["convertedSessions"] = agg.converted_sessions
        metadata["totalValue"] = agg.total_value
        return metadata


# ============================================
# Process-wide instance
# ============================================

_engine_instance: Optional[IntentGraphQueryEngine] = None
_engine_lock = threading.Lock()


def get_intent_graph_query_engine() -> IntentGraphQueryEngine:
    """Get the shared query engine, rebuilt if its builder or scorer was reset"""
    global _engine_instance
    builder = get_intent_graph_builder()
    scorer = get_intent_graph_scorer()
    with _engine_lock:
        if (
            _engine_instance is None
            or _engine_instance.builder is not builder
            or _engine_instance.scorer is not scorer
        ):
            _engine_instance = IntentGraphQueryEngine(builder, scorer)
        return _engine_instance


def reset_intent_graph_query_engine() -> None:
    """Discard the shared query engine"""
    global _engine_instance
    with _engine_lock:
        _engine_instance = None
    logger.info("Intent graph query engine reset")

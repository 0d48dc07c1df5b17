"""
Graph Scorer
Derived statistics over the intent/journey graph, memoized per generation

Statistics:
1. Failure Rate (intent)  - bounced sessions with the intent / sessions with the intent
2. Break Rate (content)   - bounced sessions whose last content was this node /
                            sessions that visited this node
3. Drop-off Rate (edge)   - bounced sessions that traversed the edge /
                            sessions that traversed the edge
4. Path Value (journey)   - conversion value of sessions following the journey

Every rate is 0.0 when its denominator is 0, never NaN.
"""

import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Hashable, List, Optional, Sequence, Tuple, TypeVar, Union

from loguru import logger

from ..cache.score_cache import ScoreCache
from ..ingestion.graph_builder import get_intent_graph_builder
from ..interfaces.graph_store import GraphStore, NodeRef, Session
from ..schemas.graph_schemas import NodeKind
from .journeys import JourneyKey, journey_key, reaches_steps


T = TypeVar("T")
EdgeKey = Tuple[NodeRef, NodeRef]


@dataclass
class JourneyStats:
    """Converted sessions sharing one journey"""
    count: int = 0
    value: float = 0.0


@dataclass
class GraphAggregates:
    """
    One pass over all sessions; every per-target statistic reads from here
    """
    generation: int = 0

    total_sessions: int = 0
    open_sessions: int = 0
    converted_sessions: int = 0
    bounced_sessions: int = 0
    total_value: float = 0.0

    intent_sessions: Counter = field(default_factory=Counter)
    intent_bounces: Counter = field(default_factory=Counter)
    intent_conversions: Counter = field(default_factory=Counter)

    content_sessions: Counter = field(default_factory=Counter)
    content_breaks: Counter = field(default_factory=Counter)

    edge_sessions: Counter = field(default_factory=Counter)
    edge_drop_offs: Counter = field(default_factory=Counter)

    source_sessions: Counter = field(default_factory=Counter)
    source_conversions: Counter = field(default_factory=Counter)

    journeys: Dict[JourneyKey, JourneyStats] = field(default_factory=dict)


def _rate(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator


def _last_content(session: Session) -> Optional[NodeRef]:
    for node in reversed(session.path):
        if node.kind == NodeKind.CONTENT:
            return node
    return None


def _as_ref(kind: NodeKind, target: Union[str, NodeRef]) -> NodeRef:
    return target if isinstance(target, NodeRef) else NodeRef(kind, target)


class GraphScorer:
    """
    Computes named statistics over a GraphStore.

    Values are cached under (statistic, target, generation); any applied
    signal bumps the generation and so retires every cached value.
    """

    def __init__(self, store: GraphStore, cache: Optional[ScoreCache] = None):
        self.store = store
        self.cache = cache or ScoreCache()

    @property
    def generation(self) -> int:
        return self.store.generation

    def _cached(self, statistic: str, target: Hashable, compute: Callable[[], T]) -> T:
        # Generation and graph are read under the same lock
        with self.store.lock:
            return self.cache.get_or_compute(statistic, target, self.store.generation, compute)

    def clear_cache(self) -> None:
        """Empty the cache; the graph and its generation are untouched"""
        self.cache.clear()

    # ============================================
    # Aggregates
    # ============================================

    def aggregates(self) -> GraphAggregates:
        """All session-level counters for the current generation"""
        return self._cached("aggregates", "*", self._compute_aggregates)

    def window_aggregates(self, since: datetime) -> GraphAggregates:
        """
        Session-level counters restricted to sessions started at or after `since`

        Not cached: the window moves with the clock, not with the generation.
        """
        with self.store.lock:
            return self._compute_aggregates(since)

    def _compute_aggregates(self, since: Optional[datetime] = None) -> GraphAggregates:
        agg = GraphAggregates(generation=self.store.generation)

        for session in self.store.sessions():
            if since is not None and (session.started_at is None or session.started_at < since):
                continue

            agg.total_sessions += 1
            if session.source:
                agg.source_sessions[session.source] += 1
                if session.converted:
                    agg.source_conversions[session.source] += 1
            if not session.is_closed:
                agg.open_sessions += 1
            elif session.converted:
                agg.converted_sessions += 1
                agg.total_value += session.value
            elif session.bounced:
                agg.bounced_sessions += 1

            for intent_id in set(session.intent_ids):
                agg.intent_sessions[intent_id] += 1
                if session.bounced:
                    agg.intent_bounces[intent_id] += 1
                elif session.converted:
                    agg.intent_conversions[intent_id] += 1

            for node in set(session.path):
                if node.kind == NodeKind.CONTENT:
                    agg.content_sessions[node.id] += 1

            if session.bounced:
                last_content = _last_content(session)
                if last_content is not None:
                    agg.content_breaks[last_content.id] += 1

            for edge in set(zip(session.path, session.path[1:])):
                agg.edge_sessions[edge] += 1
                if session.bounced:
                    agg.edge_drop_offs[edge] += 1

            if session.converted:
                stats = agg.journeys.setdefault(journey_key(session.path), JourneyStats())
                stats.count += 1
                stats.value += session.value

        logger.debug(
            f"Aggregates computed: {agg.total_sessions} sessions, "
            f"{len(agg.journeys)} converting journeys (generation {agg.generation})"
        )
        return agg

    # ============================================
    # Named statistics
    # ============================================

    def failure_rate(self, intent: Union[str, NodeRef]) -> float:
        """Fraction of sessions with this intent that ended in a bounce"""
        ref = _as_ref(NodeKind.INTENT, intent)

        def compute() -> float:
            agg = self.aggregates()
            return _rate(agg.intent_bounces[ref.id], agg.intent_sessions[ref.id])

        return self._cached("failure_rate", ref, compute)

    def break_rate(self, content: Union[str, NodeRef]) -> float:
        """Fraction of sessions visiting this content that bounced right after it"""
        ref = _as_ref(NodeKind.CONTENT, content)

        def compute() -> float:
            agg = self.aggregates()
            return _rate(agg.content_breaks[ref.id], agg.content_sessions[ref.id])

        return self._cached("break_rate", ref, compute)

    def drop_off_rate(self, source: NodeRef, target: NodeRef) -> float:
        """Fraction of sessions traversing source -> target that ended in a bounce"""
        edge = (source, target)

        def compute() -> float:
            agg = self.aggregates()
            return _rate(agg.edge_drop_offs[edge], agg.edge_sessions[edge])

        return self._cached("drop_off_rate", edge, compute)

    def path_value(self, journey: Sequence[NodeRef]) -> float:
        """Conversion value of sessions that followed this journey"""
        key = journey_key(journey)

        def compute() -> float:
            stats = self.aggregates().journeys.get(key)
            return stats.value if stats else 0.0

        return self._cached("path_value", key, compute)

    def path_frequency(self, journey: Sequence[NodeRef]) -> int:
        """Number of converted sessions that followed this journey"""
        key = journey_key(journey)

        def compute() -> int:
            stats = self.aggregates().journeys.get(key)
            return stats.count if stats else 0

        return self._cached("path_frequency", key, compute)

    def intent_flow(self, intent: Optional[str] = None) -> Dict[EdgeKey, int]:
        """
        Traversal counts per edge

        Args:
            intent: When given, only traversals made by sessions carrying this
                intent, from the point the intent node was entered

        Returns:
            dict: (source, target) -> traversals
        """
        def compute() -> Dict[EdgeKey, int]:
            if intent is None:
                return {(u, v): data["count"] for u, v, data in self.store.edges()}

            ref = NodeRef.intent(intent)
            flow: Counter = Counter()
            for session in self.store.sessions():
                if ref not in session.path:
                    continue
                path = session.path[session.path.index(ref):]
                flow.update(zip(path, path[1:]))
            return dict(flow)

        return self._cached("intent_flow", intent or "*", compute)

    def funnel(self, steps: Sequence[str]) -> List[int]:
        """
        Sessions reaching each funnel step in order

        Args:
            steps: Ordered content ids

        Returns:
            list: counts[k] = sessions that visited steps[0..k] in order
        """
        refs = tuple(NodeRef.content(step) for step in steps)

        def compute() -> List[int]:
            counts = [0] * len(refs)
            for session in self.store.sessions():
                reached = reaches_steps(journey_key(session.path), refs)
                for index in range(reached):
                    counts[index] += 1
            return counts

        return list(self._cached("funnel", refs, compute))


# ============================================
# Process-wide instance
# ============================================

_scorer_instance: Optional[GraphScorer] = None
_scorer_lock = threading.Lock()


def get_intent_graph_scorer() -> GraphScorer:
    """Get the shared GraphScorer bound to the shared builder's store"""
    global _scorer_instance
    store = get_intent_graph_builder().store
    with _scorer_lock:
        if _scorer_instance is None or _scorer_instance.store is not store:
            _scorer_instance = GraphScorer(store)
        return _scorer_instance


def reset_intent_graph_scorer() -> None:
    """Discard the shared GraphScorer and its cache"""
    global _scorer_instance
    with _scorer_lock:
        _scorer_instance = None
    logger.info("Intent graph scorer reset")

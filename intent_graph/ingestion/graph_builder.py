# ingestion/graph_builder.py
"""
Graph Builder
Translates one behavioral signal into one atomic graph mutation.

Signal mapping:
- visit:      Intent -> Content traversal (opens the session on first visit)
- conversion: last node -> Outcome(outcome), adds value, closes the session
- bounce:     last node -> Outcome(outcome or "bounce"), closes the session

Malformed signals and illegal transitions are rejected without touching
the graph; the caller gets False back and decides whether to log it.
"""

import threading
from typing import Any, Dict, Iterable, Optional, Union

from loguru import logger
from pydantic import BaseModel, ValidationError

from ..config import settings
from ..interfaces.graph_store import GraphStore, InvalidTransition, NodeRef, Session
from ..schemas.graph_schemas import (
    BounceSignal,
    ConversionSignal,
    OutcomeType,
    VisitSignal,
    signal_adapter,
)


SignalInput = Union[VisitSignal, ConversionSignal, BounceSignal, Dict[str, Any]]


class GraphBuilder:
    """
    Owns every mutation of a GraphStore and its generation counter.

    Usage:
        builder = GraphBuilder()
        builder.process_signal({"type": "visit", "sessionId": "s1",
                                "intent": "search", "contentId": "dubai-mall"})
        builder.process_signal({"type": "conversion", "sessionId": "s1",
                                "outcome": "booking", "value": 120.0})
    """

    def __init__(
        self,
        store: Optional[GraphStore] = None,
        closed_session_policy: Optional[str] = None,
        bounce_outcome: Optional[str] = None,
    ):
        """
        Args:
            store: Graph store to mutate (a fresh one by default)
            closed_session_policy: "reject" or "restart" for signals
                addressed to a closed session
            bounce_outcome: Outcome id for bounces that carry none
        """
        self.store = store or GraphStore()
        self.closed_session_policy = closed_session_policy or settings.closed_session_policy
        self.bounce_outcome = bounce_outcome or settings.BOUNCE_OUTCOME

        logger.info(
            f"GraphBuilder initialized: closed_session_policy={self.closed_session_policy}, "
            f"bounce_outcome={self.bounce_outcome}"
        )

    @property
    def generation(self) -> int:
        return self.store.generation

    def process_signal(self, signal: SignalInput) -> bool:
        """
        Apply one signal to the graph

        Args:
            signal: A signal model or a raw mapping with a "type" key

        Returns:
            bool: True if applied (generation bumped), False if rejected
        """
        try:
            parsed = self._parse(signal)
        except ValidationError:
            return False

        with self.store.lock:
            try:
                if isinstance(parsed, VisitSignal):
                    self._apply_visit(parsed)
                elif isinstance(parsed, ConversionSignal):
                    self._apply_conversion(parsed)
                else:
                    self._apply_bounce(parsed)
            except InvalidTransition:
                return False

            generation = self.store.bump_generation()

        logger.debug(f"Applied {parsed.type} for {parsed.sessionId} (generation {generation})")
        return True

    def process_signals(self, signals: Iterable[SignalInput]) -> int:
        """Apply signals in order; returns how many were applied"""
        return sum(1 for signal in signals if self.process_signal(signal))

    def clear(self) -> int:
        """Reset nodes, edges and sessions; returns the new generation"""
        with self.store.lock:
            return self.store.clear()

    # ============================================
    # Signal handlers
    # ============================================

    @staticmethod
    def _parse(signal: SignalInput) -> Union[VisitSignal, ConversionSignal, BounceSignal]:
        if isinstance(signal, (VisitSignal, ConversionSignal, BounceSignal)):
            return signal
        if isinstance(signal, BaseModel):
            signal = signal.model_dump()
        return signal_adapter.validate_python(signal)

    def _apply_visit(self, signal: VisitSignal) -> None:
        session = self.store.session(signal.sessionId)

        if session is not None and session.is_closed:
            if self.closed_session_policy != "restart":
                raise InvalidTransition(f"Session {signal.sessionId} is closed")
            session = None

        intent = NodeRef.intent(signal.intent)
        content = NodeRef.content(signal.contentId)

        if session is None:
            session = self.store.open_session(
                signal.sessionId,
                started_at=signal.timestamp,
                source=signal.source,
            )
            self.store.extend_session(session, intent, content)
            return

        if session.source is None:
            session.source = signal.source

        if self._current_intent(session) == signal.intent:
            self.store.extend_session(session, content)
        else:
            # Intent changed mid-session: route through the new intent node
            self.store.extend_session(session, intent, content)

    def _apply_conversion(self, signal: ConversionSignal) -> None:
        session = self._open_session_for_terminal(signal.sessionId)
        self.store.close_session(
            session,
            NodeRef.outcome(signal.outcome),
            OutcomeType.CONVERSION,
            value=signal.value,
            ended_at=signal.timestamp,
        )

    def _apply_bounce(self, signal: BounceSignal) -> None:
        session = self._open_session_for_terminal(signal.sessionId)
        self.store.close_session(
            session,
            NodeRef.outcome(signal.outcome or self.bounce_outcome),
            OutcomeType.BOUNCE,
            ended_at=signal.timestamp,
        )

    def _open_session_for_terminal(self, session_id: str) -> Session:
        session = self.store.session(session_id)
        if session is None:
            raise InvalidTransition(f"Session {session_id} has no visits")
        if session.is_closed:
            raise InvalidTransition(f"Session {session_id} is already closed")
        return session

    @staticmethod
    def _current_intent(session: Session) -> Optional[str]:
        intents = session.intent_ids
        return intents[-1] if intents else None


# ============================================
# Process-wide instance
# ============================================

_builder_instance: Optional[GraphBuilder] = None
_builder_lock = threading.Lock()


def get_intent_graph_builder() -> GraphBuilder:
    """Get the shared GraphBuilder, creating it on first use"""
    global _builder_instance
    with _builder_lock:
        if _builder_instance is None:
            _builder_instance = GraphBuilder()
        return _builder_instance


def reset_intent_graph_builder() -> None:
    """Discard the shared GraphBuilder (and with it the shared graph)"""
    global _builder_instance
    with _builder_lock:
        _builder_instance = None
    logger.info("Intent graph builder reset")

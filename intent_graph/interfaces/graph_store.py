# interfaces/graph_store.py
"""
Graph Store for the intent/journey graph
Holds intent, content and outcome nodes, weighted traversal edges
and per-session path state.

The store has no behavior beyond storage and mutation primitives;
GraphBuilder decides which primitive a signal maps to.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

import networkx as nx
from loguru import logger

from ..schemas.graph_schemas import NodeKind, OutcomeType, SessionStatus


class InvalidTransition(Exception):
    """A signal asked a session for a transition its state does not allow"""


class NodeRef(NamedTuple):
    """Node identity: the (kind, id) pair"""
    kind: NodeKind
    id: str

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.id}"

    @classmethod
    def intent(cls, node_id: str) -> "NodeRef":
        return cls(NodeKind.INTENT, node_id)

    @classmethod
    def content(cls, node_id: str) -> "NodeRef":
        return cls(NodeKind.CONTENT, node_id)

    @classmethod
    def outcome(cls, node_id: str) -> "NodeRef":
        return cls(NodeKind.OUTCOME, node_id)


@dataclass
class Session:
    """One logical visitor session and the path it traced"""
    session_id: str
    sequence: int = 1  # >1 when a closed id was restarted

    path: List[NodeRef] = field(default_factory=list)
    source: Optional[str] = None  # traffic source of the first visit that named one

    # Terminal state
    status: SessionStatus = SessionStatus.OPEN
    outcome: Optional[str] = None
    outcome_type: Optional[OutcomeType] = None
    value: float = 0.0

    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def last_node(self) -> Optional[NodeRef]:
        return self.path[-1] if self.path else None

    @property
    def is_closed(self) -> bool:
        return self.status == SessionStatus.CLOSED

    @property
    def converted(self) -> bool:
        return self.outcome_type == OutcomeType.CONVERSION

    @property
    def bounced(self) -> bool:
        return self.outcome_type == OutcomeType.BOUNCE

    @property
    def intent_ids(self) -> List[str]:
        return [node.id for node in self.path if node.kind == NodeKind.INTENT]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "sequence": self.sequence,
            "path": [node.key for node in self.path],
            "source": self.source,
            "status": self.status,
            "outcome": self.outcome,
            "outcomeType": self.outcome_type,
            "value": self.value,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
        }


class GraphStore:
    """
    Directed graph of Intent -> Content -> Outcome traversals.

    - Nodes are networkx keys of type NodeRef, created on first reference
    - Edges carry `count` (traversals) and `valueSum` (conversion value)
    - Sessions are kept in arrival order; the latest logical session
      per id is indexed for path extension
    - `generation` is bumped by the builder once per applied mutation

    All access goes through `lock`; readers and writers share it.
    """

    def __init__(self):
        self.graph = nx.DiGraph()
        self.generation = 0
        self.lock = threading.RLock()

        self._sessions: List[Session] = []
        self._latest: Dict[str, Session] = {}

    # ============================================
    # Nodes & Edges
    # ============================================

    def ensure_node(self, ref: NodeRef) -> NodeRef:
        """Create the node if it does not exist yet"""
        if ref not in self.graph:
            self.graph.add_node(ref, kind=ref.kind, id=ref.id)
        return ref

    def add_traversal(self, source: NodeRef, target: NodeRef, value: float = 0.0) -> Dict[str, Any]:
        """Increment the (source, target) edge, creating it on first use"""
        self.ensure_node(source)
        self.ensure_node(target)
        if self.graph.has_edge(source, target):
            data = self.graph.edges[source, target]
            data["count"] += 1
            data["valueSum"] += value
        else:
            self.graph.add_edge(source, target, count=1, valueSum=value)
            data = self.graph.edges[source, target]
        return data

    def has_node(self, ref: NodeRef) -> bool:
        return ref in self.graph

    def nodes(self, kind: Optional[NodeKind] = None) -> List[NodeRef]:
        """All nodes (optionally of one kind), sorted by identity"""
        return sorted(
            node for node in self.graph.nodes if kind is None or node.kind == kind
        )

    def edge(self, source: NodeRef, target: NodeRef) -> Optional[Dict[str, Any]]:
        if not self.graph.has_edge(source, target):
            return None
        return dict(self.graph.edges[source, target])

    def edges(self) -> List[Tuple[NodeRef, NodeRef, Dict[str, Any]]]:
        """All edges with their attributes, sorted by (source, target)"""
        return sorted(
            ((u, v, dict(data)) for u, v, data in self.graph.edges(data=True)),
            key=lambda item: (item[0], item[1]),
        )

    # ============================================
    # Sessions
    # ============================================

    def open_session(
        self,
        session_id: str,
        started_at: Optional[datetime] = None,
        source: Optional[str] = None,
    ) -> Session:
        """Start a new logical session under `session_id`"""
        previous = self._latest.get(session_id)
        if previous is not None and not previous.is_closed:
            raise InvalidTransition(f"Session {session_id} is already open")

        session = Session(
            session_id=session_id,
            sequence=previous.sequence + 1 if previous else 1,
            started_at=started_at,
            source=source,
        )
        self._sessions.append(session)
        self._latest[session_id] = session
        return session

    def extend_session(self, session: Session, *nodes: NodeRef) -> None:
        """Append nodes to an open session's path, counting each traversed edge"""
        if session.is_closed:
            raise InvalidTransition(f"Session {session.session_id} is closed")
        for node in nodes:
            self.ensure_node(node)
            if session.path:
                self.add_traversal(session.path[-1], node)
            session.path.append(node)

    def close_session(
        self,
        session: Session,
        outcome: NodeRef,
        outcome_type: OutcomeType,
        value: float = 0.0,
        ended_at: Optional[datetime] = None,
    ) -> None:
        """Add the terminal edge and mark the session closed"""
        if session.is_closed:
            raise InvalidTransition(f"Session {session.session_id} is already closed")
        if not session.path:
            raise InvalidTransition(f"Session {session.session_id} has no path to terminate")

        self.add_traversal(session.path[-1], outcome, value)
        session.path.append(outcome)
        session.status = SessionStatus.CLOSED
        session.outcome = outcome.id
        session.outcome_type = outcome_type
        session.value = value
        session.ended_at = ended_at

    def session(self, session_id: str) -> Optional[Session]:
        """Latest logical session for an id"""
        return self._latest.get(session_id)

    def session_history(self, session_id: str) -> List[Session]:
        """Every logical session recorded under an id, oldest first"""
        return [s for s in self._sessions if s.session_id == session_id]

    def sessions(self) -> List[Session]:
        return list(self._sessions)

    # ============================================
    # Lifecycle
    # ============================================

    def bump_generation(self) -> int:
        self.generation += 1
        return self.generation

    def clear(self) -> int:
        """Drop every node, edge and session; returns the new generation"""
        self.graph.clear()
        self._sessions.clear()
        self._latest.clear()
        generation = self.bump_generation()
        logger.info(f"Graph store cleared (generation {generation})")
        return generation

    def stats(self) -> Dict[str, int]:
        """Node, edge and session counts"""
        counts = {kind: 0 for kind in NodeKind}
        for node in self.graph.nodes:
            counts[node.kind] += 1
        return {
            "intents": counts[NodeKind.INTENT],
            "content": counts[NodeKind.CONTENT],
            "outcomes": counts[NodeKind.OUTCOME],
            "edges": self.graph.number_of_edges(),
            "sessions": len(self._sessions),
            "generation": self.generation,
        }

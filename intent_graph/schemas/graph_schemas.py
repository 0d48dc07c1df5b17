# schemas/graph_schemas.py
"""
Pydantic v2 schemas for the Intent Graph engine
Covers inbound signals, the query catalogue and the QueryResult envelope
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================
# Enums
# ============================================

class NodeKind(str, Enum):
    INTENT = "intent"
    CONTENT = "content"
    OUTCOME = "outcome"


class SessionStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class OutcomeType(str, Enum):
    CONVERSION = "conversion"
    BOUNCE = "bounce"


# ============================================
# Signals (Consumed from instrumentation)
# ============================================

class SignalBase(BaseModel):
    """Fields shared by every signal"""
    sessionId: str = Field(..., min_length=1, description="Session identifier")
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps from instrumentation are UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class VisitSignal(SignalBase):
    """A page visit inside a session"""
    type: Literal["visit"] = "visit"
    intent: str = Field(..., min_length=1, description="Declared visitor goal")
    source: Optional[str] = Field(default=None, description="Traffic source")
    contentId: str = Field(..., min_length=1, description="Visited content id")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "visit",
                "sessionId": "sess-001",
                "intent": "search",
                "source": "google",
                "contentId": "attraction-burj-khalifa",
            }
        }
    )


class ConversionSignal(SignalBase):
    """Terminal signal: the session converted"""
    type: Literal["conversion"] = "conversion"
    outcome: str = Field(..., min_length=1, description="Conversion type, e.g. booking")
    # Edge value sums only grow, so no negative or non-finite values
    value: float = Field(
        default=0.0,
        ge=0,
        allow_inf_nan=False,
        description="Attributed conversion value",
    )


class BounceSignal(SignalBase):
    """Terminal signal: the session left without converting"""
    type: Literal["bounce"] = "bounce"
    outcome: Optional[str] = Field(default=None, description="Outcome id, defaults to 'bounce'")


Signal = Annotated[
    Union[VisitSignal, ConversionSignal, BounceSignal],
    Field(discriminator="type"),
]

signal_adapter = TypeAdapter(Signal)


# ============================================
# Queries (tagged union, dispatched by execute())
# ============================================

class FailingIntentsQuery(BaseModel):
    type: Literal["failing_intents"] = "failing_intents"
    limit: Optional[int] = Field(default=None, ge=0)


class BreakingContentQuery(BaseModel):
    type: Literal["breaking_content"] = "breaking_content"
    limit: Optional[int] = Field(default=None, ge=0)


class HighValuePathsQuery(BaseModel):
    type: Literal["high_value_paths"] = "high_value_paths"
    limit: Optional[int] = Field(default=None, ge=0)


class DropOffPointsQuery(BaseModel):
    type: Literal["drop_off_points"] = "drop_off_points"
    limit: Optional[int] = Field(default=None, ge=0)


class ConversionPathsQuery(BaseModel):
    type: Literal["conversion_paths"] = "conversion_paths"
    limit: Optional[int] = Field(default=None, ge=0)


class IntentFlowQuery(BaseModel):
    type: Literal["intent_flow"] = "intent_flow"
    intentType: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=0)


class SessionJourneyQuery(BaseModel):
    type: Literal["session_journey"] = "session_journey"
    sessionId: str = Field(..., min_length=1)


class FunnelQuery(BaseModel):
    type: Literal["funnel"] = "funnel"
    steps: List[str] = Field(default_factory=list)


class SummaryQuery(BaseModel):
    type: Literal["summary"] = "summary"
    hours: Optional[float] = Field(
        default=None,
        gt=0,
        allow_inf_nan=False,
        description="Only sessions started in the last N hours",
    )


class UnrecognizedQuery(BaseModel):
    """Any query whose type is not in the catalogue; answered with no rows"""
    type: Optional[str] = None

    model_config = ConfigDict(extra="allow")


KnownQuery = Annotated[
    Union[
        FailingIntentsQuery,
        BreakingContentQuery,
        HighValuePathsQuery,
        DropOffPointsQuery,
        ConversionPathsQuery,
        IntentFlowQuery,
        SessionJourneyQuery,
        FunnelQuery,
        SummaryQuery,
    ],
    Field(discriminator="type"),
]

Query = Union[KnownQuery, UnrecognizedQuery]

QUERY_TYPES = (
    "failing_intents",
    "breaking_content",
    "high_value_paths",
    "drop_off_points",
    "conversion_paths",
    "intent_flow",
    "session_journey",
    "funnel",
    "summary",
)

query_adapter = TypeAdapter(KnownQuery)


def parse_query(raw: Union[BaseModel, Dict[str, Any]]) -> BaseModel:
    """
    Resolve a raw query object to its concrete variant

    Unknown or missing types map to UnrecognizedQuery instead of failing.

    Raises:
        pydantic.ValidationError: a known type with invalid fields
    """
    if isinstance(raw, BaseModel):
        return raw
    query_type = raw.get("type") if isinstance(raw, dict) else None
    if query_type not in QUERY_TYPES:
        data = dict(raw) if isinstance(raw, dict) else {}
        data["type"] = None if query_type is None else str(query_type)
        return UnrecognizedQuery(**data)
    return query_adapter.validate_python(raw)


# ============================================
# Result rows
# ============================================

class IntentFailure(BaseModel):
    """Row of get_failing_intents"""
    intent: str
    failureRate: float = Field(..., ge=0, le=1)
    sessions: int
    bounces: int
    conversions: int


class ContentBreak(BaseModel):
    """Row of get_breaking_content"""
    contentId: str
    breakRate: float = Field(..., ge=0, le=1)
    sessions: int
    breaks: int


class DropOffPoint(BaseModel):
    """Row of get_drop_off_points"""
    from_: str = Field(..., alias="from")
    to: str
    dropOffRate: float = Field(..., ge=0, le=1)
    sessions: int
    dropOffs: int

    model_config = ConfigDict(populate_by_name=True)


class JourneyPath(BaseModel):
    """Row of get_high_value_paths / get_conversion_paths"""
    path: List[str]
    outcome: str
    value: float
    count: int


class FlowLink(BaseModel):
    """Sankey link of get_intent_flow"""
    source: str
    target: str
    value: int


class FunnelStep(BaseModel):
    step: int
    contentId: str
    sessions: int
    dropOff: float
    conversionRate: float


class SessionJourney(BaseModel):
    sessionId: str
    sequence: int
    path: List[str]
    source: Optional[str] = None
    status: SessionStatus
    outcome: Optional[str] = None
    outcomeType: Optional[OutcomeType] = None
    value: float = 0.0
    startedAt: Optional[datetime] = None
    endedAt: Optional[datetime] = None


class SourceCount(BaseModel):
    """Sessions per traffic source"""
    source: str
    sessions: int
    conversions: int


class GraphSummary(BaseModel):
    """
    Dashboard header row. Session counts honour the time window;
    node and edge counts always describe the whole graph.
    """
    windowHours: Optional[float] = None
    totalSessions: int = 0
    openSessions: int = 0
    convertedSessions: int = 0
    bouncedSessions: int = 0
    conversionRate: float = 0.0
    bounceRate: float = 0.0
    totalValue: float = 0.0
    intents: int = 0
    content: int = 0
    outcomes: int = 0
    edges: int = 0
    topSources: List[SourceCount] = Field(default_factory=list)
    generation: int = 0


# ============================================
# QueryResult envelope
# ============================================

class QueryResult(BaseModel):
    """Envelope returned by every query method and by execute()"""
    results: List[Any] = Field(default_factory=list)
    duration: float = Field(default=0.0, description="Wall-clock time in ms")
    query: Dict[str, Any] = Field(default_factory=dict)
    executedAt: datetime = Field(default_factory=utc_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

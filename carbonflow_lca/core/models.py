"""Shared data models."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from .flows import EmissionFlow, EnergyFlow, Flow, MaterialFlow
from .nodes import Edge, ProcessNode
from .results import LCAResult

if TYPE_CHECKING:
    from carbonflow_lca.methodology.config import LCACalculationConfig


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class SettingsProfile:
    concurrency: int
    retry_attempts: int
    seed: int | None
    profile_name: str


@dataclass(slots=True, frozen=True)
class FunctionalUnit:
    value: float
    unit: str
    description: str = ""

    @property
    def is_complete(self) -> bool:
        return self.value is not None and self.value > 0 and bool((self.unit or "").strip())

    def __str__(self) -> str:
        return f"{self.value:g} {self.unit}".strip()


@dataclass(slots=True, frozen=True)
class ReferenceFlow:
    node_id: str
    value: float
    unit: str

    @property
    def is_complete(self) -> bool:
        return bool(self.node_id) and self.value is not None and bool((self.unit or "").strip())

    def __str__(self) -> str:
        return f"{self.value:g} {self.unit}".strip()


@dataclass(slots=True)
class CalculationContext:
    nodes: list[ProcessNode]
    edges: list[Edge]
    flows: Mapping[str, Flow]
    config: LCACalculationConfig
    functional_unit: FunctionalUnit
    reference_flow: ReferenceFlow

    def node(self, node_id: str) -> ProcessNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class SessionStatus(str, Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class CalculationStep:
    step_id: str
    name: str
    status: StepStatus = StepStatus.PENDING
    progress: float = 0.0
    start_time: datetime | None = None
    end_time: datetime | None = None
    error: str | None = None
    result: Any = None


@dataclass(slots=True)
class CalculationSession:
    session_id: str
    context: CalculationContext
    steps: list[CalculationStep]
    status: SessionStatus = SessionStatus.INITIALIZING
    start_time: datetime = field(default_factory=utcnow)
    end_time: datetime | None = None
    final_result: LCAResult | None = None
    error: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    future: Future | None = field(default=None, repr=False, compare=False)
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)

    def step(self, step_id: str) -> CalculationStep:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        raise KeyError(step_id)

    @property
    def is_finished(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.FAILED)

    @property
    def progress(self) -> float:
        if not self.steps:
            return 0.0
        return sum(step.progress for step in self.steps) / len(self.steps)


class MatchStatus(str, Enum):
    PERFECT_MATCH = "perfect_match"
    PARTIAL_MATCH = "partial_match"
    NO_MATCH = "no_match"
    MANUAL_OVERRIDE = "manual_override"


@dataclass(slots=True, frozen=True)
class FactorCandidate:
    factor_id: str
    confidence: float
    factors: Mapping[str, float]
    source: str = "similarity"


@dataclass(slots=True)
class FlowMatchResult:
    flow_id: str
    match_status: MatchStatus
    confidence: float
    matched_factors: dict[str, float] = field(default_factory=dict)
    substance: str | None = None
    alternative_matches: list[FactorCandidate] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Match confidence must be within [0, 1], got {self.confidence}")
        if self.confidence >= 1.0 and self.match_status is not MatchStatus.PERFECT_MATCH:
            raise ValueError(f"Confidence 1.0 is reserved for perfect matches, got {self.match_status.value}")
        if self.match_status is MatchStatus.NO_MATCH and self.confidence != 0.0:
            raise ValueError("A no_match result must carry confidence 0")
        if len(self.alternative_matches) > 3:
            raise ValueError("At most three alternatives may be listed")

    @property
    def is_matched(self) -> bool:
        return self.match_status is not MatchStatus.NO_MATCH

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["match_status"] = self.match_status.value
        payload["alternative_matches"] = [
            {**asdict(candidate), "factors": dict(candidate.factors)} for candidate in self.alternative_matches
        ]
        return payload


@dataclass(slots=True)
class NodeMatchSummary:
    node_id: str
    total_flows: int
    matched_flows: int
    results: list[FlowMatchResult]
    suggestions: list[str] = field(default_factory=list)


@dataclass(slots=True)
class NodeFlowSet:
    """Flows synthesized from a legacy flat node."""

    material_flows: list[MaterialFlow] = field(default_factory=list)
    energy_flows: list[EnergyFlow] = field(default_factory=list)
    emission_flows: list[EmissionFlow] = field(default_factory=list)

    def all_flows(self) -> list[Flow]:
        return [*self.material_flows, *self.energy_flows, *self.emission_flows]

"""Session-based orchestration of the eight LCA calculation steps."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TypedDict
from uuid import uuid4

import numpy as np

from carbonflow_lca.calculation.contribution import analyze_contributions
from carbonflow_lca.calculation.data_quality import assess_data_quality
from carbonflow_lca.calculation.finalization import build_result
from carbonflow_lca.calculation.impact import assess_impacts
from carbonflow_lca.calculation.inventory import build_inventory
from carbonflow_lca.calculation.sessions import CompletedOlderThan, EvictionPolicy, SessionStore
from carbonflow_lca.calculation.uncertainty import run_monte_carlo
from carbonflow_lca.calculation.validation import check_goal_scope, validate_context
from carbonflow_lca.core.config import Settings, get_settings
from carbonflow_lca.core.exceptions import CalculationCancelledError, LCAError
from carbonflow_lca.core.logging import bind_session, get_logger, unbind_session
from carbonflow_lca.core.models import (
    CalculationContext,
    CalculationSession,
    CalculationStep,
    SessionStatus,
    StepStatus,
    utcnow,
)
from carbonflow_lca.core.results import (
    ContributionAnalysis,
    DataQualityResult,
    ImpactResult,
    InventoryResult,
    LCAResult,
    UncertaintyResult,
)
from carbonflow_lca.flow_matching.service import FlowMatchingService

LOGGER = get_logger(__name__)

SOFTWARE_VERSION = "0.1.0"
CALCULATION_METHOD = "ISO 14044 compliance"

STEP_DEFINITIONS: tuple[tuple[str, str], ...] = (
    ("validation", "Data validation"),
    ("goal_scope", "Goal and scope definition"),
    ("inventory_analysis", "Life cycle inventory analysis"),
    ("impact_assessment", "Life cycle impact assessment"),
    ("contribution_analysis", "Contribution analysis"),
    ("uncertainty_analysis", "Uncertainty analysis"),
    ("data_quality", "Data quality assessment"),
    ("finalization", "Result finalization"),
)

RngFactory = Callable[[], np.random.Generator]


class CalculationState(TypedDict, total=False):
    warnings: list[str]
    inventory: InventoryResult
    impacts: dict[str, ImpactResult]
    contributions: ContributionAnalysis
    uncertainty: UncertaintyResult | None
    data_quality: DataQualityResult
    result: LCAResult


class LCACalculationEngine:
    """Run calculation sessions on a worker pool; steps within a session stay sequential."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        matching_service: FlowMatchingService | None = None,
        store: SessionStore | None = None,
        rng_factory: RngFactory | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        profile = self._settings.profile
        self._owns_matching = matching_service is None
        self._matching = matching_service or FlowMatchingService(self._settings)
        self._store = store or SessionStore()
        self._rng_factory = rng_factory or (lambda: np.random.default_rng(profile.seed))
        self._executor = ThreadPoolExecutor(
            max_workers=profile.concurrency,
            thread_name_prefix="lca-session",
        )
        LOGGER.debug("lca_engine.started", profile=profile.profile_name, concurrency=profile.concurrency)

    @property
    def matching_service(self) -> FlowMatchingService:
        return self._matching

    def start_calculation(self, context: CalculationContext) -> CalculationSession:
        """Register a new session and schedule it; returns immediately."""
        session = CalculationSession(
            session_id=f"session-{uuid4().hex}",
            context=context,
            steps=[CalculationStep(step_id=step_id, name=name) for step_id, name in STEP_DEFINITIONS],
            metadata={
                "calculation_method": CALCULATION_METHOD,
                "software_version": SOFTWARE_VERSION,
                "operator": "system",
                "config": context.config.name,
            },
        )
        self._store.add(session)
        LOGGER.info("lca_engine.session.created", session_id=session.session_id, config=context.config.name)
        session.future = self._executor.submit(self._execute, session)
        return session

    def run_calculation(self, context: CalculationContext, timeout: float | None = None) -> LCAResult:
        session = self.start_calculation(context)
        return self.wait_for_completion(session, timeout=timeout)

    def wait_for_completion(self, session: CalculationSession | str, timeout: float | None = None) -> LCAResult:
        """Block until the session finishes; re-raise the failing step's error."""
        resolved = self.get_session(session) if isinstance(session, str) else session
        if resolved.future is None:
            raise LCAError(f"Session {resolved.session_id} was never started")
        return resolved.future.result(timeout=timeout if timeout is not None else self._settings.wait_timeout)

    def get_session(self, session_id: str) -> CalculationSession:
        return self._store.require(session_id)

    def get_all_sessions(self) -> list[CalculationSession]:
        return self._store.values()

    def cancel_session(self, session_id: str) -> bool:
        """Signal cancellation; returns False when the session already finished."""
        session = self.get_session(session_id)
        if session.is_finished:
            return False
        session.cancel_event.set()
        LOGGER.info("lca_engine.session.cancel_requested", session_id=session_id)
        return True

    def cleanup_completed_sessions(
        self,
        older_than_hours: float | None = None,
        *,
        policy: EvictionPolicy | None = None,
    ) -> int:
        hours = older_than_hours if older_than_hours is not None else self._settings.session_ttl_hours
        evicted = self._store.evict(policy or CompletedOlderThan(hours))
        if evicted:
            LOGGER.info("lca_engine.sessions.evicted", count=len(evicted))
        return len(evicted)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        if self._owns_matching:
            self._matching.close()

    def __enter__(self) -> "LCACalculationEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _execute(self, session: CalculationSession) -> LCAResult:
        bind_session(session.session_id)
        session.status = SessionStatus.RUNNING
        state: CalculationState = {}
        try:
            self._run_step(session, "validation", lambda: self._validate(session, state))
            self._run_step(session, "goal_scope", lambda: check_goal_scope(session.context.config))
            self._run_step(session, "inventory_analysis", lambda: self._inventory(session, state))
            self._run_step(session, "impact_assessment", lambda: self._impacts(session, state))
            self._run_step(session, "contribution_analysis", lambda: self._contributions(session, state))
            self._run_step(session, "uncertainty_analysis", lambda: self._uncertainty(session, state))
            self._run_step(session, "data_quality", lambda: self._data_quality(session, state))
            result = self._run_step(session, "finalization", lambda: self._finalize(session, state))
        except Exception as exc:
            session.status = SessionStatus.FAILED
            session.error = str(exc)
            session.final_result = None
            session.end_time = utcnow()
            LOGGER.error("lca_engine.session.failed", error=str(exc), error_type=type(exc).__name__)
            raise
        finally:
            unbind_session()

        session.final_result = result
        session.status = SessionStatus.COMPLETED
        session.end_time = utcnow()
        LOGGER.info(
            "lca_engine.session.completed",
            duration_seconds=(session.end_time - session.start_time).total_seconds(),
        )
        return result

    def _run_step(self, session: CalculationSession, step_id: str, action: Callable[[], Any]) -> Any:
        step = session.step(step_id)
        self._checkpoint(session)
        step.status = StepStatus.RUNNING
        step.start_time = utcnow()
        LOGGER.info("lca_engine.step.start", step_id=step_id)
        try:
            value = action()
        except Exception as exc:
            step.status = StepStatus.ERROR
            step.error = str(exc)
            step.end_time = utcnow()
            LOGGER.error("lca_engine.step.failed", step_id=step_id, error=str(exc))
            raise
        step.result = value
        step.progress = 100.0
        step.status = StepStatus.COMPLETED
        step.end_time = utcnow()
        LOGGER.info("lca_engine.step.complete", step_id=step_id)
        return value

    def _checkpoint(self, session: CalculationSession) -> None:
        if session.cancel_event.is_set():
            raise CalculationCancelledError(f"Session {session.session_id} was cancelled")

    def _validate(self, session: CalculationSession, state: CalculationState) -> dict[str, list[str]]:
        report = validate_context(session.context)
        state["warnings"] = report["warnings"]
        return report

    def _inventory(self, session: CalculationSession, state: CalculationState) -> InventoryResult:
        inventory = build_inventory(
            session.context,
            synthesize=lambda node: self._matching.create_flows_from_node(node).all_flows(),
            resolve_substance=self._matching.resolve_substance,
        )
        state["inventory"] = inventory
        return inventory

    def _impacts(self, session: CalculationSession, state: CalculationState) -> dict[str, ImpactResult]:
        impacts = assess_impacts(state["inventory"], session.context.config.methodology)
        state["impacts"] = impacts
        return impacts

    def _contributions(self, session: CalculationSession, state: CalculationState) -> ContributionAnalysis:
        contributions = analyze_contributions(
            session.context.nodes,
            state["inventory"],
            session.context.config.allocation.allocation_factor,
        )
        state["contributions"] = contributions
        return contributions

    def _uncertainty(self, session: CalculationSession, state: CalculationState) -> UncertaintyResult | None:
        config = session.context.config
        if not config.uncertainty_enabled:
            LOGGER.info("lca_engine.uncertainty.skipped")
            state["uncertainty"] = None
            return None
        settings = config.uncertainty
        step = session.step("uncertainty_analysis")

        def _report(fraction: float) -> None:
            step.progress = fraction * 100.0

        uncertainty = run_monte_carlo(
            session.context.nodes,
            iterations=settings.iterations or self._settings.default_iterations,
            confidence_level=settings.confidence_level,
            allocation_factor=config.allocation.allocation_factor,
            sensitivity=settings.sensitivity_analysis,
            rng=self._rng_factory(),
            chunk_size=self._settings.monte_carlo_chunk_size,
            checkpoint=lambda: self._checkpoint(session),
            on_progress=_report,
        )
        state["uncertainty"] = uncertainty
        return uncertainty

    def _data_quality(self, session: CalculationSession, state: CalculationState) -> DataQualityResult:
        quality = assess_data_quality(session.context.nodes, session.context.flows)
        state["data_quality"] = quality
        return quality

    def _finalize(self, session: CalculationSession, state: CalculationState) -> LCAResult:
        result = build_result(
            session.context,
            inventory=state["inventory"],
            impacts=state["impacts"],
            contributions=state["contributions"],
            data_quality=state["data_quality"],
            uncertainty=state.get("uncertainty"),
        )
        state["result"] = result
        return result

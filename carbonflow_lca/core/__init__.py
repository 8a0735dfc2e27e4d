"""Shared core models, configuration and utilities for the LCA calculation core."""

from .config import Settings, get_settings
from .exceptions import (
    CalculationCancelledError,
    ComputationError,
    ConfigurationError,
    FactorLookupError,
    LCAError,
    SessionNotFoundError,
    ValidationError,
)
from .flows import (
    DataQualityIndicators,
    EmissionFlow,
    EnergyFlow,
    Flow,
    FlowCategory,
    FlowDirection,
    InformationFlow,
    MaterialFlow,
    ResourceFlow,
    ServiceFlow,
    WasteFlow,
    flow_from_dict,
    parse_flow_registry,
)
from .logging import configure_logging
from .models import (
    CalculationContext,
    CalculationSession,
    CalculationStep,
    FactorCandidate,
    FlowMatchResult,
    FunctionalUnit,
    MatchStatus,
    NodeFlowSet,
    NodeMatchSummary,
    ReferenceFlow,
    SessionStatus,
    SettingsProfile,
    StepStatus,
)
from .nodes import Edge, NodeData, NodeType, ProcessNode, edge_from_dict, node_from_dict, parse_edges, parse_nodes
from .results import LCAComparison, LCAResult

__all__ = [
    "Settings",
    "SettingsProfile",
    "get_settings",
    "configure_logging",
    "LCAError",
    "ValidationError",
    "ComputationError",
    "ConfigurationError",
    "SessionNotFoundError",
    "CalculationCancelledError",
    "FactorLookupError",
    "Flow",
    "FlowCategory",
    "FlowDirection",
    "DataQualityIndicators",
    "MaterialFlow",
    "EnergyFlow",
    "EmissionFlow",
    "WasteFlow",
    "ServiceFlow",
    "ResourceFlow",
    "InformationFlow",
    "flow_from_dict",
    "parse_flow_registry",
    "NodeData",
    "NodeType",
    "ProcessNode",
    "Edge",
    "node_from_dict",
    "edge_from_dict",
    "parse_nodes",
    "parse_edges",
    "FunctionalUnit",
    "ReferenceFlow",
    "CalculationContext",
    "CalculationStep",
    "CalculationSession",
    "StepStatus",
    "SessionStatus",
    "MatchStatus",
    "FactorCandidate",
    "FlowMatchResult",
    "NodeMatchSummary",
    "NodeFlowSet",
    "LCAResult",
    "LCAComparison",
]

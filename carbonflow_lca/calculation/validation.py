"""Structural checks run before any inventory work."""

from __future__ import annotations

from typing import Iterable, Mapping

from carbonflow_lca.core.exceptions import ValidationError
from carbonflow_lca.core.flows import Flow
from carbonflow_lca.core.logging import get_logger
from carbonflow_lca.core.models import CalculationContext
from carbonflow_lca.core.nodes import ProcessNode, isolated_node_ids
from carbonflow_lca.methodology.config import LCACalculationConfig

LOGGER = get_logger(__name__)

MAIN_PRODUCT_ERROR = "System must have exactly one main product"


def main_product_nodes(nodes: Iterable[ProcessNode]) -> list[ProcessNode]:
    return [node for node in nodes if node.data.is_main]


def dangling_references(nodes: Iterable[ProcessNode], flows: Mapping[str, Flow]) -> list[tuple[str, str]]:
    """Return ``(node_id, flow_id)`` pairs whose flow is missing from the registry."""
    missing: list[tuple[str, str]] = []
    for node in nodes:
        if not node.data.has_flow_references:
            continue
        for _, reference in node.data.lca_flows.iter_references():
            if reference.flow_id not in flows:
                missing.append((node.id, reference.flow_id))
    return missing


def validate_context(context: CalculationContext) -> dict[str, list[str]]:
    """Raise :class:`ValidationError` on structural errors and return non-fatal warnings."""
    errors: list[str] = []
    main_nodes = main_product_nodes(context.nodes)
    if len(main_nodes) != 1:
        errors.append(f"{MAIN_PRODUCT_ERROR} (found {len(main_nodes)})")
    if not context.functional_unit.is_complete:
        errors.append("Functional unit incomplete: value must be positive and unit non-empty")
    if not context.reference_flow.is_complete:
        errors.append("Reference flow incomplete: node id, value and unit are required")
    if errors:
        raise ValidationError(errors, context="Product system")

    warnings: list[str] = []
    isolated = isolated_node_ids(context.nodes, context.edges)
    if isolated:
        LOGGER.warning("lca_validation.isolated_nodes", node_ids=isolated)
        warnings.append(f"{len(isolated)} node(s) are not connected to the system: {', '.join(isolated)}")
    return {"errors": [], "warnings": warnings}


def check_goal_scope(config: LCACalculationConfig) -> None:
    if not config.system_boundary.included_stages:
        raise ValidationError(["System boundary must include at least one lifecycle stage"], context="Goal and scope")

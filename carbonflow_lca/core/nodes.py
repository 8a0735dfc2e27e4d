"""Process nodes, flow references and graph helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Iterable, Iterator, Mapping

from .flows import FlowCategory, FlowDirection
from .json_utils import as_mapping, coerce_bool, coerce_float, coerce_str, first_present


class NodeType(str, Enum):
    PRODUCT = "product"
    MANUFACTURING = "manufacturing"
    DISTRIBUTION = "distribution"
    USAGE = "usage"
    DISPOSAL = "disposal"
    FINAL_PRODUCT = "finalProduct"


STAGE_NODE_TYPES: dict[str, NodeType] = {
    "原材料获取阶段": NodeType.PRODUCT,
    "原材料获取": NodeType.PRODUCT,
    "raw_material_acquisition": NodeType.PRODUCT,
    "raw_materials": NodeType.PRODUCT,
    "生产制造阶段": NodeType.MANUFACTURING,
    "生产制造": NodeType.MANUFACTURING,
    "制造阶段": NodeType.MANUFACTURING,
    "生产阶段": NodeType.MANUFACTURING,
    "manufacturing": NodeType.MANUFACTURING,
    "production": NodeType.MANUFACTURING,
    "分销运输阶段": NodeType.DISTRIBUTION,
    "运输阶段": NodeType.DISTRIBUTION,
    "distribution": NodeType.DISTRIBUTION,
    "transport": NodeType.DISTRIBUTION,
    "使用阶段": NodeType.USAGE,
    "产品使用阶段": NodeType.USAGE,
    "use": NodeType.USAGE,
    "usage": NodeType.USAGE,
    "寿命终止阶段": NodeType.DISPOSAL,
    "生命周期结束阶段": NodeType.DISPOSAL,
    "end_of_life": NodeType.DISPOSAL,
    "disposal": NodeType.DISPOSAL,
    "finalProduct": NodeType.FINAL_PRODUCT,
    "最终产品阶段": NodeType.FINAL_PRODUCT,
    "final_product": NodeType.FINAL_PRODUCT,
}

VERIFIED_STATUSES = {"verified", "已验证"}


@dataclass(slots=True, frozen=True)
class FlowReference:
    """A node's use of a registry flow, with optional node-local overrides."""

    flow_id: str
    direction: FlowDirection | None = None
    quantity: float | None = None
    unit: str | None = None
    local_quantity: float | None = None
    local_unit: str | None = None
    local_emission_factor: float | None = None

    def resolved_quantity(self, base: float) -> float:
        if self.local_quantity is not None:
            return self.local_quantity
        if self.quantity is not None:
            return self.quantity
        return base

    def resolved_unit(self, base: str) -> str:
        return self.local_unit or self.unit or base


@dataclass(slots=True, frozen=True)
class NodeFlows:
    material: tuple[FlowReference, ...] = ()
    energy: tuple[FlowReference, ...] = ()
    emission: tuple[FlowReference, ...] = ()
    waste: tuple[FlowReference, ...] = ()
    service: tuple[FlowReference, ...] = ()

    BUCKETS: ClassVar[tuple[tuple[str, str, FlowCategory], ...]] = (
        ("material", "materialFlows", FlowCategory.MATERIAL),
        ("energy", "energyFlows", FlowCategory.ENERGY),
        ("emission", "emissionFlows", FlowCategory.EMISSION),
        ("waste", "wasteFlows", FlowCategory.WASTE),
        ("service", "serviceFlows", FlowCategory.SERVICE),
    )

    def iter_references(self) -> Iterator[tuple[FlowCategory, FlowReference]]:
        for attribute, _, category in self.BUCKETS:
            for reference in getattr(self, attribute):
                yield category, reference

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, attribute) for attribute, _, _ in self.BUCKETS)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "NodeFlows":
        buckets: dict[str, tuple[FlowReference, ...]] = {}
        for attribute, key, _ in cls.BUCKETS:
            raw_items = payload.get(key) or payload.get(attribute) or []
            buckets[attribute] = tuple(_parse_reference(item) for item in raw_items if isinstance(item, Mapping))
        return cls(**buckets)


@dataclass(slots=True)
class NodeData:
    """Fields shared by every lifecycle-stage variant."""

    label: str = ""
    lifecycle_stage: str = ""
    emission_type: str | None = None
    carbon_factor: float | None = None
    carbon_footprint: float | None = None
    quantity: float | None = None
    activity_unit: str | None = None
    activity_data_source: str | None = None
    verification_status: str | None = None
    evidence_verification_status: str | None = None
    is_main_product: bool = False
    product_category: str | None = None
    lca_flows: NodeFlows | None = None
    allocation_ratio: float = 1.0

    node_type: ClassVar[NodeType | None] = None

    @property
    def is_main(self) -> bool:
        return self.is_main_product or (self.product_category or "").lower() == "main"

    @property
    def is_verified(self) -> bool:
        statuses = {(self.verification_status or "").strip().lower(), (self.evidence_verification_status or "").strip()}
        return bool(statuses & VERIFIED_STATUSES)

    @property
    def footprint(self) -> float:
        """Carbon footprint declared on the node, or ``quantity x carbon_factor`` when absent."""
        if self.carbon_footprint:
            return self.carbon_footprint
        if self.quantity is not None and self.carbon_factor is not None:
            return self.quantity * self.carbon_factor
        return self.carbon_footprint or 0.0

    def allocated_footprint(self, allocation_factor: float = 1.0) -> float:
        """Footprint scaled by the node's allocation ratio and the study-wide allocation factor."""
        return self.footprint * self.allocation_ratio * allocation_factor

    @property
    def has_flow_references(self) -> bool:
        return self.lca_flows is not None and not self.lca_flows.is_empty


@dataclass(slots=True)
class ProductNodeData(NodeData):
    material: str | None = None
    weight_per_unit: float | None = None
    recycled_content_percentage: float | None = None
    supplier_name: str | None = None
    sourcing_region: str | None = None

    node_type: ClassVar[NodeType | None] = NodeType.PRODUCT


@dataclass(slots=True)
class ManufacturingNodeData(NodeData):
    energy_type: str | None = None
    energy_consumption: float | None = None
    production_method: str | None = None
    waste_disposal_method: str | None = None

    node_type: ClassVar[NodeType | None] = NodeType.MANUFACTURING


@dataclass(slots=True)
class DistributionNodeData(NodeData):
    transportation_mode: str | None = None
    transportation_distance: float | None = None
    vehicle_type: str | None = None
    fuel_type: str | None = None

    node_type: ClassVar[NodeType | None] = NodeType.DISTRIBUTION


@dataclass(slots=True)
class UsageNodeData(NodeData):
    lifespan: float | None = None
    energy_consumption_per_use: float | None = None
    usage_frequency: float | None = None

    node_type: ClassVar[NodeType | None] = NodeType.USAGE


@dataclass(slots=True)
class DisposalNodeData(NodeData):
    disposal_method: str | None = None
    recycling_rate: float | None = None
    landfill_percentage: float | None = None

    node_type: ClassVar[NodeType | None] = NodeType.DISPOSAL


@dataclass(slots=True)
class FinalProductNodeData(NodeData):
    final_product_name: str | None = None
    certification_status: str | None = None
    total_carbon_footprint: float | None = None

    node_type: ClassVar[NodeType | None] = NodeType.FINAL_PRODUCT


NODE_DATA_TYPES: dict[NodeType, type[NodeData]] = {
    NodeType.PRODUCT: ProductNodeData,
    NodeType.MANUFACTURING: ManufacturingNodeData,
    NodeType.DISTRIBUTION: DistributionNodeData,
    NodeType.USAGE: UsageNodeData,
    NodeType.DISPOSAL: DisposalNodeData,
    NodeType.FINAL_PRODUCT: FinalProductNodeData,
}

# Variant-specific payload keys (camelCase in the editor) per node type.
_VARIANT_FIELDS: dict[NodeType, dict[str, tuple[str, str]]] = {
    NodeType.PRODUCT: {
        "material": ("material", "str"),
        "weight_per_unit": ("weight_per_unit", "float"),
        "recycled_content_percentage": ("recycledContentPercentage", "float"),
        "supplier_name": ("SupplierName", "str"),
        "sourcing_region": ("sourcingRegion", "str"),
    },
    NodeType.MANUFACTURING: {
        "energy_type": ("energyType", "str"),
        "energy_consumption": ("energyConsumption", "float"),
        "production_method": ("productionMethod", "str"),
        "waste_disposal_method": ("WasteDisposalMethod", "str"),
    },
    NodeType.DISTRIBUTION: {
        "transportation_mode": ("transportationMode", "str"),
        "transportation_distance": ("transportationDistance", "float"),
        "vehicle_type": ("vehicleType", "str"),
        "fuel_type": ("fuelType", "str"),
    },
    NodeType.USAGE: {
        "lifespan": ("lifespan", "float"),
        "energy_consumption_per_use": ("energyConsumptionPerUse", "float"),
        "usage_frequency": ("usageFrequency", "float"),
    },
    NodeType.DISPOSAL: {
        "disposal_method": ("disposalMethod", "str"),
        "recycling_rate": ("recyclingRate", "float"),
        "landfill_percentage": ("landfillPercentage", "float"),
    },
    NodeType.FINAL_PRODUCT: {
        "final_product_name": ("finalProductName", "str"),
        "certification_status": ("certificationStatus", "str"),
        "total_carbon_footprint": ("totalCarbonFootprint", "float"),
    },
}


@dataclass(slots=True)
class ProcessNode:
    id: str
    data: NodeData = field(default_factory=NodeData)

    @property
    def node_type(self) -> NodeType | None:
        return self.data.node_type

    @property
    def label(self) -> str:
        return self.data.label or self.id


@dataclass(slots=True, frozen=True)
class Edge:
    source: str
    target: str
    id: str | None = None


def node_type_for_stage(stage: str | None) -> NodeType | None:
    if not stage:
        return None
    text = stage.strip()
    if text in STAGE_NODE_TYPES:
        return STAGE_NODE_TYPES[text]
    return STAGE_NODE_TYPES.get(text.lower().replace(" ", "_").replace("-", "_"))


def node_data_from_dict(payload: Mapping[str, Any], node_type: str | None = None) -> NodeData:
    """Build the lifecycle-stage variant matching ``node_type`` or the payload's stage."""
    stage = coerce_str(payload.get("lifecycleStage")) or ""
    resolved_type = _coerce_node_type(node_type or payload.get("nodeType")) or node_type_for_stage(stage)
    data_cls = NODE_DATA_TYPES.get(resolved_type, NodeData) if resolved_type else NodeData

    raw_flows = payload.get("lcaFlows")
    lca_flows = raw_flows if isinstance(raw_flows, NodeFlows) else None
    if lca_flows is None and isinstance(raw_flows, Mapping):
        lca_flows = NodeFlows.from_dict(raw_flows)

    allocation = as_mapping(payload.get("allocationInfo"))
    allocation_ratio = coerce_float(first_present(allocation, "ratio"))
    if allocation_ratio is None:
        allocation_ratio = coerce_float(payload.get("allocationRatio"))

    kwargs: dict[str, Any] = {
        "label": coerce_str(first_present(payload, "label", "name")) or "",
        "lifecycle_stage": stage,
        "emission_type": coerce_str(payload.get("emissionType")),
        "carbon_factor": coerce_float(payload.get("carbonFactor")),
        "carbon_footprint": coerce_float(payload.get("carbonFootprint")),
        "quantity": coerce_float(payload.get("quantity")),
        "activity_unit": coerce_str(payload.get("activityUnit")),
        "activity_data_source": coerce_str(payload.get("activitydataSource") or payload.get("activityDataSource")),
        "verification_status": coerce_str(payload.get("verificationStatus")),
        "evidence_verification_status": coerce_str(payload.get("evidenceVerificationStatus")),
        "is_main_product": coerce_bool(payload.get("isMainProduct")),
        "product_category": coerce_str(payload.get("productCategory")),
        "lca_flows": lca_flows,
        "allocation_ratio": allocation_ratio if allocation_ratio is not None else 1.0,
    }
    for attribute, (key, kind) in _VARIANT_FIELDS.get(data_cls.node_type, {}).items():
        raw = payload.get(key)
        kwargs[attribute] = coerce_float(raw) if kind == "float" else coerce_str(raw)
    return data_cls(**kwargs)


def node_from_dict(payload: Mapping[str, Any]) -> ProcessNode:
    node_id = coerce_str(payload.get("id"))
    if not node_id:
        raise ValueError("Node record is missing an id")
    data = payload.get("data")
    if isinstance(data, NodeData):
        return ProcessNode(id=node_id, data=data)
    return ProcessNode(id=node_id, data=node_data_from_dict(as_mapping(data), coerce_str(payload.get("type"))))


def edge_from_dict(payload: Mapping[str, Any]) -> Edge:
    source = coerce_str(payload.get("source"))
    target = coerce_str(payload.get("target"))
    if not source or not target:
        raise ValueError("Edge record requires both source and target")
    return Edge(source=source, target=target, id=coerce_str(payload.get("id")))


def parse_nodes(items: Iterable[ProcessNode | Mapping[str, Any]] | None) -> list[ProcessNode]:
    return [item if isinstance(item, ProcessNode) else node_from_dict(item) for item in items or ()]


def parse_edges(items: Iterable[Edge | Mapping[str, Any]] | None) -> list[Edge]:
    return [item if isinstance(item, Edge) else edge_from_dict(item) for item in items or ()]


def isolated_node_ids(nodes: Iterable[ProcessNode], edges: Iterable[Edge]) -> list[str]:
    """Return ids of nodes without any edge, when the graph has more than one node."""
    node_list = list(nodes)
    if len(node_list) < 2:
        return []
    connected: set[str] = set()
    for edge in edges:
        connected.add(edge.source)
        connected.add(edge.target)
    return [node.id for node in node_list if node.id not in connected]


def find_cycles(nodes: Iterable[ProcessNode], edges: Iterable[Edge]) -> list[list[str]]:
    """Return one node path per back edge found by a depth-first walk."""
    adjacency: dict[str, list[str]] = {node.id: [] for node in nodes}
    for edge in edges:
        if edge.source in adjacency and edge.target in adjacency:
            adjacency[edge.source].append(edge.target)

    cycles: list[list[str]] = []
    state: dict[str, int] = {}
    path: list[str] = []

    def visit(node_id: str) -> None:
        state[node_id] = 1
        path.append(node_id)
        for target in adjacency[node_id]:
            if state.get(target) == 1:
                cycles.append(path[path.index(target) :] + [target])
            elif target not in state:
                visit(target)
        path.pop()
        state[node_id] = 2

    for node_id in adjacency:
        if node_id not in state:
            visit(node_id)
    return cycles


def _coerce_node_type(value: Any) -> NodeType | None:
    if isinstance(value, NodeType):
        return value
    text = coerce_str(value)
    if not text:
        return None
    try:
        return NodeType(text)
    except ValueError:
        return None


def _parse_reference(payload: Mapping[str, Any]) -> FlowReference:
    flow_id = coerce_str(payload.get("flowId"))
    if not flow_id:
        raise ValueError("Flow reference is missing a flowId")
    overrides = as_mapping(payload.get("localOverrides"))
    direction = coerce_str(payload.get("direction"))
    return FlowReference(
        flow_id=flow_id,
        direction=FlowDirection(direction.lower()) if direction else None,
        quantity=coerce_float(payload.get("quantity")),
        unit=coerce_str(payload.get("unit")),
        local_quantity=coerce_float(overrides.get("quantity")),
        local_unit=coerce_str(overrides.get("unit")),
        local_emission_factor=coerce_float(first_present(overrides, "emissionFactor", "carbonFactor")),
    )

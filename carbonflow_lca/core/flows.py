"""Typed flow records crossing process boundaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Iterable, Mapping

from .json_utils import as_mapping, coerce_float, coerce_str, first_present


class FlowCategory(str, Enum):
    MATERIAL = "material"
    ENERGY = "energy"
    RESOURCE = "resource"
    EMISSION = "emission"
    WASTE = "waste"
    SERVICE = "service"
    INFORMATION = "information"


class FlowDirection(str, Enum):
    INPUT = "input"
    OUTPUT = "output"


DATA_QUALITY_DIMENSIONS = (
    "reliability",
    "completeness",
    "temporal_correlation",
    "geographical_correlation",
    "technology_correlation",
)


@dataclass(slots=True, frozen=True)
class DataQualityIndicators:
    """Pedigree-style sub-scores, each on the 1 (best) to 5 (worst) scale."""

    reliability: int = 3
    completeness: int = 3
    temporal_correlation: int = 3
    geographical_correlation: int = 3
    technology_correlation: int = 3

    def __post_init__(self) -> None:
        for name in DATA_QUALITY_DIMENSIONS:
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= 5:
                raise ValueError(f"Data quality '{name}' must be an integer in 1..5, got {value!r}")

    @property
    def overall(self) -> float:
        return sum(getattr(self, name) for name in DATA_QUALITY_DIMENSIONS) / len(DATA_QUALITY_DIMENSIONS)


@dataclass(slots=True)
class Flow:
    id: str
    name: str
    quantity: float = 0.0
    unit: str = ""
    direction: FlowDirection = FlowDirection.INPUT
    description: str | None = None
    data_quality: DataQualityIndicators | None = None

    category: ClassVar[FlowCategory]

    @property
    def matching_name(self) -> str:
        """Name used when resolving this flow to characterization factors."""
        return self.name


@dataclass(slots=True)
class MaterialFlow(Flow):
    material_type: str = "raw_material"
    substance: str | None = None
    cas_number: str | None = None
    physical_state: str = "solid"
    renewability: str = "non_renewable"
    recyclability: float | None = None

    category: ClassVar[FlowCategory] = FlowCategory.MATERIAL

    @property
    def matching_name(self) -> str:
        return self.substance or self.name


@dataclass(slots=True)
class EnergyFlow(Flow):
    energy_type: str = "electricity"
    energy_content: float | None = None
    efficiency: float | None = None
    provider: str | None = None
    grid: str | None = None
    renewable_percentage: float = 0.0
    location: str | None = None
    carbon_intensity: float | None = None

    category: ClassVar[FlowCategory] = FlowCategory.ENERGY

    @property
    def matching_name(self) -> str:
        if self.grid and self.energy_type == "electricity":
            return f"electricity_{self.grid}"
        return self.name


@dataclass(slots=True)
class ResourceFlow(Flow):
    resource_type: str = "mineral"
    extraction_location: str | None = None
    renewability: str = "non_renewable"

    category: ClassVar[FlowCategory] = FlowCategory.RESOURCE


@dataclass(slots=True)
class EmissionFlow(Flow):
    substance: str = "CO2"
    compartment: str = "air"
    sub_compartment: str | None = None
    characterization_overrides: Mapping[str, float] = field(default_factory=dict)
    process_stage: str | None = None
    technology: str | None = None

    category: ClassVar[FlowCategory] = FlowCategory.EMISSION

    @property
    def matching_name(self) -> str:
        return self.substance or self.name


@dataclass(slots=True)
class WasteFlow(Flow):
    waste_type: str = "non_hazardous"
    treatment_method: str = "landfill"
    recycling_content: float = 0.0
    hazard_class: str | None = None

    category: ClassVar[FlowCategory] = FlowCategory.WASTE


@dataclass(slots=True)
class ServiceFlow(Flow):
    service_type: str = "transport"
    provider: str | None = None
    transport_mode: str | None = None
    distance: float | None = None

    category: ClassVar[FlowCategory] = FlowCategory.SERVICE


@dataclass(slots=True)
class InformationFlow(Flow):
    information_type: str = "data"

    category: ClassVar[FlowCategory] = FlowCategory.INFORMATION


# Legacy emission field names carrying explicit characterization factors.
EMISSION_OVERRIDE_KEYS = {
    "globalWarmingPotential": "global_warming_potential",
    "ozoneDepletionPotential": "ozone_depletion_potential",
    "acidificationPotential": "acidification_potential",
    "eutrophicationPotential": "eutrophication_potential",
}


def flow_from_dict(payload: Mapping[str, Any]) -> Flow:
    """Build a typed flow from a camelCase registry record."""
    raw_category = coerce_str(payload.get("category")) or "material"
    try:
        category = FlowCategory(raw_category.lower())
    except ValueError as exc:
        raise ValueError(f"Unknown flow category: {raw_category}") from exc

    flow_id = coerce_str(payload.get("id"))
    if not flow_id:
        raise ValueError("Flow record is missing an id")
    default_direction = FlowDirection.OUTPUT if category in (FlowCategory.EMISSION, FlowCategory.WASTE) else FlowDirection.INPUT
    direction_text = coerce_str(payload.get("direction"))
    base: dict[str, Any] = {
        "id": flow_id,
        "name": coerce_str(payload.get("name")) or flow_id,
        "quantity": coerce_float(payload.get("quantity")) or 0.0,
        "unit": coerce_str(payload.get("unit")) or "",
        "direction": FlowDirection(direction_text.lower()) if direction_text else default_direction,
        "description": coerce_str(payload.get("description")),
        "data_quality": _parse_data_quality(payload.get("dataQuality")),
    }

    if category is FlowCategory.MATERIAL:
        return MaterialFlow(
            **base,
            material_type=coerce_str(payload.get("materialType")) or "raw_material",
            substance=coerce_str(payload.get("substance")),
            cas_number=coerce_str(payload.get("casNumber")),
            physical_state=coerce_str(payload.get("physicalState")) or "solid",
            renewability=coerce_str(payload.get("renewability")) or "non_renewable",
            recyclability=coerce_float(payload.get("recyclability")),
        )
    if category is FlowCategory.ENERGY:
        source = as_mapping(payload.get("source"))
        return EnergyFlow(
            **base,
            energy_type=coerce_str(payload.get("energyType")) or "electricity",
            energy_content=coerce_float(payload.get("energyContent")),
            efficiency=coerce_float(payload.get("efficiency")),
            provider=coerce_str(source.get("provider")),
            grid=coerce_str(source.get("grid")),
            renewable_percentage=coerce_float(source.get("renewablePercentage")) or 0.0,
            location=coerce_str(source.get("location")),
            carbon_intensity=coerce_float(payload.get("carbonIntensity")),
        )
    if category is FlowCategory.RESOURCE:
        return ResourceFlow(
            **base,
            resource_type=coerce_str(payload.get("resourceType")) or "mineral",
            extraction_location=coerce_str(payload.get("extractionLocation")),
            renewability=coerce_str(payload.get("renewability")) or "non_renewable",
        )
    if category is FlowCategory.EMISSION:
        emission_source = as_mapping(payload.get("emissionSource"))
        overrides: dict[str, float] = {}
        for key, category_name in EMISSION_OVERRIDE_KEYS.items():
            value = coerce_float(payload.get(key))
            if value is not None:
                overrides[category_name] = value
        return EmissionFlow(
            **base,
            substance=coerce_str(payload.get("substance")) or base["name"],
            compartment=coerce_str(payload.get("compartment")) or "air",
            sub_compartment=coerce_str(payload.get("subCompartment")),
            characterization_overrides=overrides,
            process_stage=coerce_str(emission_source.get("processStage")),
            technology=coerce_str(emission_source.get("technology")),
        )
    if category is FlowCategory.WASTE:
        treatment = as_mapping(payload.get("treatment"))
        return WasteFlow(
            **base,
            waste_type=coerce_str(payload.get("wasteType")) or "non_hazardous",
            treatment_method=coerce_str(first_present(treatment, "method")) or "landfill",
            recycling_content=coerce_float(payload.get("recyclingContent")) or 0.0,
            hazard_class=coerce_str(payload.get("hazardClass")),
        )
    if category is FlowCategory.SERVICE:
        return ServiceFlow(
            **base,
            service_type=coerce_str(payload.get("serviceType")) or "transport",
            provider=coerce_str(payload.get("provider")),
            transport_mode=coerce_str(payload.get("transportMode")),
            distance=coerce_float(payload.get("distance")),
        )
    return InformationFlow(**base, information_type=coerce_str(payload.get("informationType")) or "data")


def parse_flow_registry(flows: Mapping[str, Any] | Iterable[Any] | None) -> dict[str, Flow]:
    """Return a ``flow_id -> Flow`` registry from typed flows or raw records."""
    if not flows:
        return {}
    items = flows.values() if isinstance(flows, Mapping) else flows
    registry: dict[str, Flow] = {}
    for item in items:
        flow = item if isinstance(item, Flow) else flow_from_dict(item)
        registry[flow.id] = flow
    return registry


def _parse_data_quality(raw: Any) -> DataQualityIndicators | None:
    if isinstance(raw, DataQualityIndicators):
        return raw
    payload = as_mapping(raw)
    if not payload:
        return None
    values: dict[str, int] = {}
    for name, key in (
        ("reliability", "reliability"),
        ("completeness", "completeness"),
        ("temporal_correlation", "temporalCorrelation"),
        ("geographical_correlation", "geographicalCorrelation"),
        ("technology_correlation", "technologicalCorrelation"),
    ):
        number = coerce_float(first_present(payload, key, name))
        if number is not None:
            values[name] = int(round(number))
    return DataQualityIndicators(**values)

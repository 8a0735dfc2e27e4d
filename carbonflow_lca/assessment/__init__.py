"""Product-level assessments, comparisons and reports."""

from .recommendations import ImprovementAction
from .service import (
    BatchCalculationResult,
    CarbonFootprintReport,
    DataQualityReport,
    EnergyHotspot,
    HotspotAnalysis,
    InputValidationResult,
    LCAService,
    MaterialHotspot,
    ProcessHotspot,
    ProductSystem,
)

__all__ = [
    "BatchCalculationResult",
    "CarbonFootprintReport",
    "DataQualityReport",
    "EnergyHotspot",
    "HotspotAnalysis",
    "ImprovementAction",
    "InputValidationResult",
    "LCAService",
    "MaterialHotspot",
    "ProcessHotspot",
    "ProductSystem",
]

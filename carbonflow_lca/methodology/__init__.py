"""Calculation configuration presets and validation."""

from .config import (
    AllocationSettings,
    ConfigValidationResult,
    DataQualityRequirements,
    LCACalculationConfig,
    Methodology,
    SystemBoundary,
    UncertaintySettings,
)
from .factory import LCAConfigFactory, deep_merge

__all__ = [
    "AllocationSettings",
    "ConfigValidationResult",
    "DataQualityRequirements",
    "LCACalculationConfig",
    "LCAConfigFactory",
    "Methodology",
    "SystemBoundary",
    "UncertaintySettings",
    "deep_merge",
]

"""
Carbonflow LCA calculation core.

The package exposes modular building blocks for:
- matching free-text flows to characterization factors,
- building calculation configurations from presets,
- running ISO 14044 style calculation sessions,
- product-level assessments, comparisons and reports.
"""

from .assessment import LCAService, ProductSystem
from .calculation import LCACalculationEngine
from .core.config import Settings, get_settings
from .flow_matching import FlowMatchingService
from .methodology import LCAConfigFactory

__all__ = [
    "FlowMatchingService",
    "LCACalculationEngine",
    "LCAConfigFactory",
    "LCAService",
    "ProductSystem",
    "Settings",
    "get_settings",
]

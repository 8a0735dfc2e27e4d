"""Characterization factor tables, aliases and remote lookup."""

from .naming import SubstanceAliases, default_aliases, normalize_substance_name
from .remote import RemoteFactorClient, RemoteFactorMatch
from .table import (
    ACIDIFICATION,
    CATEGORY_METADATA,
    ECOTOXICITY,
    EUTROPHICATION,
    GWP,
    HUMAN_TOXICITY,
    OZONE_DEPLETION,
    PHOTOCHEMICAL_OXIDATION,
    CharacterizationFactorTable,
    category_info,
    default_factor_table,
)

__all__ = [
    "ACIDIFICATION",
    "CATEGORY_METADATA",
    "ECOTOXICITY",
    "EUTROPHICATION",
    "GWP",
    "HUMAN_TOXICITY",
    "OZONE_DEPLETION",
    "PHOTOCHEMICAL_OXIDATION",
    "CharacterizationFactorTable",
    "RemoteFactorClient",
    "RemoteFactorMatch",
    "SubstanceAliases",
    "category_info",
    "default_aliases",
    "default_factor_table",
    "normalize_substance_name",
]

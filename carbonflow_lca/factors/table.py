"""Read-only characterization factor tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Mapping

from .naming import SubstanceAliases, default_aliases, normalize_substance_name

GWP = "global_warming_potential"
ACIDIFICATION = "acidification_potential"
EUTROPHICATION = "eutrophication_potential"
OZONE_DEPLETION = "ozone_depletion_potential"
PHOTOCHEMICAL_OXIDATION = "photochemical_oxidation_potential"
ABIOTIC_DEPLETION = "abiotic_depletion_potential"
HUMAN_TOXICITY = "human_toxicity_potential"
ECOTOXICITY = "ecotoxicity_potential"
LAND_USE = "land_use"
WATER_USE = "water_use"


@dataclass(slots=True, frozen=True)
class ImpactCategoryInfo:
    unit: str
    method: str


CATEGORY_METADATA: Mapping[str, ImpactCategoryInfo] = MappingProxyType(
    {
        GWP: ImpactCategoryInfo("kg CO2-eq", "IPCC GWP 100"),
        ACIDIFICATION: ImpactCategoryInfo("kg SO2-eq", "CML 2001"),
        EUTROPHICATION: ImpactCategoryInfo("kg PO4-eq", "CML 2001"),
        OZONE_DEPLETION: ImpactCategoryInfo("kg CFC-11-eq", "WMO 1999"),
        PHOTOCHEMICAL_OXIDATION: ImpactCategoryInfo("kg NMVOC-eq", "ReCiPe 2016"),
        ABIOTIC_DEPLETION: ImpactCategoryInfo("kg Sb-eq", "CML 2001"),
        HUMAN_TOXICITY: ImpactCategoryInfo("kg 1,4-DCB-eq", "ReCiPe 2016"),
        ECOTOXICITY: ImpactCategoryInfo("kg 1,4-DCB-eq", "ReCiPe 2016"),
        LAND_USE: ImpactCategoryInfo("m2a crop-eq", "ReCiPe 2016"),
        WATER_USE: ImpactCategoryInfo("m3", "ReCiPe 2016"),
    }
)


def category_info(category: str, method: str | None = None) -> ImpactCategoryInfo:
    info = CATEGORY_METADATA.get(category)
    if info is not None:
        return info
    return ImpactCategoryInfo("unit-eq", method or "custom")


@dataclass(slots=True, frozen=True)
class CharacterizationFactorTable:
    """Factors keyed by impact category, then by substance.

    Lookups are case- and punctuation-insensitive: every substance key is indexed by its
    normalized form, and names that miss the index are resolved through ``aliases``.
    Instances never change after construction, so one table may be shared by concurrent
    matching and calculation calls.
    """

    name: str
    version: str
    factors: Mapping[str, Mapping[str, float]]
    aliases: SubstanceAliases = field(default_factory=default_aliases)
    _index: Mapping[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        frozen: dict[str, Mapping[str, float]] = {}
        index: dict[str, str] = {}
        for category, table in self.factors.items():
            frozen[category] = MappingProxyType({str(key): float(value) for key, value in table.items()})
            for substance in table:
                index.setdefault(normalize_substance_name(substance), substance)
        object.__setattr__(self, "factors", MappingProxyType(frozen))
        object.__setattr__(self, "_index", MappingProxyType(index))

    def categories(self) -> tuple[str, ...]:
        return tuple(self.factors)

    def substances(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(substance for table in self.factors.values() for substance in table))

    def normalized_substances(self) -> Mapping[str, str]:
        """Return ``normalized name -> canonical substance`` for every known substance."""
        return self._index

    @property
    def factor_count(self) -> int:
        return sum(len(table) for table in self.factors.values())

    def direct(self, name: str) -> str | None:
        """Return the canonical key whose normalized form equals ``name``'s."""
        return self._index.get(normalize_substance_name(name))

    def resolve(self, name: str) -> str | None:
        """Return the canonical key for ``name`` directly or through the alias dictionary."""
        canonical = self.direct(name)
        if canonical:
            return canonical
        aliased = self.aliases.resolve(name)
        if aliased:
            return self.direct(aliased)
        return None

    def factor(self, substance: str, category: str) -> float | None:
        table = self.factors.get(category)
        if not table:
            return None
        canonical = self.resolve(substance)
        if canonical is None:
            return None
        return table.get(canonical)

    def factors_for(self, substance: str) -> dict[str, float]:
        canonical = self.resolve(substance)
        if canonical is None:
            return {}
        return {category: table[canonical] for category, table in self.factors.items() if canonical in table}

    def extended(
        self,
        factors: Mapping[str, Mapping[str, float]],
        *,
        name: str | None = None,
        version: str | None = None,
    ) -> "CharacterizationFactorTable":
        """Return a new table with ``factors`` merged over this one, category by category."""
        merged: dict[str, dict[str, float]] = {category: dict(table) for category, table in self.factors.items()}
        for category, table in factors.items():
            merged.setdefault(category, {}).update(table)
        return CharacterizationFactorTable(
            name=name or self.name,
            version=version or self.version,
            factors=merged,
            aliases=self.aliases,
        )

    def as_dict(self) -> dict[str, dict[str, float]]:
        return {category: dict(table) for category, table in self.factors.items()}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, name: str = "custom", version: str = "1.0") -> "CharacterizationFactorTable":
        return cls(name=name, version=version, factors={key: dict(value) for key, value in payload.items()})


RECIPE_2016_FACTORS: dict[str, dict[str, float]] = {
    GWP: {
        "CO2": 1.0,
        "CH4": 28.0,
        "N2O": 265.0,
        "SF6": 23500.0,
        "HFC-134a": 1300.0,
        "PFC-14": 6630.0,
        "CO2_biogenic": 0.0,
        "CO2_fossil": 1.0,
        "electricity_coal": 0.85,
        "electricity_natural_gas": 0.35,
        "electricity_renewable": 0.02,
        "gasoline": 2.31,
        "diesel": 2.68,
        "natural_gas": 1.94,
        "steel_primary": 2.3,
        "steel_secondary": 0.5,
        "aluminum_primary": 11.5,
        "aluminum_secondary": 1.2,
        "concrete": 0.13,
        "plastic_PE": 1.9,
        "plastic_PP": 1.9,
        "plastic_PET": 2.9,
        "glass": 0.85,
        "paper": 1.1,
        "wood": -0.9,
    },
    ACIDIFICATION: {"SO2": 1.0, "NH3": 1.88, "NOx": 0.7, "HCl": 0.88, "H2S": 1.88},
    EUTROPHICATION: {"PO4": 1.0, "NH3": 0.35, "NOx": 0.13, "N2O": 0.27, "NH4": 0.33, "NO3": 0.1},
    OZONE_DEPLETION: {"CFC-11": 1.0, "CFC-12": 0.73, "HCFC-22": 0.034, "HCFC-141b": 0.086},
    PHOTOCHEMICAL_OXIDATION: {"NMVOC": 1.0, "NOx": 0.028, "CO": 0.027, "CH4": 0.006},
    HUMAN_TOXICITY: {"Arsenic": 2.5, "Cadmium": 9.9, "Chromium_VI": 0.5, "Lead": 5.1, "Mercury": 13.0},
    ECOTOXICITY: {"Copper": 1.9, "Zinc": 0.74, "Nickel": 2.6, "PAH": 170.0},
}


@lru_cache(maxsize=1)
def default_factor_table() -> CharacterizationFactorTable:
    """Return the bundled ReCiPe 2016 v1.1 factor database."""
    return CharacterizationFactorTable(name="ReCiPe 2016", version="v1.1", factors=RECIPE_2016_FACTORS)

"""Substance name normalization and alias resolution."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Iterable, Mapping

_NON_WORD_PATTERN = re.compile(r"[^0-9a-z_一-鿿]+")
_UNDERSCORE_RUN = re.compile(r"_+")

DEFAULT_ALIASES: dict[str, tuple[str, ...]] = {
    "CO2": ("二氧化碳", "carbon dioxide", "碳排放"),
    "CH4": ("甲烷", "methane", "沼气"),
    "N2O": ("氧化亚氮", "nitrous oxide", "笑气"),
    "SO2": ("二氧化硫", "sulfur dioxide"),
    "NOx": ("氮氧化物", "nitrogen oxides"),
    "NH3": ("氨", "ammonia", "氨气"),
    "steel_primary": ("钢材", "钢铁", "原生钢", "初级钢材", "steel"),
    "steel_secondary": ("再生钢", "回收钢", "废钢", "recycled steel"),
    "aluminum_primary": ("铝材", "原铝", "电解铝", "aluminium", "aluminum"),
    "aluminum_secondary": ("再生铝", "回收铝", "recycled aluminum"),
    "electricity_coal": ("火电", "煤电", "燃煤发电", "coal power"),
    "electricity_natural_gas": ("天然气发电", "燃气发电", "gas power"),
    "electricity_renewable": ("可再生电力", "清洁电力", "绿电", "green electricity"),
    "concrete": ("混凝土", "水泥混凝土"),
    "plastic_PE": ("聚乙烯", "PE塑料", "polyethylene"),
    "plastic_PP": ("聚丙烯", "PP塑料", "polypropylene"),
    "plastic_PET": ("聚酯", "PET塑料", "polyethylene terephthalate"),
    "natural_gas": ("天然气",),
    "diesel": ("柴油",),
    "gasoline": ("汽油",),
    "glass": ("玻璃",),
    "paper": ("纸张", "纸"),
    "wood": ("木材",),
}

MIN_CONTAINED_ALIAS_LENGTH = 2


def normalize_substance_name(name: str | None) -> str:
    """Lowercase ``name`` and reduce it to ``[0-9a-z_]`` and CJK characters joined by single underscores."""
    if not name:
        return ""
    text = unicodedata.normalize("NFKC", str(name)).lower()
    text = _NON_WORD_PATTERN.sub("_", text)
    text = _UNDERSCORE_RUN.sub("_", text)
    return text.strip("_")


@dataclass(slots=True, frozen=True)
class SubstanceAliases:
    """Read-only mapping of free-text aliases onto canonical substance ids."""

    aliases: Mapping[str, tuple[str, ...]]
    _index: Mapping[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: dict[str, str] = {}
        for canonical, names in self.aliases.items():
            for alias in names:
                normalized = normalize_substance_name(alias)
                if normalized:
                    index.setdefault(normalized, canonical)
        object.__setattr__(self, "aliases", MappingProxyType({key: tuple(value) for key, value in self.aliases.items()}))
        object.__setattr__(self, "_index", MappingProxyType(index))

    def resolve(self, name: str) -> str | None:
        """Return the canonical id for ``name`` by exact alias, then by the longest contained alias."""
        normalized = normalize_substance_name(name)
        if not normalized:
            return None
        exact = self._index.get(normalized)
        if exact:
            return exact
        best: tuple[int, str] | None = None
        for alias, canonical in self._index.items():
            if len(alias) < MIN_CONTAINED_ALIAS_LENGTH or alias not in normalized:
                continue
            if best is None or len(alias) > best[0]:
                best = (len(alias), canonical)
        return best[1] if best else None

    def aliases_for(self, canonical: str) -> tuple[str, ...]:
        return self.aliases.get(canonical, ())

    def extended(self, extra: Mapping[str, Iterable[str]]) -> "SubstanceAliases":
        merged = {key: tuple(value) for key, value in self.aliases.items()}
        for canonical, names in extra.items():
            merged[canonical] = tuple(dict.fromkeys((*merged.get(canonical, ()), *names)))
        return SubstanceAliases(merged)


@lru_cache(maxsize=1)
def default_aliases() -> SubstanceAliases:
    return SubstanceAliases(DEFAULT_ALIASES)

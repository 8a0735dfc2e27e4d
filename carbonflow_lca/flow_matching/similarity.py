"""String similarity scoring for substance names."""

from __future__ import annotations

from difflib import SequenceMatcher
from typing import Callable, Mapping

from carbonflow_lca.core.models import FactorCandidate
from carbonflow_lca.factors.naming import normalize_substance_name
from carbonflow_lca.factors.table import CharacterizationFactorTable

SIMILARITY_THRESHOLD = 0.6

SimilarityScorer = Callable[[str, str], float]


def positional_similarity(left: str, right: str) -> float:
    """Share of positions holding the same character, over the longer string."""
    longest = max(len(left), len(right))
    if longest == 0:
        return 1.0
    matches = sum(1 for a, b in zip(left, right) if a == b)
    return matches / longest


def sequence_similarity(left: str, right: str) -> float:
    if not left and not right:
        return 1.0
    return SequenceMatcher(None, left, right).ratio()


def similarity_candidates(
    name: str,
    table: CharacterizationFactorTable,
    *,
    scorer: SimilarityScorer = positional_similarity,
    threshold: float = SIMILARITY_THRESHOLD,
) -> list[FactorCandidate]:
    """Score ``name`` against every known substance; keep those above ``threshold``."""
    normalized = normalize_substance_name(name)
    if not normalized:
        return []
    candidates: list[FactorCandidate] = []
    known: Mapping[str, str] = table.normalized_substances()
    for normalized_known, substance in known.items():
        score = scorer(normalized, normalized_known)
        if score <= threshold:
            continue
        factors = table.factors_for(substance)
        if not factors:
            continue
        candidates.append(
            FactorCandidate(
                factor_id=substance,
                confidence=round(min(score, 1.0), 4),
                factors=factors,
                source="similarity",
            )
        )
    return candidates

"""Flow to characterization factor matching."""

from .service import FlowMatchingService, match_flow_factors
from .similarity import SIMILARITY_THRESHOLD, positional_similarity, sequence_similarity

__all__ = [
    "FlowMatchingService",
    "SIMILARITY_THRESHOLD",
    "match_flow_factors",
    "positional_similarity",
    "sequence_similarity",
]

from typing import Optional, Protocol, Sequence

from el_selector.types import Candidate


class Ranker(Protocol):
    """First-stage relevance model for a (mention, candidate) pair."""

    def score(
        self,
        commonness: float,
        relatedness: float,
        context_quality: float,
        is_best_case_label: bool,
        embedding_similarity: float,
        stable_id: str,
        type_id: str,
    ) -> float:
        ...


class SimilarityScorer(Protocol):
    """Optional embedding similarity between a candidate and the document."""

    def score(self, candidate: Candidate, tokens: Sequence, language: str) -> Optional[float]:
        ...

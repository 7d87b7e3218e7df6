"""
Document context for disambiguation.

The context is the set of concepts a document is already confidently about.
Candidates are judged by how related they are to it. This module holds the
context contracts, a topic-overlap reference builder and the overlap
resolver applied to final results.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Protocol, Set

from el_selector.entity import EntityResult
from el_selector.registry import context_builders
from el_selector.types import Candidate, Mention

logger = logging.getLogger(__name__)


class DocumentContext(Protocol):
    """Concepts a document is about, with a relatedness measure against them."""

    def quality(self) -> float:
        ...

    def contains(self, candidate: Candidate) -> bool:
        ...

    def relatedness(self, candidate: Candidate) -> float:
        ...


class ContextBuilder(Protocol):
    """Builds the context of a document from its candidate map."""

    def build_context(
        self, candidate_map: Dict[Mention, List[Candidate]], language: str
    ) -> DocumentContext:
        ...


def _topics(candidate: Candidate) -> Set[str]:
    topics = {domain.casefold() for domain in candidate.domains}
    topics.update(category.name.casefold() for category in candidate.categories)
    return topics


@dataclass
class TopicContext:
    """Context concepts with their weights and topic sets (domains and categories)."""

    weights: Dict[str, float] = field(default_factory=dict)
    topics: Dict[str, Set[str]] = field(default_factory=dict)

    def quality(self) -> float:
        return sum(self.weights.values())

    def contains(self, candidate: Candidate) -> bool:
        return candidate.entity_id in self.weights

    def relatedness(self, candidate: Candidate) -> float:
        """Weighted mean Jaccard overlap of topics with the other context concepts."""
        own = _topics(candidate)
        total = 0.0
        weighted = 0.0
        for entity_id, weight in self.weights.items():
            if entity_id == candidate.entity_id:
                continue
            other = self.topics[entity_id]
            union = own | other
            overlap = len(own & other) / len(union) if union else 0.0
            weighted += weight * overlap
            total += weight
        if total == 0.0:
            return 0.0
        return weighted / total


@context_builders.register("topics")
class TopicContextBuilder:
    """
    Takes the unambiguous mentions of a document as its context.

    A mention is unambiguous when its most common candidate reaches
    `min_commonness`; that candidate joins the context weighted by its
    commonness.
    """

    def __init__(self, min_commonness: float = 0.9):
        self.min_commonness = min_commonness

    def build_context(
        self, candidate_map: Dict[Mention, List[Candidate]], language: str
    ) -> TopicContext:
        context = TopicContext()
        for mention, candidates in candidate_map.items():
            if not candidates:
                continue
            best = max(candidates, key=lambda c: c.commonness or 0.0)
            commonness = best.commonness or 0.0
            if commonness < self.min_commonness:
                continue
            if commonness > context.weights.get(best.entity_id, 0.0):
                context.weights[best.entity_id] = commonness
                context.topics[best.entity_id] = _topics(best)
        logger.debug(
            f"Context of {len(context.weights)} concepts, quality {context.quality():.4f}"
        )
        return context


def prune_overlaps(results: Iterable[EntityResult]) -> List[EntityResult]:
    """
    Drop results whose span overlaps an earlier kept result.

    Results are expected in `compare_results` order, so within a group of
    overlapping spans the first one, position-wise and then best-first,
    wins. Results without offsets are always kept.
    """
    kept: List[EntityResult] = []
    seen_chars: Set[int] = set()
    for result in results:
        if result.start is None or result.end is None:
            kept.append(result)
            continue
        chars = set(range(result.start, result.end))
        if chars & seen_chars:
            continue
        kept.append(result)
        seen_chars.update(chars)
    return kept

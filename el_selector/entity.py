"""
Disambiguated entity results.

An EntityResult describes one mention of a document together with the
concept it was resolved to, the scores gathered while resolving it and the
encyclopedic data fetched for that concept. Results sort by position in the
text; results sharing a span sort best-first, which is what overlap pruning
and candidate selection rely on.
"""

import dataclasses
import functools
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from el_selector.knowledge_bases.base import KnowledgeBase
from el_selector.types import (
    BoundingBox,
    Candidate,
    Category,
    Definition,
    Mention,
    Origin,
    Sense,
    Statement,
)

logger = logging.getLogger(__name__)

_WHITESPACE_RUN = re.compile(r"\s+")

# Fine/coarse senses containing these tokens are never serialized
NOISY_SENSE_MARKERS = ("contestant", "team")


def normalize(text: str) -> str:
    """Soft normalization: newlines become spaces and whitespace runs collapse."""
    return _WHITESPACE_RUN.sub(" ", text.replace("\n", " ")).strip()


def format_score(score: Optional[float]) -> str:
    """Render a score with exactly four decimal digits."""
    return f"{(score or 0.0):.4f}"


def _is_scored(score: Optional[float]) -> bool:
    # None and exactly 0.0 both mean "not scored by the selector"
    return score is not None and score != 0.0


def _compare_ranked(
    score_a: Optional[float],
    score_b: Optional[float],
    prob_a: float,
    prob_b: float,
    length_a: int,
    length_b: int,
) -> int:
    """Best-first comparison of two readings of the same span."""
    if _is_scored(score_a) and _is_scored(score_b) and score_a != score_b:
        return -1 if score_a > score_b else 1
    if prob_a != prob_b:
        return -1 if prob_a > prob_b else 1
    return length_b - length_a


def _offset(value: Optional[int]) -> int:
    return -1 if value is None else value


def compare_results(a: "EntityResult", b: "EntityResult") -> int:
    """Total order over results: position first, then best reading first."""
    if _offset(a.start) != _offset(b.start):
        return _offset(a.start) - _offset(b.start)
    if _offset(a.end) != _offset(b.end):
        return _offset(a.end) - _offset(b.end)
    return _compare_ranked(
        a.selection_score,
        b.selection_score,
        a.prob_c,
        b.prob_c,
        len(a.raw_text or ""),
        len(b.raw_text or ""),
    )


def compare_candidates(a: Candidate, b: Candidate) -> int:
    """Order candidates of one mention the way results on a shared span are ordered."""
    return _compare_ranked(
        a.selection_score,
        b.selection_score,
        a.commonness or 0.0,
        b.commonness or 0.0,
        len(a.label or ""),
        len(b.label or ""),
    )


def sort_results(results: Iterable["EntityResult"]) -> List["EntityResult"]:
    return sorted(results, key=functools.cmp_to_key(compare_results))


def sort_candidates(candidates: Iterable[Candidate]) -> List[Candidate]:
    return sorted(candidates, key=functools.cmp_to_key(compare_candidates))


@dataclass(eq=False)
class EntityResult:
    """A mention resolved (or being resolved) to a knowledge-base concept."""

    raw_text: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None
    ne_type: Optional[str] = None
    subtypes: List[str] = field(default_factory=list)
    bounding_boxes: List[BoundingBox] = field(default_factory=list)
    sense: Optional[Sense] = None
    origin: Origin = Origin.PIPELINE
    lang: Optional[str] = None
    is_sub_term: bool = False
    is_acronym: bool = False

    # Resolved concept
    entity_id: Optional[str] = None
    stable_id: Optional[str] = None
    secondary_id: Optional[str] = None
    preferred_term: Optional[str] = None
    definitions: List[Definition] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    domains: List[str] = field(default_factory=list)
    statements: List[Statement] = field(default_factory=list)
    multilingual_terms: Dict[str, str] = field(default_factory=dict)
    multilingual_pages: Dict[str, str] = field(default_factory=dict)

    # Scores and corpus statistics
    ranker_score: Optional[float] = None
    selection_score: Optional[float] = None
    relatedness: Optional[float] = None
    prob_c: float = 0.0
    prob_i: float = 0.0
    freq: int = 0
    freq_i: int = 0
    link_probability: float = 0.0

    def __post_init__(self) -> None:
        for name in ("start", "end"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"Offset {name} must be non-negative, got {value}")
        if self.start is not None and self.end is not None and self.end < self.start:
            raise ValueError(f"Offset end ({self.end}) before start ({self.start})")

    @classmethod
    def from_mention(cls, mention: Mention) -> "EntityResult":
        return cls(
            raw_text=mention.text,
            start=mention.start,
            end=mention.end,
            ne_type=mention.label,
            origin=mention.origin,
            link_probability=mention.link_probability,
            is_acronym=mention.is_acronym,
        )

    @classmethod
    def copy_of(cls, other: "EntityResult") -> "EntityResult":
        """Copy scalar and score fields; nested collections are shared."""
        return dataclasses.replace(other)

    @property
    def normalized_text(self) -> Optional[str]:
        if self.raw_text is None:
            return None
        return normalize(self.raw_text)

    @property
    def span(self) -> Tuple[Optional[int], Optional[int]]:
        return (self.start, self.end)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, EntityResult):
            return NotImplemented
        return (
            self.start == other.start
            and self.end == other.end
            and self.entity_id == other.entity_id
        )

    def __lt__(self, other: "EntityResult") -> bool:
        return compare_results(self, other) < 0

    def add_domain(self, domain: str) -> None:
        folded = domain.casefold()
        if any(existing.casefold() == folded for existing in self.domains):
            return
        self.domains.append(domain)

    def add_definition(self, definition: Optional[Definition]) -> None:
        if definition is None or not definition.text:
            return
        self.definitions.append(definition)

    def set_cross_lingual_refs(
        self,
        translations: Dict[str, str],
        target_languages: List[str],
        knowledge_bases: Optional[Dict[str, KnowledgeBase]] = None,
    ) -> None:
        """Keep the translated labels for the requested languages and resolve their pages."""
        if not target_languages:
            return
        terms: Dict[str, str] = {}
        pages: Dict[str, str] = {}
        for language in sorted(target_languages):
            term = translations.get(language)
            if term is None:
                continue
            term = term.split("#", 1)[0].replace("\\'", "'")
            terms[language] = term
            kb = (knowledge_bases or {}).get(language)
            if kb is None:
                logger.debug(f"No knowledge base for language {language}")
                continue
            article = kb.article_by_title(term)
            if article is not None:
                pages[language] = article.id
            else:
                logger.debug(f"{term}: no article for language {language}")
        self.multilingual_terms = terms
        self.multilingual_pages = pages

    def populate_from_candidate(
        self, candidate: Candidate, language: str, knowledge_base: KnowledgeBase
    ) -> None:
        """Copy the resolution of a candidate into this result and fetch its KB data.

        Knowledge-base failures are logged and leave the definition or
        statements absent; this never raises for a lookup problem.
        """
        self.entity_id = candidate.entity_id
        self.stable_id = candidate.stable_id
        self.domains = []
        for domain in candidate.domains:
            self.add_domain(domain)
        self.prob_c = candidate.commonness or 0.0
        self.ranker_score = candidate.ranker_score
        self.selection_score = candidate.selection_score
        self.relatedness = candidate.relatedness
        self.categories = list(candidate.categories)
        self.preferred_term = candidate.preferred_term
        self.lang = language

        self.add_definition(self._fetch_definition(knowledge_base, language))
        self.statements = self._fetch_statements(knowledge_base)

    def _fetch_definition(
        self, knowledge_base: KnowledgeBase, language: str
    ) -> Optional[Definition]:
        try:
            page = knowledge_base.page_by_id(self.entity_id)
            if page is None:
                logger.debug(f"No page for id {self.entity_id}")
                return None
            text = page.first_paragraph_text()
        except Exception:
            logger.debug(
                f"Error when fetching first paragraph for page id {self.entity_id}",
                exc_info=True,
            )
            return None
        if not text:
            return None
        return Definition(text=text, source=f"wikipedia-{language}", lang=language)

    def _fetch_statements(self, knowledge_base: KnowledgeBase) -> List[Statement]:
        if self.stable_id is None:
            return []
        try:
            return list(knowledge_base.statements_for(self.stable_id) or [])
        except Exception:
            logger.debug(f"Error when fetching statements for {self.stable_id}", exc_info=True)
            return []

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def filtered_sense(self) -> Optional[Sense]:
        if self.sense is None:
            return None
        for token in (self.sense.fine, self.sense.coarse):
            if token and any(marker in token for marker in NOISY_SENSE_MARKERS):
                return None
        return self.sense

    def _sense_payload(self) -> Optional[Dict[str, str]]:
        sense = self.filtered_sense()
        if sense is None:
            return None
        payload: Dict[str, str] = {}
        if sense.fine is not None:
            payload["fineSense"] = sense.fine
        if sense.coarse is not None and sense.coarse != sense.fine:
            payload["coarseSense"] = sense.coarse
        return payload

    def _json_fields(self, full: bool) -> List[Tuple[str, str]]:
        fields: List[Tuple[str, str]] = [("rawName", _literal(self.normalized_text or ""))]
        if full and self.preferred_term is not None:
            fields.append(("preferredTerm", _literal(self.preferred_term)))
        if self.ne_type is not None:
            fields.append(("type", _literal(self.ne_type)))
        if self.subtypes:
            fields.append(("subtype", _literal(self.subtypes)))
        if self.start is not None:
            fields.append(("offsetStart", str(self.start)))
        if self.end is not None:
            fields.append(("offsetEnd", str(self.end)))
        if self.bounding_boxes:
            fields.append(("pos", _literal([box.to_dict() for box in self.bounding_boxes])))

        fields.append(("nerd_score", format_score(self.ranker_score)))
        fields.append(("nerd_selection_score", format_score(self.selection_score)))

        sense = self._sense_payload()
        if sense is not None:
            fields.append(("sense", _literal(sense)))

        if self.entity_id is not None:
            fields.append(("wikipediaExternalRef", _literal(self.entity_id)))
        if self.secondary_id is not None:
            fields.append(("wiktionaryExternalRef", _literal(self.secondary_id)))
        if self.stable_id is not None:
            fields.append(("wikidataId", _literal(self.stable_id)))

        if full:
            definitions = [d.to_dict() for d in self.definitions if d.text]
            if definitions:
                fields.append(("definitions", _literal(definitions)))
        if self.domains:
            fields.append(("domains", _literal(self.domains)))
        if not full:
            return fields

        if self.categories:
            categories = [
                {
                    "source": f"wikipedia-{self.lang}",
                    "category": category.name,
                    "page_id": category.page_id,
                }
                for category in self.categories
            ]
            fields.append(("categories", _literal(categories)))
        if self.multilingual_terms:
            multilingual = []
            for language, term in self.multilingual_terms.items():
                entry: Dict[str, Any] = {"lang": language, "term": term}
                if language in self.multilingual_pages:
                    entry["page_id"] = self.multilingual_pages[language]
                multilingual.append(entry)
            fields.append(("multilingual", _literal(multilingual)))
        if self.statements:
            fields.append(("statements", _literal([s.to_dict() for s in self.statements])))
        return fields

    def to_json_full(self) -> str:
        """Serialize every populated field, including KB data for the resolved concept."""
        return _render(self._json_fields(full=True))

    def to_json_compact(self) -> str:
        """Serialize identity, position, scores and ids only."""
        return _render(self._json_fields(full=False))


def _literal(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _render(fields: List[Tuple[str, str]]) -> str:
    return "{" + ", ".join(f"{_literal(key)}: {value}" for key, value in fields) + "}"

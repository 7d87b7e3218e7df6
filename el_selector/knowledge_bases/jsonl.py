import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from rapidfuzz import process

from el_selector.registry import knowledge_bases
from el_selector.types import Article, Category, LabelSense, Statement

logger = logging.getLogger(__name__)


@dataclass
class KBEntry:
    """Knowledge-base record; doubles as the page returned by `page_by_id`."""

    id: str
    title: str
    description: Optional[str] = None
    stable_id: Optional[str] = None
    type_id: Optional[str] = None
    domains: List[str] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    anchors: Dict[str, int] = field(default_factory=dict)

    def first_paragraph_text(self) -> str:
        if self.description is None:
            return ""
        if not isinstance(self.description, str):
            raise ValueError(f"Malformed description for page {self.id}")
        return self.description.split("\n\n", 1)[0].strip()


@knowledge_bases.register("jsonl")
class JSONLKnowledgeBase:
    """
    Loads concepts from a JSONL file.

    Each line holds one concept:
    {"id": "...", "title": "...", "description": "...", "wikidata_id": "Q..",
     "type_id": "Q..", "domains": [...], "categories": [...],
     "statements": [{"property_id": "P..", "value": ...}],
     "anchors": {"anchor text": count, ...},
     "link_probabilities": {"anchor text": probability, ...}}

    Only 'title' is required; 'id' defaults to the title. The title is
    always usable as a label, anchors add the other surface forms with
    their usage counts.
    """

    def __init__(self, path: str, fuzzy_cutoff: float = 85.0):
        self.fuzzy_cutoff = fuzzy_cutoff
        self.entries: Dict[str, KBEntry] = {}
        self._by_title: Dict[str, KBEntry] = {}
        self._statements: Dict[str, List[Statement]] = defaultdict(list)
        self._labels: Dict[str, List[Tuple[str, int]]] = defaultdict(list)
        self._link_probabilities: Dict[str, float] = {}
        self._parse_jsonl(path)
        self._label_keys: List[str] = list(self._labels.keys())

    def _parse_jsonl(self, path: str) -> None:
        with Path(path).open(encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                item = json.loads(line)
                entry_id = item.get("id") or item.get("title")
                title = item.get("title") or item.get("id")
                if not entry_id or not title:
                    logger.warning(f"Skipping concept without id or title: {item}")
                    continue
                entry = KBEntry(
                    id=str(entry_id),
                    title=title,
                    description=item.get("description"),
                    stable_id=item.get("wikidata_id"),
                    type_id=item.get("type_id"),
                    domains=list(item.get("domains", [])),
                    categories=[_category(c) for c in item.get("categories", [])],
                    anchors=dict(item.get("anchors", {})),
                )
                self._add(entry, item.get("statements", []))
                for label, prob in item.get("link_probabilities", {}).items():
                    self._link_probabilities[label] = max(
                        float(prob), self._link_probabilities.get(label, 0.0)
                    )
        logger.info(f"Loaded {len(self.entries)} concepts from {path}")

    def _add(self, entry: KBEntry, statements: List[dict]) -> None:
        self.entries[entry.id] = entry
        self._by_title[entry.title] = entry
        if entry.stable_id:
            for st in statements:
                self._statements[entry.stable_id].append(
                    Statement(
                        concept_id=entry.stable_id,
                        property_id=st["property_id"],
                        value=st.get("value"),
                        value_type=st.get("value_type"),
                    )
                )
        anchors = dict(entry.anchors)
        anchors.setdefault(entry.title, 1)
        for label, count in anchors.items():
            self._labels[label].append((entry.id, int(count)))

    def get_entry(self, entry_id: str) -> Optional[KBEntry]:
        return self.entries.get(entry_id)

    def all_entries(self) -> Iterable[KBEntry]:
        return self.entries.values()

    def labels(self) -> List[str]:
        return list(self._label_keys)

    def page_by_id(self, entity_id: str) -> Optional[KBEntry]:
        return self.entries.get(entity_id)

    def article_by_title(self, title: str) -> Optional[Article]:
        entry = self._by_title.get(title)
        if entry is None:
            return None
        return Article(id=entry.id, title=entry.title)

    def senses_for_label(self, label: str) -> List[LabelSense]:
        """Concepts the label refers to, most common first."""
        uses = self._labels.get(label, [])
        total = sum(count for _, count in uses)
        if total == 0:
            return []
        senses = [
            LabelSense(entity_id=entry_id, prior_probability=count / total, doc_count=total)
            for entry_id, count in uses
        ]
        senses.sort(key=lambda s: s.prior_probability, reverse=True)
        return senses

    def fuzzy_labels(self, query: str, top_k: int = 5) -> List[Tuple[str, float]]:
        """Closest known labels to a query string, with their similarity in [0, 1]."""
        if not self._label_keys:
            return []
        results = process.extract(
            query, self._label_keys, limit=top_k, score_cutoff=self.fuzzy_cutoff
        )
        return [(label, score / 100.0) for label, score, _ in results]

    def link_probability(self, label: str) -> float:
        """How often the label is used as a link anchor when it appears in text."""
        return self._link_probabilities.get(label, 0.0)

    def article_count(self) -> int:
        return len(self.entries)

    def statements_for(self, stable_id: str) -> List[Statement]:
        return list(self._statements.get(stable_id, []))


def _category(value) -> Category:
    if isinstance(value, dict):
        return Category(name=value["name"], page_id=value.get("page_id"))
    return Category(name=str(value))

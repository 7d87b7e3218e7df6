import logging
from typing import Dict, List

from el_selector.entity import normalize, sort_candidates
from el_selector.knowledge_bases.jsonl import JSONLKnowledgeBase
from el_selector.registry import candidate_generators
from el_selector.types import Candidate, LabelSense, Mention

logger = logging.getLogger(__name__)


@candidate_generators.register("labels")
class LabelCandidateGenerator:
    """
    Looks mentions up in the KB label index.

    Exact label senses come first; when a mention string is not a known
    label, the closest labels found by fuzzy matching are used instead and
    their commonness is scaled by the string similarity.
    """

    def __init__(self, kb: JSONLKnowledgeBase, top_k: int = 20, fuzzy_top_k: int = 3):
        if kb is None:
            raise ValueError("Label lookup requires a knowledge base.")
        self.kb = kb
        self.top_k = top_k
        self.fuzzy_top_k = fuzzy_top_k

    def generate(self, mentions: List[Mention], language: str) -> Dict[Mention, List[Candidate]]:
        candidate_map: Dict[Mention, List[Candidate]] = {}
        for mention in mentions:
            if mention in candidate_map:
                continue
            candidates = self._for_label(normalize(mention.text))
            candidate_map[mention] = sort_candidates(candidates)[: self.top_k]
        return candidate_map

    def _for_label(self, label: str) -> List[Candidate]:
        senses = self.kb.senses_for_label(label)
        if senses:
            return [self._candidate(label, sense) for sense in senses]

        candidates: Dict[str, Candidate] = {}
        for fuzzy_label, similarity in self.kb.fuzzy_labels(label, top_k=self.fuzzy_top_k):
            for sense in self.kb.senses_for_label(fuzzy_label):
                candidate = self._candidate(fuzzy_label, sense, weight=similarity)
                existing = candidates.get(candidate.entity_id)
                if existing is None or (existing.commonness or 0.0) < (candidate.commonness or 0.0):
                    candidates[candidate.entity_id] = candidate
        if candidates:
            logger.debug(f"Fuzzy lookup for '{label}' gave {len(candidates)} candidates")
        return list(candidates.values())

    def _candidate(self, label: str, sense: LabelSense, weight: float = 1.0) -> Candidate:
        entry = self.kb.get_entry(sense.entity_id)
        candidate = Candidate(
            entity_id=sense.entity_id,
            label=label,
            commonness=sense.prior_probability * weight,
            label_doc_count=sense.doc_count,
        )
        if entry is not None:
            candidate.stable_id = entry.stable_id
            candidate.type_id = entry.type_id
            candidate.preferred_term = entry.title
            candidate.description = entry.description
            candidate.domains = list(entry.domains)
            candidate.categories = list(entry.categories)
        return candidate

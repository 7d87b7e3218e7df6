import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

# Ensure component registration by importing modules with registry decorators.
from el_selector import candidates as _cands_pkg  # noqa: F401
from el_selector import knowledge_bases as _kb_pkg  # noqa: F401
from el_selector import rankers as _rankers_pkg  # noqa: F401
from el_selector import tagging as _tagging_pkg  # noqa: F401

from .candidates.base import CandidateGenerator
from .config import NER_LANGUAGES, UNDEFINED_STABLE_ID, SelectorConfig
from .context import ContextBuilder, DocumentContext, prune_overlaps
from .entity import EntityResult, normalize, sort_candidates, sort_results
from .exceptions import SchemaMismatchError
from .features import SelectionFeatures, dice_coefficient, new_features, term_frequency, tf_idf
from .knowledge_bases.base import KnowledgeBase
from .rankers.base import Ranker, SimilarityScorer
from .registry import (
    candidate_generators,
    context_builders,
    knowledge_bases,
    mention_taggers,
    rankers,
    tokenizers,
)
from .selector import SelectionModel
from .tagging.base import MentionTagger, Tokenizer
from .types import Candidate, Mention

logger = logging.getLogger(__name__)

OverlapResolver = Callable[[List[EntityResult]], List[EntityResult]]


@dataclass
class DocumentState:
    """Everything computed once per document before candidates are scored."""

    text: str
    language: str
    tokens: Any
    mentions: List[Mention]
    candidates: Dict[Mention, List[Candidate]]
    context: DocumentContext
    context_quality: float


class DisambiguationPipeline:
    """Runs the collaborators that turn a text into scored candidates and results."""

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        tokenizer: Tokenizer,
        mention_tagger: MentionTagger,
        candidate_generator: CandidateGenerator,
        ranker: Ranker,
        context_builder: ContextBuilder,
        ner_tagger: Optional[MentionTagger] = None,
        similarity_scorer: Optional[SimilarityScorer] = None,
        overlap_resolver: OverlapResolver = prune_overlaps,
        feature_set: str = "simple",
        ner_languages: Optional[List[str]] = None,
    ) -> None:
        self.kb = knowledge_base
        self.tokenizer = tokenizer
        self.mention_tagger = mention_tagger
        self.candidate_generator = candidate_generator
        self.ranker = ranker
        self.context_builder = context_builder
        self.ner_tagger = ner_tagger
        self.similarity_scorer = similarity_scorer
        self.overlap_resolver = overlap_resolver
        self.feature_set = feature_set
        self.ner_languages = list(NER_LANGUAGES if ner_languages is None else ner_languages)

    @classmethod
    def from_config(cls, config: SelectorConfig) -> "DisambiguationPipeline":
        if config.knowledge_base is None:
            raise ValueError("A knowledge base must be configured.")
        kb_factory = knowledge_bases.get(config.knowledge_base.name)
        kb = kb_factory(**config.knowledge_base.params)

        tok_conf = config.tokenizer
        tokenizer = tokenizers.get(tok_conf.name if tok_conf else "spacy")(
            **(tok_conf.params if tok_conf else {})
        )

        ner_tagger = None
        if config.ner_tagger:
            ner_factory = mention_taggers.get(config.ner_tagger.name)
            ner_tagger = ner_factory(**config.ner_tagger.params)

        tag_conf = config.mention_tagger
        mention_tagger = mention_taggers.get(tag_conf.name if tag_conf else "labels")(
            kb=kb, tokenizer=tokenizer, **(tag_conf.params if tag_conf else {})
        )

        cand_conf = config.candidate_generator
        candidate_generator = candidate_generators.get(cand_conf.name if cand_conf else "labels")(
            kb=kb, **(cand_conf.params if cand_conf else {})
        )

        rank_conf = config.ranker
        ranker = rankers.get(rank_conf.name if rank_conf else "commonness")(
            **(rank_conf.params if rank_conf else {})
        )

        ctx_conf = config.context_builder
        context_builder = context_builders.get(ctx_conf.name if ctx_conf else "topics")(
            **(ctx_conf.params if ctx_conf else {})
        )

        return cls(
            knowledge_base=kb,
            tokenizer=tokenizer,
            mention_tagger=mention_tagger,
            candidate_generator=candidate_generator,
            ranker=ranker,
            context_builder=context_builder,
            ner_tagger=ner_tagger,
            feature_set=config.feature_set,
            ner_languages=config.ner_languages,
        )

    # ------------------------------------------------------------------
    # Per-document steps
    # ------------------------------------------------------------------

    def tag_mentions(self, tokens: Any, language: str) -> List[Mention]:
        """Union of named-entity and all-mention tagger output, without duplicates.

        A span found by both taggers keeps the named-entity label and the
        higher link probability of the two.
        """
        found: List[Mention] = []
        if self.ner_tagger is not None and language in self.ner_languages:
            found.extend(self.ner_tagger.tag(tokens, language))
        found.extend(self.mention_tagger.tag(tokens, language))

        merged: Dict[Tuple[int, int, str], Mention] = {}
        for mention in found:
            key = (mention.start, mention.end, mention.text)
            existing = merged.get(key)
            if existing is None:
                merged[key] = mention
                continue
            merged[key] = dataclasses.replace(
                existing,
                label=existing.label if existing.label is not None else mention.label,
                link_probability=max(existing.link_probability, mention.link_probability),
                is_acronym=existing.is_acronym or mention.is_acronym,
            )
        mentions = sorted(merged.values(), key=lambda m: (m.start, m.end))
        return mentions

    def generate_candidates(
        self, mentions: List[Mention], language: str
    ) -> Dict[Mention, List[Candidate]]:
        generated = self.candidate_generator.generate(mentions, language)
        return {mention: list(generated.get(mention, [])) for mention in mentions}

    def prepare(self, text: str, language: str) -> DocumentState:
        tokens = self.tokenizer.tokenize(text, language)
        mentions = self.tag_mentions(tokens, language)
        candidate_map = self.generate_candidates(mentions, language)
        context = self.context_builder.build_context(candidate_map, language)
        logger.debug(
            f"{len(mentions)} mentions, "
            f"{sum(len(c) for c in candidate_map.values())} candidates"
        )
        return DocumentState(
            text=text,
            language=language,
            tokens=tokens,
            mentions=mentions,
            candidates=candidate_map,
            context=context,
            context_quality=context.quality(),
        )

    def featurize(
        self,
        state: DocumentState,
        mention: Mention,
        candidate: Candidate,
        rank: int = 0,
        label: Optional[float] = None,
    ) -> Tuple[SelectionFeatures, Candidate]:
        """Selection features of one (mention, candidate) pair.

        Also returns a copy of the candidate carrying its first-stage score
        and relatedness.
        """
        if candidate.commonness is None:
            raise ValueError(f"Candidate {candidate.entity_id} has no lexical sense")

        normalized = normalize(mention.text)
        relatedness = state.context.relatedness(candidate)
        best_case_label = candidate.label == normalized
        embedding_similarity = 0.0
        if self.similarity_scorer is not None:
            embedding_similarity = (
                self.similarity_scorer.score(candidate, state.tokens, state.language) or 0.0
            )

        ranker_score = self.ranker.score(
            candidate.commonness,
            relatedness,
            state.context_quality,
            best_case_label,
            embedding_similarity,
            candidate.stable_id or UNDEFINED_STABLE_ID,
            candidate.type_id or UNDEFINED_STABLE_ID,
        )
        frequency = term_frequency(candidate.label, state.text)
        signals = {
            "first_stage_score": ranker_score,
            "anchor_link_probability": mention.link_probability,
            "concept_given_string_prob": candidate.commonness,
            "token_count": len(self.tokenizer.tokenize(normalized, state.language)),
            "relatedness": relatedness,
            "in_context": state.context.contains(candidate),
            "is_named_entity": mention.label is not None,
            "tf_idf": tf_idf(frequency, self.kb.article_count(), candidate.label_doc_count),
            "dice_coefficient": dice_coefficient(
                normalized, self.tokenizer.lemma_form(normalized, state.language)
            ),
            "candidate_rank": rank,
            "candidate_count": len(state.candidates.get(mention, [])),
            "context_quality": state.context_quality,
            "best_case_label": best_case_label,
            "embedding_similarity": embedding_similarity,
            "is_acronym": mention.is_acronym,
        }
        features = new_features(self.feature_set, signals, label=label)
        scored = dataclasses.replace(
            candidate, ranker_score=ranker_score, relatedness=relatedness
        )
        return features, scored

    def select(
        self,
        state: DocumentState,
        selection_model: SelectionModel,
        min_score: Optional[float] = None,
    ) -> Dict[Mention, List[Candidate]]:
        """Score every candidate with the selector; best first per mention.

        With `min_score`, candidates scoring below it are dropped. A
        candidate that fails to score is logged and left out.
        """
        selected: Dict[Mention, List[Candidate]] = {}
        for mention in state.mentions:
            kept: List[Candidate] = []
            for rank, candidate in enumerate(state.candidates.get(mention, [])):
                if candidate.commonness is None:
                    continue
                try:
                    features, scored = self.featurize(state, mention, candidate, rank=rank)
                    score = selection_model.score(features)
                except SchemaMismatchError:
                    raise
                except (ValueError, KeyError, TypeError):
                    logger.warning(
                        f"Failed to score candidate {candidate.entity_id} for '{mention.text}'",
                        exc_info=True,
                    )
                    continue
                if min_score is not None and score < min_score:
                    continue
                kept.append(dataclasses.replace(scored, selection_score=score))
            selected[mention] = sort_candidates(kept)
        return selected

    def resolve(
        self,
        state: DocumentState,
        selection_model: SelectionModel,
        min_score: Optional[float] = None,
    ) -> List[EntityResult]:
        """Best surviving candidate per mention, sorted and pruned of overlaps."""
        results: List[EntityResult] = []
        for mention, candidates in self.select(state, selection_model, min_score).items():
            if not candidates:
                continue
            result = EntityResult.from_mention(mention)
            result.populate_from_candidate(candidates[0], state.language, self.kb)
            results.append(result)
        return self.overlap_resolver(sort_results(results))

    def disambiguate(
        self,
        text: str,
        language: str,
        selection_model: SelectionModel,
        min_score: Optional[float] = None,
    ) -> List[EntityResult]:
        return self.resolve(self.prepare(text, language), selection_model, min_score)

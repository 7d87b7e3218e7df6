import logging
from typing import Dict, List

from spacy.matcher import PhraseMatcher
from spacy.tokens import Doc

from el_selector.knowledge_bases.jsonl import JSONLKnowledgeBase
from el_selector.registry import mention_taggers
from el_selector.tagging.tokenizer import SpacyTokenizer
from el_selector.types import Mention

logger = logging.getLogger(__name__)


@mention_taggers.register("labels")
class LabelMentionTagger:
    """
    Tags every occurrence of a known KB label as a candidate mention.

    Overlapping matches are all kept; choosing between them is left to
    candidate selection and overlap pruning.
    """

    def __init__(self, kb: JSONLKnowledgeBase, tokenizer: SpacyTokenizer):
        if kb is None:
            raise ValueError("Label tagging requires a knowledge base.")
        self.kb = kb
        self.tokenizer = tokenizer
        self._matchers: Dict[str, PhraseMatcher] = {}

    def _matcher(self, language: str) -> PhraseMatcher:
        matcher = self._matchers.get(language)
        if matcher is None:
            nlp = self.tokenizer.pipeline(language)
            matcher = PhraseMatcher(nlp.vocab)
            patterns = [nlp.make_doc(label) for label in self.kb.labels()]
            matcher.add("KB_LABEL", patterns)
            self._matchers[language] = matcher
            logger.info(f"Label matcher built over {len(patterns)} labels for '{language}'")
        return matcher

    def tag(self, tokens: Doc, language: str) -> List[Mention]:
        mentions: List[Mention] = []
        for _, start, end in self._matcher(language)(tokens):
            span = tokens[start:end]
            mentions.append(
                Mention(
                    start=span.start_char,
                    end=span.end_char,
                    text=span.text,
                    link_probability=self.kb.link_probability(span.text),
                )
            )
        return mentions

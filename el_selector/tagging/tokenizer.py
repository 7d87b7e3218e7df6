import logging
import threading
from typing import Dict

import spacy
from spacy.language import Language
from spacy.tokens import Doc

from el_selector.registry import tokenizers

logger = logging.getLogger(__name__)


@tokenizers.register("spacy")
class SpacyTokenizer:
    """Rule-based tokenization with blank spaCy pipelines, one per language."""

    def __init__(self) -> None:
        self._pipelines: Dict[str, Language] = {}
        self._lock = threading.Lock()

    def pipeline(self, language: str) -> Language:
        with self._lock:
            nlp = self._pipelines.get(language)
            if nlp is None:
                nlp = spacy.blank(language)
                self._pipelines[language] = nlp
                logger.info(f"Blank spaCy pipeline created for '{language}'")
            return nlp

    def tokenize(self, text: str, language: str) -> Doc:
        return self.pipeline(language).make_doc(text)

    def lemma_form(self, text: str, language: str) -> str:
        """Language-specific normalized form of a string, token by token."""
        doc = self.tokenize(text, language)
        return " ".join(token.lemma_ or token.norm_ for token in doc)

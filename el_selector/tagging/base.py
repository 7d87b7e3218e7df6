from typing import List, Protocol, Sequence

from el_selector.types import Mention


class Tokenizer(Protocol):
    """Splits text into an ordered token sequence (a spaCy Doc for the bundled adapter)."""

    def tokenize(self, text: str, language: str) -> Sequence:
        ...

    def lemma_form(self, text: str, language: str) -> str:
        ...


class MentionTagger(Protocol):
    """Finds mentions over a tokenized text."""

    def tag(self, tokens: Sequence, language: str) -> List[Mention]:
        ...

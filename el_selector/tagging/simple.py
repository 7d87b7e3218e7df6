import re
from typing import List, Sequence

from el_selector.registry import mention_taggers
from el_selector.types import Mention


@mention_taggers.register("simple")
class SimpleRegexTagger:
    """Lightweight regex-based named-entity tagger (capitalized token runs)."""

    def __init__(self, min_len: int = 3, label: str = "ENT"):
        self.pattern = re.compile(
            r"\b([A-Z][a-zA-Z0-9_-]+(?:\s+[A-Z][a-zA-Z0-9_-]+)*)\b"
        )
        self.min_len = min_len
        self.label = label

    def tag(self, tokens: Sequence, language: str) -> List[Mention]:
        text = tokens.text
        mentions: List[Mention] = []
        for match in self.pattern.finditer(text):
            span = match.group(1)
            if len(span) < self.min_len:
                continue
            mentions.append(
                Mention(
                    start=match.start(1),
                    end=match.end(1),
                    text=span,
                    label=self.label,
                    is_acronym=span.isupper() and len(span) <= 6,
                )
            )
        return mentions

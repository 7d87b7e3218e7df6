"""Tokenizers and mention taggers."""

from .labels import LabelMentionTagger  # noqa: F401
from .simple import SimpleRegexTagger  # noqa: F401
from .tokenizer import SpacyTokenizer  # noqa: F401

"""Knowledge base adapters."""

from .jsonl import JSONLKnowledgeBase  # noqa: F401

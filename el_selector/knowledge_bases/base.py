from typing import List, Optional, Protocol

from el_selector.types import Article, LabelSense, Statement


class Page(Protocol):
    """Knowledge-base page."""

    def first_paragraph_text(self) -> str:
        """First paragraph of the page; may raise on malformed content."""
        ...


class KnowledgeBase(Protocol):
    """Read-only knowledge base shared by all documents of a run."""

    def page_by_id(self, entity_id: str) -> Optional[Page]:
        ...

    def article_by_title(self, title: str) -> Optional[Article]:
        ...

    def senses_for_label(self, label: str) -> List[LabelSense]:
        ...

    def article_count(self) -> int:
        ...

    def statements_for(self, stable_id: str) -> List[Statement]:
        ...

"""
Gold labels from hyperlinked reference text.

Reference articles use wiki link markup: `[[Target]]` links the text
"Target" to the article of that title, `[[Target|label]]` links "label".
Extraction removes the markup and records, for every link that resolves,
the label, its span in the plain text and the target concept id.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from el_selector.knowledge_bases.base import KnowledgeBase

logger = logging.getLogger(__name__)

_LINK = re.compile(r"\[\[(.*?)\]\]", re.DOTALL)
_EMPHASIS = "''"


@dataclass(frozen=True)
class GoldLink:
    label: str
    start: int
    end: int
    entity_id: str

    @property
    def span(self) -> Tuple[int, int]:
        return (self.start, self.end)


@dataclass
class GoldDocument:
    """Plain text of a reference article with its gold links keyed by span."""

    text: str
    links: Dict[Tuple[int, int], GoldLink] = field(default_factory=dict)

    def entity_ids(self) -> Set[str]:
        return {link.entity_id for link in self.links.values()}

    def expected_id(self, start: int, end: int) -> Optional[str]:
        link = self.links.get((start, end))
        return link.entity_id if link else None


def split_link(content: str) -> Tuple[str, str]:
    """Destination and visible label of the content of a `[[...]]` link."""
    pos = content.rfind("|")
    if pos > 0:
        return content[:pos].strip(), content[pos + 1 :]
    destination = content.lstrip("|").split("#", 1)[0].strip()
    return destination, destination


def extract_gold_links(
    markup: str,
    knowledge_base: KnowledgeBase,
    capitalize_destination: bool = False,
) -> GoldDocument:
    """
    Strip link markup and collect the links that resolve to known concepts.

    A link is kept when its destination names an existing article and its
    label has at least one sense in the knowledge base. Malformed or
    unresolvable links keep their label in the text but are not recorded.
    """
    markup = markup.replace(_EMPHASIS, "")
    parts: List[str] = []
    length = 0
    links: Dict[Tuple[int, int], GoldLink] = {}
    cursor = 0

    for match in _LINK.finditer(markup):
        before = markup[cursor : match.start()]
        parts.append(before)
        length += len(before)
        cursor = match.end()

        destination, label = split_link(match.group(1))
        start, end = length, length + len(label)
        parts.append(label)
        length = end

        if not destination or not label.strip():
            logger.warning(f"Skipping malformed link '{match.group(0)}'")
            continue
        if capitalize_destination:
            destination = destination[0].upper() + destination[1:]
        try:
            article = knowledge_base.article_by_title(destination)
            if article is None:
                logger.debug(f"Link destination not in knowledge base: {destination}")
                continue
            if not knowledge_base.senses_for_label(label):
                logger.debug(f"Link label without senses: {label}")
                continue
        except Exception:
            logger.warning(f"Failed to resolve link '{match.group(0)}'", exc_info=True)
            continue
        links[(start, end)] = GoldLink(label=label, start=start, end=end, entity_id=article.id)

    parts.append(markup[cursor:])
    return GoldDocument(text="".join(parts), links=links)

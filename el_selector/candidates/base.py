from typing import Dict, List, Protocol

from el_selector.types import Candidate, Mention


class CandidateGenerator(Protocol):
    """Generates knowledge-base candidates for the mentions of one document."""

    def generate(self, mentions: List[Mention], language: str) -> Dict[Mention, List[Candidate]]:
        ...

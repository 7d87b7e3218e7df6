"""Shared fixtures for entity selector tests."""

import json
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set

import pytest

from el_selector.context import prune_overlaps
from el_selector.pipeline import DisambiguationPipeline
from el_selector.types import Article, Candidate, LabelSense, Mention, ReferenceArticle, Statement


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_kb_records() -> List[Dict]:
    """Concepts of a tiny knowledge base, as JSONL records."""
    return [
        {
            "id": "22989",
            "title": "Paris",
            "description": "Paris is the capital of France.\n\nIt lies on the Seine.",
            "wikidata_id": "Q90",
            "type_id": "Q515",
            "domains": ["Geography"],
            "categories": [{"name": "Capitals in Europe", "page_id": 101}],
            "statements": [{"property_id": "P17", "value": "Q142"}],
            "anchors": {"Paris": 9},
            "link_probabilities": {"Paris": 0.6},
        },
        {
            "id": "68484",
            "title": "Paris Hilton",
            "description": "American media personality.",
            "wikidata_id": "Q47899",
            "domains": ["Entertainment"],
            "anchors": {"Paris": 1},
        },
        {
            "id": "5843419",
            "title": "France",
            "description": "France is a country in Western Europe.",
            "wikidata_id": "Q142",
            "type_id": "Q6256",
            "domains": ["Geography"],
            "categories": ["Countries in Europe"],
            "anchors": {"France": 10, "the country": 3},
            "link_probabilities": {"France": 0.8, "the country": 0.05},
        },
        {
            "id": "5679",
            "title": "Country",
            "description": "A distinct territorial body.",
            "wikidata_id": "Q6256",
            "anchors": {"the country": 1},
        },
    ]


@pytest.fixture
def sample_markup() -> str:
    return "I went to [[Paris]] and [[France|the country]] is lovely."


@pytest.fixture
def sample_article(sample_markup: str) -> ReferenceArticle:
    return ReferenceArticle(title="Holidays", markup=sample_markup)


@pytest.fixture
def sample_mentions() -> List[Mention]:
    """Mentions of the sample article once its markup is removed."""
    return [
        Mention(start=10, end=15, text="Paris", link_probability=0.6),
        Mention(start=20, end=31, text="the country", link_probability=0.05),
    ]


@pytest.fixture
def sample_candidates() -> Dict[str, List[Candidate]]:
    """Candidates per mention text."""
    return {
        "Paris": [
            Candidate(
                entity_id="22989",
                label="Paris",
                commonness=0.9,
                label_doc_count=10,
                stable_id="Q90",
                preferred_term="Paris",
                domains=["Geography"],
            ),
            Candidate(
                entity_id="68484",
                label="Paris",
                commonness=0.1,
                label_doc_count=10,
                stable_id="Q47899",
                preferred_term="Paris Hilton",
            ),
        ],
        "the country": [
            Candidate(
                entity_id="5843419",
                label="the country",
                commonness=0.75,
                label_doc_count=4,
                stable_id="Q142",
                preferred_term="France",
            ),
            Candidate(
                entity_id="5679",
                label="the country",
                commonness=0.25,
                label_doc_count=4,
                preferred_term="Country",
            ),
        ],
    }


# ---------------------------------------------------------------------------
# Mock classes
# ---------------------------------------------------------------------------


class MockPage:
    def __init__(self, text: Optional[str] = None, error: Optional[Exception] = None):
        self._text = text
        self._error = error

    def first_paragraph_text(self) -> str:
        if self._error is not None:
            raise self._error
        return self._text or ""


class MockKnowledgeBase:
    """In-memory mock knowledge base for testing."""

    def __init__(self, records: Optional[List[Dict]] = None):
        self.pages: Dict[str, MockPage] = {}
        self.titles: Dict[str, str] = {}
        self.senses: Dict[str, List[LabelSense]] = {}
        self.statements: Dict[str, List[Statement]] = {}
        for record in records or []:
            self.add(record)

    def add(self, record: Dict) -> None:
        entity_id = record["id"]
        self.pages[entity_id] = MockPage(record.get("description"))
        self.titles[record["title"]] = entity_id
        for label, count in record.get("anchors", {record["title"]: 1}).items():
            self.senses.setdefault(label, []).append(
                LabelSense(entity_id=entity_id, prior_probability=float(count), doc_count=count)
            )
        if record.get("wikidata_id"):
            self.statements[record["wikidata_id"]] = [
                Statement(concept_id=record["wikidata_id"], property_id=s["property_id"], value=s["value"])
                for s in record.get("statements", [])
            ]

    def page_by_id(self, entity_id: str) -> Optional[MockPage]:
        return self.pages.get(entity_id)

    def article_by_title(self, title: str) -> Optional[Article]:
        entity_id = self.titles.get(title)
        return Article(id=entity_id, title=title) if entity_id else None

    def senses_for_label(self, label: str) -> List[LabelSense]:
        return list(self.senses.get(label, []))

    def article_count(self) -> int:
        return len(self.pages)

    def statements_for(self, stable_id: str) -> List[Statement]:
        return list(self.statements.get(stable_id, []))


class MockTokenizer:
    """Splits on whitespace."""

    def tokenize(self, text: str, language: str) -> List[str]:
        return text.split()

    def lemma_form(self, text: str, language: str) -> str:
        return text.lower()


class MockTagger:
    """Mock tagger that returns predefined mentions."""

    def __init__(self, mentions: Optional[List[Mention]] = None):
        self._mentions = mentions or []
        self.calls: List[str] = []

    def tag(self, tokens, language: str) -> List[Mention]:
        self.calls.append(language)
        return list(self._mentions)


class MockCandidateGenerator:
    """Mock candidate generator returning predefined candidates per mention text."""

    def __init__(self, candidates: Optional[Dict[str, List[Candidate]]] = None):
        self._candidates = candidates or {}

    def generate(self, mentions: List[Mention], language: str) -> Dict[Mention, List[Candidate]]:
        return {m: list(self._candidates.get(m.text, [])) for m in mentions}


class MockRanker:
    """First-stage score equal to the commonness."""

    def score(self, commonness, relatedness, context_quality, is_best_case_label,
              embedding_similarity, stable_id, type_id) -> float:
        return commonness


class MockContext:
    def __init__(self, quality: float = 0.5, members: Optional[Set[str]] = None,
                 relatedness: Optional[Dict[str, float]] = None):
        self._quality = quality
        self._members = members or set()
        self._relatedness = relatedness or {}

    def quality(self) -> float:
        return self._quality

    def contains(self, candidate: Candidate) -> bool:
        return candidate.entity_id in self._members

    def relatedness(self, candidate: Candidate) -> float:
        return self._relatedness.get(candidate.entity_id, 0.0)


class MockContextBuilder:
    def __init__(self, context: Optional[MockContext] = None):
        self.context = context or MockContext()

    def build_context(self, candidate_map, language: str) -> MockContext:
        return self.context


class StubSelector:
    """Selection model scoring a candidate by its commonness."""

    def __init__(self):
        self.calls = 0

    def score(self, features) -> float:
        self.calls += 1
        return features["concept_given_string_prob"]


# ---------------------------------------------------------------------------
# Mock fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_kb(sample_kb_records: List[Dict]) -> MockKnowledgeBase:
    return MockKnowledgeBase(sample_kb_records)


@pytest.fixture
def mock_tagger(sample_mentions: List[Mention]) -> MockTagger:
    return MockTagger(sample_mentions)


@pytest.fixture
def mock_candidate_generator(sample_candidates) -> MockCandidateGenerator:
    return MockCandidateGenerator(sample_candidates)


@pytest.fixture
def stub_selector() -> StubSelector:
    return StubSelector()


@pytest.fixture
def mock_pipeline(mock_kb, mock_tagger, mock_candidate_generator) -> DisambiguationPipeline:
    """Pipeline wired entirely with mock collaborators."""
    return DisambiguationPipeline(
        knowledge_base=mock_kb,
        tokenizer=MockTokenizer(),
        mention_tagger=mock_tagger,
        candidate_generator=mock_candidate_generator,
        ranker=MockRanker(),
        context_builder=MockContextBuilder(
            MockContext(quality=0.5, members={"22989"}, relatedness={"5843419": 0.4})
        ),
        overlap_resolver=prune_overlaps,
    )


# ---------------------------------------------------------------------------
# Temporary file fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def temp_jsonl_kb(tmp_path: Path, sample_kb_records: List[Dict]) -> Iterator[str]:
    """Temporary JSONL knowledge base file."""
    path = tmp_path / "kb.jsonl"
    with path.open("w", encoding="utf-8") as f:
        for record in sample_kb_records:
            f.write(json.dumps(record) + "\n")
    yield str(path)


@pytest.fixture
def config_dict(temp_jsonl_kb: str, tmp_path: Path) -> Dict:
    """Config dict wiring the bundled reference components."""
    return {
        "language": "en",
        "model_dir": str(tmp_path / "models"),
        "feature_set": "simple",
        "sampling_ratio": 2.0,
        "min_selector_score": 0.3,
        "knowledge_base": {"name": "jsonl", "params": {"path": temp_jsonl_kb}},
        "tokenizer": {"name": "spacy", "params": {}},
        "mention_tagger": {"name": "labels", "params": {}},
        "candidate_generator": {"name": "labels", "params": {"top_k": 5}},
        "ranker": {"name": "commonness", "params": {}},
        "context_builder": {"name": "topics", "params": {"min_commonness": 0.8}},
    }

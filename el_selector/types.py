from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


# Progress callback type: (progress: float 0-1, description: str) -> None
ProgressCallback = Callable[[float, str], None]


class Origin(Enum):
    """Where a mention came from."""

    SOURCE = "source"
    USER = "user"
    PIPELINE = "pipeline"


@dataclass(frozen=True)
class Mention:
    """Raw mention detected by a tagger."""

    start: int
    end: int
    text: str
    label: Optional[str] = None
    origin: Origin = Origin.PIPELINE
    link_probability: float = 0.0
    is_acronym: bool = False

    @property
    def span(self):
        return (self.start, self.end)


@dataclass(frozen=True)
class Sense:
    """Coarse/fine lexical sense attached to a mention."""

    fine: Optional[str] = None
    coarse: Optional[str] = None


@dataclass(frozen=True)
class LabelSense:
    """One concept a label string may refer to, with its corpus statistics."""

    entity_id: str
    prior_probability: float
    doc_count: int = 0


@dataclass
class Definition:
    """Definition text of a concept."""

    text: str
    source: str
    lang: str

    def to_dict(self) -> Dict[str, str]:
        return {"definition": self.text, "source": self.source, "lang": self.lang}


@dataclass(frozen=True)
class Category:
    """KB category of a concept."""

    name: str
    page_id: Optional[int] = None


@dataclass(frozen=True)
class Statement:
    """Structured fact about a concept, keyed by its stable id."""

    concept_id: str
    property_id: str
    value: Any
    value_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "conceptId": self.concept_id,
            "propertyId": self.property_id,
            "value": self.value,
        }
        if self.value_type is not None:
            data["valueType"] = self.value_type
        return data


@dataclass(frozen=True)
class BoundingBox:
    """Position of a mention in a laid-out source document."""

    page: int
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, Any]:
        return {"p": self.page, "x": self.x, "y": self.y, "w": self.width, "h": self.height}


@dataclass(frozen=True)
class Article:
    """Knowledge-base article header."""

    id: str
    title: str


@dataclass
class Candidate:
    """Candidate concept for a mention, with the scores gathered along the pipeline."""

    entity_id: str
    label: str
    commonness: Optional[float] = None
    label_doc_count: int = 0
    stable_id: Optional[str] = None
    type_id: Optional[str] = None
    preferred_term: Optional[str] = None
    description: Optional[str] = None
    domains: List[str] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    ranker_score: Optional[float] = None
    selection_score: Optional[float] = None
    relatedness: Optional[float] = None


@dataclass
class ReferenceArticle:
    """Article whose text carries gold `[[target|label]]` links."""

    title: str
    markup: str
    meta: Dict[str, Any] = field(default_factory=dict)

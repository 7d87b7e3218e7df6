"""
Selection features.

A feature vector is a fixed, ordered set of named numeric signals about one
(mention, candidate) pair, optionally carrying the gold label when it is
used for training. Feature sets of different kinds share the nine required
fields and the same access contract; the kind is chosen by name through the
`feature_sets` registry.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from el_selector.exceptions import SchemaMismatchError
from el_selector.registry import feature_sets

LABEL_FIELD = "label"

REQUIRED_FIELDS: Tuple[str, ...] = (
    "first_stage_score",
    "anchor_link_probability",
    "concept_given_string_prob",
    "token_count",
    "relatedness",
    "in_context",
    "is_named_entity",
    "tf_idf",
    "dice_coefficient",
)


@dataclass(frozen=True)
class FeatureSchema:
    """Ordered field names of a feature-set kind; columns of the dataset table."""

    kind: str
    fields: Tuple[str, ...]

    def header(self) -> List[str]:
        return list(self.fields) + [LABEL_FIELD]

    def check(self, fields: Sequence[str]) -> None:
        if set(fields) != set(self.fields) or len(fields) != len(self.fields):
            raise SchemaMismatchError(self.fields, fields)


class SelectionFeatures:
    """Base feature set: named values in schema order plus an optional label."""

    kind = "base"
    FIELDS: Tuple[str, ...] = REQUIRED_FIELDS

    def __init__(self, label: Optional[float] = None, **values: float):
        unknown = set(values) - set(self.FIELDS)
        if unknown:
            raise SchemaMismatchError(self.FIELDS, tuple(self.FIELDS) + tuple(sorted(unknown)))
        self.values: Dict[str, float] = {name: 0.0 for name in self.FIELDS}
        for name, value in values.items():
            self.values[name] = _numeric(value)
        self.label = label

    @classmethod
    def from_signals(
        cls, signals: Mapping[str, float], label: Optional[float] = None
    ) -> "SelectionFeatures":
        """Pick this kind's fields out of a larger set of computed signals."""
        missing = [name for name in cls.FIELDS if name not in signals]
        if missing:
            raise SchemaMismatchError(cls.FIELDS, [n for n in cls.FIELDS if n in signals])
        return cls(label=label, **{name: signals[name] for name in cls.FIELDS})

    @classmethod
    def schema(cls) -> FeatureSchema:
        return FeatureSchema(kind=cls.kind, fields=tuple(cls.FIELDS))

    def __getitem__(self, name: str) -> float:
        return self.values[name]

    def to_numeric_vector(self, schema: Optional[FeatureSchema] = None) -> np.ndarray:
        """Values in the column order of `schema` (this kind's own order by default)."""
        schema = schema or self.schema()
        schema.check(self.FIELDS)
        return np.array([self.values[name] for name in schema.fields], dtype=float)

    def to_row(self) -> List[float]:
        """Values in schema order followed by the label, as written to the dataset table."""
        if self.label is None:
            raise ValueError("Cannot write an unlabeled feature vector to a training table")
        return [self.values[name] for name in self.FIELDS] + [float(self.label)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(label={self.label}, values={self.values})"


@feature_sets.register("simple")
class SimpleFeatures(SelectionFeatures):
    kind = "simple"
    FIELDS = REQUIRED_FIELDS


@feature_sets.register("baseline")
class BaselineFeatures(SelectionFeatures):
    """Required fields plus the candidate's position in the first-stage ranking."""

    kind = "baseline"
    FIELDS = REQUIRED_FIELDS + ("candidate_rank", "candidate_count")


@feature_sets.register("pipeline")
class PipelineFeatures(SelectionFeatures):
    """Required fields plus the extra first-stage ranker inputs."""

    kind = "pipeline"
    FIELDS = REQUIRED_FIELDS + (
        "context_quality",
        "best_case_label",
        "embedding_similarity",
        "is_acronym",
    )


def feature_class(kind: str):
    try:
        return feature_sets.get(kind)
    except KeyError as exc:
        raise ValueError(f"Unknown feature set kind '{kind}'") from exc


def new_features(kind: str, signals: Mapping[str, float], label: Optional[float] = None):
    return feature_class(kind).from_signals(signals, label=label)


def _numeric(value) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    return float(value)


def _bigrams(text: str) -> Counter:
    return Counter(text[i : i + 2] for i in range(len(text) - 1))


def dice_coefficient(a: str, b: str) -> float:
    """Dice similarity over character bigrams, in [0, 1]."""
    if a == b:
        return 1.0
    first, second = _bigrams(a), _bigrams(b)
    size = sum(first.values()) + sum(second.values())
    if size == 0:
        return 0.0
    shared = sum((first & second).values())
    return 2.0 * shared / size


def term_frequency(label: str, text: str) -> int:
    """Occurrences of a label string in a document text."""
    if not label:
        return 0
    return text.count(label)


def tf_idf(frequency: int, article_count: int, doc_count: int) -> float:
    """Term frequency times (article count / label document count); 0 for unseen labels."""
    if doc_count <= 0:
        return 0.0
    return frequency * (article_count / doc_count)

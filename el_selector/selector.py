"""
Second-stage selection model.

Wraps a scikit-learn tree ensemble regressing the gold label of a
(mention, candidate) pair from its selection features. The fitted model is
stored per language as a pickled artifact that also records the feature
schema it was trained with.
"""

import csv
import logging
import pickle
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
from sklearn.ensemble import GradientBoostingRegressor, RandomForestRegressor

from el_selector.config import DEFAULT_MODEL_DIR, DEFAULT_SEED, SelectorConfig
from el_selector.exceptions import ResourceError, SchemaMismatchError
from el_selector.features import LABEL_FIELD, FeatureSchema, SelectionFeatures, feature_class
from el_selector.registry import feature_sets

logger = logging.getLogger(__name__)

ARTIFACT_VERSION = 1


class ModelKind(Enum):
    RANDOM_FOREST = "random_forest"
    GRADIENT_BOOSTING = "gradient_boosting"


# Ensemble hyperparameters per model kind
MODEL_PARAMS: Dict[ModelKind, Dict[str, Any]] = {
    ModelKind.RANDOM_FOREST: {
        "n_estimators": 200,
        "bootstrap": True,
        "max_features": 1 / 3,
    },
    ModelKind.GRADIENT_BOOSTING: {
        "loss": "absolute_error",
        "n_estimators": 1000,
        "max_leaf_nodes": 6,
        "learning_rate": 0.05,
        "subsample": 0.7,
    },
}


@dataclass
class LabeledDataset:
    """Feature matrix and gold labels, columns in `schema` order."""

    schema: FeatureSchema
    X: np.ndarray
    y: np.ndarray

    def __len__(self) -> int:
        return int(self.y.shape[0])

    @staticmethod
    def from_file(path: Union[str, Path]) -> "LabeledDataset":
        """Read a tab-separated table written by the training set builder."""
        path = Path(path)
        if not path.exists():
            raise ResourceError(f"Training data not found: {path}")
        with path.open(encoding="utf-8", newline="") as f:
            reader = csv.reader(f, delimiter="\t")
            header = next(reader, None)
            if not header or header[-1] != LABEL_FIELD:
                raise ResourceError(f"Training data without a '{LABEL_FIELD}' column: {path}")
            rows = [[float(value) for value in row] for row in reader if row]

        fields = tuple(header[:-1])
        data = np.array(rows, dtype=float).reshape(len(rows), len(header))
        return LabeledDataset(
            schema=FeatureSchema(kind=_kind_of(fields), fields=fields),
            X=data[:, :-1],
            y=data[:, -1],
        )


def _kind_of(fields) -> str:
    for name, cls in feature_sets.available().items():
        if tuple(cls.FIELDS) == tuple(fields):
            return name
    return "custom"


class SelectionModel:
    """
    Language-scoped selection model.

    The artifact is loaded lazily on the first `score` call. Loading,
    training and saving are serialized by one lock; a newly fitted
    estimator replaces the previous one in a single assignment, so
    concurrent scorers always see a complete model.
    """

    def __init__(
        self,
        language: str,
        model_dir: str = DEFAULT_MODEL_DIR,
        model_kind: Union[ModelKind, str] = ModelKind.RANDOM_FOREST,
        feature_set: str = "simple",
        seed: int = DEFAULT_SEED,
        estimator_params: Optional[Dict[str, Any]] = None,
    ):
        self.language = language
        self.model_dir = Path(model_dir)
        self.model_kind = ModelKind(model_kind)
        self.feature_set = feature_set
        self.schema = feature_class(feature_set).schema()
        self.seed = seed
        self.estimator_params = dict(estimator_params or {})
        self._estimator = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: SelectorConfig) -> "SelectionModel":
        return cls(
            language=config.language,
            model_dir=config.model_dir,
            model_kind=config.model_kind,
            feature_set=config.feature_set,
            seed=config.seed,
        )

    @property
    def artifact_path(self) -> Path:
        return self.model_dir / f"selector-{self.language}-v{ARTIFACT_VERSION}.pkl"

    @property
    def is_loaded(self) -> bool:
        return self._estimator is not None

    def _new_estimator(self):
        params = dict(MODEL_PARAMS[self.model_kind])
        params.update(self.estimator_params)
        params["random_state"] = self.seed
        if self.model_kind is ModelKind.RANDOM_FOREST:
            return RandomForestRegressor(**params)
        return GradientBoostingRegressor(**params)

    def score(self, features: SelectionFeatures) -> float:
        """Raw regression output for one feature vector; higher is better."""
        estimator = self._estimator
        if estimator is None:
            with self._lock:
                if self._estimator is None:
                    self._load_locked()
                estimator = self._estimator
        vector = features.to_numeric_vector(self.schema)
        return float(estimator.predict(vector.reshape(1, -1))[0])

    def train(self, dataset: LabeledDataset) -> None:
        if len(dataset) == 0:
            raise ValueError("Cannot train a selection model on an empty dataset")
        self.schema.check(dataset.schema.fields)
        columns = [dataset.schema.fields.index(name) for name in self.schema.fields]
        X = dataset.X[:, columns]

        logger.info(
            f"Training {self.model_kind.value} selector for '{self.language}' "
            f"on {len(dataset)} instances ({int(dataset.y.sum())} positive)"
        )
        estimator = self._new_estimator()
        estimator.fit(X, dataset.y)
        with self._lock:
            self._estimator = estimator

    def save(self) -> Path:
        with self._lock:
            if self._estimator is None:
                raise ResourceError("No trained selection model to save")
            payload = {
                "version": ARTIFACT_VERSION,
                "language": self.language,
                "model_kind": self.model_kind.value,
                "feature_set": self.schema.kind,
                "fields": list(self.schema.fields),
                "estimator": self._estimator,
            }
            self.model_dir.mkdir(parents=True, exist_ok=True)
            path = self.artifact_path
            with path.open("wb") as f:
                pickle.dump(payload, f)
        logger.info(f"Selection model saved to {path}")
        return path

    def load(self) -> None:
        with self._lock:
            self._load_locked()

    def _load_locked(self) -> None:
        path = self.artifact_path
        if not path.exists():
            raise ResourceError(f"Selection model not found: {path}")
        try:
            with path.open("rb") as f:
                payload = pickle.load(f)
        except (OSError, EOFError, pickle.UnpicklingError) as exc:
            raise ResourceError(f"Unreadable selection model {path}: {exc}") from exc

        expected = {
            "version": ARTIFACT_VERSION,
            "language": self.language,
            "model_kind": self.model_kind.value,
        }
        for key, value in expected.items():
            if payload.get(key) != value:
                raise ResourceError(
                    f"Selection model {path} has {key}={payload.get(key)!r}, expected {value!r}"
                )
        fields = tuple(payload.get("fields", ()))
        if fields != self.schema.fields:
            raise SchemaMismatchError(self.schema.fields, fields)
        self._estimator = payload["estimator"]
        logger.info(f"Selection model loaded from {path}")

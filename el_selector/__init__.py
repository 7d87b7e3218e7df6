"""
el_selector: second-stage candidate selection for entity linking.

Scores the knowledge-base candidates of every mention of a document with a
learned tree-ensemble selector, and provides the training-set builder and
the evaluator for that selector.
"""

__version__ = "0.1.0"

from .config import ComponentConfig, SelectorConfig  # noqa: F401
from .entity import EntityResult  # noqa: F401
from .evaluation import EvaluationReport, Evaluator, LabelStats  # noqa: F401
from .exceptions import ResourceError, SchemaMismatchError  # noqa: F401
from .pipeline import DisambiguationPipeline  # noqa: F401
from .selector import LabeledDataset, ModelKind, SelectionModel  # noqa: F401
from .training import SamplingCounter, TrainingSetBuilder, TrainingSummary  # noqa: F401

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

# Languages for which the named-entity tagger is run
NER_LANGUAGES = ["en", "fr"]

# Balanced sampling: target negatives/positives ratio of the emitted dataset
DEFAULT_SAMPLING_RATIO = 1.0

# Selector score under which a candidate is pruned in full-pipeline mode
DEFAULT_MIN_SELECTOR_SCORE = 0.3

DEFAULT_MODEL_DIR = "data/models"
DEFAULT_SEED = 12345

# Placeholder stable id for candidates without a cross-KB identifier
UNDEFINED_STABLE_ID = "Q0"


@dataclass
class ComponentConfig:
    """Generic component configuration."""

    name: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SelectorConfig:
    """Top-level selector configuration."""

    language: str = "en"
    model_dir: str = DEFAULT_MODEL_DIR
    model_kind: str = "random_forest"
    feature_set: str = "simple"
    sampling_ratio: float = DEFAULT_SAMPLING_RATIO
    min_selector_score: float = DEFAULT_MIN_SELECTOR_SCORE
    ner_languages: List[str] = field(default_factory=lambda: list(NER_LANGUAGES))
    seed: int = DEFAULT_SEED
    max_workers: int = 1
    knowledge_base: Optional[ComponentConfig] = None
    tokenizer: Optional[ComponentConfig] = None
    ner_tagger: Optional[ComponentConfig] = None
    mention_tagger: Optional[ComponentConfig] = None
    candidate_generator: Optional[ComponentConfig] = None
    ranker: Optional[ComponentConfig] = None
    context_builder: Optional[ComponentConfig] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SelectorConfig":
        def build(section: str) -> Optional[ComponentConfig]:
            if section not in data or data[section] is None:
                return None
            entry = data[section]
            return ComponentConfig(name=entry["name"], params=entry.get("params", {}))

        return SelectorConfig(
            language=data.get("language", "en"),
            model_dir=data.get("model_dir", DEFAULT_MODEL_DIR),
            model_kind=data.get("model_kind", "random_forest"),
            feature_set=data.get("feature_set", "simple"),
            sampling_ratio=float(data.get("sampling_ratio", DEFAULT_SAMPLING_RATIO)),
            min_selector_score=float(
                data.get("min_selector_score", DEFAULT_MIN_SELECTOR_SCORE)
            ),
            ner_languages=list(data.get("ner_languages", NER_LANGUAGES)),
            seed=data.get("seed", DEFAULT_SEED),
            max_workers=data.get("max_workers", 1),
            knowledge_base=build("knowledge_base"),
            tokenizer=build("tokenizer"),
            ner_tagger=build("ner_tagger"),
            mention_tagger=build("mention_tagger"),
            candidate_generator=build("candidate_generator"),
            ranker=build("ranker"),
            context_builder=build("context_builder"),
        )

    @staticmethod
    def from_json(path: str) -> "SelectorConfig":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return SelectorConfig.from_dict(data)

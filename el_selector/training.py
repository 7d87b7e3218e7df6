"""
Training data for the selection model.

Gold labels come from the links of reference articles: a candidate is a
positive example when its concept is the link target of the mention's exact
span. Every other candidate of every tagged mention is a negative example.
Negatives vastly outnumber positives, so examples are admitted online
against a target negatives/positives ratio.
"""

import csv
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

from el_selector.config import DEFAULT_SAMPLING_RATIO, SelectorConfig
from el_selector.exceptions import SchemaMismatchError
from el_selector.features import SelectionFeatures, feature_class
from el_selector.markup import extract_gold_links
from el_selector.pipeline import DisambiguationPipeline
from el_selector.types import ProgressCallback, ReferenceArticle

logger = logging.getLogger(__name__)


class SamplingCounter:
    """
    Class-balancing admission of training examples.

    Counts start at one positive and no negatives. A negative is admitted
    while negatives/positives is below the target ratio, a positive only once
    it has been reached. The outcome depends on the order examples arrive in.
    """

    def __init__(self, ratio: float = DEFAULT_SAMPLING_RATIO):
        if ratio <= 0:
            raise ValueError("Sampling ratio must be positive")
        self.target = ratio
        self.negatives = 0
        self.positives = 1
        self._lock = threading.Lock()

    def admit(self, label: float) -> bool:
        with self._lock:
            balanced = self.negatives / self.positives >= self.target
            if label:
                if balanced:
                    self.positives += 1
                    return True
                return False
            if not balanced:
                self.negatives += 1
                return True
            return False

    @property
    def ratio(self) -> float:
        with self._lock:
            return self.negatives / self.positives


@dataclass
class TrainingSummary:
    articles: int = 0
    instances: int = 0
    positives: int = 0
    negatives: int = 0
    skipped: int = 0


class TrainingSetBuilder:
    """Mines labeled selection features from reference articles into a TSV table."""

    def __init__(
        self,
        pipeline: DisambiguationPipeline,
        language: str = "en",
        counter: Optional[SamplingCounter] = None,
        sampling_ratio: float = DEFAULT_SAMPLING_RATIO,
        max_workers: int = 1,
    ) -> None:
        self.pipeline = pipeline
        self.language = language
        self.counter = counter or SamplingCounter(sampling_ratio)
        self.max_workers = max_workers
        self.schema = feature_class(pipeline.feature_set).schema()

    @classmethod
    def from_config(
        cls, pipeline: DisambiguationPipeline, config: SelectorConfig
    ) -> "TrainingSetBuilder":
        return cls(
            pipeline,
            language=config.language,
            sampling_ratio=config.sampling_ratio,
            max_workers=config.max_workers,
        )

    def process_article(self, article: ReferenceArticle) -> List[SelectionFeatures]:
        """Labeled features of every candidate of every mention, before sampling."""
        gold = extract_gold_links(article.markup, self.pipeline.kb)
        state = self.pipeline.prepare(gold.text, self.language)

        instances: List[SelectionFeatures] = []
        for mention in state.mentions:
            expected = gold.expected_id(mention.start, mention.end)
            for rank, candidate in enumerate(state.candidates.get(mention, [])):
                if candidate.commonness is None:
                    continue
                label = 1.0 if expected is not None and candidate.entity_id == expected else 0.0
                try:
                    features, _ = self.pipeline.featurize(
                        state, mention, candidate, rank=rank, label=label
                    )
                except SchemaMismatchError:
                    raise
                except Exception:
                    logger.warning(
                        f"Skipping candidate {candidate.entity_id} of '{mention.text}' "
                        f"in '{article.title}'",
                        exc_info=True,
                    )
                    continue
                instances.append(features)
        logger.debug(
            f"'{article.title}': {len(gold.links)} gold links, {len(instances)} instances"
        )
        return instances

    def _admit(self, instances: List[SelectionFeatures], writer, summary: TrainingSummary) -> None:
        for features in instances:
            if not self.counter.admit(features.label):
                continue
            writer.writerow(features.to_row())
            summary.instances += 1
            if features.label:
                summary.positives += 1
            else:
                summary.negatives += 1

    def build(
        self,
        articles: Iterable[ReferenceArticle],
        output_path: Union[str, Path],
        max_workers: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TrainingSummary:
        """
        Write the sampled training table for `articles` to `output_path`.

        With `max_workers > 1` articles are featurized concurrently; admission
        still goes through the shared counter one article at a time, in
        completion order.
        """
        if max_workers is None:
            max_workers = self.max_workers
        articles = list(articles)
        total = len(articles)
        summary = TrainingSummary()
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        def report(done: int, title: str) -> None:
            if progress_callback:
                progress_callback(done / total if total else 1.0, f"Processed {title}")

        with output_path.open("w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, delimiter="\t")
            writer.writerow(self.schema.header())

            if max_workers <= 1:
                for article in articles:
                    self._collect(article, lambda a=article: self.process_article(a), writer, summary)
                    f.flush()
                    report(summary.articles + summary.skipped, article.title)
            else:
                with ThreadPoolExecutor(max_workers=max_workers) as executor:
                    futures = {
                        executor.submit(self.process_article, article): article
                        for article in articles
                    }
                    for future in as_completed(futures):
                        article = futures[future]
                        self._collect(article, future.result, writer, summary)
                        f.flush()
                        report(summary.articles + summary.skipped, article.title)

        logger.info(
            f"Training set written to {output_path}: {summary.instances} instances "
            f"({summary.positives} positive, {summary.negatives} negative) from "
            f"{summary.articles} articles, {summary.skipped} skipped"
        )
        return summary

    def _collect(self, article: ReferenceArticle, produce, writer, summary: TrainingSummary) -> None:
        try:
            instances = produce()
        except SchemaMismatchError:
            raise
        except Exception:
            logger.warning(f"Skipping article '{article.title}'", exc_info=True)
            summary.skipped += 1
            return
        self._admit(instances, writer, summary)
        summary.articles += 1

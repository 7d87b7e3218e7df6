"""
Evaluation of the selector against held-out reference articles.

The gold concepts of an article are the targets of its links. The produced
concepts come either from the selector alone (best candidate of every
mention) or from the full pipeline (selector pruning, population, overlap
pruning). Both are compared as sets of concept ids.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple

from el_selector.config import DEFAULT_MIN_SELECTOR_SCORE, SelectorConfig
from el_selector.exceptions import ResourceError, SchemaMismatchError
from el_selector.markup import extract_gold_links
from el_selector.pipeline import DisambiguationPipeline
from el_selector.selector import SelectionModel
from el_selector.types import ProgressCallback, ReferenceArticle

logger = logging.getLogger(__name__)


def _ratio(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator else 0.0


@dataclass
class LabelStats:
    tp: int = 0
    fp: int = 0
    fn: int = 0
    expected: int = 0
    produced: int = 0

    @classmethod
    def from_sets(cls, reference: Set[str], produced: Set[str]) -> "LabelStats":
        return cls(
            tp=len(produced & reference),
            fp=len(produced - reference),
            fn=len(reference - produced),
            expected=len(reference),
            produced=len(produced),
        )

    def __add__(self, other: "LabelStats") -> "LabelStats":
        return LabelStats(
            tp=self.tp + other.tp,
            fp=self.fp + other.fp,
            fn=self.fn + other.fn,
            expected=self.expected + other.expected,
            produced=self.produced + other.produced,
        )

    @property
    def precision(self) -> float:
        return _ratio(self.tp, self.tp + self.fp)

    @property
    def recall(self) -> float:
        return _ratio(self.tp, self.tp + self.fn)

    @property
    def f1(self) -> float:
        p, r = self.precision, self.recall
        return 2 * p * r / (p + r) if p + r else 0.0


@dataclass
class EvaluationReport:
    articles: List[Tuple[str, LabelStats]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def totals(self) -> LabelStats:
        total = LabelStats()
        for _, stats in self.articles:
            total = total + stats
        return total

    @property
    def precision(self) -> float:
        return self.totals.precision

    @property
    def recall(self) -> float:
        return self.totals.recall

    @property
    def f1(self) -> float:
        return self.totals.f1


class Evaluator:
    """Replays the selector-only or full pipeline on reference articles."""

    def __init__(
        self,
        pipeline: DisambiguationPipeline,
        selection_model: SelectionModel,
        language: str = "en",
        min_selector_score: float = DEFAULT_MIN_SELECTOR_SCORE,
        full: bool = True,
        max_workers: int = 1,
    ) -> None:
        self.pipeline = pipeline
        self.selection_model = selection_model
        self.language = language
        self.min_selector_score = min_selector_score
        self.full = full
        self.max_workers = max_workers

    @classmethod
    def from_config(
        cls,
        pipeline: DisambiguationPipeline,
        selection_model: SelectionModel,
        config: SelectorConfig,
        full: bool = True,
    ) -> "Evaluator":
        return cls(
            pipeline,
            selection_model,
            language=config.language,
            min_selector_score=config.min_selector_score,
            full=full,
            max_workers=config.max_workers,
        )

    def produced_ids(self, text: str) -> Set[str]:
        state = self.pipeline.prepare(text, self.language)
        if self.full:
            results = self.pipeline.resolve(
                state, self.selection_model, min_score=self.min_selector_score
            )
            return {r.entity_id for r in results if r.entity_id is not None}
        selected = self.pipeline.select(state, self.selection_model)
        return {candidates[0].entity_id for candidates in selected.values() if candidates}

    def evaluate_article(self, article: ReferenceArticle) -> LabelStats:
        gold = extract_gold_links(article.markup, self.pipeline.kb, capitalize_destination=True)
        stats = LabelStats.from_sets(gold.entity_ids(), self.produced_ids(gold.text))
        logger.debug(f"'{article.title}': tp={stats.tp} fp={stats.fp} fn={stats.fn}")
        return stats

    def _safe_evaluate(self, article: ReferenceArticle) -> Optional[LabelStats]:
        try:
            return self.evaluate_article(article)
        except (ResourceError, SchemaMismatchError):
            raise
        except Exception:
            logger.warning(f"Skipping article '{article.title}'", exc_info=True)
            return None

    def evaluate(
        self,
        articles: Iterable[ReferenceArticle],
        max_workers: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> EvaluationReport:
        if max_workers is None:
            max_workers = self.max_workers
        articles = list(articles)
        total = len(articles)
        report = EvaluationReport()

        if max_workers <= 1:
            outcomes = map(self._safe_evaluate, articles)
            self._collect(articles, outcomes, report, total, progress_callback)
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                outcomes = executor.map(self._safe_evaluate, articles)
                self._collect(articles, outcomes, report, total, progress_callback)

        totals = report.totals
        mode = "full pipeline" if self.full else "selector only"
        logger.info(
            f"Evaluation ({mode}) over {len(report.articles)} articles, "
            f"{len(report.skipped)} skipped: precision={totals.precision:.4f} "
            f"recall={totals.recall:.4f} f1={totals.f1:.4f}"
        )
        return report

    @staticmethod
    def _collect(articles, outcomes, report, total, progress_callback) -> None:
        for i, (article, stats) in enumerate(zip(articles, outcomes)):
            if stats is None:
                report.skipped.append(article.title)
            else:
                report.articles.append((article.title, stats))
            if progress_callback:
                progress_callback((i + 1) / total, f"Evaluated {article.title}")

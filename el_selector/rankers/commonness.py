from el_selector.registry import rankers


@rankers.register("commonness")
class CommonnessRanker:
    """Scores a candidate by its prior probability given the mention string.

    Optionally blends in relatedness to the document context.
    """

    def __init__(self, relatedness_weight: float = 0.0):
        if not 0.0 <= relatedness_weight <= 1.0:
            raise ValueError("relatedness_weight must be in [0, 1]")
        self.relatedness_weight = relatedness_weight

    def score(
        self,
        commonness: float,
        relatedness: float,
        context_quality: float,
        is_best_case_label: bool,
        embedding_similarity: float,
        stable_id: str,
        type_id: str,
    ) -> float:
        weight = self.relatedness_weight
        return (1.0 - weight) * commonness + weight * relatedness

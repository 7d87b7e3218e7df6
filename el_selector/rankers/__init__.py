"""First-stage rankers."""

from .commonness import CommonnessRanker  # noqa: F401

"""Candidate generators."""

from .labels import LabelCandidateGenerator  # noqa: F401

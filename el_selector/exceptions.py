"""Errors raised by the selection pipeline."""


class ResourceError(Exception):
    """A required resource (model artifact, training data) is missing or unreadable."""


class SchemaMismatchError(ValueError):
    """A feature vector or dataset does not match the schema a model was trained with."""

    def __init__(self, expected, actual):
        self.expected = tuple(expected)
        self.actual = tuple(actual)
        missing = sorted(set(self.expected) - set(self.actual))
        unknown = sorted(set(self.actual) - set(self.expected))
        super().__init__(
            f"Feature schema mismatch: missing={missing} unknown={unknown}"
        )

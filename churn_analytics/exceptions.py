"""
Exceptions
==========

Error types raised by the churn analytics suite. All of them derive from
``ValueError`` so callers that already guard against bad input keep working.
"""


class ChurnAnalyticsError(ValueError):
    """Base class for all churn analytics errors."""


class InvalidBucketer(ChurnAnalyticsError):
    """A bucketer references a column the dataset does not have."""

    def __init__(self, bucketer_name: str, missing_columns):
        self.bucketer_name = bucketer_name
        self.missing_columns = sorted(missing_columns)
        super().__init__(
            f"Bucketer '{bucketer_name}' references unknown columns: {self.missing_columns}"
        )


class InvalidFilter(ChurnAnalyticsError):
    """A filter predicate is malformed or references unknown columns."""


class DivisionUndefined(ChurnAnalyticsError):
    """A ratio was requested over a zero denominator."""


class EmptyDataset(DivisionUndefined):
    """A scalar rate was requested over a dataset with no records."""


class UnknownQuery(ChurnAnalyticsError):
    """No named query matches the given name or number."""


class SchemaError(ChurnAnalyticsError):
    """Loaded customer data violates the customer schema."""

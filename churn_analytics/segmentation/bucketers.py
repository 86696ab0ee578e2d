"""
Bucketers Module
================

Declarative bucketing rules that map customer records to discrete segment
labels. An ordered list of bucketers forms a segment definition; the tuple of
labels a record receives is its segment key.

Usage:
    from churn_analytics.segmentation import BandBucketer, FieldBucketer, NTileBucketer

    age_group = BandBucketer('age', breaks=[30, 51], labels=['<30', '30-50', '>50'])
    country = FieldBucketer('country')
    balance_quartile = NTileBucketer('balance_quartile', 'balance', buckets=4)
"""

import re
import pandas as pd
import numpy as np
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from ..exceptions import ChurnAnalyticsError, InvalidBucketer


def _missing_column(error: Exception) -> str:
    """Name of the field a KeyError or AttributeError complains about."""
    if isinstance(error, KeyError) and error.args:
        return str(error.args[0])
    name = getattr(error, "name", None)
    if name:
        return name
    match = re.search(r"attribute '([^']+)'", str(error))
    return match.group(1) if match else str(error)


class Bucketer:
    """
    Base class for segment bucketers.

    Attributes:
        name (str): Column name the labels appear under in result rows
        columns (tuple): Dataset columns the bucketer reads
    """

    name: str = ""
    columns: Tuple[str, ...] = ()

    def validate(self, df: pd.DataFrame) -> None:
        """Raise InvalidBucketer if any referenced column is missing."""
        missing = set(self.columns) - set(df.columns)
        if missing:
            raise InvalidBucketer(self.name, missing)

    def assign(self, df: pd.DataFrame) -> pd.Series:
        """Return one label per record, aligned to ``df.index``."""
        raise NotImplementedError

    def sort_key(self, label: Any) -> Any:
        """Ordering key for a label produced by this bucketer."""
        return label

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, columns={self.columns!r})"


class FieldBucketer(Bucketer):
    """Identity bucketer on a categorical column."""

    def __init__(self, column: str, name: Optional[str] = None):
        self.name = name or column
        self.columns = (column,)
        self.column = column

    def assign(self, df: pd.DataFrame) -> pd.Series:
        self.validate(df)
        return df[self.column].rename(self.name)


class BandBucketer(Bucketer):
    """
    Numeric band bucketer with ordered labels.

    ``breaks`` are the cut points between consecutive bands; band ``i``
    covers ``[breaks[i-1], breaks[i])``, the first band is open below and the
    last band is open above, so every value lands in exactly one band.

    Example:
        >>> tenure = BandBucketer('tenure', breaks=[3, 6, 9],
        ...                       labels=['0-2', '3-5', '6-8', '9+'],
        ...                       name='tenure_band')
    """

    def __init__(
        self,
        column: str,
        breaks: Sequence[float],
        labels: Sequence[str],
        name: Optional[str] = None
    ):
        if len(labels) != len(breaks) + 1:
            raise ChurnAnalyticsError(
                f"BandBucketer on '{column}' needs {len(breaks) + 1} labels, got {len(labels)}"
            )
        if list(breaks) != sorted(breaks):
            raise ChurnAnalyticsError(f"BandBucketer on '{column}' breaks must be ascending")

        self.name = name or f"{column}_band"
        self.columns = (column,)
        self.column = column
        self.breaks = np.asarray(breaks, dtype=float)
        self.labels = list(labels)

    def assign(self, df: pd.DataFrame) -> pd.Series:
        self.validate(df)
        positions = np.searchsorted(self.breaks, df[self.column].to_numpy(dtype=float), side='right')
        return pd.Series(
            [self.labels[p] for p in positions],
            index=df.index,
            name=self.name,
            dtype=object
        )

    def sort_key(self, label: Any) -> Any:
        return self.labels.index(label)


class FunctionBucketer(Bucketer):
    """
    Bucketer backed by an arbitrary pure function over a customer record.

    The function receives an immutable record holding only the declared
    columns, with attribute access (``record.age``).

    Args:
        name: Label column name
        columns: Columns the function reads
        func: Callable mapping a record to a label
        order: Optional explicit label ordering for sorting
    """

    def __init__(
        self,
        name: str,
        columns: Iterable[str],
        func: Callable[[Any], Any],
        order: Optional[Sequence[Any]] = None
    ):
        self.name = name
        self.columns = tuple(columns)
        self.func = func
        self.order = list(order) if order is not None else None

    def assign(self, df: pd.DataFrame) -> pd.Series:
        self.validate(df)
        records = df[list(self.columns)].itertuples(index=False, name='CustomerRecord')
        try:
            labels = [self.func(record) for record in records]
        except (AttributeError, KeyError) as e:
            raise InvalidBucketer(self.name, {_missing_column(e)}) from e
        return pd.Series(
            labels,
            index=df.index,
            name=self.name,
            dtype=object
        )

    def sort_key(self, label: Any) -> Any:
        if self.order is None:
            return label
        if label in self.order:
            return self.order.index(label)
        return len(self.order)


def ntile(values: Union[Sequence[float], np.ndarray, pd.Series], buckets: int) -> np.ndarray:
    """
    Assign NTILE bucket numbers (1..buckets) to values.

    Values are ranked ascending with a stable sort, so ties keep their
    original order. The first ``n % buckets`` buckets receive one extra
    record, matching SQL ``NTILE``.

    Args:
        values: Numeric values in record order
        buckets: Number of buckets (K)

    Returns:
        Integer array of bucket numbers aligned with ``values``

    Example:
        >>> ntile([5, 1, 3, 2, 4], 2).tolist()
        [2, 1, 1, 1, 2]
    """
    if buckets < 1:
        raise ChurnAnalyticsError(f"NTILE needs at least one bucket, got {buckets}")

    arr = np.asarray(values, dtype=float)
    n = len(arr)
    order = np.argsort(arr, kind='stable')

    size, remainder = divmod(n, buckets)
    sizes = [size + 1] * remainder + [size] * (buckets - remainder)

    ranked = np.repeat(np.arange(1, buckets + 1), sizes)
    assigned = np.empty(n, dtype=int)
    assigned[order] = ranked
    return assigned


class NTileBucketer(Bucketer):
    """
    Equal-frequency bucketer over a numeric expression.

    Bucket numbers are computed over the records handed to ``assign``, i.e.
    after any filter has been applied.

    Args:
        name: Label column name
        expression: Column name, or callable ``DataFrame -> Series``
        buckets: Number of buckets (4 for quartiles)
        columns: Columns a callable expression reads
    """

    def __init__(
        self,
        name: str,
        expression: Union[str, Callable[[pd.DataFrame], pd.Series]],
        buckets: int = 4,
        columns: Optional[Iterable[str]] = None
    ):
        if buckets < 1:
            raise ChurnAnalyticsError(f"NTileBucketer '{name}' needs at least one bucket")

        self.name = name
        self.expression = expression
        self.buckets = buckets
        if isinstance(expression, str):
            self.columns = (expression,)
        else:
            self.columns = tuple(columns or ())

    def values(self, df: pd.DataFrame) -> pd.Series:
        """Evaluate the ranking expression."""
        self.validate(df)
        if isinstance(self.expression, str):
            return df[self.expression]
        try:
            values = self.expression(df)
        except (AttributeError, KeyError) as e:
            raise InvalidBucketer(self.name, {_missing_column(e)}) from e
        return pd.Series(values, index=df.index)

    def assign(self, df: pd.DataFrame) -> pd.Series:
        return pd.Series(
            ntile(self.values(df), self.buckets),
            index=df.index,
            name=self.name
        )


def bucketer_names(bucketers: List[Bucketer]) -> Tuple[str, ...]:
    """Return bucketer names, rejecting duplicates."""
    names = tuple(b.name for b in bucketers)
    if len(set(names)) != len(names):
        raise ChurnAnalyticsError(f"Duplicate bucketer names: {names}")
    return names

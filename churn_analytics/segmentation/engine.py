"""
Segmentation-Aggregation Engine
===============================

Partitions the customer dataset by a segment definition and computes
per-segment customer counts and churn statistics.

Usage:
    from churn_analytics.segmentation import aggregate, rollup, FieldBucketer

    rows = aggregate(customers, [FieldBucketer('country')])
    frame = to_frame(rows)

    demographics = rollup(customers, FieldBucketer('country'), FieldBucketer('gender'))
"""

from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from loguru import logger

from ..exceptions import (
    ChurnAnalyticsError,
    DivisionUndefined,
    EmptyDataset,
    InvalidFilter,
    SchemaError,
)
from .bucketers import Bucketer, bucketer_names

ROLLUP_ALL = "ALL"

RESULT_COLUMNS = ['total_customers', 'churned_customers', 'churn_rate']

# measure name -> (source column, pandas reduction)
MEASURES: Dict[str, Tuple[str, str]] = {
    'avg_balance': ('balance', 'mean'),
    'total_balance': ('balance', 'sum'),
    'avg_salary': ('estimated_salary', 'mean'),
    'avg_credit_score': ('credit_score', 'mean'),
    'avg_age': ('age', 'mean'),
    'avg_tenure': ('tenure', 'mean'),
}

FilterSpec = Union[None, str, Mapping[str, Any], Callable[[pd.DataFrame], pd.Series]]
Baseline = Union[None, float, Mapping[Any, float]]

_CENT = Decimal('0.01')


def round_half_up(value: Union[float, int, Decimal], places: int = 2) -> float:
    """
    Round half away from zero, like SQL ``ROUND``.

    Floats are converted through their shortest repr so that ``2.675``
    rounds to ``2.68``.
    """
    if not isinstance(value, Decimal):
        value = Decimal(repr(float(value)))
    quantum = _CENT if places == 2 else Decimal(1).scaleb(-places)
    return float(value.quantize(quantum, rounding=ROUND_HALF_UP))


def churn_rate(churned: int, total: int) -> float:
    """
    Churn percentage ``100 * churned / total`` rounded to 2 decimals.

    Raises:
        DivisionUndefined: If ``total`` is zero
    """
    if total == 0:
        raise DivisionUndefined("Churn rate is undefined for zero customers")
    return round_half_up(Decimal(100 * int(churned)) / Decimal(int(total)))


@dataclass(frozen=True)
class AggregateResultRow:
    """
    One segment of an aggregation result.

    Attributes:
        key: Tuple of segment labels, one per bucketer
        dimensions: Bucketer names, aligned with ``key``
        total_customers: Records in the segment
        churned_customers: Churned records in the segment
        churn_rate: Churn percentage, 2 decimals
        measures: Derived scalars as ``(name, value)`` pairs
        rate_deviation: ``churn_rate`` minus the supplied baseline
    """

    key: Tuple[Any, ...]
    dimensions: Tuple[str, ...]
    total_customers: int
    churned_customers: int
    churn_rate: float
    measures: Tuple[Tuple[str, float], ...] = ()
    rate_deviation: Optional[float] = None

    @property
    def labels(self) -> Dict[str, Any]:
        return dict(zip(self.dimensions, self.key))

    def measure(self, name: str) -> float:
        return dict(self.measures)[name]

    def value(self, column: str) -> Any:
        """Look up a result column by name."""
        if column in RESULT_COLUMNS or column == 'rate_deviation':
            return getattr(self, column)
        measures = dict(self.measures)
        if column in measures:
            return measures[column]
        labels = self.labels
        if column in labels:
            return labels[column]
        raise ChurnAnalyticsError(f"Unknown result column: {column}")

    def to_dict(self) -> Dict[str, Any]:
        row = dict(self.labels)
        row['total_customers'] = self.total_customers
        row['churned_customers'] = self.churned_customers
        row['churn_rate'] = self.churn_rate
        row.update(self.measures)
        if self.rate_deviation is not None:
            row['rate_deviation'] = self.rate_deviation
        return row


class RevenueLoss(NamedTuple):
    """Balance held by customers who churned."""

    churned_customers: int
    total_loss: float
    avg_loss_per_customer: float


def apply_filter(df: pd.DataFrame, predicate: FilterSpec) -> pd.DataFrame:
    """
    Select the records matching a filter predicate.

    Args:
        df: Customer dataset
        predicate: None, a mapping of column -> required value, a pandas
            query expression, or a callable returning a boolean mask

    Returns:
        Filtered DataFrame (the input is never modified)

    Raises:
        InvalidFilter: If the predicate is malformed

    Example:
        >>> apply_filter(df, {'balance': 0, 'has_credit_card': False})
        >>> apply_filter(df, "age > 50 and is_active == False")
    """
    if predicate is None:
        return df

    if isinstance(predicate, Mapping):
        if not predicate:
            raise InvalidFilter("Filter mapping has no conditions")
        missing = set(predicate) - set(df.columns)
        if missing:
            raise InvalidFilter(f"Filter references unknown columns: {sorted(missing)}")
        mask = pd.Series(True, index=df.index)
        for column, expected in predicate.items():
            mask &= df[column] == expected
        return df.loc[mask]

    if isinstance(predicate, str):
        if not predicate.strip():
            raise InvalidFilter("Filter expression is empty")
        try:
            mask = df.eval(predicate)
        except Exception as e:
            raise InvalidFilter(f"Malformed filter expression '{predicate}': {e}") from e
        return df.loc[_check_mask(mask, df, predicate)]

    if callable(predicate):
        try:
            mask = predicate(df)
        except KeyError as e:
            raise InvalidFilter(f"Filter references unknown column: {e}") from e
        return df.loc[_check_mask(mask, df, getattr(predicate, '__name__', 'callable'))]

    raise InvalidFilter(f"Unsupported filter type: {type(predicate).__name__}")


def _check_mask(mask: Any, df: pd.DataFrame, description: str) -> pd.Series:
    """Ensure a filter produced a boolean mask aligned with the dataset."""
    if not isinstance(mask, pd.Series) or not pd.api.types.is_bool_dtype(mask):
        raise InvalidFilter(f"Filter '{description}' did not produce a boolean mask")
    if not mask.index.equals(df.index):
        raise InvalidFilter(f"Filter '{description}' mask is not aligned with the dataset")
    return mask


def _validate(df: pd.DataFrame, bucketers: Sequence[Bucketer], measures: Sequence[str]) -> None:
    if 'churned' not in df.columns:
        raise SchemaError("Dataset has no 'churned' column")
    for bucketer in bucketers:
        bucketer.validate(df)
    for name in measures:
        if name not in MEASURES:
            raise ChurnAnalyticsError(f"Unknown measure: {name}")
        column = MEASURES[name][0]
        if column not in df.columns:
            raise SchemaError(f"Measure '{name}' needs missing column '{column}'")


def _summarise(
    key: Tuple[Any, ...],
    dimensions: Tuple[str, ...],
    part: pd.DataFrame,
    measures: Sequence[str],
    baseline: Baseline
) -> AggregateResultRow:
    total = len(part)
    churned = int(part['churned'].sum())
    rate = churn_rate(churned, total)

    values = []
    for name in measures:
        column, reduction = MEASURES[name]
        values.append((name, round_half_up(getattr(part[column], reduction)())))

    deviation = None
    if baseline is not None:
        if isinstance(baseline, Mapping):
            reference = baseline.get(key[0]) if key else None
        else:
            reference = baseline
        if reference is not None:
            deviation = round_half_up(
                Decimal(repr(rate)) - Decimal(repr(float(reference)))
            )

    return AggregateResultRow(
        key=key,
        dimensions=dimensions,
        total_customers=total,
        churned_customers=churned,
        churn_rate=rate,
        measures=tuple(values),
        rate_deviation=deviation
    )


def _native(label: Any) -> Any:
    if pd.api.types.is_scalar(label) and pd.isna(label):
        return None
    return label.item() if isinstance(label, np.generic) else label


def _label_order(bucketer: Bucketer, label: Any) -> Tuple[bool, Any]:
    # unlabelled records (None) sort after every real label
    if label is None:
        return (True, 0)
    return (False, bucketer.sort_key(label))


def _order_rows(
    rows: List[AggregateResultRow],
    bucketers: Sequence[Bucketer],
    sort_by: Optional[str],
    descending: bool
) -> List[AggregateResultRow]:
    rows = sorted(
        rows,
        key=lambda r: tuple(_label_order(b, label) for b, label in zip(bucketers, r.key))
    )
    if sort_by is None:
        return rows

    # rows without a value (no baseline for the group) go last
    present = [r for r in rows if r.value(sort_by) is not None]
    absent = [r for r in rows if r.value(sort_by) is None]
    present.sort(key=lambda r: r.value(sort_by), reverse=descending)
    return present + absent


def aggregate(
    dataset: pd.DataFrame,
    bucketers: Sequence[Bucketer] = (),
    filter: FilterSpec = None,
    baseline: Baseline = None,
    sort_by: Optional[str] = None,
    descending: bool = False,
    measures: Sequence[str] = ()
) -> List[AggregateResultRow]:
    """
    Compute churn statistics per segment.

    Args:
        dataset: Customer dataset (not modified)
        bucketers: Ordered bucketers forming the composite segment key
        filter: Predicate applied before bucketing
        baseline: Overall rate, or mapping of first-key label -> rate,
            used for the ``rate_deviation`` column
        sort_by: Result column to order by instead of the segment key
        descending: Reverse the ``sort_by`` ordering
        measures: Derived scalars to add, see ``MEASURES``

    Returns:
        Ordered list of AggregateResultRow. Records a bucketer leaves
        unlabelled (None or NaN) form their own segment keyed by None,
        ordered after the labelled segments.

    Raises:
        InvalidBucketer: If a bucketer references an unknown column
        InvalidFilter: If the filter is malformed
        EmptyDataset: If no bucketers are given and no records pass the filter

    Example:
        >>> rows = aggregate(df, [FieldBucketer('country')], sort_by='churn_rate', descending=True)
    """
    bucketers = list(bucketers)
    measures = list(measures)
    dimensions = bucketer_names(bucketers)
    _validate(dataset, bucketers, measures)

    if sort_by is not None and sort_by not in RESULT_COLUMNS + ['rate_deviation'] + measures + list(dimensions):
        raise ChurnAnalyticsError(f"Cannot sort by unknown column: {sort_by}")

    frame = apply_filter(dataset, filter)
    logger.debug(f"Aggregating {len(frame)} of {len(dataset)} records by {list(dimensions)}")

    if not bucketers:
        if frame.empty:
            raise EmptyDataset("No records to aggregate")
        return [_summarise((), (), frame, measures, baseline)]

    if frame.empty:
        return []

    keys = [b.assign(frame) for b in bucketers]
    rows = []
    for key, part in frame.groupby(keys, sort=False, dropna=False):
        if not isinstance(key, tuple):
            key = (key,)
        key = tuple(_native(label) for label in key)
        rows.append(_summarise(key, dimensions, part, measures, baseline))

    return _order_rows(rows, bucketers, sort_by, descending)


def rollup(
    dataset: pd.DataFrame,
    first: Bucketer,
    second: Bucketer,
    filter: FilterSpec = None,
    measures: Sequence[str] = ()
) -> List[AggregateResultRow]:
    """
    Two-dimension rollup with subtotals.

    Emits, in order: every (first, second) combination, each first-dimension
    value with the second marked ``ALL``, each second-dimension value with
    the first marked ``ALL``, and the grand total with both marked ``ALL``.

    Example:
        >>> rows = rollup(df, FieldBucketer('country'), FieldBucketer('gender'))
        >>> rows[-1].key
        ('ALL', 'ALL')
    """
    dimensions = bucketer_names([first, second])
    _validate(dataset, [first, second], measures)

    frame = apply_filter(dataset, filter)
    if frame.empty:
        return []

    leaves = aggregate(frame, [first, second], measures=measures)
    by_first = [
        replace(row, key=(row.key[0], ROLLUP_ALL), dimensions=dimensions)
        for row in aggregate(frame, [first], measures=measures)
    ]
    by_second = [
        replace(row, key=(ROLLUP_ALL, row.key[0]), dimensions=dimensions)
        for row in aggregate(frame, [second], measures=measures)
    ]
    grand = replace(
        aggregate(frame, [], measures=measures)[0],
        key=(ROLLUP_ALL, ROLLUP_ALL),
        dimensions=dimensions
    )

    rows = leaves + by_first + by_second + [grand]
    logger.debug(
        f"Rollup {dimensions}: {len(leaves)} leaves, {len(by_first)} + {len(by_second)} subtotals"
    )
    return rows


def overall_churn_rate(dataset: pd.DataFrame, filter: FilterSpec = None) -> float:
    """
    Churn percentage over the whole (optionally filtered) dataset.

    Raises:
        EmptyDataset: If there are no records
    """
    frame = apply_filter(dataset, filter)
    if frame.empty:
        raise EmptyDataset("Overall churn rate is undefined for an empty dataset")
    return churn_rate(int(frame['churned'].sum()), len(frame))


def revenue_loss(dataset: pd.DataFrame) -> RevenueLoss:
    """
    Total and per-customer balance lost to churn.

    Raises:
        DivisionUndefined: If no customer churned
    """
    _validate(dataset, [], ['total_balance'])
    churned = dataset.loc[dataset['churned'].astype(bool), 'balance']
    if churned.empty:
        raise DivisionUndefined("Average loss is undefined when no customer churned")

    total = sum((Decimal(repr(float(b))) for b in churned), Decimal(0))
    return RevenueLoss(
        churned_customers=len(churned),
        total_loss=round_half_up(total),
        avg_loss_per_customer=round_half_up(total / len(churned))
    )


def to_frame(rows: Sequence[AggregateResultRow]) -> pd.DataFrame:
    """Convert result rows into a DataFrame for reporting and charting."""
    return pd.DataFrame([row.to_dict() for row in rows])

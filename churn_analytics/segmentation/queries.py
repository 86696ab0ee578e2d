"""
Named Churn Queries
===================

The twelve dashboard queries expressed as explicit configuration objects,
plus a runner that evaluates them over a loaded customer dataset.

Usage:
    from churn_analytics.segmentation import QueryRunner, list_queries

    runner = QueryRunner(customers)
    result = runner.run('churn_by_country')     # or runner.run(2)
    print(result.frame)

    results = runner.run_all()
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd
from loguru import logger

from ..exceptions import ChurnAnalyticsError, UnknownQuery
from .bucketers import BandBucketer, Bucketer, FieldBucketer, NTileBucketer
from .engine import (
    AggregateResultRow,
    FilterSpec,
    aggregate,
    overall_churn_rate,
    revenue_loss,
    rollup,
    to_frame,
)

AGGREGATE = 'aggregate'
ROLLUP = 'rollup'
REVENUE = 'revenue'

AGE_GROUP = BandBucketer('age', breaks=[30, 51], labels=['<30', '30-50', '>50'], name='age_group')
TENURE_BAND = BandBucketer('tenure', breaks=[3, 6, 9], labels=['0-2', '3-5', '6-8', '9+'], name='tenure_band')
COUNTRY = FieldBucketer('country')
GENDER = FieldBucketer('gender')
PRODUCTS = FieldBucketer('products_number')
IS_ACTIVE = FieldBucketer('is_active')


def clv_proxy(df: pd.DataFrame) -> pd.Series:
    """Customer lifetime value proxy from balance, product count and tenure."""
    return df['balance'] * df['products_number'] * (df['tenure'] + 1) / 1000


@dataclass(frozen=True)
class QueryConfig:
    """
    Declarative description of one named query.

    Attributes:
        number: Position in the dashboard (1-based)
        name: Unique query name
        description: Human-readable question the query answers
        kind: 'aggregate', 'rollup' or 'revenue'
        bucketers: Segment definition
        filter: Predicate applied before bucketing
        baseline: 'overall' to compare each segment against the overall rate
        sort_by: Result column to rank by
        descending: Rank in descending order
        measures: Derived scalars to include
    """

    number: int
    name: str
    description: str
    kind: str = AGGREGATE
    bucketers: Tuple[Bucketer, ...] = ()
    filter: FilterSpec = None
    baseline: Optional[str] = None
    sort_by: Optional[str] = None
    descending: bool = False
    measures: Tuple[str, ...] = ()


@dataclass
class QueryResult:
    """Outcome of running one named query."""

    config: QueryConfig
    rows: List[AggregateResultRow] = field(default_factory=list)
    scalars: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def frame(self) -> pd.DataFrame:
        if self.rows:
            return to_frame(self.rows)
        if self.scalars:
            return pd.DataFrame([self.scalars])
        return pd.DataFrame()


QUERIES: Tuple[QueryConfig, ...] = (
    QueryConfig(
        1, 'overall_churn',
        'Overall churn rate with average balance and salary',
        measures=('avg_balance', 'avg_salary'),
    ),
    QueryConfig(
        2, 'churn_by_country',
        'Churn rate per country',
        bucketers=(COUNTRY,),
        measures=('avg_balance',),
    ),
    QueryConfig(
        3, 'churn_by_age_group',
        'Churn rate for customers under 30, 30 to 50 and over 50',
        bucketers=(AGE_GROUP,),
        measures=('avg_balance',),
    ),
    QueryConfig(
        4, 'churn_by_tenure_band',
        'Churn rate by years with the bank',
        bucketers=(TENURE_BAND,),
    ),
    QueryConfig(
        5, 'churn_by_product_count',
        'Churn rate by number of products held',
        bucketers=(PRODUCTS,),
        measures=('avg_balance',),
    ),
    QueryConfig(
        6, 'riskiest_segments',
        'Age group and activity segments ranked by churn rate',
        bucketers=(AGE_GROUP, IS_ACTIVE),
        sort_by='churn_rate',
        descending=True,
    ),
    QueryConfig(
        7, 'country_deviation',
        'Country churn rate compared with the overall rate',
        bucketers=(COUNTRY,),
        baseline='overall',
        sort_by='rate_deviation',
        descending=True,
    ),
    QueryConfig(
        8, 'revenue_loss',
        'Total and per-customer balance lost to churn',
        kind=REVENUE,
    ),
    QueryConfig(
        9, 'balance_quartiles',
        'Churn rate by balance quartile',
        bucketers=(NTileBucketer('balance_quartile', 'balance', buckets=4),),
        measures=('avg_balance',),
    ),
    QueryConfig(
        10, 'clv_quartiles',
        'Churn rate by customer lifetime value proxy quartile',
        bucketers=(
            NTileBucketer(
                'clv_quartile', clv_proxy, buckets=4,
                columns=('balance', 'products_number', 'tenure')
            ),
        ),
        measures=('avg_balance', 'avg_tenure'),
    ),
    QueryConfig(
        11, 'zero_balance_risk',
        'Zero-balance, single-product customers without a credit card, by country',
        bucketers=(COUNTRY,),
        filter={'balance': 0, 'has_credit_card': False, 'products_number': 1},
        sort_by='churn_rate',
        descending=True,
    ),
    QueryConfig(
        12, 'demographic_rollup',
        'Churn by country and gender with subtotals',
        kind=ROLLUP,
        bucketers=(COUNTRY, GENDER),
    ),
)


def list_queries() -> List[QueryConfig]:
    """Return all named queries in dashboard order."""
    return list(QUERIES)


def get_query(query: Union[str, int]) -> QueryConfig:
    """
    Look up a named query by name or number.

    Raises:
        UnknownQuery: If nothing matches
    """
    if isinstance(query, str) and query.isdigit():
        query = int(query)
    for config in QUERIES:
        if config.number == query or config.name == query:
            return config
    raise UnknownQuery(f"Unknown query: {query!r}")


class QueryRunner:
    """
    Runs named queries over a shared, read-only customer dataset.

    Example:
        >>> runner = QueryRunner(customers)
        >>> loss = runner.run('revenue_loss').scalars['total_loss']
    """

    def __init__(self, dataset: pd.DataFrame):
        """
        Initialize QueryRunner.

        Args:
            dataset: Cleaned customer dataset
        """
        self.dataset = dataset
        logger.info(f"QueryRunner initialized with {len(dataset)} customers")

    def execute(self, config: QueryConfig) -> QueryResult:
        """Evaluate a query configuration."""
        if config.kind == REVENUE:
            loss = revenue_loss(self.dataset)
            return QueryResult(config=config, scalars=loss._asdict())

        if config.kind == ROLLUP:
            if len(config.bucketers) != 2:
                raise ChurnAnalyticsError(
                    f"Rollup query '{config.name}' needs exactly two bucketers"
                )
            rows = rollup(
                self.dataset, config.bucketers[0], config.bucketers[1],
                filter=config.filter, measures=config.measures
            )
            return QueryResult(config=config, rows=rows)

        if config.kind != AGGREGATE:
            raise ChurnAnalyticsError(f"Unknown query kind: {config.kind}")

        baseline = None
        scalars = {}
        if config.baseline == 'overall':
            baseline = overall_churn_rate(self.dataset)
            scalars['baseline_churn_rate'] = baseline
        elif config.baseline is not None:
            raise ChurnAnalyticsError(f"Unknown baseline mode: {config.baseline}")

        rows = aggregate(
            self.dataset,
            config.bucketers,
            filter=config.filter,
            baseline=baseline,
            sort_by=config.sort_by,
            descending=config.descending,
            measures=config.measures
        )
        return QueryResult(config=config, rows=rows, scalars=scalars)

    def run(self, query: Union[str, int, QueryConfig]) -> QueryResult:
        """
        Run one named query.

        Args:
            query: Query name, number, or configuration

        Returns:
            QueryResult with rows and/or scalars

        Raises:
            UnknownQuery: If the name or number does not exist
            ChurnAnalyticsError: If the query cannot be evaluated
        """
        config = query if isinstance(query, QueryConfig) else get_query(query)
        logger.info(f"Running query {config.number}: {config.name}")

        try:
            result = self.execute(config)
        except ChurnAnalyticsError as e:
            logger.error(f"Query '{config.name}' failed: {e}")
            raise

        logger.info(f"Query '{config.name}' returned {len(result.rows)} rows")
        return result

    def run_all(
        self,
        queries: Optional[Sequence[Union[str, int, QueryConfig]]] = None
    ) -> List[QueryResult]:
        """
        Run several queries independently.

        A failing query is logged and recorded on its result; the remaining
        queries still run.
        """
        if queries:
            configs = [q if isinstance(q, QueryConfig) else get_query(q) for q in queries]
        else:
            configs = list_queries()
        results = []

        for config in configs:
            try:
                results.append(self.run(config))
            except ChurnAnalyticsError as e:
                results.append(QueryResult(config=config, error=str(e)))

        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning(f"{failed} of {len(results)} queries failed")
        else:
            logger.info(f"All {len(results)} queries completed")
        return results

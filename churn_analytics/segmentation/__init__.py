"""
Customer Segmentation Module
============================

Deterministic segmentation and churn aggregation for the customer dataset.
"""

from .bucketers import Bucketer, FieldBucketer, BandBucketer, FunctionBucketer, NTileBucketer, ntile
from .engine import (
    ROLLUP_ALL,
    AggregateResultRow,
    RevenueLoss,
    aggregate,
    apply_filter,
    churn_rate,
    overall_churn_rate,
    revenue_loss,
    rollup,
    round_half_up,
    to_frame,
)
from .queries import QueryConfig, QueryResult, QueryRunner, get_query, list_queries
from .segment_analysis import SegmentAnalyzer

__all__ = [
    "Bucketer",
    "FieldBucketer",
    "BandBucketer",
    "FunctionBucketer",
    "NTileBucketer",
    "ntile",
    "ROLLUP_ALL",
    "AggregateResultRow",
    "RevenueLoss",
    "aggregate",
    "apply_filter",
    "churn_rate",
    "overall_churn_rate",
    "revenue_loss",
    "rollup",
    "round_half_up",
    "to_frame",
    "QueryConfig",
    "QueryResult",
    "QueryRunner",
    "get_query",
    "list_queries",
    "SegmentAnalyzer",
]

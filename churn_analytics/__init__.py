"""
Bank Churn Analytics Suite
==========================

Descriptive churn analytics over a bank customer table:
- Customer loading and cleaning
- Deterministic segmentation and churn aggregation
- Named dashboard queries, reports and charts

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Churn Analytics Team"

from .common import DataLoader, Preprocessor, Visualizer, Reporter, load_customers
from .segmentation import QueryRunner, SegmentAnalyzer, aggregate, rollup

__all__ = [
    "DataLoader",
    "Preprocessor",
    "Visualizer",
    "Reporter",
    "load_customers",
    "QueryRunner",
    "SegmentAnalyzer",
    "aggregate",
    "rollup",
]

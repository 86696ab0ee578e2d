"""
Segment Analysis Module
=======================

Descriptive statistics on top of churn segments: significance of a segment
column for churn, churned-versus-retained feature comparison, and text
summaries of query results.

Usage:
    from churn_analytics.segmentation import SegmentAnalyzer

    analyzer = SegmentAnalyzer()
    test = analyzer.churn_significance(customers, 'country')
    drivers = analyzer.compare_churned_retained(customers, ['age', 'balance'])
"""

import pandas as pd
import numpy as np
from typing import Optional, List, Dict, Any
from scipy import stats
from loguru import logger
import warnings

from ..exceptions import ChurnAnalyticsError
from .engine import ROLLUP_ALL, to_frame
from .queries import ROLLUP, QueryResult

warnings.filterwarnings('ignore')

NUMERIC_FEATURES = [
    'credit_score', 'age', 'tenure', 'balance',
    'products_number', 'estimated_salary'
]


class SegmentAnalyzer:
    """
    Statistical analysis toolkit for churn segments.

    Example:
        >>> analyzer = SegmentAnalyzer()
        >>> analyzer.churn_significance(df, 'gender')['significant']
        True
    """

    def __init__(self, alpha: float = 0.05):
        """
        Initialize SegmentAnalyzer.

        Args:
            alpha: Significance level for hypothesis tests
        """
        self.alpha = alpha
        logger.info("SegmentAnalyzer initialized")

    def churn_significance(
        self,
        df: pd.DataFrame,
        segment_column: str
    ) -> Dict[str, Any]:
        """
        Chi-square test of independence between a segment column and churn.

        Args:
            df: Customer dataset
            segment_column: Categorical column defining the segments

        Returns:
            Dictionary with chi2 statistic, p-value, degrees of freedom and
            a significance flag

        Example:
            >>> result = analyzer.churn_significance(df, 'country')
        """
        if segment_column not in df.columns:
            raise ChurnAnalyticsError(f"Unknown segment column: {segment_column}")

        table = pd.crosstab(df[segment_column], df['churned'])
        if table.shape[0] < 2 or table.shape[1] < 2:
            raise ChurnAnalyticsError(
                f"Need at least two segments and both churn outcomes to test '{segment_column}'"
            )

        chi2, p_value, dof, _ = stats.chi2_contingency(table)
        logger.debug(f"Chi-square for {segment_column}: chi2={chi2:.3f}, p={p_value:.4f}")

        return {
            'segment_column': segment_column,
            'chi2_statistic': float(chi2),
            'p_value': float(p_value),
            'degrees_of_freedom': int(dof),
            'significant': bool(p_value < self.alpha)
        }

    def compare_churned_retained(
        self,
        df: pd.DataFrame,
        feature_columns: Optional[List[str]] = None
    ) -> pd.DataFrame:
        """
        Compare feature distributions of churned and retained customers.

        Args:
            df: Customer dataset
            feature_columns: Numeric features to compare (default: all numeric
                customer attributes)

        Returns:
            DataFrame sorted by absolute effect size with means, difference,
            Cohen's d and Mann-Whitney U p-value per feature
        """
        if feature_columns is None:
            feature_columns = [c for c in NUMERIC_FEATURES if c in df.columns]

        churned = df[df['churned'].astype(bool)]
        retained = df[~df['churned'].astype(bool)]

        drivers = []

        for col in feature_columns:
            if col not in df.columns:
                continue

            churned_mean = churned[col].mean()
            retained_mean = retained[col].mean()

            # Effect size (Cohen's d)
            pooled_std = np.sqrt(
                (churned[col].std()**2 + retained[col].std()**2) / 2
            )
            if pooled_std > 0:
                cohens_d = (churned_mean - retained_mean) / pooled_std
            else:
                cohens_d = 0.0

            if len(churned) > 0 and len(retained) > 0:
                _, p_value = stats.mannwhitneyu(
                    churned[col], retained[col], alternative='two-sided'
                )
            else:
                p_value = np.nan

            drivers.append({
                'feature': col,
                'churned_mean': churned_mean,
                'retained_mean': retained_mean,
                'difference': churned_mean - retained_mean,
                'difference_pct': ((churned_mean - retained_mean) / (retained_mean + 1e-10)) * 100,
                'effect_size': cohens_d,
                'p_value': p_value
            })

        drivers_df = pd.DataFrame(drivers)
        if not drivers_df.empty:
            drivers_df = drivers_df.sort_values('effect_size', key=abs, ascending=False)
            drivers_df = drivers_df.reset_index(drop=True)

        return drivers_df

    def segment_shares(self, result: QueryResult) -> pd.DataFrame:
        """
        Add share-of-customers and share-of-churn columns to a result frame.

        For rollups only the leaf rows are kept, so the shares add up to 100.
        """
        if result.config.kind == ROLLUP:
            leaves = [row for row in result.rows if ROLLUP_ALL not in row.key]
            frame = to_frame(leaves)
        else:
            frame = result.frame
        if frame.empty or 'total_customers' not in frame.columns:
            return frame

        frame = frame.copy()
        total = frame['total_customers'].sum()
        churned = frame['churned_customers'].sum()
        frame['customer_share'] = frame['total_customers'] / total * 100
        frame['churn_share'] = (
            frame['churned_customers'] / churned * 100 if churned else 0.0
        )
        return frame

    def generate_summary(self, result: QueryResult) -> str:
        """Generate a text summary of a query result."""
        config = result.config
        summary_parts = [
            f"Query {config.number}: {config.name}",
            f"=" * 40,
            config.description,
            ""
        ]

        if not result.ok:
            summary_parts.append(f"FAILED: {result.error}")
            return "\n".join(summary_parts)

        for name, value in result.scalars.items():
            summary_parts.append(f"  {name}: {value:,}")

        if result.rows:
            summary_parts.append(f"Segments: {len(result.rows)}")
            for row in result.rows:
                label = ", ".join(f"{k}={v}" for k, v in row.labels.items()) or "all customers"
                line = (
                    f"  {label}: {row.churned_customers:,}/{row.total_customers:,} "
                    f"churned ({row.churn_rate:.2f}%)"
                )
                if row.rate_deviation is not None:
                    line += f", {row.rate_deviation:+.2f} vs baseline"
                summary_parts.append(line)

        return "\n".join(summary_parts)

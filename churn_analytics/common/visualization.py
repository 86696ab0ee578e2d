"""
Visualization Module
====================

Dashboard charts for churn query results.

Usage:
    from churn_analytics.common import Visualizer

    viz = Visualizer(output_dir="outputs/plots")
    viz.plot_result(runner.run('churn_by_country'))
    viz.plot_rollup_heatmap(runner.run('demographic_rollup'))
"""

import pandas as pd
from pathlib import Path
from typing import Optional, Tuple
import matplotlib
import matplotlib.pyplot as plt
import seaborn as sns
from loguru import logger

from ..segmentation.engine import ROLLUP_ALL
from ..segmentation.queries import QueryResult, ROLLUP


class Visualizer:
    """
    Chart renderer for churn query results.

    Example:
        >>> viz = Visualizer(output_dir="outputs/plots")
        >>> viz.plot_churn_rates(result.frame, 'country', title='Churn by Country')
    """

    def __init__(
        self,
        output_dir: str = "outputs/plots",
        style: str = "seaborn-v0_8-whitegrid",
        figsize: Tuple[int, int] = (10, 6),
        dpi: int = 100,
        palette: str = "husl"
    ):
        """
        Initialize Visualizer.

        Args:
            output_dir: Directory for saving plots
            style: Matplotlib style
            figsize: Default figure size
            dpi: Resolution for saved figures
            palette: Color palette
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.figsize = figsize
        self.dpi = dpi
        self.palette = palette

        try:
            plt.style.use(style)
        except OSError:
            plt.style.use('default')

        sns.set_palette(palette)
        logger.info(f"Visualizer initialized. Output: {self.output_dir}")

    def _save(self, fig: matplotlib.figure.Figure, save_name: Optional[str]) -> Optional[Path]:
        save_path = None
        if save_name:
            save_path = self.output_dir / f"{save_name}.png"
            fig.savefig(save_path, dpi=self.dpi, bbox_inches='tight')
            logger.info(f"Saved plot: {save_path}")
        plt.close(fig)
        return save_path

    def plot_churn_rates(
        self,
        df: pd.DataFrame,
        segment_column: str,
        title: str = "Churn Rate by Segment",
        baseline: Optional[float] = None,
        save_name: Optional[str] = None
    ) -> Optional[Path]:
        """
        Bar chart of churn rate per segment.

        Args:
            df: Result frame with a segment column and ``churn_rate``
            segment_column: Column holding segment labels
            title: Plot title
            baseline: Optional overall rate drawn as a reference line
            save_name: Filename for saving

        Returns:
            Path of the saved PNG, if saved
        """
        fig, ax = plt.subplots(figsize=self.figsize)

        labels = df[segment_column].astype(str)
        bars = ax.bar(
            labels,
            df['churn_rate'],
            color=sns.color_palette(self.palette, len(df))
        )
        ax.bar_label(bars, fmt='%.2f%%', padding=3)

        if baseline is not None:
            ax.axhline(baseline, color='black', linestyle='--', linewidth=1.5,
                       label=f'Overall ({baseline:.2f}%)')
            ax.legend()

        ax.set_xlabel(segment_column.replace('_', ' ').title(), fontsize=12)
        ax.set_ylabel('Churn Rate (%)', fontsize=12)
        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.grid(True, alpha=0.3, axis='y')

        fig.tight_layout()
        return self._save(fig, save_name)

    def plot_grouped_churn_rates(
        self,
        df: pd.DataFrame,
        x_column: str,
        hue_column: str,
        title: str = "Churn Rate by Segment",
        save_name: Optional[str] = None
    ) -> Optional[Path]:
        """Grouped bar chart for results segmented by two bucketers."""
        fig, ax = plt.subplots(figsize=self.figsize)

        plot_df = df.assign(**{
            x_column: df[x_column].astype(str),
            hue_column: df[hue_column].astype(str)
        })
        sns.barplot(data=plot_df, x=x_column, y='churn_rate', hue=hue_column,
                    palette=self.palette, ax=ax)

        ax.set_xlabel(x_column.replace('_', ' ').title(), fontsize=12)
        ax.set_ylabel('Churn Rate (%)', fontsize=12)
        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.grid(True, alpha=0.3, axis='y')

        fig.tight_layout()
        return self._save(fig, save_name)

    def plot_rollup_heatmap(
        self,
        result: QueryResult,
        title: Optional[str] = None,
        save_name: Optional[str] = None
    ) -> Optional[Path]:
        """
        Heatmap of churn rates for a two-dimension rollup, subtotals included.

        The ``ALL`` row and column hold the subtotals and the grand total.
        """
        frame = result.frame
        first, second = result.rows[0].dimensions
        matrix = frame.pivot(index=first, columns=second, values='churn_rate')

        # subtotals last
        rows = [r for r in matrix.index if r != ROLLUP_ALL] + [ROLLUP_ALL]
        cols = [c for c in matrix.columns if c != ROLLUP_ALL] + [ROLLUP_ALL]
        matrix = matrix.loc[[r for r in rows if r in matrix.index],
                            [c for c in cols if c in matrix.columns]]

        fig, ax = plt.subplots(figsize=self.figsize)
        sns.heatmap(matrix.astype(float), annot=True, fmt='.2f', cmap='Reds', ax=ax,
                    cbar_kws={'label': 'Churn Rate (%)'})

        ax.set_title(title or result.config.description, fontsize=14, fontweight='bold')
        fig.tight_layout()
        return self._save(fig, save_name)

    def plot_result(self, result: QueryResult, save_name: Optional[str] = None) -> Optional[Path]:
        """
        Pick a chart for a query result and render it.

        Rollups become heatmaps, single-bucketer results bar charts and
        two-bucketer results grouped bar charts. Scalar-only results have no
        chart.
        """
        if not result.ok or not result.rows or not result.rows[0].dimensions:
            logger.debug(f"No chart for query '{result.config.name}'")
            return None

        save_name = save_name or result.config.name
        dimensions = result.rows[0].dimensions
        title = result.config.description

        if result.config.kind == ROLLUP:
            return self.plot_rollup_heatmap(result, title=title, save_name=save_name)

        if len(dimensions) == 1:
            return self.plot_churn_rates(
                result.frame, dimensions[0],
                title=title,
                baseline=result.scalars.get('baseline_churn_rate'),
                save_name=save_name
            )

        return self.plot_grouped_churn_rates(
            result.frame, dimensions[0], dimensions[1],
            title=title, save_name=save_name
        )

"""
Reporting Module
================

Writes churn query results for the dashboard: one CSV/JSON/HTML set per
query and an index page summarising every query of a run.

Usage:
    from churn_analytics.common import Reporter

    reporter = Reporter(output_dir="outputs/reports")
    reporter.generate_query_report(result)
    reporter.generate_summary(results)
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import List, Dict, Any, Sequence
from datetime import datetime
import html
import json
from loguru import logger

from ..segmentation.queries import QueryResult

HTML_STYLE = """
        body { font-family: Arial, sans-serif; margin: 40px; background: #f5f5f5; }
        .container { max-width: 1200px; margin: 0 auto; background: white; padding: 30px; border-radius: 10px; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }
        h1 { color: #2c3e50; border-bottom: 3px solid #c0392b; padding-bottom: 10px; }
        h2 { color: #34495e; margin-top: 30px; }
        .metrics { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 20px; margin: 20px 0; }
        .metric-card { background: #ecf0f1; padding: 20px; border-radius: 8px; text-align: center; }
        .metric-value { font-size: 2em; font-weight: bold; color: #c0392b; }
        .metric-label { color: #7f8c8d; margin-top: 5px; }
        table { width: 100%; border-collapse: collapse; margin: 20px 0; }
        th, td { padding: 12px; text-align: left; border-bottom: 1px solid #ddd; }
        th { background: #c0392b; color: white; }
        tr:hover { background: #f5f5f5; }
        .failed { background: #fdf2f2; padding: 15px; border-radius: 5px; margin: 10px 0; border-left: 4px solid #e74c3c; }
        .timestamp { color: #95a5a6; font-size: 0.9em; }
"""


class Reporter:
    """
    Report generation for churn query results.

    Generates reports in multiple formats (CSV, JSON, HTML).

    Example:
        >>> reporter = Reporter(output_dir="outputs/reports")
        >>> paths = reporter.generate_query_report(result)
    """

    def __init__(self, output_dir: str = "outputs/reports", timestamped: bool = False):
        """
        Initialize Reporter.

        Args:
            output_dir: Directory for saving reports
            timestamped: Append a run timestamp to file names
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.timestamped = timestamped
        self.timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        logger.info(f"Reporter initialized. Output: {self.output_dir}")

    def _path(self, report_name: str, suffix: str) -> Path:
        if self.timestamped:
            return self.output_dir / f"{report_name}_{self.timestamp}.{suffix}"
        return self.output_dir / f"{report_name}.{suffix}"

    def generate_query_report(
        self,
        result: QueryResult,
        formats: Sequence[str] = ('csv', 'json', 'html')
    ) -> Dict[str, Path]:
        """
        Write one query result.

        Args:
            result: Query result from QueryRunner
            formats: Output formats to generate

        Returns:
            Dictionary of format -> file path
        """
        output_paths = {}
        config = result.config
        report_name = f"{config.number:02d}_{config.name}"
        frame = result.frame

        if 'csv' in formats and not frame.empty:
            csv_path = self._path(report_name, 'csv')
            frame.to_csv(csv_path, index=False)
            output_paths['csv'] = csv_path

        if 'json' in formats:
            json_path = self._path(report_name, 'json')
            with open(json_path, 'w') as f:
                json.dump(self.to_json(result), f, indent=2)
            output_paths['json'] = json_path

        if 'html' in formats:
            html_path = self._path(report_name, 'html')
            with open(html_path, 'w') as f:
                f.write(self._generate_query_html(result))
            output_paths['html'] = html_path

        logger.info(f"Generated report for query '{config.name}': {sorted(output_paths)}")
        return output_paths

    def generate_summary(
        self,
        results: List[QueryResult],
        report_name: str = "churn_dashboard"
    ) -> Path:
        """
        Write an HTML index summarising every query of a run.

        Args:
            results: Query results in dashboard order
            report_name: Base name for report file

        Returns:
            Path to generated HTML report
        """
        html_path = self._path(report_name, 'html')

        with open(html_path, 'w') as f:
            f.write(self._generate_summary_html(results))

        logger.info(f"Generated dashboard summary: {html_path}")
        return html_path

    def to_json(self, result: QueryResult) -> Dict[str, Any]:
        """JSON-ready representation of a query result."""
        config = result.config
        return {
            'generated_at': self.timestamp,
            'query': {
                'number': config.number,
                'name': config.name,
                'description': config.description,
                'kind': config.kind,
                'dimensions': [b.name for b in config.bucketers],
            },
            'status': 'ok' if result.ok else 'failed',
            'error': result.error,
            'scalars': self._convert_to_serializable(result.scalars),
            'rows': [self._convert_to_serializable(row.to_dict()) for row in result.rows],
        }

    def _convert_to_serializable(self, obj: Any) -> Any:
        """Convert numpy/pandas types to JSON serializable."""
        if isinstance(obj, dict):
            return {str(k): self._convert_to_serializable(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [self._convert_to_serializable(v) for v in obj]
        elif isinstance(obj, np.bool_):
            return bool(obj)
        elif isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, pd.DataFrame):
            return obj.to_dict('records')
        elif obj is not None and not isinstance(obj, str) and pd.isna(obj):
            return None
        else:
            return obj

    def _table_html(self, frame: pd.DataFrame) -> str:
        if frame.empty:
            return '<p><em>No rows</em></p>'
        return frame.to_html(
            index=False,
            escape=True,
            border=0,
            float_format=lambda v: f"{v:,.2f}"
        )

    @staticmethod
    def _format_cell(value: Any) -> str:
        if isinstance(value, (float, np.floating)):
            return f"{value:,.2f}"
        if isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_)):
            return f"{value:,}"
        return str(value)

    def _generate_query_html(self, result: QueryResult) -> str:
        """Generate HTML report for one query."""
        config = result.config

        if not result.ok:
            body = f'<div class="failed"><strong>Query failed:</strong> {html.escape(str(result.error))}</div>'
        else:
            cards = ''.join(
                f'<div class="metric-card"><div class="metric-value">{html.escape(self._format_cell(v))}</div>'
                f'<div class="metric-label">{k.replace("_", " ").title()}</div></div>'
                for k, v in result.scalars.items()
            )
            body = (f'<div class="metrics">{cards}</div>' if cards else '')
            if result.rows:
                body += self._table_html(result.frame)

        return f"""
<!DOCTYPE html>
<html>
<head>
    <title>{config.name} - Churn Report</title>
    <style>{HTML_STYLE}</style>
</head>
<body>
    <div class="container">
        <h1>Query {config.number}: {html.escape(config.description)}</h1>
        <p class="timestamp">Generated: {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}</p>
        {body}
    </div>
</body>
</html>
"""

    def _generate_summary_html(self, results: List[QueryResult]) -> str:
        """Generate HTML index for a dashboard run."""
        failed = [r for r in results if not r.ok]
        rows = ''.join(
            f"<tr><td>{r.config.number}</td><td>{r.config.name}</td>"
            f"<td>{html.escape(r.config.description)}</td><td>{len(r.rows)}</td>"
            f"<td>{'ok' if r.ok else 'failed: ' + html.escape(str(r.error))}</td></tr>"
            for r in results
        )

        return f"""
<!DOCTYPE html>
<html>
<head>
    <title>Customer Churn Dashboard</title>
    <style>{HTML_STYLE}</style>
</head>
<body>
    <div class="container">
        <h1>Customer Churn Dashboard</h1>
        <p class="timestamp">Generated: {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}</p>

        <div class="metrics">
            <div class="metric-card">
                <div class="metric-value">{len(results)}</div>
                <div class="metric-label">Queries</div>
            </div>
            <div class="metric-card">
                <div class="metric-value">{len(failed)}</div>
                <div class="metric-label">Failed</div>
            </div>
        </div>

        <h2>Queries</h2>
        <table>
            <tr><th>#</th><th>Name</th><th>Question</th><th>Rows</th><th>Status</th></tr>
            {rows}
        </table>
    </div>
</body>
</html>
"""

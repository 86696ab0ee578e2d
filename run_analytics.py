#!/usr/bin/env python3
"""
Churn Analytics Suite - Main Runner
===================================

Command-line interface for running the named churn queries.

Usage:
    python run_analytics.py --list
    python run_analytics.py --query churn_by_country --data data/bank_customers.csv
    python run_analytics.py --query 7 --query 12
    python run_analytics.py --all --config config/settings.yaml --plot

Examples:
    # Run the revenue loss query and print the result
    python run_analytics.py --query revenue_loss

    # Run every query, write CSV and JSON only
    python run_analytics.py --all --formats csv json
"""

import argparse
import sys
from pathlib import Path
from loguru import logger

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from churn_analytics.common import Reporter, Visualizer, load_config, load_customers
from churn_analytics.exceptions import ChurnAnalyticsError
from churn_analytics.segmentation import QueryRunner, SegmentAnalyzer, list_queries


def setup_logging(log_level: str = "INFO"):
    """Configure logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"
    )


def print_queries():
    """Print the query catalogue."""
    for config in list_queries():
        print(f"{config.number:>2}  {config.name:<24} {config.description}")


def run_queries(args, config) -> int:
    """Run the selected queries and write their reports. Returns the exit code."""
    data_path = args.data or config['data']['path']
    customers = load_customers(data_path, args.config)

    runner = QueryRunner(customers)
    results = runner.run_all(args.query if not args.all else None)

    output_dir = Path(args.output or config['reporting']['output_dir'])
    formats = args.formats or config['reporting']['formats']

    reporter = Reporter(output_dir=str(output_dir / 'reports'))
    analyzer = SegmentAnalyzer()

    plot = args.plot or config['plots'].get('enabled', False)
    viz = Visualizer(output_dir=str(output_dir / 'plots'), dpi=config['plots'].get('dpi', 100)) if plot else None

    for result in results:
        reporter.generate_query_report(result, formats=formats)
        if viz is not None and result.ok:
            viz.plot_result(result)
        print(analyzer.generate_summary(result))
        print()

    reporter.generate_summary(results)

    failed = [r.config.name for r in results if not r.ok]
    if failed:
        logger.error(f"Failed queries: {failed}")
        return 1

    logger.info(f"Results saved to {output_dir}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Customer Churn Analytics',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    selection = parser.add_mutually_exclusive_group(required=True)
    selection.add_argument(
        '--query',
        action='append',
        help='Query name or number to run (repeatable)'
    )
    selection.add_argument(
        '--all',
        action='store_true',
        help='Run every named query'
    )
    selection.add_argument(
        '--list',
        action='store_true',
        help='List the named queries and exit'
    )

    parser.add_argument(
        '--data',
        type=str,
        help='Path to customer data file (overrides config)'
    )

    parser.add_argument(
        '--config',
        type=str,
        default='config/settings.yaml',
        help='Path to configuration file'
    )

    parser.add_argument(
        '--output',
        type=str,
        help='Output directory for results (overrides config)'
    )

    parser.add_argument(
        '--formats',
        nargs='+',
        choices=['csv', 'json', 'html'],
        help='Report formats (overrides config)'
    )

    parser.add_argument(
        '--plot',
        action='store_true',
        help='Render dashboard charts'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list:
        print_queries()
        return 0

    setup_logging(args.log_level)
    config = load_config(args.config)

    try:
        return run_queries(args, config)
    except (ChurnAnalyticsError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())

import json

import pandas as pd
import pytest

from churn_analytics.common.reporting import Reporter
from churn_analytics.common.visualization import Visualizer
from churn_analytics.segmentation.queries import QueryResult, QueryRunner, get_query


@pytest.fixture
def runner(customers):
    return QueryRunner(customers)


# --- Reporter --- #


def test_query_report_files(tmp_path, runner):
    reporter = Reporter(output_dir=str(tmp_path))
    paths = reporter.generate_query_report(runner.run("churn_by_country"))

    assert sorted(paths) == ["csv", "html", "json"]
    assert paths["csv"].name == "02_churn_by_country.csv"

    frame = pd.read_csv(paths["csv"])
    assert frame["country"].tolist() == ["France", "Germany", "Spain"]
    assert frame["churn_rate"].tolist() == [20.0, 75.0, 66.67]

    assert "Query 2: Churn rate per country" in paths["html"].read_text()


def test_query_report_json(tmp_path, runner):
    reporter = Reporter(output_dir=str(tmp_path))
    paths = reporter.generate_query_report(runner.run("riskiest_segments"), formats=["json"])
    assert list(paths) == ["json"]

    payload = json.loads(paths["json"].read_text())
    assert payload["status"] == "ok"
    assert payload["query"]["dimensions"] == ["age_group", "is_active"]
    assert payload["rows"][0] == {
        "age_group": "<30",
        "is_active": False,
        "total_customers": 2,
        "churned_customers": 2,
        "churn_rate": 100.0,
    }


def test_scalar_report_has_json_and_csv(tmp_path, runner):
    reporter = Reporter(output_dir=str(tmp_path))
    paths = reporter.generate_query_report(runner.run("revenue_loss"), formats=["csv", "json"])
    assert json.loads(paths["json"].read_text())["scalars"]["total_loss"] == 900.0
    assert pd.read_csv(paths["csv"])["avg_loss_per_customer"].tolist() == [150.0]


def test_failed_query_report(tmp_path):
    reporter = Reporter(output_dir=str(tmp_path))
    failed = QueryResult(config=get_query("revenue_loss"), error="no customer churned")
    paths = reporter.generate_query_report(failed)

    assert "csv" not in paths
    payload = json.loads(paths["json"].read_text())
    assert payload["status"] == "failed"
    assert payload["error"] == "no customer churned"
    assert "Query failed" in paths["html"].read_text()


def test_dashboard_summary(tmp_path, runner):
    reporter = Reporter(output_dir=str(tmp_path), timestamped=True)
    results = runner.run_all([1, 2, 8])
    path = reporter.generate_summary(results)

    assert path.name.startswith("churn_dashboard_")
    html = path.read_text()
    assert "Customer Churn Dashboard" in html
    assert "churn_by_country" in html


# --- Visualizer --- #


def test_plot_result_chart_types(tmp_path, runner):
    viz = Visualizer(output_dir=str(tmp_path))

    bar = viz.plot_result(runner.run("country_deviation"))
    grouped = viz.plot_result(runner.run("riskiest_segments"))
    heatmap = viz.plot_result(runner.run("demographic_rollup"), save_name="rollup")

    assert bar == tmp_path / "country_deviation.png"
    assert grouped == tmp_path / "riskiest_segments.png"
    assert heatmap == tmp_path / "rollup.png"
    assert all(p.exists() for p in (bar, grouped, heatmap))


def test_plot_result_skips_scalar_results(tmp_path, runner):
    viz = Visualizer(output_dir=str(tmp_path))
    assert viz.plot_result(runner.run("revenue_loss")) is None
    assert viz.plot_result(runner.run("overall_churn")) is None
    assert list(tmp_path.iterdir()) == []


def test_html_report_escapes_labels_and_errors(tmp_path, runner):
    reporter = Reporter(output_dir=str(tmp_path))

    html = reporter.generate_query_report(runner.run("churn_by_age_group"), formats=["html"])["html"].read_text()
    assert "&lt;30" in html
    assert "<td><30" not in html

    failed = QueryResult(config=get_query("revenue_loss"), error="column <balance> missing")
    html = reporter.generate_query_report(failed, formats=["html"])["html"].read_text()
    assert "column &lt;balance&gt; missing" in html

    index = reporter.generate_summary([failed]).read_text()
    assert "&lt;balance&gt;" in index

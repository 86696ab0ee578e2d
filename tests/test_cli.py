import json

import pytest

import run_analytics


def test_list_queries(capsys):
    assert run_analytics.main(["--list"]) == 0
    out = capsys.readouterr().out
    assert " 1  overall_churn" in out
    assert "12  demographic_rollup" in out


def test_run_all_queries(tmp_path, customers_csv, capsys):
    exit_code = run_analytics.main([
        "--all", "--data", str(customers_csv), "--output", str(tmp_path),
        "--formats", "csv", "json",
    ])
    assert exit_code == 0

    reports = tmp_path / "reports"
    assert (reports / "churn_dashboard.html").exists()
    assert len(list(reports.glob("*.json"))) == 12
    payload = json.loads((reports / "08_revenue_loss.json").read_text())
    assert payload["scalars"]["total_loss"] == 900.0

    assert "Query 12: demographic_rollup" in capsys.readouterr().out


def test_run_selected_queries_with_plots(tmp_path, customers_csv):
    exit_code = run_analytics.main([
        "--query", "churn_by_country", "--query", "12",
        "--data", str(customers_csv), "--output", str(tmp_path), "--plot",
    ])
    assert exit_code == 0
    assert (tmp_path / "plots" / "churn_by_country.png").exists()
    assert (tmp_path / "plots" / "demographic_rollup.png").exists()
    assert (tmp_path / "reports" / "02_churn_by_country.html").exists()


def test_unknown_query_fails(tmp_path, customers_csv):
    exit_code = run_analytics.main([
        "--query", "churn_by_planet", "--data", str(customers_csv), "--output", str(tmp_path),
    ])
    assert exit_code == 1


def test_missing_data_file_fails(tmp_path):
    exit_code = run_analytics.main(["--all", "--data", str(tmp_path / "absent.csv")])
    assert exit_code == 1


def test_failed_query_sets_exit_code(tmp_path, raw_customers):
    path = tmp_path / "retained.csv"
    raw_customers.assign(churn=0).to_csv(path, index=False)
    exit_code = run_analytics.main([
        "--query", "revenue_loss", "--data", str(path), "--output", str(tmp_path / "out"),
    ])
    assert exit_code == 1
    assert (tmp_path / "out" / "reports" / "08_revenue_loss.json").exists()


def test_query_selection_is_required():
    with pytest.raises(SystemExit):
        run_analytics.main([])

import pandas as pd
import pytest

from churn_analytics.exceptions import ChurnAnalyticsError, UnknownQuery
from churn_analytics.segmentation.bucketers import FunctionBucketer
from churn_analytics.segmentation.engine import ROLLUP_ALL
from churn_analytics.segmentation.queries import (
    QUERIES,
    ROLLUP,
    QueryConfig,
    QueryRunner,
    clv_proxy,
    get_query,
    list_queries,
)


def _summary(result):
    return [(r.key, r.total_customers, r.churned_customers, r.churn_rate) for r in result.rows]


def test_catalogue_has_twelve_numbered_queries():
    """Queries are numbered 1..12 with unique names."""
    queries = list_queries()
    assert [q.number for q in queries] == list(range(1, 13))
    assert len({q.name for q in queries}) == 12


def test_get_query_by_name_number_or_digit_string():
    assert get_query("churn_by_country").number == 2
    assert get_query(7).name == "country_deviation"
    assert get_query("12").name == "demographic_rollup"
    with pytest.raises(UnknownQuery):
        get_query("churn_by_planet")
    with pytest.raises(UnknownQuery):
        get_query(13)


def test_overall_churn(customers):
    result = QueryRunner(customers).run("overall_churn")
    row = result.rows[0]
    assert row.churn_rate == 50.0
    assert row.measure("avg_balance") == 120.83
    assert row.measure("avg_salary") == 53750.0


def test_churn_by_country(customers):
    result = QueryRunner(customers).run(2)
    assert _summary(result) == [
        (("France",), 5, 1, 20.0),
        (("Germany",), 4, 3, 75.0),
        (("Spain",), 3, 2, 66.67),
    ]


def test_churn_by_age_group(customers):
    result = QueryRunner(customers).run("churn_by_age_group")
    assert _summary(result) == [
        (("<30",), 3, 2, 66.67),
        (("30-50",), 6, 2, 33.33),
        ((">50",), 3, 2, 66.67),
    ]


def test_churn_by_tenure_band(customers):
    result = QueryRunner(customers).run("churn_by_tenure_band")
    assert _summary(result) == [
        (("0-2",), 4, 2, 50.0),
        (("3-5",), 3, 0, 0.0),
        (("6-8",), 3, 3, 100.0),
        (("9+",), 2, 1, 50.0),
    ]


def test_churn_by_product_count(customers):
    result = QueryRunner(customers).run("churn_by_product_count")
    assert _summary(result) == [
        ((1,), 7, 4, 57.14),
        ((2,), 3, 0, 0.0),
        ((3,), 1, 1, 100.0),
        ((4,), 1, 1, 100.0),
    ]


def test_riskiest_segments_ranked_by_churn(customers):
    result = QueryRunner(customers).run("riskiest_segments")
    rates = [r.churn_rate for r in result.rows]
    assert rates == sorted(rates, reverse=True)
    assert result.rows[0].key == ("<30", False)
    assert result.rows[1].key == (">50", False)


def test_country_deviation(customers):
    result = QueryRunner(customers).run("country_deviation")
    assert result.scalars["baseline_churn_rate"] == 50.0
    assert [(r.key[0], r.rate_deviation) for r in result.rows] == [
        ("Germany", 25.0),
        ("Spain", 16.67),
        ("France", -30.0),
    ]


def test_revenue_loss(customers):
    result = QueryRunner(customers).run("revenue_loss")
    assert result.rows == []
    assert result.scalars == {
        "churned_customers": 6,
        "total_loss": 900.0,
        "avg_loss_per_customer": 150.0,
    }
    assert list(result.frame.columns) == ["churned_customers", "total_loss", "avg_loss_per_customer"]


def test_balance_quartiles(customers):
    result = QueryRunner(customers).run("balance_quartiles")
    assert [r.churn_rate for r in result.rows] == [33.33, 66.67, 33.33, 66.67]


def test_clv_quartiles(customers):
    assert clv_proxy(customers).tolist()[:4] == [0.0, 1.0, 1.6, 9.0]
    result = QueryRunner(customers).run("clv_quartiles")
    assert [r.key[0] for r in result.rows] == [1, 2, 3, 4]
    assert [r.churn_rate for r in result.rows] == [33.33, 66.67, 0.0, 100.0]


def test_zero_balance_risk(customers):
    result = QueryRunner(customers).run("zero_balance_risk")
    assert _summary(result) == [
        (("Germany",), 1, 1, 100.0),
        (("Spain",), 1, 1, 100.0),
        (("France",), 3, 1, 33.33),
    ]


def test_demographic_rollup(customers):
    result = QueryRunner(customers).run("demographic_rollup")
    assert len(result.rows) == 12
    assert result.rows[-1].key == (ROLLUP_ALL, ROLLUP_ALL)
    assert result.rows[-1].churn_rate == 50.0
    frame = result.frame
    assert list(frame.columns[:2]) == ["country", "gender"]


def test_run_all_isolates_failures(customers):
    """A failing query is recorded without stopping the others."""
    no_churn = customers.assign(churned=False)
    results = QueryRunner(no_churn).run_all()
    assert len(results) == len(QUERIES)

    by_name = {r.config.name: r for r in results}
    assert not by_name["revenue_loss"].ok
    assert "no customer churned" in by_name["revenue_loss"].error
    assert by_name["churn_by_country"].ok
    assert all(r.churn_rate == 0.0 for r in by_name["churn_by_country"].rows)


def test_run_all_subset_keeps_requested_order(customers):
    results = QueryRunner(customers).run_all(["revenue_loss", 2])
    assert [r.config.number for r in results] == [8, 2]
    assert all(r.ok for r in results)


def test_run_reraises_query_errors(customers):
    with pytest.raises(ChurnAnalyticsError):
        QueryRunner(customers.iloc[0:0]).run("overall_churn")


def test_rollup_query_needs_two_bucketers(customers):
    config = QueryConfig(99, "broken", "Rollup over one dimension", kind=ROLLUP)
    with pytest.raises(ChurnAnalyticsError):
        QueryRunner(customers).run(config)


def test_custom_query_configuration(customers):
    """Ad-hoc configurations run through the same engine."""
    config = QueryConfig(
        20, "active_by_gender", "Churn among active members by gender",
        bucketers=(get_query(12).bucketers[1],),
        filter="is_active == True",
    )
    result = QueryRunner(customers).run(config)
    assert [(r.key[0], r.total_customers) for r in result.rows] == [("Female", 1), ("Male", 5)]
    assert isinstance(result.frame, pd.DataFrame)


def test_run_all_records_bucketer_errors(customers):
    """A bucketer reading an unknown field fails its own query only."""
    by_region = QueryConfig(
        30, "churn_by_region", "Churn by region",
        bucketers=(FunctionBucketer("region_label", ["age"], lambda r: r.region),),
    )
    results = QueryRunner(customers).run_all([by_region, "churn_by_country"])
    assert not results[0].ok
    assert "region" in results[0].error
    assert results[1].ok

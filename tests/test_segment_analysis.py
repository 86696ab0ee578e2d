import pytest

from churn_analytics.exceptions import ChurnAnalyticsError
from churn_analytics.segmentation.queries import QueryResult, QueryRunner, get_query
from churn_analytics.segmentation.segment_analysis import SegmentAnalyzer


@pytest.fixture
def analyzer():
    return SegmentAnalyzer(alpha=0.05)


def test_churn_significance_report(analyzer, customers):
    result = analyzer.churn_significance(customers, "country")
    assert result["segment_column"] == "country"
    assert result["degrees_of_freedom"] == 2
    assert 0.0 <= result["p_value"] <= 1.0
    assert result["significant"] == (result["p_value"] < 0.05)


def test_churn_significance_needs_two_segments(analyzer, customers):
    with pytest.raises(ChurnAnalyticsError):
        analyzer.churn_significance(customers, "region")
    with pytest.raises(ChurnAnalyticsError):
        analyzer.churn_significance(customers[customers["country"] == "France"], "country")


def test_compare_churned_retained(analyzer, customers):
    drivers = analyzer.compare_churned_retained(customers, ["age", "products_number", "shoe_size"])
    assert set(drivers["feature"]) == {"age", "products_number"}

    effects = drivers["effect_size"].abs().tolist()
    assert effects == sorted(effects, reverse=True)

    products = drivers.set_index("feature").loc["products_number"]
    assert products["churned_mean"] == pytest.approx(11 / 6)
    assert products["retained_mean"] == pytest.approx(1.5)


def test_segment_shares(analyzer, customers):
    result = QueryRunner(customers).run("churn_by_country")
    shares = analyzer.segment_shares(result)
    assert shares["customer_share"].sum() == pytest.approx(100.0)
    assert shares["churn_share"].sum() == pytest.approx(100.0)
    assert shares.loc[shares["country"] == "Germany", "churn_share"].iloc[0] == pytest.approx(50.0)


def test_generate_summary(analyzer, customers):
    runner = QueryRunner(customers)

    text = analyzer.generate_summary(runner.run("country_deviation"))
    assert text.startswith("Query 7: country_deviation")
    assert "country=Germany: 3/4 churned (75.00%), +25.00 vs baseline" in text

    text = analyzer.generate_summary(runner.run("revenue_loss"))
    assert "total_loss: 900.0" in text

    failed = QueryResult(config=get_query("revenue_loss"), error="no churn")
    assert "FAILED: no churn" in analyzer.generate_summary(failed)


def test_rollup_shares_use_leaf_rows(analyzer, customers):
    result = QueryRunner(customers).run("demographic_rollup")
    shares = analyzer.segment_shares(result)
    assert len(shares) == 6
    assert shares["customer_share"].sum() == pytest.approx(100.0)
    assert shares["churn_share"].sum() == pytest.approx(100.0)

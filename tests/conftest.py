import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import pandas as pd
import pytest

# Ensure project root is on sys.path to allow `import churn_analytics` and `import run_analytics`
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# id, credit_score, country, gender, age, tenure, balance, products_number,
# has_credit_card, is_active, estimated_salary, churned
CUSTOMER_ROWS = [
    (1, 600, "France", "Female", 25, 1, 0.0, 1, False, True, 50000.0, False),
    (2, 700, "France", "Male", 35, 4, 100.0, 2, True, True, 60000.0, False),
    (3, 550, "Germany", "Female", 45, 7, 200.0, 1, True, False, 70000.0, True),
    (4, 800, "Germany", "Male", 55, 9, 300.0, 3, False, False, 80000.0, True),
    (5, 650, "Spain", "Female", 28, 2, 0.0, 1, False, False, 40000.0, True),
    (6, 720, "Spain", "Male", 60, 10, 50.0, 2, True, True, 90000.0, False),
    (7, 680, "France", "Female", 33, 5, 0.0, 1, False, False, 30000.0, False),
    (8, 590, "Germany", "Male", 41, 3, 150.0, 1, True, True, 20000.0, False),
    (9, 610, "France", "Male", 52, 8, 0.0, 1, False, True, 10000.0, True),
    (10, 630, "Spain", "Female", 38, 6, 400.0, 4, True, False, 55000.0, True),
    (11, 700, "Germany", "Female", 29, 0, 0.0, 1, False, False, 65000.0, True),
    (12, 660, "France", "Male", 47, 2, 250.0, 2, True, True, 75000.0, False),
]

CUSTOMER_COLUMNS = [
    "id", "credit_score", "country", "gender", "age", "tenure", "balance",
    "products_number", "has_credit_card", "is_active", "estimated_salary", "churned",
]

SOURCE_COLUMNS = [
    "customer_id", "credit_score", "country", "gender", "age", "tenure", "balance",
    "products_number", "credit_card", "active_member", "estimated_salary", "churn",
]


@pytest.fixture
def customers() -> pd.DataFrame:
    """Twelve cleaned customers, six of them churned."""
    return pd.DataFrame(CUSTOMER_ROWS, columns=CUSTOMER_COLUMNS)


@pytest.fixture
def raw_customers() -> pd.DataFrame:
    """The same customers in the source CSV layout with 0/1 flags."""
    rows = [
        row[:8] + (int(row[8]), int(row[9]), row[10], int(row[11]))
        for row in CUSTOMER_ROWS
    ]
    return pd.DataFrame(rows, columns=SOURCE_COLUMNS)


@pytest.fixture
def customers_csv(tmp_path, raw_customers) -> Path:
    """Source-layout customers written to a CSV file."""
    path = tmp_path / "bank_customers.csv"
    raw_customers.to_csv(path, index=False)
    return path

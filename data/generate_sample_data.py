#!/usr/bin/env python3
"""
Sample Data Generator
=====================

Generates a synthetic bank customer table for the churn analytics suite.

Usage:
    python data/generate_sample_data.py

This will create:
    - bank_customers.csv: 10,000 customers in the public bank churn layout
    - test_customers_small.csv: 500 customers for quick runs
"""

import pandas as pd
import numpy as np
import os

COUNTRIES = ['France', 'Germany', 'Spain']
COUNTRY_WEIGHTS = [0.50, 0.25, 0.25]


def generate_customer_data(n_customers: int = 10000, seed: int = 42) -> pd.DataFrame:
    """
    Generate synthetic bank customers with churn labels.

    Churn probability rises with age, inactivity, holding three or more
    products, and living in Germany, roughly like the public dataset.

    Args:
        n_customers: Number of customers
        seed: Random seed for reproducibility

    Returns:
        DataFrame using the source headers (customer_id, credit_card,
        active_member, churn, ...)
    """
    rng = np.random.RandomState(seed)

    country = rng.choice(COUNTRIES, size=n_customers, p=COUNTRY_WEIGHTS)
    gender = rng.choice(['Male', 'Female'], size=n_customers, p=[0.55, 0.45])
    age = np.clip(rng.normal(39, 10, n_customers).round(), 18, 92).astype(int)
    tenure = rng.randint(0, 11, n_customers)
    credit_score = np.clip(rng.normal(650, 97, n_customers).round(), 350, 850).astype(int)

    # About a third of customers hold no balance
    has_balance = rng.uniform(size=n_customers) > 0.36
    balance = np.where(has_balance, rng.normal(120000, 30000, n_customers).clip(1000, 250000), 0.0)
    balance = balance.round(2)

    products_number = rng.choice([1, 2, 3, 4], size=n_customers, p=[0.51, 0.46, 0.027, 0.003])
    credit_card = (rng.uniform(size=n_customers) < 0.70).astype(int)
    active_member = (rng.uniform(size=n_customers) < 0.52).astype(int)
    estimated_salary = rng.uniform(11.58, 199992.48, n_customers).round(2)

    # Logistic churn model
    logit = (
        -3.2
        + 0.065 * (age - 39)
        + 0.75 * (country == 'Germany')
        + 0.25 * (gender == 'Female')
        - 0.9 * active_member
        + 2.5 * (products_number >= 3)
        - 0.6 * (products_number == 2)
        + 0.000002 * balance
        - 0.0006 * (credit_score - 650)
    )
    churn_probability = 1 / (1 + np.exp(-logit))
    churn = (rng.uniform(size=n_customers) < churn_probability).astype(int)

    return pd.DataFrame({
        'customer_id': np.arange(15565701, 15565701 + n_customers),
        'credit_score': credit_score,
        'country': country,
        'gender': gender,
        'age': age,
        'tenure': tenure,
        'balance': balance,
        'products_number': products_number,
        'credit_card': credit_card,
        'active_member': active_member,
        'estimated_salary': estimated_salary,
        'churn': churn,
    })


def main():
    """Generate sample datasets."""
    script_dir = os.path.dirname(os.path.abspath(__file__))

    print("Generating sample datasets...")

    customers = generate_customer_data()
    customers_path = os.path.join(script_dir, 'bank_customers.csv')
    customers.to_csv(customers_path, index=False)
    print(f"  Saved {len(customers)} records to {customers_path}")

    small = generate_customer_data(n_customers=500, seed=7)
    small.to_csv(os.path.join(script_dir, 'test_customers_small.csv'), index=False)

    print("\nSample data generation complete!")
    print(f"  Customers: {len(customers)}, churned: {customers['churn'].sum()} "
          f"({customers['churn'].mean() * 100:.2f}%)")


if __name__ == '__main__':
    main()

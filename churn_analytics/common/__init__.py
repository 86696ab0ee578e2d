"""
Common utilities for the churn analytics suite.
"""

from .data_loader import DataLoader, load_config, load_customers
from .preprocessing import Preprocessor, CUSTOMER_SCHEMA
from .visualization import Visualizer
from .reporting import Reporter

__all__ = [
    "DataLoader",
    "load_config",
    "load_customers",
    "Preprocessor",
    "CUSTOMER_SCHEMA",
    "Visualizer",
    "Reporter",
]

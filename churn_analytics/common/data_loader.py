"""
Data Loading and Validation Module
===================================

Loads the bank customer table with validation and error handling.

Usage:
    from churn_analytics.common import DataLoader, load_customers

    loader = DataLoader(config_path="config/settings.yaml")
    df = loader.load_csv("data/bank_customers.csv")

    # Validate data
    is_valid, report = loader.validate_data(df, schema="customers")

    # Load, clean and validate in one step
    customers = load_customers("data/bank_customers.csv")
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Optional, Union, List, Dict, Tuple, Any
import yaml
from loguru import logger

from ..exceptions import SchemaError
from .preprocessing import CUSTOMER_SCHEMA, Preprocessor

DEFAULT_CONFIG: Dict[str, Any] = {
    'data': {
        'path': 'data/bank_customers.csv',
        'missing_value_threshold': 0.3,
        'min_records': 1
    },
    'reporting': {
        'output_dir': 'outputs',
        'formats': ['csv', 'json', 'html']
    },
    'plots': {
        'enabled': False,
        'dpi': 100
    }
}


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load YAML configuration merged over the defaults.

    Missing sections or keys fall back to ``DEFAULT_CONFIG``.
    """
    config = {section: dict(values) for section, values in DEFAULT_CONFIG.items()}

    if config_path and Path(config_path).exists():
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
        for section, values in loaded.items():
            if isinstance(values, dict):
                config.setdefault(section, {}).update(values)
            else:
                config[section] = values
        logger.debug(f"Loaded configuration from {config_path}")

    return config


class DataLoader:
    """
    Customer data loader with validation capabilities.

    Attributes:
        config (dict): Configuration dictionary loaded from YAML
        supported_formats (list): List of supported file formats

    Example:
        >>> loader = DataLoader()
        >>> df = loader.load_csv("bank_customers.csv")
        >>> print(f"Loaded {len(df)} records")
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize DataLoader with optional configuration.

        Args:
            config_path: Path to YAML configuration file
        """
        self.config = load_config(config_path)
        self.supported_formats = ['.csv', '.parquet']
        logger.info("DataLoader initialized")

    def load(self, filepath: Union[str, Path], **kwargs) -> pd.DataFrame:
        """Load a supported file, dispatching on its suffix."""
        filepath = Path(filepath)
        if filepath.suffix.lower() == '.parquet':
            return self.load_parquet(filepath, **kwargs)
        return self.load_csv(filepath, **kwargs)

    def load_csv(
        self,
        filepath: Union[str, Path],
        dtype: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> pd.DataFrame:
        """
        Load CSV file.

        Args:
            filepath: Path to CSV file
            dtype: Dictionary of column dtypes
            **kwargs: Additional arguments passed to pd.read_csv

        Returns:
            DataFrame with loaded data

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file format is unsupported
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        if filepath.suffix.lower() not in self.supported_formats:
            raise ValueError(f"Unsupported format: {filepath.suffix}")

        logger.info(f"Loading data from {filepath}")

        df = pd.read_csv(filepath, dtype=dtype, low_memory=False, **kwargs)

        logger.info(f"Loaded {len(df)} records with {len(df.columns)} columns")
        return df

    def load_parquet(self, filepath: Union[str, Path], **kwargs) -> pd.DataFrame:
        """
        Load Parquet file.

        Args:
            filepath: Path to Parquet file
            **kwargs: Additional arguments passed to pd.read_parquet

        Returns:
            DataFrame with loaded data
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        logger.info(f"Loading parquet from {filepath}")
        df = pd.read_parquet(filepath, **kwargs)
        logger.info(f"Loaded {len(df)} records")
        return df

    def validate_data(
        self,
        df: pd.DataFrame,
        required_columns: Optional[List[str]] = None,
        schema: Optional[str] = None
    ) -> Tuple[bool, Dict[str, Any]]:
        """
        Validate DataFrame against requirements and generate quality report.

        Args:
            df: DataFrame to validate
            required_columns: List of required column names
            schema: Schema type ('customers')

        Returns:
            Tuple of (is_valid, validation_report)

        Example:
            >>> is_valid, report = loader.validate_data(df, schema="customers")
            >>> if not is_valid:
            ...     print(report['errors'])
        """
        report = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'statistics': {}
        }

        # Check minimum records
        min_records = self.config.get('data', {}).get('min_records', 1)
        if len(df) < min_records:
            report['errors'].append(f"Insufficient data: {len(df)} < {min_records} required")
            report['is_valid'] = False

        # Check required columns
        if required_columns:
            missing = set(required_columns) - set(df.columns)
            if missing:
                report['errors'].append(f"Missing required columns: {sorted(missing)}")
                report['is_valid'] = False

        # Check missing values
        missing_threshold = self.config.get('data', {}).get('missing_value_threshold', 0.3)
        for col in df.columns:
            missing_ratio = df[col].isna().sum() / len(df) if len(df) else 0.0
            if missing_ratio > missing_threshold:
                report['warnings'].append(
                    f"High missing ratio in '{col}': {missing_ratio:.2%}"
                )

        report['statistics'] = {
            'n_rows': len(df),
            'n_columns': len(df.columns),
            'memory_usage_mb': df.memory_usage(deep=True).sum() / 1024**2,
            'missing_values': df.isna().sum().to_dict(),
            'dtypes': df.dtypes.astype(str).to_dict()
        }

        if schema:
            schema_validation = self._validate_schema(df, schema)
            report['errors'].extend(schema_validation.get('errors', []))
            report['warnings'].extend(schema_validation.get('warnings', []))
            if schema_validation.get('errors'):
                report['is_valid'] = False

        return report['is_valid'], report

    def _validate_schema(self, df: pd.DataFrame, schema: str) -> Dict[str, List[str]]:
        """Validate DataFrame against the customer schema."""
        result = {'errors': [], 'warnings': []}

        if schema != 'customers':
            result['warnings'].append(f"Unknown schema: {schema}")
            return result

        missing = set(CUSTOMER_SCHEMA) - set(df.columns)
        if missing:
            result['errors'].append(f"Schema '{schema}' missing columns: {sorted(missing)}")

        for col, kind in CUSTOMER_SCHEMA.items():
            if col not in df.columns:
                continue
            if kind in ('int', 'float') and not pd.api.types.is_numeric_dtype(df[col]):
                result['errors'].append(f"Column '{col}' should be numeric")
            elif kind == 'bool' and not pd.api.types.is_bool_dtype(df[col]):
                result['warnings'].append(f"Column '{col}' should be boolean")

        if 'id' in df.columns and df['id'].duplicated().any():
            result['errors'].append(
                f"Column 'id' has {int(df['id'].duplicated().sum())} duplicate values"
            )

        for col in ('age', 'tenure', 'balance'):
            if col in df.columns and pd.api.types.is_numeric_dtype(df[col]) and (df[col] < 0).any():
                result['errors'].append(f"Column '{col}' has negative values")

        if 'products_number' in df.columns and pd.api.types.is_numeric_dtype(df['products_number']):
            if (df['products_number'] < 1).any():
                result['errors'].append("Column 'products_number' has values below 1")

        return result

    def get_data_summary(self, df: pd.DataFrame) -> Dict[str, Any]:
        """
        Generate data summary.

        Args:
            df: Input DataFrame

        Returns:
            Dictionary with summary statistics
        """
        summary = {
            'shape': df.shape,
            'columns': list(df.columns),
            'dtypes': df.dtypes.astype(str).to_dict(),
            'missing_values': df.isna().sum().to_dict(),
            'numeric_summary': {},
            'categorical_summary': {}
        }

        numeric_cols = df.select_dtypes(include=[np.number]).columns
        if len(numeric_cols) > 0:
            summary['numeric_summary'] = df[numeric_cols].describe().to_dict()

        cat_cols = df.select_dtypes(include=['object', 'category', 'bool']).columns
        for col in cat_cols:
            summary['categorical_summary'][col] = {
                'unique_values': df[col].nunique(),
                'top_values': df[col].value_counts().head(5).to_dict()
            }

        return summary


def load_customers(
    filepath: Union[str, Path],
    config_path: Optional[str] = None
) -> pd.DataFrame:
    """
    Load, clean and validate the customer table.

    Args:
        filepath: CSV or parquet file with the bank customer columns
        config_path: Optional YAML configuration file

    Returns:
        Cleaned, read-only-by-convention customer DataFrame

    Raises:
        SchemaError: If the cleaned data violates the customer schema
    """
    loader = DataLoader(config_path)
    raw = loader.load(filepath)
    customers = Preprocessor().clean_data(raw)

    is_valid, report = loader.validate_data(customers, schema='customers')
    for warning in report['warnings']:
        logger.warning(warning)
    if not is_valid:
        raise SchemaError("; ".join(report['errors']))

    logger.info(f"Customer dataset ready: {len(customers)} records")
    return customers

"""
Data Preprocessing Module
=========================

Cleaning and type coercion for the bank customer table: column name
standardisation, header aliases, duplicate and null handling, and
schema-typed columns.

Usage:
    from churn_analytics.common import Preprocessor

    preprocessor = Preprocessor()
    customers = preprocessor.clean_data(raw_df)
"""

import pandas as pd
from typing import Dict, Optional
from loguru import logger
import warnings

from ..exceptions import SchemaError

warnings.filterwarnings('ignore')

# canonical column -> kind
CUSTOMER_SCHEMA: Dict[str, str] = {
    'id': 'int',
    'credit_score': 'int',
    'country': 'category',
    'gender': 'category',
    'age': 'int',
    'tenure': 'int',
    'balance': 'float',
    'products_number': 'int',
    'has_credit_card': 'bool',
    'is_active': 'bool',
    'estimated_salary': 'float',
    'churned': 'bool',
}

# standardised source header -> canonical column
COLUMN_ALIASES: Dict[str, str] = {
    'customer_id': 'id',
    'customerid': 'id',
    'creditscore': 'credit_score',
    'geography': 'country',
    'numofproducts': 'products_number',
    'num_of_products': 'products_number',
    'credit_card': 'has_credit_card',
    'hascrcard': 'has_credit_card',
    'active_member': 'is_active',
    'isactivemember': 'is_active',
    'estimatedsalary': 'estimated_salary',
    'churn': 'churned',
    'exited': 'churned',
}

BOOL_VALUES: Dict[str, bool] = {
    '1': True, '0': False,
    '1.0': True, '0.0': False,
    'true': True, 'false': False,
    'yes': True, 'no': False,
    'y': True, 'n': False,
}


class Preprocessor:
    """
    Customer table preprocessor.

    Provides methods for:
    - Column name standardisation and aliasing
    - Duplicate and missing value handling
    - Type coercion to the customer schema

    Example:
        >>> preprocessor = Preprocessor()
        >>> customers = preprocessor.clean_data(raw)
    """

    def __init__(self, aliases: Optional[Dict[str, str]] = None):
        """
        Initialize Preprocessor.

        Args:
            aliases: Extra source header -> canonical column mappings
        """
        self.aliases = {**COLUMN_ALIASES, **(aliases or {})}
        logger.info("Preprocessor initialized")

    def standardize_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Lower snake case column names and map known aliases."""
        df = df.copy()
        df.columns = (
            df.columns
            .str.strip()
            .str.replace(r'(?<=[a-z0-9])(?=[A-Z])', '_', regex=True)
            .str.lower()
            .str.replace(' ', '_')
            .str.replace('[^a-z0-9_]', '', regex=True)
        )
        # e.g. NumOfProducts -> num_of_products -> products_number
        renames = {
            c: self.aliases.get(c, self.aliases.get(c.replace('_', ''), c))
            for c in df.columns
        }
        return df.rename(columns=renames)

    def clean_data(
        self,
        df: pd.DataFrame,
        remove_duplicates: bool = True,
        drop_missing: bool = True,
        keep_extra_columns: bool = False
    ) -> pd.DataFrame:
        """
        Clean a raw customer table into the customer schema.

        Args:
            df: Raw customer DataFrame
            remove_duplicates: Drop fully duplicated rows
            drop_missing: Drop rows with missing schema values
            keep_extra_columns: Keep columns outside the schema

        Returns:
            Cleaned DataFrame with a fresh RangeIndex

        Raises:
            SchemaError: If required columns are missing, values cannot be
                coerced, or customer ids are not unique
        """
        original_shape = df.shape
        logger.info(f"Starting data cleaning. Shape: {original_shape}")

        df = self.standardize_columns(df)

        missing = set(CUSTOMER_SCHEMA) - set(df.columns)
        if missing:
            raise SchemaError(f"Customer data missing columns: {sorted(missing)}")

        if not keep_extra_columns:
            extra = [c for c in df.columns if c not in CUSTOMER_SCHEMA]
            if extra:
                df = df.drop(columns=extra)
                logger.info(f"Dropped {len(extra)} columns outside the schema: {extra}")
            df = df[list(CUSTOMER_SCHEMA)]

        if remove_duplicates:
            n_duplicates = df.duplicated().sum()
            if n_duplicates > 0:
                df = df.drop_duplicates()
                logger.info(f"Removed {n_duplicates} duplicate rows")

        if drop_missing:
            incomplete = df[list(CUSTOMER_SCHEMA)].isna().any(axis=1)
            if incomplete.any():
                df = df.loc[~incomplete]
                logger.warning(f"Dropped {int(incomplete.sum())} rows with missing values")

        df = self.coerce_types(df)

        if df['id'].duplicated().any():
            dupes = df.loc[df['id'].duplicated(), 'id'].head(5).tolist()
            raise SchemaError(f"Customer ids are not unique, e.g. {dupes}")

        df = df.reset_index(drop=True)
        logger.info(f"Cleaning complete. Shape: {original_shape} -> {df.shape}")
        return df

    def coerce_types(self, df: pd.DataFrame) -> pd.DataFrame:
        """Coerce schema columns to their declared kinds."""
        df = df.copy()

        for col, kind in CUSTOMER_SCHEMA.items():
            if col not in df.columns:
                continue
            if kind == 'bool':
                df[col] = self._to_bool(df[col], col)
            elif kind in ('int', 'float'):
                values = pd.to_numeric(df[col], errors='coerce')
                if values.isna().any():
                    bad = df.loc[values.isna(), col].head(3).tolist()
                    raise SchemaError(f"Column '{col}' has non-numeric values, e.g. {bad}")
                df[col] = values.astype('int64' if kind == 'int' else 'float64')
            else:
                df[col] = df[col].astype(str).str.strip()

        return df

    def _to_bool(self, series: pd.Series, column: str) -> pd.Series:
        """Map 0/1, yes/no and true/false encodings to booleans."""
        if pd.api.types.is_bool_dtype(series):
            return series
        mapped = series.astype(str).str.strip().str.lower().map(BOOL_VALUES)
        if mapped.isna().any():
            bad = series[mapped.isna()].head(3).tolist()
            raise SchemaError(f"Column '{column}' has non-boolean values, e.g. {bad}")
        return mapped.astype(bool)

#!/usr/bin/env python3
"""
data_utils.py - Shared Data Processing Utilities

Common functions used by the snapshot loader and the voter file preparation
steps.
"""

import re
from pathlib import Path
from typing import List, Sequence

import pandas as pd
from loguru import logger


def sanitize_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """Rename columns to snake_case in place and return ``df``.

    ``VOTER_ID`` becomes ``voter_id``, ``Eff Regn Date`` becomes
    ``eff_regn_date``. Names left empty or purely numeric are replaced by
    ``column_<position>``.
    """
    logger.debug("🧹 Sanitizing column names...")

    renamed = {}
    clean_cols = []
    for position, col in enumerate(df.columns):
        clean_col = re.sub(r"[^\w]+", "_", str(col).strip()).lower().strip("_")
        clean_col = re.sub(r"_+", "_", clean_col)
        if not clean_col or clean_col.isdigit():
            clean_col = f"column_{position}"
        if clean_col != col:
            renamed[col] = clean_col
        clean_cols.append(clean_col)

    if renamed:
        shown = ", ".join(f"'{old}' → '{new}'" for old, new in list(renamed.items())[:5])
        extra = f" (+{len(renamed) - 5} more)" if len(renamed) > 5 else ""
        logger.debug(f"  📝 Renamed {len(renamed)} columns: {shown}{extra}")

    collisions = sorted({c for c in clean_cols if clean_cols.count(c) > 1})
    if collisions:
        logger.warning(f"  ⚠️ Columns collide after sanitizing: {collisions}")

    df.columns = clean_cols
    return df


def normalize_blank_strings(df: pd.DataFrame) -> pd.DataFrame:
    """Strip text columns and turn empty strings into missing values."""
    text_cols = df.select_dtypes(include=["object", "string"]).columns
    for col in text_cols:
        stripped = df[col].str.strip()
        blank = stripped.eq("").fillna(False).astype(bool)
        df[col] = stripped.mask(blank)
    return df


def missing_columns(df: pd.DataFrame, required: Sequence[str]) -> List[str]:
    """Return the required column names that are absent from ``df``."""
    return [col for col in required if col not in df.columns]


def ensure_output_directory(output_path: str | Path) -> Path:
    """Ensure output directory exists and return Path object.

    Args:
        output_path: Output file path (string or Path)

    Returns:
        Path object with directory created
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path

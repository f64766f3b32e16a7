#!/usr/bin/env python3
"""
party_recode.py - Party Code Display Categories

Maps Oregon party registration codes to the four categories used in charts.
Codes without a category are handled by a policy:

    passthrough  keep the raw code (default; a warning lists the codes)
    other        fold them into "Other"
    error        raise UnmappedPartyError
"""

from typing import Dict, FrozenSet, Set

import pandas as pd
from loguru import logger

from .errors import UnmappedPartyError
from .schema import AGGREGATE_COLUMNS

PARTY_CATEGORIES: Dict[str, FrozenSet[str]] = {
    "Democrat": frozenset({"DEM"}),
    "Republican": frozenset({"REP"}),
    "NonAffiliated": frozenset({"NAV"}),
    "Other": frozenset({"AME", "CON", "IND", "LBT", "NP", "OTH", "PGP", "PRO", "WFP"}),
}

PARTY_CODE_TO_CATEGORY: Dict[str, str] = {
    code: category for category, codes in PARTY_CATEGORIES.items() for code in codes
}

CATEGORY_ORDER = list(PARTY_CATEGORIES)

UNMAPPED_POLICIES = ("passthrough", "other", "error")


def unmapped_party_codes(codes: pd.Series) -> Set[str]:
    """Distinct non-missing codes that have no display category."""
    present = set(codes.dropna().astype(str).unique())
    return present - set(PARTY_CODE_TO_CATEGORY)


def recode_party(codes: pd.Series, policy: str = "passthrough") -> pd.Series:
    """Map raw party codes to display categories.

    Missing codes stay missing under every policy.
    """
    if policy not in UNMAPPED_POLICIES:
        raise ValueError(f"Unknown unmapped party policy '{policy}', expected one of {UNMAPPED_POLICIES}")

    unmapped = unmapped_party_codes(codes)
    if unmapped:
        if policy == "error":
            raise UnmappedPartyError(unmapped)
        action = "kept as-is" if policy == "passthrough" else "folded into 'Other'"
        logger.warning(f"  ⚠️ Party codes without a display category ({action}): {sorted(unmapped)}")

    categories = codes.map(PARTY_CODE_TO_CATEGORY)
    fallback = codes if policy == "passthrough" else codes.where(codes.isna(), "Other")
    return categories.where(categories.notna(), fallback)


def recode_aggregates(agg: pd.DataFrame, policy: str = "passthrough") -> pd.DataFrame:
    """Recode the party column of county/party aggregates.

    Rows that end up sharing (county, category) are summed; the county level
    columns are unchanged by construction.
    """
    logger.info("🏷️ Recoding party codes to display categories...")
    recoded = agg.copy()
    recoded["party"] = recode_party(recoded["party"], policy)

    recoded = (
        recoded.groupby(["county", "party"], dropna=False)
        .agg(
            n_voters=("n_voters", "sum"),
            n_omv=("n_omv", "sum"),
            county_total=("county_total", "first"),
            omv_prop=("omv_prop", "sum"),
            county_omv_prop=("county_omv_prop", "first"),
        )
        .reset_index()
    )

    logger.success(f"  ✅ {recoded['party'].nunique():,} party categories in {len(recoded):,} groups")
    return recoded[AGGREGATE_COLUMNS]

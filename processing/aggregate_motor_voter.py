#!/usr/bin/env python3
"""
aggregate_motor_voter.py - County/Party Motor Voter Aggregation

Counts cleaned voter records per (county, party) and expresses motor voter
registrations as a share of each county's active registrations:

    omv_prop         n_omv / county_total for one party in one county
    county_omv_prop  sum of omv_prop over the county's parties
                     (= motor voter share of the whole county)
"""

from typing import Optional

import numpy as np
import pandas as pd
from loguru import logger

from .errors import AggregateInvariantError
from .schema import AGGREGATE_COLUMNS, MOTOR_VOTER_FLAG, REGISTRATION_METHOD, VoterColumns

TRADITIONAL_LABEL = "Traditional"


def add_motor_voter_flag(df: pd.DataFrame, traditional_label: str = TRADITIONAL_LABEL) -> pd.DataFrame:
    """Flag every record whose registration method is not the traditional label."""
    df = df.copy()
    df[MOTOR_VOTER_FLAG] = (df[REGISTRATION_METHOD] != traditional_label).astype(bool)
    n_omv = int(df[MOTOR_VOTER_FLAG].sum())
    if len(df):
        logger.info(f"  🚗 Motor voter registrations: {n_omv:,}/{len(df):,} ({n_omv / len(df) * 100:.1f}%)")
    return df


def aggregate_county_party(df: pd.DataFrame, columns: Optional[VoterColumns] = None) -> pd.DataFrame:
    """Group flagged records by county and party and compute motor voter shares.

    Args:
        df: Cleaned voter records carrying the motor voter flag
        columns: Column names of the voter records

    Returns:
        DataFrame with columns county, party, n_voters, n_omv, county_total,
        omv_prop, county_omv_prop
    """
    columns = columns or VoterColumns()
    logger.info("📊 Aggregating motor voter registrations by county and party...")

    if MOTOR_VOTER_FLAG not in df.columns:
        df = add_motor_voter_flag(df)

    agg = (
        df.groupby([columns.county, columns.party_code], dropna=False)
        .agg(n_voters=(MOTOR_VOTER_FLAG, "size"), n_omv=(MOTOR_VOTER_FLAG, "sum"))
        .reset_index()
        .rename(columns={columns.county: "county", columns.party_code: "party"})
    )
    agg["n_voters"] = agg["n_voters"].astype("int64")
    agg["n_omv"] = agg["n_omv"].astype("int64")

    agg["county_total"] = agg.groupby("county", dropna=False)["n_voters"].transform("sum")
    agg["omv_prop"] = np.where(agg["county_total"] > 0, agg["n_omv"] / agg["county_total"], 0.0)
    agg["county_omv_prop"] = agg.groupby("county", dropna=False)["omv_prop"].transform("sum")

    agg = agg.sort_values(["county", "party"]).reset_index(drop=True)[AGGREGATE_COLUMNS]

    logger.success(f"  ✅ {len(agg):,} county/party groups across {agg['county'].nunique():,} counties")
    return agg


def summarize_counties(agg: pd.DataFrame) -> pd.DataFrame:
    """One row per county: registered voters and motor voter share.

    ``mean_omv_prop`` collapses the county's (constant) total motor voter
    share over its party rows.
    """
    summary = (
        agg.groupby("county", dropna=False)
        .agg(
            county_total=("county_total", "max"),
            n_omv=("n_omv", "sum"),
            mean_omv_prop=("county_omv_prop", "mean"),
        )
        .reset_index()
        .sort_values("mean_omv_prop", ascending=False)
        .reset_index(drop=True)
    )
    return summary


def check_aggregate_invariants(agg: pd.DataFrame, tol: float = 1e-9) -> None:
    """Raise AggregateInvariantError if counts or proportions are inconsistent."""
    problems = []

    party_sums = agg.groupby("county", dropna=False)["n_voters"].sum()
    totals = agg.groupby("county", dropna=False)["county_total"].agg(["min", "max"])
    mismatched = totals[(totals["min"] != totals["max"]) | (totals["max"] != party_sums)]
    if not mismatched.empty:
        problems.append(f"county totals differ from party sums: {list(mismatched.index)}")

    for col in ("omv_prop", "county_omv_prop"):
        out_of_range = agg[(agg[col] < -tol) | (agg[col] > 1 + tol)]
        if not out_of_range.empty:
            problems.append(f"{col} outside [0, 1] for {len(out_of_range)} groups")

    expected = agg["n_omv"] / agg["county_total"]
    if not np.allclose(agg["omv_prop"], expected, atol=tol, rtol=0):
        problems.append("omv_prop differs from n_omv / county_total")

    if (agg["n_omv"] > agg["n_voters"]).any():
        problems.append("n_omv exceeds n_voters")

    if problems:
        for problem in problems:
            logger.error(f"❌ Aggregate invariant violated: {problem}")
        raise AggregateInvariantError("; ".join(problems))

    logger.debug("✅ Aggregate invariants hold")


def aggregate_motor_voter(df: pd.DataFrame, config=None) -> pd.DataFrame:
    """Flag, aggregate and check cleaned voter records using config settings (or defaults)."""
    if config is not None:
        columns = VoterColumns.from_config(config)
        traditional_label = config.get_analysis_setting("traditional_label")
    else:
        columns = VoterColumns()
        traditional_label = TRADITIONAL_LABEL

    flagged = add_motor_voter_flag(df, traditional_label)
    agg = aggregate_county_party(flagged, columns)
    check_aggregate_invariants(agg)
    return agg

#!/usr/bin/env python3
"""
prepare_voterfile_data.py - Voter Registration Preprocessor

Joins the registration and motor voter tables of a snapshot, then cleans and
filters the joined records so they are ready for aggregation.

Steps:
    1. Deduplicate each table on the voter identifier (first occurrence wins)
    2. Left join registrations to motor voter records
    3. Fill the missing registration method with "Traditional" and parse dates
    4. Drop confidential, inactive and implausibly old records

Result: one row per active, non-confidential voter with a registration method.
"""

from typing import Optional

import pandas as pd
from loguru import logger

from .schema import REGISTRATION_METHOD, VoterColumns
from .voter_snapshot import VoterSnapshot

TRADITIONAL_LABEL = "Traditional"
DEFAULT_JOIN_SUFFIX = "_omv"
DEFAULT_DATE_FORMAT = "%m-%d-%Y"
DEFAULT_BIRTH_DATE_FLOOR = "1902-01-01"
DEFAULT_ACTIVE_STATUS = "Active"


def deduplicate_voters(df: pd.DataFrame, id_col: str, description: str = "records") -> pd.DataFrame:
    """Keep the first row for each voter identifier."""
    deduped = df.drop_duplicates(subset=id_col, keep="first")
    dropped = len(df) - len(deduped)
    if dropped:
        logger.warning(f"  ⚠️ Dropped {dropped:,} duplicate {description} (same {id_col})")
    return deduped


def join_voter_tables(
    registrations: pd.DataFrame,
    motor_voter: pd.DataFrame,
    columns: Optional[VoterColumns] = None,
    suffix: str = DEFAULT_JOIN_SUFFIX,
) -> pd.DataFrame:
    """Left join registrations to motor voter records on the voter identifier.

    Both tables are deduplicated first. Columns present in both tables keep
    the registration name; the motor voter copy gets ``suffix``. Registrations
    without a motor voter record carry nulls in the motor voter columns.
    """
    columns = columns or VoterColumns()
    logger.info("🔗 Joining registration and motor voter records...")

    registrations = deduplicate_voters(registrations, columns.voter_id, "registrations")
    motor_voter = deduplicate_voters(motor_voter, columns.voter_id, "motor voter records")

    joined = registrations.merge(
        motor_voter,
        on=columns.voter_id,
        how="left",
        suffixes=("", suffix),
        indicator="_omv_match",
    )

    matched = int((joined["_omv_match"] == "both").sum())
    joined = joined.drop(columns="_omv_match")

    logger.success(f"  ✅ Joined {len(joined):,} registrations")
    if len(joined):
        logger.info(
            f"     📊 Matched to motor voter records: {matched:,} ({matched / len(joined) * 100:.1f}%)"
        )
    return joined


def method_label_column(
    df: pd.DataFrame, columns: VoterColumns, suffix: str = DEFAULT_JOIN_SUFFIX
) -> str:
    """Name of the motor voter table's registration method column after the join."""
    suffixed = f"{columns.registration_method}{suffix}"
    if suffixed in df.columns:
        return suffixed
    if columns.registration_method in df.columns:
        return columns.registration_method
    raise KeyError(f"No registration method column ({columns.registration_method}) after join")


DATE_SEPARATORS = "-/."


def parse_mdy_dates(series: pd.Series, date_format: str = DEFAULT_DATE_FORMAT) -> pd.Series:
    """Parse month-day-year strings; unparsable values become NaT.

    Any of ``-``, ``/`` or ``.`` is accepted between date parts and rewritten
    to the separator ``date_format`` uses. Formats with none of them are
    applied to the stripped text as-is.
    """
    text = series.astype("string").str.strip()
    separator = next((c for c in date_format if c in DATE_SEPARATORS), None)
    if separator is not None:
        text = text.str.replace(r"[-/.]", separator, regex=True)
    return pd.to_datetime(text, format=date_format, errors="coerce")


def clean_voter_records(
    df: pd.DataFrame,
    columns: Optional[VoterColumns] = None,
    date_format: str = DEFAULT_DATE_FORMAT,
    traditional_label: str = TRADITIONAL_LABEL,
    suffix: str = DEFAULT_JOIN_SUFFIX,
) -> pd.DataFrame:
    """Fill the registration method and parse the date columns."""
    columns = columns or VoterColumns()
    logger.info("🧹 Cleaning joined voter records...")
    df = df.copy()

    label_col = method_label_column(df, columns, suffix)
    method = df[label_col].astype("object")
    n_traditional = int(method.isna().sum())
    df[REGISTRATION_METHOD] = method.where(method.notna(), traditional_label)
    logger.info(f"  📝 Labelled {n_traditional:,} registrations as '{traditional_label}'")

    for date_col in (columns.birth_date, columns.registration_date):
        present = df[date_col].notna()
        df[date_col] = parse_mdy_dates(df[date_col], date_format)
        unparsable = int((present & df[date_col].isna()).sum())
        if unparsable:
            logger.warning(f"  ⚠️ {unparsable:,} unparsable values in {date_col} set to missing")

    return df


def filter_voter_records(
    df: pd.DataFrame,
    columns: Optional[VoterColumns] = None,
    birth_date_floor: str = DEFAULT_BIRTH_DATE_FLOOR,
    active_status: str = DEFAULT_ACTIVE_STATUS,
) -> pd.DataFrame:
    """Drop confidential, inactive and implausibly old voters.

    Birth dates must be strictly after ``birth_date_floor``; a missing birth
    date does not satisfy that and is dropped as well.
    """
    columns = columns or VoterColumns()
    logger.info("🔍 Filtering voter records...")
    initial = len(df)

    keep = df[columns.confidential].isna()
    logger.info(f"  🔒 Confidential voters removed: {int((~keep).sum()):,}")
    df = df[keep]

    keep = df[columns.status].eq(active_status).fillna(False).astype(bool)
    logger.info(f"  💤 Non-'{active_status}' voters removed: {int((~keep).sum()):,}")
    df = df[keep]

    floor = pd.Timestamp(birth_date_floor)
    keep = (df[columns.birth_date] > floor).fillna(False).astype(bool)
    logger.info(f"  🎂 Birth dates on/before {floor.date()} or missing removed: {int((~keep).sum()):,}")
    df = df[keep]

    logger.success(f"  ✅ Retained {len(df):,}/{initial:,} voter records")
    return df.reset_index(drop=True)


def prepare_voterfile_data(snapshot: VoterSnapshot, config=None) -> pd.DataFrame:
    """Join, clean and filter a snapshot using config settings (or defaults)."""
    logger.info("🗳️ Voter Registration Data Preparation")
    logger.info("=" * 50)

    if config is not None:
        columns = VoterColumns.from_config(config)
        suffix = config.get_analysis_setting("join_suffix")
        date_format = config.get_analysis_setting("date_format")
        traditional_label = config.get_analysis_setting("traditional_label")
        birth_date_floor = config.get_analysis_setting("birth_date_floor")
        active_status = config.get_analysis_setting("active_status")
    else:
        columns = VoterColumns()
        suffix = DEFAULT_JOIN_SUFFIX
        date_format = DEFAULT_DATE_FORMAT
        traditional_label = TRADITIONAL_LABEL
        birth_date_floor = DEFAULT_BIRTH_DATE_FLOOR
        active_status = DEFAULT_ACTIVE_STATUS

    joined = join_voter_tables(snapshot.registrations, snapshot.motor_voter, columns, suffix)
    cleaned = clean_voter_records(joined, columns, date_format, traditional_label, suffix)
    return filter_voter_records(cleaned, columns, birth_date_floor, active_status)

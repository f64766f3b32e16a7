#!/usr/bin/env python3
"""
voter_snapshot.py - Voter Registration Snapshot Loader

The snapshot is a single SQLite file holding two named tables:

    registrations   one row per registration record (VOTER_ID, COUNTY,
                    PARTY_CODE, BIRTH_DATE, EFF_REGN_DATE, STATUS,
                    CONFIDENTIAL, ...)
    motor_voter     one row per Oregon Motor Voter record (VOTER_ID,
                    DESCRIPTION, ...)

Every column is read as text. Column names are sanitized to snake_case and
blank strings become missing values, so downstream steps only deal with
canonical names and real nulls.

Usage:
    snapshot = load_voter_snapshot("data/voters/or_voter_snapshot.sqlite")
    snapshot.registrations, snapshot.motor_voter
"""

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

import pandas as pd
from loguru import logger

from .data_utils import (
    ensure_output_directory,
    missing_columns,
    normalize_blank_strings,
    sanitize_column_names,
)
from .errors import DataLoadError
from .schema import VoterColumns

DEFAULT_REGISTRATIONS_TABLE = "registrations"
DEFAULT_MOTOR_VOTER_TABLE = "motor_voter"

TAB_DELIMITED = (".txt", ".tsv", ".tab")


@dataclass
class VoterSnapshot:
    """The two raw tables of a voter snapshot."""

    registrations: pd.DataFrame
    motor_voter: pd.DataFrame
    source: Optional[Path] = None


def _list_tables(conn: sqlite3.Connection) -> List[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return [row[0] for row in rows]


def _read_table(conn: sqlite3.Connection, table: str) -> pd.DataFrame:
    df = pd.read_sql_query(f'SELECT * FROM "{table}"', conn)
    df = df.astype("string")
    df = sanitize_column_names(df)
    duplicated = sorted(set(df.columns[df.columns.duplicated()]))
    if duplicated:
        logger.critical(f"❌ Table '{table}' has colliding column names: {duplicated}")
        raise DataLoadError(f"Table '{table}' has columns that sanitize to duplicate names: {duplicated}")
    return normalize_blank_strings(df)


def load_voter_snapshot(
    path: Union[str, Path],
    registrations_table: str = DEFAULT_REGISTRATIONS_TABLE,
    motor_voter_table: str = DEFAULT_MOTOR_VOTER_TABLE,
    registrations_required: Sequence[str] = (),
    motor_voter_required: Sequence[str] = (),
) -> VoterSnapshot:
    """Load registration and motor voter tables from a snapshot file.

    Args:
        path: SQLite snapshot file
        registrations_table: Name of the registration records table
        motor_voter_table: Name of the motor voter records table
        registrations_required: Columns (sanitized names) the registrations table must have
        motor_voter_required: Columns (sanitized names) the motor voter table must have

    Returns:
        VoterSnapshot with both tables

    Raises:
        DataLoadError: if the file is absent, is not a SQLite database, or a
            table/column is missing
    """
    path = Path(path)
    logger.info(f"📂 Loading voter snapshot from {path}")

    if not path.exists():
        logger.critical(f"❌ Voter snapshot not found: {path}")
        raise DataLoadError(f"Voter snapshot not found: {path}")
    if not path.is_file():
        raise DataLoadError(f"Voter snapshot is not a file: {path}")

    conn = None
    try:
        conn = sqlite3.connect(f"file:{path.resolve().as_posix()}?mode=ro", uri=True)
        tables = _list_tables(conn)
        logger.debug(f"  📋 Tables in snapshot: {tables}")

        absent = [t for t in (registrations_table, motor_voter_table) if t not in tables]
        if absent:
            raise DataLoadError(f"Voter snapshot {path} is missing tables: {absent}")

        registrations = _read_table(conn, registrations_table)
        motor_voter = _read_table(conn, motor_voter_table)
    except (sqlite3.Error, pd.errors.DatabaseError) as e:
        logger.critical(f"❌ Voter snapshot is malformed: {e}")
        raise DataLoadError(f"Voter snapshot {path} could not be read: {e}") from e
    finally:
        if conn is not None:
            conn.close()

    for description, df, required in (
        (registrations_table, registrations, registrations_required),
        (motor_voter_table, motor_voter, motor_voter_required),
    ):
        missing = missing_columns(df, required)
        if missing:
            logger.critical(f"❌ Table '{description}' is missing required columns: {missing}")
            raise DataLoadError(f"Table '{description}' is missing required columns: {missing}")

    logger.success(f"  ✅ Loaded {len(registrations):,} registration records")
    logger.success(f"  ✅ Loaded {len(motor_voter):,} motor voter records")

    return VoterSnapshot(registrations=registrations, motor_voter=motor_voter, source=path)


def load_snapshot_from_config(config) -> VoterSnapshot:
    """Load the snapshot named by ``input_files.voter_snapshot`` in the config."""
    columns = VoterColumns.from_config(config)
    return load_voter_snapshot(
        config.get_input_path("voter_snapshot"),
        registrations_table=config.get_snapshot_table("registrations_table"),
        motor_voter_table=config.get_snapshot_table("motor_voter_table"),
        registrations_required=columns.registration_required,
        motor_voter_required=columns.motor_voter_required,
    )


def write_voter_snapshot(
    registrations: pd.DataFrame,
    motor_voter: pd.DataFrame,
    path: Union[str, Path],
    registrations_table: str = DEFAULT_REGISTRATIONS_TABLE,
    motor_voter_table: str = DEFAULT_MOTOR_VOTER_TABLE,
) -> Path:
    """Persist the two tables as a snapshot, replacing existing tables."""
    path = ensure_output_directory(path)
    logger.info(f"💾 Writing voter snapshot to {path}")

    conn = sqlite3.connect(path)
    try:
        registrations.to_sql(registrations_table, conn, if_exists="replace", index=False)
        motor_voter.to_sql(motor_voter_table, conn, if_exists="replace", index=False)
        conn.commit()
    finally:
        conn.close()

    logger.success(
        f"  ✅ Snapshot written: {len(registrations):,} registrations, "
        f"{len(motor_voter):,} motor voter records"
    )
    return path


def read_voter_export(path: Union[str, Path]) -> pd.DataFrame:
    """Read a raw Secretary of State export (CSV, or tab-delimited .txt/.tsv)."""
    path = Path(path)
    if not path.exists():
        logger.critical(f"❌ Voter export not found: {path}")
        raise DataLoadError(f"Voter export not found: {path}")

    sep = "\t" if path.suffix.lower() in TAB_DELIMITED else ","
    try:
        df = pd.read_csv(path, sep=sep, dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise DataLoadError(f"Voter export {path} could not be parsed: {e}") from e

    logger.info(f"  📄 Read {len(df):,} rows from {path.name}")
    return df


def build_snapshot_from_csv(
    registrations_csv: Union[str, Path],
    motor_voter_csv: Union[str, Path],
    path: Union[str, Path],
    registrations_table: str = DEFAULT_REGISTRATIONS_TABLE,
    motor_voter_table: str = DEFAULT_MOTOR_VOTER_TABLE,
) -> Path:
    """Build a snapshot file from the two raw exports."""
    logger.info("🗳️ Building voter snapshot from raw exports...")
    registrations = read_voter_export(registrations_csv)
    motor_voter = read_voter_export(motor_voter_csv)
    return write_voter_snapshot(
        registrations,
        motor_voter,
        path,
        registrations_table=registrations_table,
        motor_voter_table=motor_voter_table,
    )

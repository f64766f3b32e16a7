"""Shared fixtures: a small Oregon-style voter file and its motor voter records."""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest
import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from processing.voter_snapshot import write_voter_snapshot  # noqa: E402

REGISTRATION_ROWS = [
    # voter_id, county, party, birth, eff_regn, status, confidential
    ("1", "Multnomah", "DEM", "01-15-1980", "03-01-2016", "Active", None),
    ("1", "Multnomah", "REP", "01-15-1980", "03-01-2016", "Active", None),  # duplicate id
    ("2", "Multnomah", "DEM", "02-20-1975", "01-05-2000", "Active", None),
    ("3", "Multnomah", "REP", "07/04/1960", "06-12-2017", "Active", None),
    ("4", "Multnomah", "NAV", "11-11-1990", "08-30-2018", "Active", None),
    ("5", "Multnomah", "IND", "05-05-1985", "09-09-2004", "Active", None),
    ("6", "Lane", "DEM", "03-03-1970", "10-10-1992", "Active", None),
    ("7", "Lane", "REP", "04-04-1965", "02-14-2016", "Active", None),
    ("8", "Lane", "NAV", "06-06-1999", "07-01-2017", "Active", None),
    ("9", "Lane", "ZZZ", "08-08-1988", "04-04-2010", "Active", None),
    ("10", "Lane", "DEM", "09-09-1950", "01-01-2016", "Inactive", None),
    ("11", "Multnomah", "DEM", "10-10-1977", "05-05-2016", "Active", "Y"),
    ("12", "Lane", "REP", "01-01-1902", "01-01-1990", "Active", None),
    ("13", "Lane", "REP", "not a date", "01-01-1990", "Active", None),
]

MOTOR_VOTER_ROWS = [
    # voter_id, county, description
    ("1", "Multnomah", "OMV Phase 1"),
    ("3", "Multnomah", "OMV Phase 2"),
    ("3", "Multnomah", "OMV Phase 1"),  # duplicate id
    ("4", "Multnomah", "OMV Phase 1"),
    ("7", "Lane", "OMV Phase 2"),
    ("8", "Lane", "OMV Phase 1"),
    ("10", "Lane", "OMV Phase 1"),
    ("99", "Lane", "OMV Phase 1"),  # not in the registration file
]


@pytest.fixture
def registrations_df() -> pd.DataFrame:
    return pd.DataFrame(
        REGISTRATION_ROWS,
        columns=[
            "voter_id",
            "county",
            "party_code",
            "birth_date",
            "eff_regn_date",
            "status",
            "confidential",
        ],
    )


@pytest.fixture
def motor_voter_df() -> pd.DataFrame:
    return pd.DataFrame(MOTOR_VOTER_ROWS, columns=["voter_id", "county", "description"])


@pytest.fixture
def snapshot_path(tmp_path: Path, registrations_df: pd.DataFrame, motor_voter_df: pd.DataFrame) -> Path:
    """Snapshot with Secretary of State style column names and blank strings."""
    raw_registrations = registrations_df.fillna("").rename(columns=str.upper)
    raw_motor_voter = motor_voter_df.rename(columns=str.upper)
    return write_voter_snapshot(
        raw_registrations, raw_motor_voter, tmp_path / "data" / "snapshot.sqlite"
    )


@pytest.fixture
def config_file(tmp_path: Path, snapshot_path: Path) -> Path:
    config = {
        "project_name": "Test Motor Voter Analysis",
        "input_files": {"voter_snapshot": str(snapshot_path)},
        "directories": {"figures": str(tmp_path / "figures")},
        "visualization": {"figure_dpi": 50, "bar_figure_size": [6, 4], "scatter_figure_size": [6, 4]},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return path

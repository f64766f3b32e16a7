"""
Processing package for the Motor Voter Analysis Pipeline

This package contains the data steps of the pipeline: snapshot loading,
joining, cleaning/filtering, aggregation and party recoding.
"""

__version__ = "0.1.0"

from .aggregate_motor_voter import (
    add_motor_voter_flag,
    aggregate_county_party,
    check_aggregate_invariants,
    summarize_counties,
)
from .errors import (
    AggregateInvariantError,
    DataLoadError,
    MotorVoterAnalysisError,
    UnmappedPartyError,
)
from .party_recode import PARTY_CATEGORIES, recode_aggregates, recode_party
from .prepare_voterfile_data import (
    clean_voter_records,
    filter_voter_records,
    join_voter_tables,
)
from .voter_snapshot import VoterSnapshot, load_voter_snapshot, write_voter_snapshot

__all__ = [
    "VoterSnapshot",
    "load_voter_snapshot",
    "write_voter_snapshot",
    "join_voter_tables",
    "clean_voter_records",
    "filter_voter_records",
    "add_motor_voter_flag",
    "aggregate_county_party",
    "summarize_counties",
    "check_aggregate_invariants",
    "PARTY_CATEGORIES",
    "recode_party",
    "recode_aggregates",
    "MotorVoterAnalysisError",
    "DataLoadError",
    "AggregateInvariantError",
    "UnmappedPartyError",
]

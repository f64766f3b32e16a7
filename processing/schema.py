from __future__ import annotations

from dataclasses import dataclass, fields
from typing import List

import pandas as pd

AGGREGATE_COLUMNS: List[str] = [
    "county",
    "party",
    "n_voters",
    "n_omv",
    "county_total",
    "omv_prop",
    "county_omv_prop",
]

MOTOR_VOTER_FLAG = "is_omv"
REGISTRATION_METHOD = "registration_method"


@dataclass(frozen=True)
class VoterColumns:
    """Canonical (snake_case) column names of a voter record."""

    voter_id: str = "voter_id"
    county: str = "county"
    party_code: str = "party_code"
    birth_date: str = "birth_date"
    registration_date: str = "eff_regn_date"
    status: str = "status"
    confidential: str = "confidential"
    registration_method: str = "description"

    @classmethod
    def from_config(cls, config) -> "VoterColumns":
        return cls(**{f.name: config.get_column_name(f.name) for f in fields(cls)})

    @property
    def registration_required(self) -> List[str]:
        return [
            self.voter_id,
            self.county,
            self.party_code,
            self.birth_date,
            self.registration_date,
            self.status,
            self.confidential,
        ]

    @property
    def motor_voter_required(self) -> List[str]:
        return [self.voter_id, self.registration_method]


@dataclass(frozen=True)
class CountyPartyAggregate:
    county: str
    party: str
    n_voters: int
    n_omv: int
    county_total: int
    omv_prop: float
    county_omv_prop: float


def aggregates_from_frame(agg: pd.DataFrame) -> List[CountyPartyAggregate]:
    """Convert an aggregate DataFrame into CountyPartyAggregate records."""
    return [
        CountyPartyAggregate(
            county=str(row.county),
            party=str(row.party),
            n_voters=int(row.n_voters),
            n_omv=int(row.n_omv),
            county_total=int(row.county_total),
            omv_prop=float(row.omv_prop),
            county_omv_prop=float(row.county_omv_prop),
        )
        for row in agg[AGGREGATE_COLUMNS].itertuples(index=False)
    ]

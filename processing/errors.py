"""Exceptions raised by the motor voter processing steps."""


class MotorVoterAnalysisError(Exception):
    """Base class for pipeline failures that abort the run."""


class DataLoadError(MotorVoterAnalysisError):
    """The voter snapshot is missing, unreadable, or lacks a required table/column."""


class AggregateInvariantError(MotorVoterAnalysisError):
    """County/party aggregates violate a count or proportion invariant."""


class UnmappedPartyError(MotorVoterAnalysisError):
    """A party code has no display category and the policy is 'error'."""

    def __init__(self, codes):
        self.codes = sorted(codes)
        super().__init__(f"Party codes without a display category: {self.codes}")

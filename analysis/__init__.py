"""Charts for the Motor Voter Analysis Pipeline."""

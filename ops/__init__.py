"""
Operations package for the Motor Voter Analysis Pipeline

This package centralizes the operational tools:
- Configuration management
- Pipeline orchestration and the command-line interface

The Config class is exposed at the package level for convenient imports:
    from ops import Config
"""

from .config_loader import Config

__all__ = ["Config"]

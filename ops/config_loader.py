"""
Motor Voter Analysis Configuration

Reads config.yaml and answers lookups for snapshot location, column names,
analysis thresholds and chart styling. Keys missing from the file fall back
to ``Config.DEFAULTS``.

Usage:
    from ops.config_loader import Config

    config = Config()
    snapshot = config.get_input_path("voter_snapshot")
    floor = config.get_analysis_setting("birth_date_floor")
"""

import os
import pathlib
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger

PACKAGE_CONFIG = Path(__file__).parent / "config.yaml"

PROJECT_MARKERS = ("analysis", "data", "ops", "processing", "pyproject.toml", ".git")

_MISSING = object()


def _discover_config_file() -> Path:
    """PIPELINE_CONFIG_PATH, then ./config.yaml, then the bundled ops/config.yaml."""
    env_config = os.environ.get("PIPELINE_CONFIG_PATH")
    if env_config and Path(env_config).exists():
        logger.debug(f"Config from PIPELINE_CONFIG_PATH: {env_config}")
        return Path(env_config)

    local = Path("config.yaml")
    if local.exists():
        return local

    if PACKAGE_CONFIG.exists():
        logger.debug("Falling back to the bundled ops/config.yaml")
        return PACKAGE_CONFIG

    raise FileNotFoundError(
        "No config.yaml found (checked PIPELINE_CONFIG_PATH, ./config.yaml, ops/config.yaml)"
    )


def _dig(tree: Any, keys: Iterable[str]) -> Any:
    for key in keys:
        if not isinstance(tree, dict) or key not in tree:
            return _MISSING
        tree = tree[key]
    return tree


class Config:
    """Configuration for one run of the motor voter analysis."""

    DEFAULTS: Dict[str, Any] = {
        "snapshot": {
            "registrations_table": "registrations",
            "motor_voter_table": "motor_voter",
        },
        "columns": {
            "voter_id": "voter_id",
            "county": "county",
            "party_code": "party_code",
            "birth_date": "birth_date",
            "registration_date": "eff_regn_date",
            "status": "status",
            "confidential": "confidential",
            "registration_method": "description",
        },
        "analysis": {
            "date_format": "%m-%d-%Y",
            "birth_date_floor": "1902-01-01",
            "active_status": "Active",
            "traditional_label": "Traditional",
            "join_suffix": "_omv",
            "unmapped_party_policy": "passthrough",
        },
        "visualization": {
            "figure_dpi": 300,
            "bar_figure_size": [10, 12],
            "scatter_figure_size": [10, 8],
            "palette": "colorblind",
        },
    }

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
    ):
        """
        Load a configuration file.

        Args:
            config_file: YAML file to load. Defaults to PIPELINE_CONFIG_PATH,
                ./config.yaml or the config.yaml bundled in ops/, in that order.
            project_root_override: Directory that relative paths resolve
                against, instead of the detected project root.
        """
        self.config_path = Path(config_file or _discover_config_file()).resolve()
        self.config_dir = self.config_path.parent

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
        else:
            self.project_root = self._find_project_root()

        logger.debug(f"Config file: {self.config_path} (project root {self.project_root})")

        with open(self.config_path, "r") as f:
            self.data = yaml.safe_load(f) or {}

        self._setup_paths()

    def _setup_paths(self) -> None:
        directories = self.data.get("directories") or {}
        self.data_dir = self.project_root / directories.get("data", "data")
        self.figures_dir = self.project_root / directories.get("figures", "figures")

    def apply_overrides(self, overrides: Dict[str, Any]) -> None:
        """Merge nested overrides into the loaded config and refresh derived paths."""
        self._apply_nested_override(self.data, overrides)
        self._setup_paths()

    def _apply_nested_override(self, base_dict: Dict, override_dict: Dict) -> None:
        for key, value in override_dict.items():
            if isinstance(value, dict) and isinstance(base_dict.get(key), dict):
                self._apply_nested_override(base_dict[key], value)
            else:
                base_dict[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Look up a dot-separated key, e.g. ``analysis.birth_date_floor``.

        The loaded file wins; ``DEFAULTS`` fills keys the file leaves out or
        sets to null; ``default`` is returned when neither has the key.
        """
        keys = key_path.split(".")
        for tree in (self.data, self.DEFAULTS):
            value = _dig(tree, keys)
            if value is not _MISSING and value is not None:
                return value
        return default

    def get_input_path(self, filename_key: str) -> pathlib.Path:
        """Path of ``input_files.<filename_key>`` resolved against the project root."""
        configured = (self.data.get("input_files") or {}).get(filename_key)
        if not configured:
            raise ValueError(f"No input file configured under input_files.{filename_key}")
        return self.project_root / configured

    def get_output_dir(self, dir_key: str) -> pathlib.Path:
        """Directory for ``dir_key``: 'data' or 'figures'."""
        dirs = {"data": self.data_dir, "figures": self.figures_dir}
        if dir_key not in dirs:
            raise ValueError(f"Unknown directory key: {dir_key}")
        return pathlib.Path(dirs[dir_key])

    def _get_string(self, section: str, key: str) -> str:
        value = self.get(f"{section}.{key}")
        if not isinstance(value, str):
            raise ValueError(f"{section}.{key} is not configured as a string (got {value!r})")
        return value

    def get_column_name(self, column_key: str) -> str:
        return self._get_string("columns", column_key)

    def get_snapshot_table(self, table_key: str) -> str:
        """Table name for 'registrations_table' or 'motor_voter_table'."""
        return self._get_string("snapshot", table_key)

    def get_analysis_setting(self, setting_key: str) -> Any:
        return self.get(f"analysis.{setting_key}")

    def get_visualization_setting(self, setting_key: str) -> Any:
        return self.get(f"visualization.{setting_key}")

    def validate_input_files(self) -> Dict[str, bool]:
        """Map each configured input file key to whether the file exists."""
        return {
            key: bool(value) and self.get_input_path(key).exists()
            for key, value in (self.data.get("input_files") or {}).items()
        }

    def print_config_summary(self) -> None:
        logger.info("📋 Configuration Summary")
        logger.info("=" * 50)
        logger.info(f"Project: {self.get('project_name', 'Unknown')}")
        logger.info(f"Description: {self.get('description', 'No description')}")
        logger.info(f"Config file: {self.config_path}")
        logger.info(f"Project root: {self.project_root}")

        logger.info("📁 Directories:")
        for key in ("data", "figures"):
            path = self.get_output_dir(key)
            logger.info(f"  {'✅' if path.exists() else '❌'} {key}: {path}")

        logger.info("📊 Input Files:")
        for key, exists in self.validate_input_files().items():
            logger.info(f"  {'✅' if exists else '❌'} {key}")

    def _find_project_root(self) -> Path:
        """Nearest ancestor (up to 5 levels) holding at least two project markers."""
        start = self.config_dir
        for candidate in [start, *start.parents][:5]:
            if sum((candidate / marker).exists() for marker in PROJECT_MARKERS) >= 2:
                return candidate

        if start.name == "ops":
            return start.parent

        logger.warning(f"Could not detect the project root, using the config directory: {start}")
        return start

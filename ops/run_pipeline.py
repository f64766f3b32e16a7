#!/usr/bin/env python3
"""
Motor Voter Analysis Pipeline with Click CLI

This script runs the complete motor voter analysis in a single pass:

    snapshot → join → clean/filter → aggregate → recode → charts

Configuration comes from config.yaml and can be overridden from the command
line without editing the file.

Usage:
    python -m ops.run_pipeline [OPTIONS] [COMMAND]

    # Run with config.yaml settings:
    python -m ops.run_pipeline

    # Different snapshot / output location:
    python -m ops.run_pipeline --snapshot data/voters/2024_snapshot.sqlite --output-dir figures/2024

    # Fold unknown party codes into "Other":
    python -m ops.run_pipeline --unmapped-party other

    # Build a snapshot from the raw Secretary of State exports:
    python -m ops.run_pipeline build-snapshot data/raw/voters.txt data/raw/omv.txt

    # Verbose logging:
    python -m ops.run_pipeline --verbose
"""

import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import pandas as pd
import yaml  # type: ignore[import-untyped]
from loguru import logger

from analysis.plot_motor_voter import render_motor_voter_charts
from ops.config_loader import Config
from processing.aggregate_motor_voter import aggregate_motor_voter, summarize_counties
from processing.errors import MotorVoterAnalysisError
from processing.party_recode import UNMAPPED_POLICIES, recode_aggregates
from processing.prepare_voterfile_data import prepare_voterfile_data
from processing.voter_snapshot import build_snapshot_from_csv, load_snapshot_from_config

DETAILED_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)
COMPACT_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


@dataclass
class PipelineResult:
    """Outputs of one pipeline run."""

    voters: pd.DataFrame
    aggregates: pd.DataFrame
    county_summary: pd.DataFrame
    charts: Dict[str, Path] = field(default_factory=dict)


class ConfigContext:
    """State shared by the CLI group and its commands."""

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = config_file
        self.overrides: Dict[str, Any] = {}
        self.config: Optional[Config] = None
        self.kwargs: Dict[str, Any] = {}

    def add_override(self, key: str, value: Any):
        """Record ``section.key=value`` as a nested override."""
        *parents, leaf = key.split(".")
        node = self.overrides
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value
        logger.debug(f"Override {key} = {value!r}")

    def get_config(self) -> Config:
        config = Config(self.config_file)
        if self.overrides:
            config.apply_overrides(self.overrides)
        return config


def _parse_override_value(raw: str) -> Any:
    lowered = raw.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


class ConfigOverride(click.ParamType):
    """KEY=VALUE pair with the value typed as bool, int, float or str."""

    name = "key=value"

    def convert(self, value, param, ctx) -> Tuple[str, Any]:
        key, sep, raw = value.partition("=")
        if not sep or not key:
            self.fail(f"Expected KEY=VALUE, got {value!r}", param, ctx)
        return key, _parse_override_value(raw)


def run_motor_voter_pipeline(config: Config, write_charts: bool = True) -> PipelineResult:
    """Run every step of the analysis; charts are written only after all steps succeed."""
    total_start = time.time()

    snapshot = load_snapshot_from_config(config)
    voters = prepare_voterfile_data(snapshot, config)

    aggregates = aggregate_motor_voter(voters, config)
    aggregates = recode_aggregates(aggregates, config.get_analysis_setting("unmapped_party_policy"))
    county_summary = summarize_counties(aggregates)

    logger.info("📊 Motor voter share by county (top 5):")
    for row in county_summary.head(5).itertuples(index=False):
        logger.info(f"   {row.county}: {row.mean_omv_prop * 100:.1f}% of {row.county_total:,} voters")

    charts: Dict[str, Path] = {}
    if write_charts:
        logger.info("🎨 Rendering charts...")
        charts = render_motor_voter_charts(
            aggregates,
            county_summary,
            config.get_output_dir("figures"),
            dpi=config.get_visualization_setting("figure_dpi"),
            bar_figsize=config.get_visualization_setting("bar_figure_size"),
            scatter_figsize=config.get_visualization_setting("scatter_figure_size"),
            palette=config.get_visualization_setting("palette"),
        )

    logger.success(f"🎉 Motor voter analysis complete in {time.time() - total_start:.1f}s")
    return PipelineResult(
        voters=voters, aggregates=aggregates, county_summary=county_summary, charts=charts
    )


# Main CLI group
@click.group(invoke_without_command=True)
@click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to config.yaml (default: PIPELINE_CONFIG_PATH, ./config.yaml, ops/config.yaml)",
)
@click.option("--snapshot", type=click.Path(), help="Override the voter snapshot file")
@click.option("--output-dir", type=click.Path(file_okay=False), help="Override the chart directory")
@click.option(
    "--unmapped-party",
    type=click.Choice(UNMAPPED_POLICIES),
    help="How to treat party codes without a display category",
)
@click.option(
    "--config",
    "config_overrides",
    multiple=True,
    type=ConfigOverride(),
    help="Set config values using dot notation (e.g., analysis.birth_date_floor=1905-01-01)",
)
@click.option("--dry-run", is_flag=True, help="Show what would be run without executing")
@click.option("-v", "--verbose", is_flag=True, help="Enable DEBUG level logging")
@click.option(
    "--trace", is_flag=True, help="Enable TRACE level logging for deep debugging (maximum detail)"
)
@click.option("--log-file", type=str, help="Also log to specified file")
@click.pass_context
def cli(ctx, **kwargs):
    """
    Oregon Motor Voter Registration Analysis

    Load the voter snapshot, compute the motor voter share of active
    registrations per county and party, and render the county charts.

    \b
    Examples:
      omv-analysis                                   # Run with config.yaml settings
      omv-analysis --snapshot other.sqlite           # Different snapshot
      omv-analysis --unmapped-party error            # Fail on unknown party codes
      omv-analysis --config visualization.figure_dpi=150
      omv-analysis build-snapshot voters.txt omv.txt # Build the snapshot
    """
    setup_logging(verbose=kwargs["verbose"], enable_trace=kwargs["trace"])

    if kwargs.get("log_file"):
        logger.add(
            kwargs["log_file"],
            level=log_level_for(kwargs["verbose"], kwargs["trace"]),
            format=FILE_FORMAT,
            rotation="10 MB",
            retention="7 days",
        )
        logger.info(f"📄 Also logging to file: {kwargs['log_file']}")

    logger.info("🚗 Oregon Motor Voter Analysis")
    logger.debug(f"🔧 CLI arguments received: {kwargs}")

    config_ctx = ConfigContext(kwargs["config_file"])
    ctx.obj = config_ctx

    if kwargs["snapshot"]:
        config_ctx.add_override("input_files.voter_snapshot", str(Path(kwargs["snapshot"]).resolve()))
    if kwargs["output_dir"]:
        config_ctx.add_override("directories.figures", str(Path(kwargs["output_dir"]).resolve()))
    if kwargs["unmapped_party"]:
        config_ctx.add_override("analysis.unmapped_party_policy", kwargs["unmapped_party"])
    for key, value in kwargs["config_overrides"]:
        config_ctx.add_override(key, value)

    try:
        config = config_ctx.get_config()
        logger.info(f"📋 Project: {config.get('project_name')}")
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.critical(f"❌ Configuration error: {e}")
        logger.info("💡 Check --config-file, PIPELINE_CONFIG_PATH or ./config.yaml")
        ctx.exit(1)

    config_ctx.config = config
    config_ctx.kwargs = kwargs

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.pass_context
def run(ctx):
    """Run the motor voter analysis pipeline."""
    config = ctx.obj.config
    kwargs = ctx.obj.kwargs

    if kwargs.get("dry_run"):
        show_dry_run_info(config)
        return

    try:
        result = run_motor_voter_pipeline(config)
    except (MotorVoterAnalysisError, ValueError) as e:
        handle_critical_error(e, "Motor voter pipeline")
        ctx.exit(1)

    for name, path in result.charts.items():
        logger.info(f"   📊 {name}: {path}")


@cli.command("build-snapshot")
@click.argument("registrations", type=click.Path(exists=True, dir_okay=False))
@click.argument("motor_voter", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", type=click.Path(dir_okay=False), help="Snapshot file (default: configured snapshot)")
@click.pass_context
def build_snapshot(ctx, registrations, motor_voter, output):
    """Build the voter snapshot from raw REGISTRATIONS and MOTOR_VOTER exports."""
    config = ctx.obj.config

    try:
        target = Path(output) if output else config.get_input_path("voter_snapshot")
        path = build_snapshot_from_csv(
            registrations,
            motor_voter,
            target,
            registrations_table=config.get_snapshot_table("registrations_table"),
            motor_voter_table=config.get_snapshot_table("motor_voter_table"),
        )
    except (MotorVoterAnalysisError, ValueError) as e:
        handle_critical_error(e, "Building voter snapshot")
        ctx.exit(1)

    logger.success(f"✅ Snapshot ready: {path}")


def show_dry_run_info(config: Config):
    """Show dry run information."""
    logger.info("🔍 DRY RUN MODE - Nothing will be executed")
    logger.info("=" * 60)
    config.print_config_summary()

    snapshot = config.get_input_path("voter_snapshot")
    logger.info(f"  📄 Snapshot: {snapshot} ({'✅' if snapshot.exists() else '❌'})")
    logger.info(f"  🏷️ Unmapped party policy: {config.get_analysis_setting('unmapped_party_policy')}")
    logger.info(f"  🖼️ Charts would be written to: {config.get_output_dir('figures')}")


def log_level_for(verbose: bool = False, enable_trace: bool = False) -> str:
    if enable_trace:
        return "TRACE"
    return "DEBUG" if verbose else "INFO"


def setup_logging(verbose: bool = False, enable_trace: bool = False) -> None:
    """
    Replace loguru's default sink with a stderr sink at INFO, DEBUG (verbose)
    or TRACE (trace). TRACE also turns on loguru's backtrace/diagnose.
    """
    level = log_level_for(verbose, enable_trace)
    logger.remove()
    logger.add(
        sys.stderr,
        format=COMPACT_FORMAT if level == "INFO" else DETAILED_FORMAT,
        level=level,
        colorize=True,
        backtrace=enable_trace,
        diagnose=enable_trace,
    )
    os.environ["LOGURU_LEVEL"] = level
    logger.debug(f"🔧 Logging at {level} level")


def handle_critical_error(error: Exception, context: str = "") -> None:
    """Log a fatal pipeline error; the traceback is only logged at TRACE level."""
    if os.environ.get("LOGURU_LEVEL") == "TRACE":
        logger.opt(exception=error).trace(f"💥 {context} failed")
    else:
        logger.info("💡 Run with --trace for the full traceback")

    logger.critical(f"💥 {context} failed: {type(error).__name__}: {error}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

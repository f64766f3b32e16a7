import click
import pytest
from click.testing import CliRunner
from loguru import logger

from ops.config_loader import Config
from ops.run_pipeline import ConfigContext, ConfigOverride, cli, run_motor_voter_pipeline


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    # The CLI attaches a sink to the runner's stderr, which is closed afterwards
    logger.remove()


def test_run_writes_charts(config_file, tmp_path):
    result = CliRunner().invoke(cli, ["--config-file", str(config_file)])

    assert result.exit_code == 0, result.output
    figures = tmp_path / "figures"
    assert (figures / "omv_county_party_bars.png").exists()
    assert (figures / "omv_county_size_scatter.png").exists()


def test_output_dir_option(config_file, tmp_path):
    out = tmp_path / "charts"
    result = CliRunner().invoke(cli, ["--config-file", str(config_file), "--output-dir", str(out), "run"])

    assert result.exit_code == 0, result.output
    assert sorted(p.name for p in out.iterdir()) == [
        "omv_county_party_bars.png",
        "omv_county_size_scatter.png",
    ]


def test_missing_snapshot_fails_without_output(config_file, tmp_path):
    result = CliRunner().invoke(
        cli, ["--config-file", str(config_file), "--snapshot", str(tmp_path / "absent.sqlite")]
    )

    assert result.exit_code == 1
    assert not (tmp_path / "figures").exists()


def test_unmapped_party_error_policy(config_file, tmp_path):
    result = CliRunner().invoke(cli, ["--config-file", str(config_file), "--unmapped-party", "error"])

    assert result.exit_code == 1
    assert not (tmp_path / "figures").exists()


def test_dry_run_writes_nothing(config_file, tmp_path):
    result = CliRunner().invoke(cli, ["--config-file", str(config_file), "--dry-run"])

    assert result.exit_code == 0, result.output
    assert not (tmp_path / "figures").exists()


def test_build_snapshot_command(config_file, tmp_path, registrations_df, motor_voter_df):
    registrations_txt = tmp_path / "voters.txt"
    motor_voter_txt = tmp_path / "omv.txt"
    registrations_df.rename(columns=str.upper).to_csv(registrations_txt, sep="\t", index=False)
    motor_voter_df.rename(columns=str.upper).to_csv(motor_voter_txt, sep="\t", index=False)
    output = tmp_path / "built" / "snapshot.sqlite"

    result = CliRunner().invoke(
        cli,
        [
            "--config-file",
            str(config_file),
            "build-snapshot",
            str(registrations_txt),
            str(motor_voter_txt),
            "--output",
            str(output),
        ],
    )

    assert result.exit_code == 0, result.output
    assert output.exists()


def test_pipeline_respects_config_overrides(config_file):
    config = Config(config_file)
    config.apply_overrides({"analysis": {"birth_date_floor": "1965-01-01", "unmapped_party_policy": "other"}})

    result = run_motor_voter_pipeline(config, write_charts=False)

    assert result.charts == {}
    assert "3" not in set(result.voters["voter_id"])
    assert set(result.aggregates["party"]) <= {"Democrat", "Republican", "NonAffiliated", "Other"}
    totals = result.county_summary.set_index("county")["county_total"]
    assert totals.sum() == len(result.voters)


def test_config_context_nests_overrides():
    ctx = ConfigContext()
    ctx.add_override("analysis.unmapped_party_policy", "other")
    ctx.add_override("analysis.active_status", "ACT")

    assert ctx.overrides == {"analysis": {"unmapped_party_policy": "other", "active_status": "ACT"}}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("visualization.figure_dpi=150", ("visualization.figure_dpi", 150)),
        ("analysis.birth_date_floor=1905-01-01", ("analysis.birth_date_floor", "1905-01-01")),
        ("analysis.tolerance=0.5", ("analysis.tolerance", 0.5)),
        ("flags.strict=true", ("flags.strict", True)),
    ],
)
def test_config_override_parsing(raw, expected):
    assert ConfigOverride().convert(raw, None, None) == expected


def test_config_override_requires_key_value():
    with pytest.raises(click.BadParameter, match="KEY=VALUE"):
        ConfigOverride().convert("visualization.figure_dpi", None, None)


def test_build_snapshot_without_configured_target(tmp_path, registrations_df, motor_voter_df):
    config_path = tmp_path / "bare.yaml"
    config_path.write_text("project_name: Bare\n")
    registrations_csv = tmp_path / "voters.csv"
    motor_voter_csv = tmp_path / "omv.csv"
    registrations_df.to_csv(registrations_csv, index=False)
    motor_voter_df.to_csv(motor_voter_csv, index=False)

    result = CliRunner().invoke(
        cli, ["--config-file", str(config_path), "build-snapshot", str(registrations_csv), str(motor_voter_csv)]
    )

    assert result.exit_code == 1
    assert not isinstance(result.exception, ValueError)

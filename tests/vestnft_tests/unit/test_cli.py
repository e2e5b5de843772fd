import json

import pytest
from click.testing import CliRunner

from vestnft.cli.main import cli


@pytest.fixture
def runner(monkeypatch):
    for name in ("VESTNFT_LOG_FILE", "VESTNFT_LOG_LEVEL", "VESTNFT_REJECT_EMPTY_CLAIMS"):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


@pytest.fixture
def snapshot(tmp_path, vesting_nft, create_position, clock, alice):
    token_id = create_position()
    clock.set(300)
    vesting_nft.claim(alice, token_id)

    path = tmp_path / "vesting.json"
    path.write_text(json.dumps(vesting_nft.to_dict()))
    return path


def test_schedule_json(runner):
    result = runner.invoke(
        cli,
        ["--json-output", "schedule", "--amount", "1000", "--start", "0", "--end", "1000", "--points", "4"],
    )
    assert result.exit_code == 0
    rows = json.loads(result.output)
    assert [row["timestamp"] for row in rows] == [0, 250, 500, 750, 1000]
    assert [row["vested"] for row in rows] == [0, 250, 500, 750, 1000]
    assert rows[1]["locked"] == 750


def test_schedule_with_curve_parameters(runner):
    result = runner.invoke(
        cli,
        [
            "--json-output",
            "schedule",
            "--amount", "1000",
            "--start", "0",
            "--end", "1000",
            "--curve", "stepwise",
            "--param", "steps=2",
            "--points", "4",
        ],
    )
    assert result.exit_code == 0
    assert [row["vested"] for row in json.loads(result.output)] == [0, 0, 500, 500, 1000]


def test_schedule_table(runner):
    result = runner.invoke(cli, ["schedule", "--amount", "100", "--start", "0", "--end", "10"])
    assert result.exit_code == 0
    assert "Vested" in result.output


def test_schedule_rejects_invalid_terms(runner):
    result = runner.invoke(cli, ["schedule", "--amount", "100", "--start", "10", "--end", "5"])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_schedule_rejects_malformed_param(runner):
    result = runner.invoke(
        cli, ["schedule", "--amount", "100", "--start", "0", "--end", "5", "--param", "steps"]
    )
    assert result.exit_code != 0


def test_inspect_json(runner, snapshot, alice):
    result = runner.invoke(cli, ["--json-output", "inspect", str(snapshot), "1", "--at", "500"])
    assert result.exit_code == 0
    info = json.loads(result.output)
    assert info["owner"] == alice
    assert info["timestamp"] == 500
    assert info["vested"] == 500
    assert info["claimed"] == 300
    assert info["claimable"] == 200
    assert info["locked"] == 500


def test_inspect_table(runner, snapshot):
    result = runner.invoke(cli, ["inspect", str(snapshot), "1", "--at", "1000"])
    assert result.exit_code == 0
    assert "Claimable" in result.output


def test_inspect_unknown_token(runner, snapshot):
    result = runner.invoke(cli, ["inspect", str(snapshot), "9", "--at", "0"])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_inspect_bad_snapshot(runner, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    result = runner.invoke(cli, ["inspect", str(path), "1"])
    assert result.exit_code == 1

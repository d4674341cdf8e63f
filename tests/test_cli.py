import json
import os
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

import database
from main import app
from utils.ui_helpers import OUTPUT_MODE_ENV

runner = CliRunner()


@pytest.fixture
def cli_db(tmp_path, monkeypatch):
    monkeypatch.setattr(database, "DATABASE_FILE", str(tmp_path / "cli_test.db"))
    os.environ.pop(OUTPUT_MODE_ENV, None)
    yield
    os.environ.pop(OUTPUT_MODE_ENV, None)


@pytest.fixture
def seeded(cli_db):
    assert runner.invoke(app, ["add-user", "Juan Perez", "juan@example.com"]).exit_code == 0
    assert runner.invoke(app, ["add-book", "258027", "The Lord of the Rings", "15.99", "10"]).exit_code == 0


def test_add_user(cli_db):
    result = runner.invoke(app, ["add-user", "Juan Perez", "juan@example.com"])
    assert result.exit_code == 0
    assert "Added user 1: Juan Perez <juan@example.com>" in result.stdout


def test_add_book(cli_db):
    result = runner.invoke(app, ["add-book", "258027", "The Lord of the Rings", "15.99", "10"])
    assert result.exit_code == 0
    assert "Added book 258027: The Lord of the Rings (10/10 available)" in result.stdout


def test_list_no_reservations(cli_db):
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "No reservations found." in result.stdout


def test_reserve_and_late_return(seeded):
    result = runner.invoke(app, ["reserve", "1", "258027", "7", "--start", "2024-01-01"])
    assert result.exit_code == 0
    assert "Status: ACTIVE" in result.stdout
    assert "Expected return: 2024-01-08" in result.stdout
    assert "Total fee: 111.93" in result.stdout

    result = runner.invoke(app, ["return", "1", "--date", "2024-01-11"])
    assert result.exit_code == 0
    assert "Status: OVERDUE" in result.stdout
    assert "Late fee: 7.20" in result.stdout


def test_double_return_reports_conflict(seeded):
    runner.invoke(app, ["reserve", "1", "258027", "7", "--start", "2024-01-01"])
    runner.invoke(app, ["return", "1", "--date", "2024-01-08"])

    result = runner.invoke(app, ["return", "1", "--date", "2024-01-09"])
    assert result.exit_code == 1
    assert "Error (conflict)" in result.stdout


def test_reserve_zero_days(seeded):
    result = runner.invoke(app, ["reserve", "1", "258027", "0"])
    assert result.exit_code == 1
    assert "Error (invalid_request)" in result.stdout


def test_reserve_bad_date(seeded):
    result = runner.invoke(app, ["reserve", "1", "258027", "3", "--start", "01/02/2024"])
    assert result.exit_code == 1
    assert "Error (invalid_request)" in result.stdout


def test_reserve_past_calendar_range(seeded):
    result = runner.invoke(app, ["reserve", "1", "258027", "1", "--start", "9999-12-31"])
    assert result.exit_code == 1
    assert "Error (invalid_request)" in result.stdout


def test_show_not_found(cli_db):
    result = runner.invoke(app, ["show", "99"])
    assert result.exit_code == 1
    assert "Error (not_found)" in result.stdout


def test_list_json_output(seeded):
    runner.invoke(app, ["reserve", "1", "258027", "7", "--start", "2024-01-01"])
    runner.invoke(app, ["reserve", "1", "258027", "2", "--start", "2024-01-01"])

    result = runner.invoke(app, ["-o", "json", "list", "--user", "1", "--status", "active"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert [r["id"] for r in payload] == [1, 2]
    assert payload[0]["total_fee"] == "111.93"


def test_list_by_status(seeded):
    runner.invoke(app, ["reserve", "1", "258027", "7", "--start", "2024-01-01"])
    runner.invoke(app, ["return", "1", "--date", "2024-01-05"])

    result = runner.invoke(app, ["list", "--status", "RETURNED"])
    assert result.exit_code == 0
    assert "#1 user=1 book=258027 RETURNED" in result.stdout


@patch("subprocess.run")
def test_serve_command(mock_subprocess_run, cli_db):
    result = runner.invoke(app, ["serve", "--port", "8123"])
    assert result.exit_code == 0
    assert "Starting API on" in result.stdout
    mock_subprocess_run.assert_called_once()
    args = mock_subprocess_run.call_args[0][0]
    assert "uvicorn" in args
    assert "api:app" in args
    assert "8123" in args

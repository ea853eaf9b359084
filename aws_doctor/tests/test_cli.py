"""Tests for the command line entry point."""

from __future__ import annotations

import json

import pytest

from aws_doctor import cli
from fakes import address, client_error, ec2_client, make_clients


@pytest.fixture
def fake_clients(monkeypatch):
    clients = make_clients(ec2=ec2_client(addresses=[address("eipalloc-1", "1.2.3.4")]))
    monkeypatch.setattr(cli.boto3, "Session", lambda **kwargs: object())
    monkeypatch.setattr(cli.AwsClients, "from_session", classmethod(lambda cls, session: clients))
    return clients


def test_waste_json_exit_code_zero(fake_clients, capsys) -> None:
    assert cli.main(["--waste", "--output", "json"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["has_waste"] is True
    assert data["unused_elastic_ips"][0]["allocation_id"] == "eipalloc-1"


def test_waste_table(fake_clients, capsys) -> None:
    assert cli.main(["--waste"]) == 0

    assert "Elastic IP Waste" in capsys.readouterr().out


def test_aws_error_prints_single_line_and_fails(monkeypatch, capsys) -> None:
    """Access errors print one friendly line and no report."""

    clients = make_clients(
        ec2=ec2_client(errors={"describe_volumes": client_error("UnauthorizedOperation", "DescribeVolumes")})
    )
    monkeypatch.setattr(cli.boto3, "Session", lambda **kwargs: object())
    monkeypatch.setattr(cli.AwsClients, "from_session", classmethod(lambda cls, session: clients))

    assert cli.main(["--waste"]) == 1

    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("Error: Access denied while calling DescribeVolumes")


def test_negative_stale_days_is_rejected(capsys) -> None:
    assert cli.main(["--waste", "--stale-days", "-1"]) == 1

    assert "Error: stale_days must be >= 0" in capsys.readouterr().err


def test_trend_and_waste_are_exclusive() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["--trend", "--waste"])


def test_excel_export(fake_clients, tmp_path, capsys) -> None:
    pytest.importorskip("openpyxl")
    path = tmp_path / "report.xlsx"

    assert cli.main(["--waste", "--excel", str(path)]) == 0

    assert path.exists()
    assert f"Excel report written to {path}" in capsys.readouterr().err

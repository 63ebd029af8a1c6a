# tests/unit/tasks/test_cli.py
from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
import respx
from typer.testing import CliRunner

from appstore_reports.tasks.cli import app

BASE = "https://asc.test"
SALES_TSV = "Provider\tUnits\nAPPLE\t12\n"

runner = CliRunner()


@pytest.fixture
def cli_env(
    monkeypatch: pytest.MonkeyPatch, ec_private_key_pem: str, tmp_path: Path
) -> Path:
    """Credentials and base URL the way a host would export them."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("APPSTORE_ISSUER_ID", "issuer-123")
    monkeypatch.setenv("APPSTORE_KEY_ID", "KEY123")
    monkeypatch.setenv("APPSTORE_PRIVATE_KEY", ec_private_key_pem.replace("\n", "\\n"))
    monkeypatch.setenv("APPSTORE_BASE_URL", BASE)
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "out"))
    monkeypatch.delenv("CONTINUE_ON_FAIL", raising=False)
    monkeypatch.delenv("RESULT_FIELD", raising=False)
    return tmp_path


def _json_lines(stdout: str) -> list[dict]:
    return [json.loads(line) for line in stdout.splitlines() if line.startswith("{")]


@respx.mock
def test_sales_parse_prints_item_json(
    cli_env: Path, gz: Callable[[str | bytes], bytes]
) -> None:
    route = respx.get(f"{BASE}/v1/salesReports").mock(
        return_value=httpx.Response(200, content=gz(SALES_TSV))
    )

    result = runner.invoke(
        app,
        ["sales", "--vendor-number", "8000", "--report-date", "2025-01-02", "--frequency", "DAILY"],
    )

    assert result.exit_code == 0, result.output
    assert _json_lines(result.stdout) == [{"report": [{"Provider": "APPLE", "Units": "12"}]}]
    params = route.calls.last.request.url.params
    assert params["filter[frequency]"] == "DAILY"
    assert params["filter[vendorNumber]"] == "8000"


@respx.mock
def test_finance_download_writes_report_file(
    cli_env: Path, gz: Callable[[str | bytes], bytes]
) -> None:
    raw = b"Start Date\tUnits\n01/01/2025\t4\n"
    respx.get(f"{BASE}/v1/financeReports").mock(
        return_value=httpx.Response(200, content=gz(raw))
    )
    target_dir = cli_env / "downloads"

    result = runner.invoke(
        app,
        [
            "finance",
            "--vendor-number", "8000",
            "--report-date", "2025-01",
            "--region-code", "ZZ",
            "--operation", "download_report",
            "--output-dir", str(target_dir),
        ],
    )

    assert result.exit_code == 0, result.output
    written = target_dir / "report_financial_8000_2025-01.tsv"
    assert written.read_bytes() == raw
    assert result.stdout.splitlines()[0] == str(written)


@respx.mock
def test_analytics_result_field_option_names_the_output(
    cli_env: Path, gz: Callable[[str | bytes], bytes]
) -> None:
    segment = "https://segments.example.com/1.csv.gz"
    for path, resource in [
        (
            "/v1/apps/42/analyticsReportRequests",
            {"id": "q", "type": "analyticsReportRequests", "attributes": {"accessType": "ONGOING"}},
        ),
        ("/v1/analyticsReportRequests/q/reports", {"id": "r", "type": "analyticsReports"}),
        ("/v1/analyticsReports/r/instances", {"id": "i", "type": "analyticsReportInstances"}),
        (
            "/v1/analyticsReportInstances/i/segments",
            {"id": "s", "type": "analyticsReportSegments", "attributes": {"url": segment}},
        ),
    ]:
        respx.get(f"{BASE}{path}").mock(return_value=httpx.Response(200, json={"data": [resource]}))
    respx.get(segment).mock(return_value=httpx.Response(200, content=gz("Date\tInstalls\nx\t1\n")))

    result = runner.invoke(
        app,
        ["analytics", "--app-id", "42", "--report-date", "2025-01-01", "--result-field", "rows"],
    )

    assert result.exit_code == 0, result.output
    assert _json_lines(result.stdout) == [{"rows": [{"Date": "x", "Installs": "1"}]}]


@respx.mock
def test_stage_failure_exits_with_code_1(cli_env: Path) -> None:
    respx.get(f"{BASE}/v1/apps/42/analyticsReportRequests").mock(
        return_value=httpx.Response(200, json={"data": []})
    )

    result = runner.invoke(app, ["analytics", "--app-id", "42", "--report-date", "2025-01-01"])

    assert result.exit_code == 1
    assert "No report found for this entity 42" in result.output


def test_missing_credentials_exit_with_code_1(
    cli_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("APPSTORE_PRIVATE_KEY")

    result = runner.invoke(app, ["sales", "--vendor-number", "8000", "--report-date", "2025-01"])

    assert result.exit_code == 1
    assert "APPSTORE_PRIVATE_KEY" in result.output


def test_blank_selector_exits_with_code_2(cli_env: Path) -> None:
    result = runner.invoke(app, ["sales", "--vendor-number", " ", "--report-date", "2025-01"])

    assert result.exit_code == 2
    assert "entity_id must not be empty" in result.output


@respx.mock
def test_batch_continue_on_fail_emits_every_item(
    cli_env: Path, monkeypatch: pytest.MonkeyPatch, gz: Callable[[str | bytes], bytes]
) -> None:
    monkeypatch.setenv("CONTINUE_ON_FAIL", "true")
    respx.get(f"{BASE}/v1/salesReports", params={"filter[vendorNumber]": "1"}).mock(
        return_value=httpx.Response(200, content=gz(SALES_TSV))
    )
    respx.get(f"{BASE}/v1/salesReports", params={"filter[vendorNumber]": "2"}).mock(
        return_value=httpx.Response(404, json={"errors": [{"detail": "no sales"}]})
    )
    jobs_file = cli_env / "jobs.json"
    jobs_file.write_text(
        json.dumps(
            [
                {
                    "family": "sales",
                    "entity_id": "1",
                    "params": {"frequency": "DAILY", "vendor_number": "1", "report_date": "2025-01-02"},
                    "result_field": "sales",
                    "json": {"item": 0},
                },
                {
                    "family": "SALES",
                    "entity_id": "2",
                    "params": {"frequency": "DAILY", "vendor_number": "2", "report_date": "2025-01-02"},
                    "json": {"item": 1},
                },
            ]
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["batch", str(jobs_file)])

    assert result.exit_code == 1
    first, second = _json_lines(result.stdout)
    assert first == {"item": 0, "sales": [{"Provider": "APPLE", "Units": "12"}]}
    assert second == {
        "item": 1,
        "error": "App Store Connect request failed with HTTP 404: no sales",
    }


@pytest.mark.parametrize(
    "content",
    [
        '{"family": "SALES"}',
        "[1, 2]",
        "not json",
        '[{"family": "REVIEWS", "entity_id": "1", "params": {}}]',
        '[{"family": "SALES", "entity_id": "1", "params": {"vendor_number": "1"}}]',
        '[{"family": "SALES", "entity_id": "1", "params": "x"}]',
    ],
)
def test_batch_rejects_malformed_jobs_file(cli_env: Path, content: str) -> None:
    jobs_file = cli_env / "jobs.json"
    jobs_file.write_text(content, encoding="utf-8")

    result = runner.invoke(app, ["batch", str(jobs_file)])

    assert result.exit_code == 2

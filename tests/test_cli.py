from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from data_driven_runner.main import app

runner = CliRunner()


def _start_test_server() -> tuple[HTTPServer, threading.Thread]:
    class Handler(BaseHTTPRequestHandler):
        def do_POST(self) -> None:  # noqa: N802 - HTTP handler requirement
            length = int(self.headers.get("Content-Length", 0) or 0)
            payload = json.loads(self.rfile.read(length) or b"{}")
            if payload.get("name") == "taken":
                status, body = 409, {"status": "conflict"}
            else:
                status, body = 201, {"status": "success", "id": 7, "name": payload.get("name", "")}
            encoded = json.dumps(body).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(encoded)))
            self.end_headers()
            self.wfile.write(encoded)

        def log_message(self, format: str, *args: object) -> None:  # pragma: no cover - silence logs
            return

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, thread


@pytest.fixture
def server_url():
    server, thread = _start_test_server()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    thread.join(timeout=2)


def _scenario_file(tmp_path: Path, expect_conflict_as_created: bool = False) -> Path:
    scenarios = [
        {"description": "create ann", "input": {"name": "ann"}, "expectedStatus": 201},
        {
            "description": "create taken",
            "input": {"name": "taken"},
            "expectedStatus": 201 if expect_conflict_as_created else 409,
            "expectedResponse": {"status": "conflict"},
        },
        {"description": "create bo", "input": {"name": "bo"}, "expectedStatus": 201},
    ]
    path = tmp_path / "scenarios.yaml"
    path.write_text(yaml.safe_dump(scenarios, sort_keys=False), encoding="utf-8")
    return path


def _request_file(tmp_path: Path) -> Path:
    path = tmp_path / "request.yaml"
    path.write_text(
        yaml.safe_dump({"method": "POST", "url": "{{base_url}}/users", "headers": {"X-Suite": "cli", "Content-Type": "application/json"}}),
        encoding="utf-8",
    )
    return path


def _seed_environment(env_file: Path, base_url: str) -> None:
    env_file.write_text(
        json.dumps({"name": "local", "values": [{"key": "base_url", "value": base_url, "enabled": True}]}),
        encoding="utf-8",
    )


def test_load_run_and_summarize(tmp_path: Path, server_url: str) -> None:
    env_file = tmp_path / "environment.json"
    _seed_environment(env_file, server_url)

    loaded = runner.invoke(app, ["load", str(_scenario_file(tmp_path)), "--env-file", str(env_file), "--output-format", "plain"])
    assert loaded.exit_code == 0, loaded.output
    assert "Stored 3 scenarios" in loaded.output

    result = runner.invoke(
        app,
        ["run", "--request", str(_request_file(tmp_path)), "--env-file", str(env_file), "--output-format", "plain"],
    )
    assert result.exit_code == 0, result.output
    assert "✓ ALL SCENARIOS PASSED" in result.output

    summary = runner.invoke(app, ["summary", "--json", "--env-file", str(env_file)])
    assert summary.exit_code == 0, summary.output
    data = json.loads(summary.stdout)
    assert data["totalTests"] == 3
    assert data["passedTests"] == 3
    assert data["successRate"] == "100.00%"

    metrics = runner.invoke(app, ["metrics", "--env-file", str(env_file)])
    assert json.loads(metrics.stdout)["totalRequests"] == 3


def test_run_exits_nonzero_on_failures(tmp_path: Path, server_url: str) -> None:
    env_file = tmp_path / "environment.json"
    _seed_environment(env_file, server_url)
    runner.invoke(app, ["load", str(_scenario_file(tmp_path, expect_conflict_as_created=True)), "--env-file", str(env_file)])

    result = runner.invoke(
        app,
        ["run", "--request", str(_request_file(tmp_path)), "--env-file", str(env_file), "--output-format", "json"],
    )

    assert result.exit_code == 1
    data = json.loads(result.stdout)
    assert data["failedTests"] == 1
    assert data["failedScenarios"] == [{"scenario": "create taken", "error": "Expected 201, got 409"}]


def test_step_resumes_from_persisted_cursor(tmp_path: Path, server_url: str) -> None:
    env_file = tmp_path / "environment.json"
    _seed_environment(env_file, server_url)
    runner.invoke(app, ["load", str(_scenario_file(tmp_path)), "--env-file", str(env_file)])
    args = ["--request", str(_request_file(tmp_path)), "--env-file", str(env_file), "--output-format", "json"]

    outputs = [runner.invoke(app, ["step", "--start", *args])]
    outputs.append(runner.invoke(app, ["step", *args]))
    outputs.append(runner.invoke(app, ["step", *args]))

    states = [json.loads(output.stdout) for output in outputs]
    assert states == [
        {"hasMore": True, "cursor": 1},
        {"hasMore": True, "cursor": 2},
        {"hasMore": False, "cursor": 3},
    ]


def test_clear_keeps_scenarios(tmp_path: Path, server_url: str) -> None:
    env_file = tmp_path / "environment.json"
    _seed_environment(env_file, server_url)
    runner.invoke(app, ["load", str(_scenario_file(tmp_path)), "--env-file", str(env_file)])
    runner.invoke(app, ["run", "--request", str(_request_file(tmp_path)), "--env-file", str(env_file)])

    cleared = runner.invoke(app, ["clear", "--env-file", str(env_file), "--output-format", "plain"])
    assert cleared.exit_code == 0, cleared.output

    saved = {item["key"] for item in json.loads(env_file.read_text(encoding="utf-8"))["values"]}
    assert "testData" in saved
    assert "testResults" not in saved
    assert "currentScenarioIndex" not in saved
    summary = runner.invoke(app, ["summary", "--json", "--env-file", str(env_file)])
    assert json.loads(summary.stdout)["message"] == "No test results available"


def test_generate_stores_scenarios(tmp_path: Path) -> None:
    env_file = tmp_path / "environment.json"

    result = runner.invoke(
        app,
        ["generate", "products", "--count", "4", "--seed", "5", "--key", "products", "--env-file", str(env_file), "--output-format", "plain"],
    )

    assert result.exit_code == 0, result.output
    values = {item["key"]: item["value"] for item in json.loads(env_file.read_text(encoding="utf-8"))["values"]}
    stored = json.loads(values["products"])
    assert len(stored) == 4
    assert stored[0]["expectedStatus"] == 201
    assert values["currentScenarioIndex"] == "0"


def test_generate_rejects_unknown_family(tmp_path: Path) -> None:
    result = runner.invoke(app, ["generate", "orders", "--env-file", str(tmp_path / "env.json")])

    assert result.exit_code != 0


def test_load_rejects_invalid_scenarios(tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps([{"description": "missing status"}]), encoding="utf-8")

    result = runner.invoke(app, ["load", str(bad), "--env-file", str(tmp_path / "env.json"), "--output-format", "plain"])

    assert result.exit_code == 1


def test_boundary_writes_cases(tmp_path: Path) -> None:
    config = tmp_path / "fields.yaml"
    config.write_text(yaml.safe_dump({"age": {"type": "number", "min": 18}}), encoding="utf-8")
    output = tmp_path / "out" / "cases.json"

    result = runner.invoke(app, ["boundary", str(config), "--output", str(output)])

    assert result.exit_code == 0, result.output
    cases = json.loads(output.read_text(encoding="utf-8"))
    assert cases == [
        {"description": "age - Minimum value", "field": "age", "value": 18, "expectedValid": True},
        {"description": "age - Below minimum", "field": "age", "value": 17, "expectedValid": False},
    ]


def test_summary_without_results_prints_sentinel(tmp_path: Path) -> None:
    result = runner.invoke(app, ["summary", "--env-file", str(tmp_path / "env.json"), "--output-format", "plain"])

    assert result.exit_code == 0, result.output
    assert "No test results available" in result.output

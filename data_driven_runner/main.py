"""CLI entrypoint for data-driven API test runs."""

from __future__ import annotations

import json
import random
from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from pydantic import TypeAdapter, ValidationError

from .assertions import AssertionCollector, AssertionSink
from .auth import auth_status
from .console_reporter import ConsoleReporter
from .generators import generate_boundary_tests, generate_product_data, generate_user_registration_data
from .http_executor import HttpTransport
from .logging_utils import configure_logging
from .metrics import MetricsLog
from .models import RequestTemplate, ResultEntry, Scenario, TransportResponse
from .output_config import get_env_file, get_log_format, get_log_level, get_output_format
from .runner import DEFAULT_DATA_KEY, NO_RESULTS_MESSAGE, ScenarioRunner, Validation
from .store import FileEnvironmentStore
from .validators import SCHEMAS, check_response_time, check_schema

app = typer.Typer(help="Run data-driven API test scenarios persisted in an environment file.")

GENERATORS = {
    "users": generate_user_registration_data,
    "products": generate_product_data,
}
_SCENARIOS = TypeAdapter(list[Scenario])

EnvFileOption = typer.Option(None, "--env-file", "-e", help="Environment JSON file (default: $RUNNER_ENV_FILE).")
KeyOption = typer.Option(DEFAULT_DATA_KEY, "--key", "-k", help="Environment variable holding the scenario set.")
FormatOption = typer.Option(None, "--output-format", help="Console output: auto, rich, plain or json.")
LogLevelOption = typer.Option(None, "--log-level", help="Log level (default: $RUNNER_LOG_LEVEL or warning).")


def _setup(
    env_file: Optional[Path],
    output_format: Optional[str],
    log_level: Optional[str],
) -> tuple[FileEnvironmentStore, ConsoleReporter]:
    fmt = get_output_format(output_format)
    configure_logging(get_log_level(log_level), get_log_format(fmt))
    reporter = ConsoleReporter(output_format=fmt)
    path = get_env_file(env_file)
    try:
        store = FileEnvironmentStore(path)
    except ValueError as exc:
        reporter.print_error(str(exc))
        raise typer.Exit(code=1) from exc
    return store, reporter


def _read_structured(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(text)
    return json.loads(text)


def _load_template(request: Optional[Path], url: Optional[str], method: Optional[str]) -> RequestTemplate:
    data: dict[str, Any] = {}
    if request is not None:
        try:
            loaded = _read_structured(request)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise typer.BadParameter(f"Request file {request} could not be parsed: {exc}") from exc
        if not isinstance(loaded, dict):
            raise typer.BadParameter(f"Request file {request} must contain a mapping")
        data.update(loaded)
    if url:
        data["url"] = url
    if method:
        data["method"] = method
    if not data.get("url"):
        raise typer.BadParameter("Provide a request template via --request or a target via --url")
    try:
        return RequestTemplate.model_validate(data)
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid request template: {exc}") from exc


def _build_validation(
    template: RequestTemplate,
    metrics: MetricsLog,
    schema: Optional[str],
    max_response_time: Optional[float],
) -> Validation:
    def validate(scenario: Scenario, response: TransportResponse, sink: AssertionSink) -> None:
        metrics.collect(template, response, testName=scenario.description)
        if max_response_time is not None:
            check_response_time(sink, response, max_response_time)
        if schema is not None:
            check_schema(sink, SCHEMAS[schema], response=response)

    return validate


def _make_runner(
    store: FileEnvironmentStore,
    reporter: ConsoleReporter,
    base_url: Optional[str],
    timeout: Optional[float],
) -> tuple[ScenarioRunner, AssertionCollector]:
    sink = AssertionCollector(listener=reporter.report_assertion)
    counter = {"index": 0}

    def on_result(entry: ResultEntry) -> None:
        counter["index"] += 1
        reporter.report_scenario_result(
            index=counter["index"],
            description=entry.scenario,
            passed=entry.success,
            status=entry.status,
            duration_ms=entry.response_time,
            error_msg=entry.error_message,
        )

    runner = ScenarioRunner(
        store=store,
        transport=HttpTransport(base_url=base_url, timeout=timeout),
        sink=sink,
        on_result=on_result,
    )
    return runner, sink


@app.command()
def load(
    path: Path = typer.Argument(..., exists=True, readable=True, help="JSON or YAML list of scenarios."),
    key: str = KeyOption,
    env_file: Optional[Path] = EnvFileOption,
    output_format: Optional[str] = FormatOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Store scenarios from a file in the environment and reset the cursor."""

    store, reporter = _setup(env_file, output_format, log_level)
    try:
        scenarios = _SCENARIOS.validate_python(_read_structured(path))
    except (json.JSONDecodeError, yaml.YAMLError, ValidationError) as exc:
        reporter.print_error(f"Scenario file {path} is not a valid scenario list: {exc}")
        raise typer.Exit(code=1) from exc

    runner = ScenarioRunner(store=store, transport=HttpTransport(), sink=AssertionCollector())
    runner.store_scenarios(scenarios, key)
    runner.reset_cursor()
    reporter.print_info(f"Stored {len(scenarios)} scenarios in {key}")


@app.command()
def generate(
    kind: str = typer.Argument(..., help="Scenario family: users or products."),
    count: int = typer.Option(5, "--count", "-n", min=1, help="Number of scenarios to generate."),
    seed: Optional[int] = typer.Option(None, help="Random seed for reproducible data."),
    key: str = KeyOption,
    env_file: Optional[Path] = EnvFileOption,
    output_format: Optional[str] = FormatOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Generate scenarios and store them in the environment."""

    generator = GENERATORS.get(kind.lower())
    if generator is None:
        raise typer.BadParameter(f"Unknown scenario family '{kind}'; choose from {', '.join(GENERATORS)}")
    store, reporter = _setup(env_file, output_format, log_level)
    scenarios = generator(count, random.Random(seed))
    runner = ScenarioRunner(store=store, transport=HttpTransport(), sink=AssertionCollector())
    runner.store_scenarios(scenarios, key)
    runner.reset_cursor()
    reporter.print_info(f"Generated {len(scenarios)} {kind} scenarios into {key}")


@app.command()
def run(
    request: Optional[Path] = typer.Option(None, "--request", "-r", exists=True, readable=True, help="Request template YAML/JSON."),
    url: Optional[str] = typer.Option(None, help="Target URL; overrides the template."),
    method: Optional[str] = typer.Option(None, help="HTTP method; overrides the template."),
    base_url: Optional[str] = typer.Option(None, help="Base URL for relative targets (default: $RUNNER_BASE_URL)."),
    timeout: Optional[float] = typer.Option(None, help="Request timeout in seconds (default: $RUNNER_HTTP_TIMEOUT)."),
    schema: Optional[str] = typer.Option(None, help=f"Validate each response body against a built-in schema: {', '.join(SCHEMAS)}."),
    max_response_time: Optional[float] = typer.Option(None, help="Fail scenarios slower than this many ms."),
    keep_results: bool = typer.Option(False, "--keep-results", help="Append to existing results instead of clearing them."),
    key: str = KeyOption,
    env_file: Optional[Path] = EnvFileOption,
    output_format: Optional[str] = FormatOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Run every stored scenario in order and print the summary."""

    if schema is not None and schema not in SCHEMAS:
        raise typer.BadParameter(f"Unknown schema '{schema}'; choose from {', '.join(SCHEMAS)}")
    template = _load_template(request, url, method)
    store, reporter = _setup(env_file, output_format, log_level)
    runner, sink = _make_runner(store, reporter, base_url, timeout)
    validation = _build_validation(template, MetricsLog(store), schema, max_response_time)

    scenarios = runner.load_scenarios(key)
    if not scenarios:
        reporter.print_error(f"No scenarios stored under '{key}'")
        raise typer.Exit(code=1)
    if not keep_results:
        runner.clear()

    reporter.start_run(total=len(scenarios), label=key)
    has_more = runner.run_all(template, key, validation)
    while has_more:
        has_more = runner.run_next(template, key, validation)
    summary = runner.summarize()
    reporter.finish_run(summary)

    if reporter.quiet:
        typer.echo(summary.model_dump_json(by_alias=True, exclude_none=True, indent=2))
    if summary.failed_tests or sink.failed:
        raise typer.Exit(code=1)


@app.command()
def step(
    request: Optional[Path] = typer.Option(None, "--request", "-r", exists=True, readable=True, help="Request template YAML/JSON."),
    url: Optional[str] = typer.Option(None, help="Target URL; overrides the template."),
    method: Optional[str] = typer.Option(None, help="HTTP method; overrides the template."),
    base_url: Optional[str] = typer.Option(None, help="Base URL for relative targets."),
    timeout: Optional[float] = typer.Option(None, help="Request timeout in seconds."),
    start: bool = typer.Option(False, "--start", help="Begin a fresh pass from the first scenario."),
    key: str = KeyOption,
    env_file: Optional[Path] = EnvFileOption,
    output_format: Optional[str] = FormatOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Execute one scenario from the persisted cursor (one collection-runner iteration)."""

    template = _load_template(request, url, method)
    store, reporter = _setup(env_file, output_format, log_level)
    runner, _ = _make_runner(store, reporter, base_url, timeout)
    has_more = runner.run_all(template, key) if start else runner.run_next(template, key)
    if reporter.quiet:
        typer.echo(json.dumps({"hasMore": has_more, "cursor": runner.get_cursor()}))
    else:
        reporter.print_info("More scenarios remaining" if has_more else "All scenarios completed")


@app.command()
def summary(
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON."),
    env_file: Optional[Path] = EnvFileOption,
    output_format: Optional[str] = FormatOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Summarize the recorded results."""

    store, reporter = _setup(env_file, "json" if as_json else output_format, log_level)
    runner = ScenarioRunner(store=store, transport=HttpTransport(), sink=AssertionCollector())
    result = runner.summarize()
    if as_json:
        typer.echo(result.model_dump_json(by_alias=True, exclude_none=True, indent=2))
    elif result.is_empty:
        reporter.print_info(result.message or NO_RESULTS_MESSAGE)
    else:
        reporter.finish_run(result)
        for failed in result.failed_scenarios:
            reporter.print_info(f"  {failed.scenario}: {failed.error}")


@app.command()
def metrics(
    env_file: Optional[Path] = EnvFileOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Print the performance summary of collected request metrics."""

    store, _ = _setup(env_file, "json", log_level)
    typer.echo(json.dumps(MetricsLog(store).performance_summary(), indent=2))


@app.command()
def clear(
    env_file: Optional[Path] = EnvFileOption,
    output_format: Optional[str] = FormatOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Remove recorded results and the cursor; scenarios stay stored."""

    store, reporter = _setup(env_file, output_format, log_level)
    ScenarioRunner(store=store, transport=HttpTransport(), sink=AssertionCollector()).clear()
    reporter.print_info("Test results cleared")


@app.command()
def boundary(
    config: Path = typer.Argument(..., exists=True, readable=True, help="YAML/JSON mapping of field constraints."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write cases to this JSON file."),
) -> None:
    """Derive boundary-value cases from field constraints."""

    try:
        field_config = _read_structured(config)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise typer.BadParameter(f"Field config {config} could not be parsed: {exc}") from exc
    if not isinstance(field_config, dict):
        raise typer.BadParameter("Field config must be a mapping of field name to constraints")
    try:
        cases = generate_boundary_tests(field_config)
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid field constraints: {exc}") from exc

    document = json.dumps([case.as_serializable() for case in cases], indent=2)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(document, encoding="utf-8")
        typer.secho(f"{len(cases)} boundary cases written -> {output}", fg=typer.colors.GREEN)
    else:
        typer.echo(document)


@app.command("auth-status")
def auth_status_command(
    env_file: Optional[Path] = EnvFileOption,
    log_level: Optional[str] = LogLevelOption,
) -> None:
    """Show whether a token is stored and whether it needs refreshing."""

    store, _ = _setup(env_file, "json", log_level)
    typer.echo(json.dumps(auth_status(store), indent=2))


def run_cli() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run_cli()

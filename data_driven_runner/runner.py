"""Data-driven scenario execution engine."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional
import json
import math
import re
import time

import structlog
from pydantic import TypeAdapter, ValidationError

from .assertions import AssertionSink, expect_equal
from .errors import DeserializationError, TransportError
from .http_executor import Transport
from .models import (
    FailedScenario,
    RequestTemplate,
    ResultEntry,
    ResultSummary,
    Scenario,
    TransportResponse,
)
from .store import KeyValueStore

LOGGER = structlog.get_logger("data_driven_runner")

DEFAULT_DATA_KEY = "testData"
CURSOR_KEY = "currentScenarioIndex"
RESULTS_KEY = "testResults"
DEFAULT_RESULT_LIMIT = 100
NO_RESULTS_MESSAGE = "No test results available"

_VARIABLE_PATTERN = re.compile(r"\{\{\s*([^}\s]+)\s*\}\}")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

_SCENARIOS = TypeAdapter(list[Scenario])
_RESULTS = TypeAdapter(list[ResultEntry])

Validation = Callable[[Scenario, TransportResponse, AssertionSink], None]


class ScenarioRunner:
    """Runs persisted scenarios one at a time and keeps a capped result log.

    All state lives in the injected store: the scenario set under a slot key,
    the cursor under ``currentScenarioIndex`` and results under ``testResults``.
    Each call is one unit of work; iteration across calls is driven by the
    caller using the boolean returned from :meth:`run_all` and :meth:`run_next`.
    """

    def __init__(
        self,
        *,
        store: KeyValueStore,
        transport: Transport,
        sink: AssertionSink,
        result_limit: int = DEFAULT_RESULT_LIMIT,
        clock: Callable[[], datetime] | None = None,
        on_result: Callable[[ResultEntry], None] | None = None,
    ) -> None:
        self.store = store
        self.transport = transport
        self.sink = sink
        self.result_limit = result_limit
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._on_result = on_result

    # -- scenario set ---------------------------------------------------------

    def load_scenarios(self, slot_key: str = DEFAULT_DATA_KEY) -> list[Scenario]:
        text = self.store.get(slot_key)
        if not text:
            LOGGER.error("scenarios_missing", key=slot_key)
            return []
        try:
            scenarios = _decode(_SCENARIOS, slot_key, text)
        except DeserializationError as exc:
            LOGGER.error("scenarios_unreadable", key=slot_key, error=exc.reason)
            return []
        LOGGER.info("scenarios_loaded", key=slot_key, count=len(scenarios))
        return scenarios

    def store_scenarios(self, scenarios: list[Scenario], slot_key: str = DEFAULT_DATA_KEY) -> None:
        try:
            text = _SCENARIOS.dump_json(list(scenarios), by_alias=True).decode("utf-8")
        except (ValueError, TypeError) as exc:
            LOGGER.error("scenarios_not_stored", key=slot_key, error=str(exc))
            return
        self.store.set(slot_key, text)
        LOGGER.info("scenarios_stored", key=slot_key, count=len(scenarios))

    # -- cursor ---------------------------------------------------------------

    def get_cursor(self) -> int:
        raw = self.store.get(CURSOR_KEY)
        if raw is None or raw == "":
            return 0
        match = _LEADING_INT.match(raw)
        if match is None:
            LOGGER.warning("cursor_unparseable", value=raw)
            return 0
        value = int(match.group(1))
        if value < 0:
            LOGGER.warning("cursor_negative", value=raw)
            return 0
        return value

    def set_cursor(self, index: int) -> None:
        if index < 0:
            raise ValueError(f"Cursor must be non-negative, got {index}")
        self.store.set(CURSOR_KEY, str(index))

    def reset_cursor(self) -> None:
        self.set_cursor(0)
        LOGGER.info("cursor_reset")

    def current_scenario(self, slot_key: str = DEFAULT_DATA_KEY) -> Optional[Scenario]:
        scenarios = self.load_scenarios(slot_key)
        cursor = self.get_cursor()
        if cursor >= len(scenarios):
            return None
        return scenarios[cursor]

    def advance(self, slot_key: str = DEFAULT_DATA_KEY) -> Optional[Scenario]:
        scenarios = self.load_scenarios(slot_key)
        next_index = self.get_cursor() + 1
        if next_index >= len(scenarios):
            LOGGER.info("scenarios_completed", total=len(scenarios))
            return None
        self.set_cursor(next_index)
        return scenarios[next_index]

    # -- execution ------------------------------------------------------------

    def build_request(self, scenario: Scenario, template: RequestTemplate) -> RequestTemplate:
        """Overlay the scenario input as the body and resolve ``{{variables}}``."""

        return template.model_copy(
            update={
                "url": self._resolve(template.url),
                "headers": {key: self._resolve(value) for key, value in template.headers.items()},
                "body": json.dumps(scenario.input),
            }
        )

    def execute(
        self,
        scenario: Scenario,
        template: RequestTemplate,
        validation: Validation | None = None,
    ) -> ResultEntry:
        label = scenario.description
        request = self.build_request(scenario, template)
        log = LOGGER.bind(scenario=label, method=request.method, url=request.url)
        log.info("scenario_executing")

        timer = time.perf_counter()
        try:
            response = self.transport.send(request)
        except TransportError as exc:
            elapsed_ms = (time.perf_counter() - timer) * 1000
            message = f"Request error: {exc.reason}"
            self.sink.record(f"{label} - Request failed", False, message)
            log.warning("scenario_request_failed", error=exc.reason)
            entry = ResultEntry(
                scenario=label,
                timestamp=self._clock(),
                status=None,
                response_time=round(elapsed_ms, 3),
                success=False,
                error_message=message,
            )
            self.append_result(entry)
            return entry

        expect_equal(self.sink, f"{label} - Status code", scenario.expected_status, response.status_code)
        if scenario.expected_response:
            self._check_fields(scenario, response)
        if validation is not None:
            self._run_validation(validation, scenario, response)

        success = response.status_code == scenario.expected_status
        entry = ResultEntry(
            scenario=label,
            timestamp=self._clock(),
            status=response.status_code,
            response_time=response.elapsed_ms,
            success=success,
            error_message=None
            if success
            else f"Expected {scenario.expected_status}, got {response.status_code}",
        )
        self.append_result(entry)
        log.info(
            "scenario_executed",
            status=response.status_code,
            success=success,
            response_time_ms=response.elapsed_ms,
        )
        return entry

    def execute_current(
        self,
        template: RequestTemplate,
        slot_key: str = DEFAULT_DATA_KEY,
        validation: Validation | None = None,
    ) -> Optional[ResultEntry]:
        scenario = self.current_scenario(slot_key)
        if scenario is None:
            LOGGER.info("no_scenario_to_execute")
            return None
        return self.execute(scenario, template, validation)

    def run_all(
        self,
        template: RequestTemplate,
        slot_key: str = DEFAULT_DATA_KEY,
        validation: Validation | None = None,
    ) -> bool:
        """Start a fresh pass: execute the first scenario, report whether more remain."""

        scenarios = self.load_scenarios(slot_key)
        if not scenarios:
            LOGGER.warning("no_test_data", key=slot_key)
            return False
        LOGGER.info("run_started", key=slot_key, total=len(scenarios))
        self.reset_cursor()
        self.execute(scenarios[0], template, validation)
        return self._step_forward(len(scenarios))

    def run_next(
        self,
        template: RequestTemplate,
        slot_key: str = DEFAULT_DATA_KEY,
        validation: Validation | None = None,
    ) -> bool:
        """Resume from the persisted cursor: execute it, report whether more remain."""

        scenarios = self.load_scenarios(slot_key)
        cursor = self.get_cursor()
        if cursor >= len(scenarios):
            LOGGER.info("no_scenario_to_execute", cursor=cursor)
            return False
        self.execute(scenarios[cursor], template, validation)
        return self._step_forward(len(scenarios))

    # -- results --------------------------------------------------------------

    def load_results(self) -> list[ResultEntry]:
        text = self.store.get(RESULTS_KEY)
        if not text:
            return []
        try:
            return _decode(_RESULTS, RESULTS_KEY, text)
        except DeserializationError as exc:
            LOGGER.error("results_unreadable", error=exc.reason)
            return []

    def append_result(self, entry: ResultEntry) -> None:
        results = self.load_results()
        results.append(entry)
        if len(results) > self.result_limit:
            results = results[-self.result_limit:]
        self.store.set(RESULTS_KEY, _RESULTS.dump_json(results, by_alias=True).decode("utf-8"))
        if self._on_result is not None:
            self._on_result(entry)

    def summarize(self) -> ResultSummary:
        results = self.load_results()
        if not results:
            return ResultSummary(message=NO_RESULTS_MESSAGE)

        total = len(results)
        failed = [result for result in results if not result.success]
        passed = total - len(failed)
        avg_response_time = sum(result.response_time for result in results) / total
        return ResultSummary(
            total_tests=total,
            passed_tests=passed,
            failed_tests=len(failed),
            success_rate=f"{passed / total * 100:.2f}%",
            avg_response_time=_round_half_up(avg_response_time),
            failed_scenarios=[
                FailedScenario(scenario=result.scenario, error=result.error_message)
                for result in failed
            ],
        )

    def clear(self) -> None:
        self.store.unset(RESULTS_KEY)
        self.store.unset(CURSOR_KEY)
        LOGGER.info("results_cleared")

    # -- helpers --------------------------------------------------------------

    def _step_forward(self, total: int) -> bool:
        cursor = self.get_cursor()
        if cursor < total - 1:
            self.set_cursor(cursor + 1)
            return True
        self.set_cursor(total)
        LOGGER.info("scenarios_completed", total=total)
        return False

    def _check_fields(self, scenario: Scenario, response: TransportResponse) -> None:
        label = scenario.description
        try:
            data = response.json_body()
        except ValueError:
            data = None
        for key, expected in (scenario.expected_response or {}).items():
            name = f"{label} - Response field {key}"
            if not isinstance(data, dict):
                self.sink.record(name, False, "Response body is not a JSON object")
            elif key not in data:
                self.sink.record(name, False, f"Response has no property '{key}'")
            else:
                expect_equal(self.sink, name, expected, data[key])

    def _run_validation(
        self,
        validation: Validation,
        scenario: Scenario,
        response: TransportResponse,
    ) -> None:
        try:
            validation(scenario, response, self.sink)
        except Exception as exc:
            LOGGER.warning("custom_validation_failed", scenario=scenario.description, error=str(exc))
            self.sink.record(f"{scenario.description} - Custom validation", False, str(exc))

    def _resolve(self, text: str) -> str:
        def substitute(match: re.Match[str]) -> str:
            value = self.store.get(match.group(1))
            return match.group(0) if value is None else value

        return _VARIABLE_PATTERN.sub(substitute, text)


def _decode(adapter: TypeAdapter, key: str, text: str) -> Any:
    try:
        return adapter.validate_json(text)
    except ValidationError as exc:
        raise DeserializationError(key, f"{exc.error_count()} validation error(s)") from exc


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

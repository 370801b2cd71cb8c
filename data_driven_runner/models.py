"""Scenario, request and result models."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model persisted with camelCase keys, accepting snake_case on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def as_serializable(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Scenario(CamelModel):
    """One test case: request payload plus expected outcome."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    description: str
    input: Any = None
    expected_status: int
    expected_response: Optional[dict[str, Any]] = None


class ResultEntry(CamelModel):
    """Recorded outcome of one executed scenario."""

    scenario: str
    timestamp: datetime
    status: Optional[int] = None
    response_time: float = 0.0
    success: bool
    error_message: Optional[str] = None


class FailedScenario(BaseModel):
    scenario: str
    error: Optional[str] = None


class ResultSummary(CamelModel):
    """Aggregated view over the result log."""

    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    success_rate: str = "0.00%"
    avg_response_time: int = 0
    failed_scenarios: list[FailedScenario] = Field(default_factory=list)
    message: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.total_tests == 0


class RequestTemplate(BaseModel):
    """Request description; the body is replaced per scenario."""

    method: str = "GET"
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None


class TransportResponse(BaseModel):
    """Response delivered by a transport."""

    status_code: int
    body: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    elapsed_ms: float = 0.0
    size: int = 0
    cookies: dict[str, str] = Field(default_factory=dict)

    def json_body(self) -> Any:
        return json.loads(self.body) if self.body else None

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


class AssertionRecord(BaseModel):
    """One reported named check."""

    name: str
    passed: bool
    message: Optional[str] = None


class BoundaryCase(CamelModel):
    """Single boundary-value case for a field."""

    description: str
    field: str
    value: Any
    expected_valid: bool


class FieldBoundary(CamelModel):
    """Constraints of one field used to derive boundary cases."""

    type: str
    required: Optional[bool] = None
    max_length: Optional[int] = None
    min: Optional[int | float] = None
    max: Optional[int | float] = None

"""Test data generators for data-driven runs."""

from __future__ import annotations

import random
import string
import uuid
from typing import Any, Mapping, Optional

from .models import BoundaryCase, FieldBoundary, Scenario

_DOMAINS = ["example.com", "test.org", "demo.net"]
_FIRST_NAMES = ["John", "Jane", "Mike", "Sarah", "David", "Lisa"]
_LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia"]
_CATEGORIES = ["Electronics", "Clothing", "Books", "Home", "Sports"]
_PRODUCT_TYPES = ["Laptop", "Shirt", "Novel", "Chair", "Ball"]
_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def generate_user_registration_data(count: int = 5, rng: Optional[random.Random] = None) -> list[Scenario]:
    rng = rng or random.Random()
    scenarios: list[Scenario] = []
    for index in range(count):
        first_name = rng.choice(_FIRST_NAMES)
        last_name = rng.choice(_LAST_NAMES)
        domain = rng.choice(_DOMAINS)
        scenarios.append(
            Scenario(
                description=f"User registration scenario {index + 1}",
                input={
                    "firstName": first_name,
                    "lastName": last_name,
                    "email": f"{first_name.lower()}.{last_name.lower()}{index}@{domain}",
                    "password": f"SecurePass{index}!",
                    "age": rng.randint(18, 67),
                    "country": "US",
                },
                expected_status=201,
                expected_response={"status": "success", "verified": False},
            )
        )
    return scenarios


def generate_product_data(count: int = 5, rng: Optional[random.Random] = None) -> list[Scenario]:
    rng = rng or random.Random()
    scenarios: list[Scenario] = []
    for index in range(count):
        category = rng.choice(_CATEGORIES)
        product_type = rng.choice(_PRODUCT_TYPES)
        scenarios.append(
            Scenario(
                description=f"Product creation scenario {index + 1}",
                input={
                    "name": f"{product_type} {index + 1}",
                    "description": f"High quality {product_type.lower()} for testing",
                    "price": rng.randint(10, 1009),
                    "category": category,
                    "inStock": rng.random() > 0.2,
                    "quantity": rng.randint(1, 100),
                },
                expected_status=201,
                expected_response={"status": "created"},
            )
        )
    return scenarios


def generate_boundary_tests(field_config: Mapping[str, Any]) -> list[BoundaryCase]:
    """Derive boundary-value cases for each configured field.

    Strings with ``maxLength`` yield empty, exact and over-length cases; numbers
    yield on-bound and off-by-one cases for whichever of ``min``/``max`` is set.
    """

    cases: list[BoundaryCase] = []
    for field_name, raw in field_config.items():
        config = raw if isinstance(raw, FieldBoundary) else FieldBoundary.model_validate(raw)

        if config.type == "string" and config.max_length:
            cases.append(_case(field_name, "Empty string", "", config.required is False))
            cases.append(_case(field_name, "Max length", "a" * config.max_length, True))
            cases.append(_case(field_name, "Over max length", "a" * (config.max_length + 1), False))

        if config.type == "number":
            if config.min is not None:
                cases.append(_case(field_name, "Minimum value", config.min, True))
                cases.append(_case(field_name, "Below minimum", config.min - 1, False))
            if config.max is not None:
                cases.append(_case(field_name, "Maximum value", config.max, True))
                cases.append(_case(field_name, "Above maximum", config.max + 1, False))
    return cases


def _case(field_name: str, label: str, value: Any, expected_valid: bool) -> BoundaryCase:
    return BoundaryCase(
        description=f"{field_name} - {label}",
        field=field_name,
        value=value,
        expected_valid=expected_valid,
    )


def random_string(length: int = 10, rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return "".join(rng.choice(_ALPHABET) for _ in range(length))


def random_email(domain: str = "example.com", rng: Optional[random.Random] = None) -> str:
    return f"{random_string(8, rng).lower()}@{domain}"


def random_number(minimum: int = 1, maximum: int = 100, rng: Optional[random.Random] = None) -> int:
    rng = rng or random.Random()
    return rng.randint(minimum, maximum)


def random_uuid() -> str:
    return str(uuid.uuid4())

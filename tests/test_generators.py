from __future__ import annotations

import random
import re

from data_driven_runner.generators import (
    generate_boundary_tests,
    generate_product_data,
    generate_user_registration_data,
    random_email,
    random_number,
    random_string,
    random_uuid,
)
from data_driven_runner.validators import is_valid_email


def test_user_registration_scenarios_are_well_formed() -> None:
    scenarios = generate_user_registration_data(4, random.Random(7))

    assert [s.description for s in scenarios] == [f"User registration scenario {i}" for i in range(1, 5)]
    for index, scenario in enumerate(scenarios):
        payload = scenario.input
        assert payload["email"].split("@")[0].endswith(str(index))
        assert is_valid_email(payload["email"])
        assert payload["password"] == f"SecurePass{index}!"
        assert 18 <= payload["age"] <= 67
        assert payload["country"] == "US"
        assert scenario.expected_status == 201
        assert scenario.expected_response == {"status": "success", "verified": False}


def test_generators_are_reproducible_with_seed() -> None:
    assert generate_product_data(3, random.Random(1)) == generate_product_data(3, random.Random(1))


def test_product_scenarios_respect_ranges() -> None:
    for scenario in generate_product_data(20, random.Random(3)):
        payload = scenario.input
        assert 10 <= payload["price"] <= 1009
        assert 1 <= payload["quantity"] <= 100
        assert isinstance(payload["inStock"], bool)
        assert scenario.expected_response == {"status": "created"}


def test_boundary_cases_for_string_and_number_fields() -> None:
    cases = generate_boundary_tests(
        {
            "username": {"type": "string", "maxLength": 5, "required": False},
            "age": {"type": "number", "min": 18, "max": 99},
            "score": {"type": "number", "max": 10},
            "notes": {"type": "string"},
        }
    )

    described = {case.description: (case.value, case.expected_valid) for case in cases}
    assert described == {
        "username - Empty string": ("", True),
        "username - Max length": ("aaaaa", True),
        "username - Over max length": ("aaaaaa", False),
        "age - Minimum value": (18, True),
        "age - Below minimum": (17, False),
        "age - Maximum value": (99, True),
        "age - Above maximum": (100, False),
        "score - Maximum value": (10, True),
        "score - Above maximum": (11, False),
    }


def test_empty_string_is_invalid_unless_explicitly_optional() -> None:
    cases = generate_boundary_tests({"name": {"type": "string", "maxLength": 3}})

    assert cases[0].description == "name - Empty string"
    assert cases[0].expected_valid is False


def test_random_helpers() -> None:
    rng = random.Random(11)
    assert re.fullmatch(r"[0-9A-Za-z]{12}", random_string(12, rng))
    assert random_email("corp.io", rng).endswith("@corp.io")
    assert all(3 <= random_number(3, 5, rng) <= 5 for _ in range(50))
    assert re.fullmatch(r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}", random_uuid())

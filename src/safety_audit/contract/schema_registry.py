"""Published JSON contract of the safety reports.

Schemas and their examples ship inside the package. Reports are checked
against the contract before anything is written, so consumers never receive
a document the schema would reject.
"""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any, Iterable, Mapping

from jsonschema import Draft7Validator, ValidationError
from jsonschema.exceptions import best_match

from ..domain.models import SafetyReport

SchemaValidationError = ValidationError
"""Alias for jsonschema.ValidationError.
Keeps callers unaware of the implementation.
"""

SAFETY_REPORT_SCHEMA = "safety_report_v0.1"
CARGO_REPORTS_SCHEMA = "cargo_safety_reports_v0.1"

SCHEMA_FILES = {
    SAFETY_REPORT_SCHEMA: "safety_report_schema_v0.1.json",
    CARGO_REPORTS_SCHEMA: "cargo_safety_reports_schema_v0.1.json",
}

EXAMPLES = {
    "safety_report_example_failed": (
        "safety_report_example_failed.json",
        SAFETY_REPORT_SCHEMA,
    ),
    "safety_report_example_passed": (
        "safety_report_example_passed.json",
        SAFETY_REPORT_SCHEMA,
    ),
    "cargo_safety_reports_example_min": (
        "cargo_safety_reports_example_min.json",
        CARGO_REPORTS_SCHEMA,
    ),
}
"""Example name -> (file below ``schemas/examples``, schema it must satisfy)."""


def _read_json(*parts: str) -> Any:
    resource = resources.files(__package__) / "schemas"
    for part in parts:
        resource = resource / part
    return json.loads(resource.read_text(encoding="utf-8"))


@lru_cache(maxsize=None)
def get_schema(name: str) -> Mapping[str, Any]:
    """Return the JSON schema with the given registry name."""

    return _read_json(SCHEMA_FILES[name])


@lru_cache(maxsize=None)
def _validator(name: str) -> Draft7Validator:
    schema = get_schema(name)
    Draft7Validator.check_schema(schema)
    return Draft7Validator(schema)


def get_example(name: str) -> Any:
    """Return a representative example payload by name."""

    filename, _ = EXAMPLES[name]
    return _read_json("examples", filename)


def schema_for_example(name: str) -> str:
    return EXAMPLES[name][1]


def validate(name: str, instance: Any) -> None:
    """Raise the most relevant violation of schema ``name``, if any."""

    error = best_match(_validator(name).iter_errors(instance))
    if error is not None:
        raise error


def validate_report(report: SafetyReport) -> dict[str, Any]:
    """Return the report's mapping after checking it against the contract."""

    mapping = report.to_mapping()
    validate(SAFETY_REPORT_SCHEMA, mapping)
    return mapping


def validate_reports(reports: Iterable[SafetyReport]) -> list[dict[str, Any]]:
    """Return the ``cargo-safety`` array after checking it against the contract."""

    payload = [report.to_mapping() for report in reports]
    validate(CARGO_REPORTS_SCHEMA, payload)
    return payload

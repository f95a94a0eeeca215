"""Structural validation for form templates."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict

import jsonschema
from pydantic import ValidationError

from .audit import log_function_call
from .mock_data import default_structure
from .schemas import Template

SCHEMAS_DIR = Path(__file__).resolve().parent / "json_schemas"


class SchemaValidationError(RuntimeError):
    pass


class TemplateStructureEmpty(SchemaValidationError):
    """The template parsed but defines no fields."""


@lru_cache(maxsize=None)
def load_schema(name: str) -> Dict[str, Any]:
    """Load a JSON schema by filename (relative to json_schemas/)."""
    path = SCHEMAS_DIR / name
    if not path.exists():
        raise FileNotFoundError(f"Schema not found: {path}")
    with path.open(encoding="utf-8") as f:
        return json.load(f)


def _describe(exc: jsonschema.ValidationError) -> str:
    location = "/".join(str(part) for part in exc.absolute_path)
    return f"{location}: {exc.message}" if location else exc.message


def validate_payload(payload: Dict[str, Any], schema_name: str) -> None:
    """Validate a payload against a named schema or raise SchemaValidationError."""
    schema = load_schema(schema_name)
    try:
        jsonschema.validate(payload, schema)
    except jsonschema.ValidationError as exc:
        raise SchemaValidationError(_describe(exc)) from exc


def parse_template(payload: Dict[str, Any] | Template) -> Template:
    """Validate a raw template (or pass through a parsed one).

    An empty ``structureJSON`` is accepted here; see ``ensure_usable_template``.
    """
    if isinstance(payload, Template):
        return payload
    candidate = dict(payload)
    if isinstance(candidate.get("structureJSON"), str):
        try:
            candidate["structureJSON"] = json.loads(candidate["structureJSON"])
        except json.JSONDecodeError as exc:
            raise SchemaValidationError(f"structureJSON: not valid JSON ({exc.msg})") from exc
    if candidate.get("structureJSON") is None:
        candidate["structureJSON"] = []
    validate_payload(candidate, "template.json")
    try:
        return Template.model_validate(candidate)
    except ValidationError as exc:
        raise SchemaValidationError(str(exc)) from exc


def ensure_usable_template(
    payload: Dict[str, Any] | Template,
    fixer: Callable[[Dict[str, Any]], Dict[str, Any]] | None = None,
) -> Template:
    """
    Parse a template and require at least one field.

    When the structure is empty and ``fixer`` is given, the fixer receives the
    wire payload once and must return a repaired payload, which is parsed again.
    """
    template = parse_template(payload)
    if not template.is_empty:
        return template
    if not fixer:
        raise TemplateStructureEmpty(f"template {template.template_id or template.name!r} has no fields")
    log_function_call("ensure_usable_template.repair", template_id=template.template_id)
    repaired = parse_template(fixer(template.to_wire()))
    if repaired.is_empty:
        raise TemplateStructureEmpty(f"template {repaired.template_id!r} still has no fields after repair")
    return repaired


def restore_default_structure(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Fixer for ``ensure_usable_template``: refill with the standard question set."""
    repaired = dict(payload)
    repaired["structureJSON"] = default_structure()
    return repaired

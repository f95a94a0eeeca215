"""Required-field validation of a response set against a form structure.

``validate_responses`` is a pure function: the same structure and responses
always yield the same error mapping, and nothing is mutated.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Dict, List, Set

from pydantic import ValidationError

from .schemas import FieldType, SignatureResponse, TemplateField, duplicate_field_ids

REQUIRED_MESSAGE = "This field is required"


class InvalidFormStructure(ValueError):
    pass


def coerce_structure(structure: Any) -> List[TemplateField]:
    """Accept parsed fields or raw dicts; reject non-lists and repeated ids."""
    if not isinstance(structure, Sequence) or isinstance(structure, (str, bytes)):
        raise InvalidFormStructure(f"form structure must be a list, got {type(structure).__name__}")
    fields: List[TemplateField] = []
    for item in structure:
        if isinstance(item, TemplateField):
            fields.append(item)
            continue
        try:
            fields.append(TemplateField.model_validate(item))
        except ValidationError as exc:
            raise InvalidFormStructure(str(exc)) from exc
    duplicates = duplicate_field_ids(fields)
    if duplicates:
        raise InvalidFormStructure(f"duplicate field ids: {', '.join(duplicates)}")
    return fields


def condition_met(field: TemplateField, responses: Mapping[str, Any]) -> bool:
    if field.conditional is None:
        return True
    parent_value = responses.get(field.conditional.field)
    if isinstance(parent_value, list):
        return field.conditional.value in parent_value
    return parent_value == field.conditional.value


def visible_field_ids(structure: Sequence[TemplateField], responses: Mapping[str, Any]) -> Set[str]:
    """Ids of fields whose conditions hold, including every ancestor's condition."""
    by_id = {f.id: f for f in structure}
    memo: Dict[str, bool] = {}

    def _visible(field_id: str, trail: Set[str]) -> bool:
        if field_id in memo:
            return memo[field_id]
        field = by_id[field_id]
        if not condition_met(field, responses):
            result = False
        else:
            parent_id = field.conditional.field if field.conditional else None
            if parent_id in by_id and parent_id not in trail:
                result = _visible(parent_id, trail | {field_id})
            else:
                result = True
        memo[field_id] = result
        return result

    return {f.id for f in structure if _visible(f.id, set())}


def is_required(field: TemplateField) -> bool:
    if field.conditional is not None and field.conditional.required is not None:
        return field.conditional.required
    return field.required


def _is_blank(value: Any) -> bool:
    # False and 0 are answers; only a missing value or "" counts as blank.
    return value is None or (isinstance(value, str) and value == "")


def signature_complete(value: Any) -> bool:
    if isinstance(value, SignatureResponse):
        typed, drawn = value.typed_name, value.signature_data_url
    elif isinstance(value, Mapping):
        typed, drawn = value.get("typedName"), value.get("signatureDataUrl")
    else:
        return False
    return isinstance(typed, str) and bool(typed.strip()) and bool(drawn)


def _answered(field: TemplateField, value: Any) -> bool:
    if field.type is FieldType.SIGNATURE:
        return signature_complete(value)
    if field.type is FieldType.CHECKBOX_GROUP:
        return isinstance(value, list) and len(value) > 0
    if field.type is FieldType.DATERANGE:
        return isinstance(value, Mapping) and not _is_blank(value.get("start")) and not _is_blank(value.get("end"))
    return not _is_blank(value)


def validate_responses(structure: Any, responses: Mapping[str, Any] | None) -> Dict[str, str]:
    """Return ``{field_id: message}`` for every visible required field left unanswered."""
    fields = coerce_structure(structure)
    answers: Mapping[str, Any] = responses or {}
    visible = visible_field_ids(fields, answers)
    errors: Dict[str, str] = {}
    for field in fields:
        if field.id not in visible or not is_required(field):
            continue
        if not _answered(field, answers.get(field.id)):
            errors[field.id] = REQUIRED_MESSAGE
    return errors


def is_valid(structure: Any, responses: Mapping[str, Any] | None) -> bool:
    return not validate_responses(structure, responses)

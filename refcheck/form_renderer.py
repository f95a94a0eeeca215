"""Toolkit-independent form state: responses, errors, layout and submit."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import metrics
from .form_validator import coerce_structure, is_required, validate_responses, visible_field_ids
from .schemas import FieldType, Layout, SignatureResponse, TemplateField
from .signature import SignatureState, _utcnow

logger = logging.getLogger(__name__)

PREVIEW_DESKTOP = "desktop"
PREVIEW_MOBILE = "mobile"

DEFAULT_RATING_SCALE = [1, 2, 3, 4, 5]

Row = List[Optional[TemplateField]]


def layout_rows(fields: Sequence[TemplateField], preview_mode: str = PREVIEW_DESKTOP) -> List[Row]:
    """Group fields into display rows.

    Desktop: a ``full`` field is a row of one; a ``half`` field pairs with the
    next field only if that one is ``half`` too, otherwise it is padded with
    ``None``. Mobile: one field per row.
    """
    if preview_mode != PREVIEW_DESKTOP:
        return [[f] for f in fields]

    rows: List[Row] = []
    i = 0
    while i < len(fields):
        current = fields[i]
        if current.layout is not Layout.HALF:
            rows.append([current])
            i += 1
            continue
        nxt = fields[i + 1] if i + 1 < len(fields) else None
        if nxt is not None and nxt.layout is Layout.HALF:
            rows.append([current, nxt])
            i += 2
        else:
            rows.append([current, None])
            i += 1
    return rows


@dataclass
class FieldView:
    id: str
    type: str
    label: str
    required: bool
    layout: str
    description: Optional[str] = None
    value: Any = None
    error: Optional[str] = None
    choices: Optional[List[Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "label": self.label,
            "required": self.required,
            "layout": self.layout,
            "description": self.description,
            "value": self.value,
            "error": self.error,
            "choices": self.choices,
        }


@dataclass
class SubmitOutcome:
    ok: bool
    errors: Dict[str, str] = field(default_factory=dict)
    result: Any = None


def _choices(item: TemplateField) -> Optional[List[Any]]:
    if item.type is FieldType.RATING:
        return list(item.options) if item.options else list(DEFAULT_RATING_SCALE)
    if item.type is FieldType.CHECKBOX_GROUP:
        return list(item.options or [])
    if item.type is FieldType.BOOLEAN:
        return [True, False]
    return None


def _wire(value: Any) -> Any:
    if isinstance(value, SignatureResponse):
        return value.to_wire()
    return value


class FormSession:
    """In-memory response set for one rendering of a form.

    Nothing is persisted; ``submit`` hands the responses to the caller and
    leaves the session as it was.
    """

    def __init__(
        self,
        structure: Any,
        preview_mode: str = PREVIEW_DESKTOP,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.fields: List[TemplateField] = coerce_structure(structure)
        self.preview_mode = preview_mode
        self.responses: Dict[str, Any] = {}
        self.errors: Dict[str, str] = {}
        self._signatures: Dict[str, SignatureState] = {}
        self._clock = clock
        self._by_id = {f.id: f for f in self.fields}

    def field(self, field_id: str) -> TemplateField:
        try:
            return self._by_id[field_id]
        except KeyError:
            raise KeyError(f"unknown field id: {field_id}") from None

    def set_response(self, field_id: str, value: Any) -> None:
        self.field(field_id)
        self._write(field_id, value)
        self._drop_hidden()

    def update_responses(self, values: Dict[str, Any]) -> None:
        """Set several answers at once; unknown ids are ignored."""
        for field_id, value in values.items():
            if field_id in self._by_id:
                self._write(field_id, value)
        self._drop_hidden()

    def _write(self, field_id: str, value: Any) -> None:
        # An outside write replaces the value a cached signature state was built from.
        self._signatures.pop(field_id, None)
        self._store(field_id, value)

    def _store(self, field_id: str, value: Any) -> None:
        self.responses[field_id] = value
        self.errors.pop(field_id, None)

    def _signature_changed(self, field_id: str, value: SignatureResponse) -> None:
        self._store(field_id, value)
        self._drop_hidden()

    def _drop_hidden(self) -> None:
        visible = visible_field_ids(self.fields, self.responses)
        for item in self.fields:
            if item.id in visible:
                continue
            self.responses.pop(item.id, None)
            self.errors.pop(item.id, None)
            self._signatures.pop(item.id, None)

    def signature(self, field_id: str) -> SignatureState:
        item = self.field(field_id)
        if item.type is not FieldType.SIGNATURE:
            raise ValueError(f"field {field_id} is not a signature field")
        state = self._signatures.get(field_id)
        if state is None:
            state = SignatureState(
                self.responses.get(field_id),
                clock=self._clock,
                on_change=lambda value, fid=field_id: self._signature_changed(fid, value),
            )
            self._signatures[field_id] = state
        return state

    def visible_fields(self) -> List[TemplateField]:
        visible = visible_field_ids(self.fields, self.responses)
        return [f for f in self.fields if f.id in visible]

    def rows(self) -> List[Row]:
        return layout_rows(self.visible_fields(), self.preview_mode)

    def field_views(self) -> List[FieldView]:
        return [
            FieldView(
                id=item.id,
                type=item.type.value,
                label=item.label,
                required=is_required(item),
                layout=item.layout.value,
                description=item.description,
                value=_wire(self.responses.get(item.id)),
                error=self.errors.get(item.id),
                choices=_choices(item),
            )
            for item in self.visible_fields()
        ]

    def payload(self) -> Dict[str, Any]:
        return {key: _wire(value) for key, value in self.responses.items()}

    def submit(self, on_submit: Optional[Callable[[Dict[str, Any]], Any]] = None) -> SubmitOutcome:
        errors = validate_responses(self.fields, self.responses)
        if errors:
            self.errors = dict(errors)
            metrics.incr("form_validation_failed")
            logger.info("form submit blocked", extra={"extra_data": {"error_fields": sorted(errors)}})
            return SubmitOutcome(ok=False, errors=dict(errors))
        self.errors = {}
        result = on_submit(self.payload()) if on_submit is not None else None
        return SubmitOutcome(ok=True, result=result)

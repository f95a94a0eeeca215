"""Editable working copy of a form template for the template admin screen."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from . import audit, config
from .actions import MAINTENANCE_ACTIONS, Action
from .form_renderer import PREVIEW_MOBILE, FormSession
from .gateway import Gateway
from .schemas import FieldType, Layout, Template, TemplateField
from .session import AccessDenied, SessionContext
from .validation import SchemaValidationError, ensure_usable_template, parse_template

logger = logging.getLogger(__name__)

NEW_TEMPLATE_NAME = "New Reference Template"
NEW_FIELD_LABEL = "New Question"


class TemplateBuilderError(RuntimeError):
    pass


class UnsavedChanges(TemplateBuilderError):
    pass


def _millis() -> int:
    return int(time.time() * 1000)


class TemplateBuilder:
    """Working copy of one template: name, ordered fields and a dirty flag.

    Every mutating operation requires a template admin (role ``Admin`` or an
    address listed in ``TEMPLATE_ADMIN_EMAILS``) and raises ``AccessDenied``
    otherwise. Switching away from unsaved work raises ``UnsavedChanges``
    unless ``discard=True`` is passed.
    """

    def __init__(
        self,
        gateway: Gateway,
        session: SessionContext,
        *,
        id_clock: Callable[[], int] = _millis,
    ) -> None:
        self.gateway = gateway
        self.session = session
        self._id_clock = id_clock
        self.templates: List[Template] = []
        self.template_id = ""
        self.name = NEW_TEMPLATE_NAME
        self.fields: List[TemplateField] = []
        self.dirty = False

    @property
    def is_template_admin(self) -> bool:
        user = self.session.current_user
        if user is None:
            return False
        return user.is_admin or user.email.lower() in config.TEMPLATE_ADMIN_EMAILS

    def _require_admin(self) -> str:
        user = self.session.require_user()
        if not self.is_template_admin:
            raise AccessDenied(f"{user.email} may not edit templates")
        return user.email

    def _guard_unsaved(self, discard: bool) -> None:
        if self.dirty and not discard:
            raise UnsavedChanges("You have unsaved changes. Discard them?")

    def _touch(self) -> None:
        self.dirty = True

    def load_templates(self) -> List[Template]:
        result = self.gateway.call(Action.GET_TEMPLATES, user_email=self.session.user_email)
        if not result.success:
            raise TemplateBuilderError(result.error or "Failed to load templates")
        templates: List[Template] = []
        for raw in result.items():
            try:
                templates.append(parse_template(raw))
            except (SchemaValidationError, TypeError, ValueError) as exc:
                logger.warning("skipping invalid template", extra={"extra_data": {"error": str(exc)}})
        self.templates = templates
        return templates

    def select(self, template_id: str, *, discard: bool = False) -> Template:
        self._guard_unsaved(discard)
        for template in self.templates:
            if template.template_id == template_id:
                self.template_id = template.template_id
                self.name = template.name
                self.fields = [item.model_copy(deep=True) for item in template.structure]
                self.dirty = False
                return template
        raise KeyError(f"unknown template: {template_id}")

    def new(self, *, discard: bool = False) -> None:
        self._require_admin()
        self._guard_unsaved(discard)
        self.template_id = ""
        self.name = NEW_TEMPLATE_NAME
        self.fields = []
        self.dirty = False

    def duplicate(self, *, discard: bool = False) -> None:
        """Turn the working copy into an unsaved copy; the backend assigns a new id."""
        self._require_admin()
        self._guard_unsaved(discard)
        self.name = f"Copy of {self.name}"
        self.template_id = ""
        self._touch()

    def rename(self, name: str) -> None:
        self._require_admin()
        self.name = name
        self._touch()

    def _index(self, field_id: str) -> int:
        for idx, item in enumerate(self.fields):
            if item.id == field_id:
                return idx
        raise KeyError(f"unknown field id: {field_id}")

    def add_field(self, field_type: FieldType | str) -> TemplateField:
        self._require_admin()
        field_id = f"field_{self._id_clock()}"
        taken = {item.id for item in self.fields}
        suffix = 1
        while field_id in taken:
            field_id = f"field_{self._id_clock()}_{suffix}"
            suffix += 1
        item = TemplateField(
            id=field_id,
            type=FieldType(field_type),
            label=NEW_FIELD_LABEL,
            required=False,
            layout=Layout.FULL,
        )
        self.fields.append(item)
        self._touch()
        return item

    def update_field(self, field_id: str, **updates: Any) -> TemplateField:
        """Merge wire-named ``updates`` into a field and re-validate it."""
        self._require_admin()
        idx = self._index(field_id)
        merged: Dict[str, Any] = {**self.fields[idx].to_wire(), **updates}
        try:
            item = TemplateField.model_validate(merged)
        except ValidationError as exc:
            raise TemplateBuilderError(f"invalid field {field_id}: {exc}") from exc
        if item.id != field_id and any(other.id == item.id for other in self.fields):
            raise TemplateBuilderError(f"field id already in use: {item.id}")
        self.fields[idx] = item
        self._touch()
        return item

    def remove_field(self, field_id: str) -> None:
        self._require_admin()
        del self.fields[self._index(field_id)]
        self._touch()

    def move_field(self, index: int, direction: str) -> bool:
        """Swap with the neighbour; moves past either end are ignored."""
        self._require_admin()
        if direction not in ("up", "down"):
            raise ValueError(f"direction must be 'up' or 'down', got {direction!r}")
        target = index - 1 if direction == "up" else index + 1
        if not (0 <= index < len(self.fields)) or not (0 <= target < len(self.fields)):
            return False
        self.fields[index], self.fields[target] = self.fields[target], self.fields[index]
        self._touch()
        return True

    def to_template(self) -> Template:
        return parse_template(
            {
                "templateId": self.template_id,
                "name": self.name,
                "structureJSON": [item.to_wire() for item in self.fields],
            }
        )

    def preview(self, preview_mode: str = PREVIEW_MOBILE) -> FormSession:
        return FormSession(self.to_template().structure, preview_mode)

    def save(self) -> str:
        """Persist the working copy and return its template id.

        Templates without any field are refused.
        """
        email = self._require_admin()
        template = ensure_usable_template(self.to_template())
        result = self.gateway.call(
            Action.SAVE_TEMPLATE,
            {
                "templateName": template.name,
                "structureJSON": [item.to_wire() for item in template.structure],
                "templateId": template.template_id or None,
            },
            user_email=email,
        )
        if not result.success:
            raise TemplateBuilderError(f"Failed to save template: {result.error or 'Unknown error'}")
        self.template_id = result.get("templateId") or self.template_id
        self.dirty = False
        audit.log_event("template_saved", actor=email, details={"template_id": self.template_id})
        self.load_templates()
        return self.template_id

    def delete(self) -> None:
        email = self._require_admin()
        if not self.template_id:
            raise TemplateBuilderError("No saved template selected")
        deleted_id: Optional[str] = self.template_id
        result = self.gateway.call(Action.DELETE_TEMPLATE, {"templateId": deleted_id}, user_email=email)
        if not result.success:
            raise TemplateBuilderError(f"Failed to delete template: {result.error or 'Unknown error'}")
        audit.log_event("template_deleted", actor=email, details={"template_id": deleted_id})
        self.new(discard=True)
        self.load_templates()

    def run_maintenance(self, action: Action | str) -> List[Template]:
        """Run a backend template maintenance job, then reload the template list.

        ``fixTemplateStructure`` is the backend-side repair of a template whose
        structure was wiped; ``initializeDatabase`` restores missing defaults and
        ``seedEmploymentTemplate`` overwrites the employment reference template.
        """
        email = self._require_admin()
        resolved = Action(action)
        if resolved not in MAINTENANCE_ACTIONS:
            raise ValueError(f"not a maintenance action: {resolved.value}")
        result = self.gateway.call(resolved, user_email=email)
        if not result.success:
            raise TemplateBuilderError(f"Action failed: {result.error or 'Unknown error'}")
        audit.log_event("template_maintenance", actor=email, details={"action": resolved.value})
        return self.load_templates()

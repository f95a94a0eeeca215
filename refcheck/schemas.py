"""Data model: template fields, templates, responses and backend records.

Wire names are the camelCase keys the backend uses; Python attributes are
snake_case and populated through aliases.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .lifecycle import RequestStatus, normalize_status


class FieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    RATING = "rating"
    BOOLEAN = "boolean"
    DATE = "date"
    SIGNATURE = "signature"
    EMAIL = "email"
    DATERANGE = "daterange"
    CHECKBOX_GROUP = "checkbox-group"


class Layout(str, Enum):
    FULL = "full"
    HALF = "half"


class Conditional(BaseModel):
    field: str = Field(..., min_length=1)
    value: Any = None
    required: Optional[bool] = None


class TemplateField(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    type: FieldType
    label: str
    description: Optional[str] = None
    required: bool = False
    layout: Layout = Layout.FULL
    options: Optional[List[str]] = None
    conditional: Optional[Conditional] = None

    @field_validator("label")
    @classmethod
    def _label_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("label must not be empty")
        return value

    @field_validator("layout", mode="before")
    @classmethod
    def _layout_default(cls, value: Any) -> Any:
        return value or Layout.FULL

    @field_validator("options", mode="before")
    @classmethod
    def _options_as_strings(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, list):
            raise ValueError("options must be a list")
        return [str(item) for item in value]

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def duplicate_field_ids(fields: List[TemplateField]) -> List[str]:
    seen: set[str] = set()
    duplicates: List[str] = []
    for item in fields:
        if item.id in seen and item.id not in duplicates:
            duplicates.append(item.id)
        seen.add(item.id)
    return duplicates


class Template(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    template_id: str = Field("", alias="templateId")
    name: str = ""
    active: bool = True
    structure: List[TemplateField] = Field(default_factory=list, alias="structureJSON")

    @field_validator("structure", mode="before")
    @classmethod
    def _decode_structure(cls, value: Any) -> Any:
        # The sheet stores the structure as a JSON string cell.
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return json.loads(value)
        return value

    @model_validator(mode="after")
    def _unique_ids(self) -> "Template":
        duplicates = duplicate_field_ids(self.structure)
        if duplicates:
            raise ValueError(f"duplicate field ids: {', '.join(duplicates)}")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.structure

    def to_wire(self) -> Dict[str, Any]:
        return {
            "templateId": self.template_id,
            "name": self.name,
            "active": self.active,
            "structureJSON": [item.to_wire() for item in self.structure],
        }


class SignatureResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    typed_name: str = Field("", alias="typedName")
    signed_at: str = Field("", alias="signedAt")
    signature_data_url: Optional[str] = Field(None, alias="signatureDataUrl")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AiAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    sentiment_score: Optional[str] = Field(None, alias="sentimentScore")
    summary: Union[List[str], str, None] = None
    anomalies: List[str] = Field(default_factory=list)
    timestamp: Optional[str] = None


class ReferenceRequest(BaseModel):
    """A request row as returned by ``getMyRequests``."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    request_id: str = Field(..., alias="requestId")
    candidate_name: str = Field("", alias="candidateName")
    candidate_email: str = Field("", alias="candidateEmail")
    referee_name: str = Field("", alias="refereeName")
    referee_email: str = Field("", alias="refereeEmail")
    status: str = "PENDING_CONSENT"
    consent_status: Union[bool, str, None] = Field(None, alias="consentStatus")
    archived: bool = False
    anomaly_flag: bool = Field(False, alias="anomalyFlag")
    token: Optional[str] = None
    candidate_token: Optional[str] = Field(None, alias="candidateToken")
    referee_token: Optional[str] = Field(None, alias="refereeToken")
    created_at: Optional[str] = Field(None, alias="createdAt")
    responses: Dict[str, Any] = Field(default_factory=dict)
    reference_method: Optional[str] = Field(None, alias="referenceMethod")
    decline_reason: Optional[str] = Field(None, alias="declineReason")
    decline_comment: Optional[str] = Field(None, alias="declineComment")
    pdf_url: Optional[str] = Field(None, alias="pdfUrl")
    pdf_file_id: Optional[str] = Field(None, alias="pdfFileId")
    ai_analysis: Optional[AiAnalysis] = Field(None, alias="aiAnalysis")

    @field_validator("responses", mode="before")
    @classmethod
    def _decode_responses(cls, value: Any) -> Any:
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            return json.loads(value)
        return value

    @field_validator("archived", "anomaly_flag", mode="before")
    @classmethod
    def _sheet_bool(cls, value: Any) -> Any:
        # Sheet cells come back as "TRUE"/"FALSE" strings or blanks.
        if value is None or value == "":
            return False
        if isinstance(value, str):
            return value.strip().lower() in {"true", "yes", "1"}
        return value

    @property
    def canonical_status(self) -> RequestStatus:
        return normalize_status(self.status)


class AuditEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    audit_id: str = Field("", alias="auditId")
    timestamp: str = ""
    actor: str = ""
    action: str = ""
    metadata: Union[str, Dict[str, Any], None] = None

    @field_validator("audit_id", mode="before")
    @classmethod
    def _id_as_string(cls, value: Any) -> Any:
        return "" if value is None else str(value)


class StaffUser(BaseModel):
    email: str
    name: str = ""
    picture: str = ""
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == "admin"


# HTTP request bodies for ``refcheck.server``.


class FormValidationRequest(BaseModel):
    structure: List[TemplateField]
    responses: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("structure")
    @classmethod
    def _unique_ids(cls, value: List[TemplateField]) -> List[TemplateField]:
        duplicates = duplicate_field_ids(value)
        if duplicates:
            raise ValueError(f"duplicate field ids: {', '.join(duplicates)}")
        return value


class LayoutRequest(FormValidationRequest):
    preview_mode: str = Field("desktop", pattern="^(desktop|mobile)$")


class LifecycleRequest(BaseModel):
    status: str = Field("", max_length=120)
    archived: bool = False


class PortalSubmitRequest(BaseModel):
    responses: Dict[str, Any] = Field(default_factory=dict)


class PortalDeclineRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    reason: str = Field("", max_length=200)
    details: str = Field("", max_length=4000)

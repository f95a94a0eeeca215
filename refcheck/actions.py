"""Backend action names and their request/response records.

Every remote call goes through one of the ``Action`` members; the payload
for each is checked against its model before it leaves the process.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


INVALID_BODY_ERROR = "Bad Gateway: Invalid response from backend"


class Action(str, Enum):
    INITIATE_REQUEST = "initiateRequest"
    GET_MY_REQUESTS = "getMyRequests"
    GET_REQUEST = "getRequest"
    GET_TEMPLATES = "getTemplates"
    SAVE_TEMPLATE = "saveTemplate"
    DELETE_TEMPLATE = "deleteTemplate"
    VALIDATE_REFEREE_TOKEN = "validateRefereeToken"
    SUBMIT_REFERENCE = "submitReference"
    UPLOAD_REFERENCE_DOCUMENT = "uploadReferenceDocument"
    AUTHORIZE_CONSENT = "authorizeConsent"
    SEAL_REQUEST = "sealRequest"
    ANALYZE_REFERENCE = "analyzeReference"
    GET_AUDIT_TRAIL = "getAuditTrail"
    VERIFY_STAFF = "verifyStaff"
    ARCHIVE_REQUESTS = "archiveRequests"
    UNARCHIVE_REQUESTS = "unarchiveRequests"
    DELETE_REQUESTS = "deleteRequests"
    DOWNLOAD_PDF_PAYLOAD = "downloadPdfPayload"
    INITIALIZE_DATABASE = "initializeDatabase"
    SEED_EMPLOYMENT_TEMPLATE = "seedEmploymentTemplate"
    FIX_TEMPLATE_STRUCTURE = "fixTemplateStructure"


# Template maintenance jobs run from the template admin screen.
MAINTENANCE_ACTIONS = frozenset(
    {
        Action.INITIALIZE_DATABASE,
        Action.SEED_EMPLOYMENT_TEMPLATE,
        Action.FIX_TEMPLATE_STRUCTURE,
    }
)


# Actions the backend only honours when the admin key accompanies them.
ADMIN_PROTECTED_ACTIONS = frozenset(
    {
        Action.INITIATE_REQUEST,
        Action.GET_MY_REQUESTS,
        Action.GET_REQUEST,
        Action.GET_AUDIT_TRAIL,
        Action.DOWNLOAD_PDF_PAYLOAD,
        Action.SEAL_REQUEST,
        Action.ARCHIVE_REQUESTS,
        Action.VERIFY_STAFF,
    }
)


class UnknownAction(ValueError):
    pass


class InvalidActionPayload(ValueError):
    def __init__(self, action: "Action", detail: str) -> None:
        super().__init__(f"{action.value}: {detail}")
        self.action = action


class ActionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    user_email: Optional[str] = Field(None, alias="userEmail")


class EmptyPayload(ActionPayload):
    pass


class InitiateRequestPayload(ActionPayload):
    candidate_name: str = Field(..., min_length=1, alias="candidateName")
    candidate_email: str = Field(..., min_length=3, alias="candidateEmail")
    referee_name: str = Field(..., min_length=1, alias="refereeName")
    referee_email: str = Field(..., min_length=3, alias="refereeEmail")
    template_id: str = Field("default", alias="templateId")


class GetMyRequestsPayload(ActionPayload):
    include_archived: bool = Field(False, alias="includeArchived")


class RequestIdPayload(ActionPayload):
    request_id: str = Field(..., min_length=1, alias="requestId")


class DownloadPdfPayload(ActionPayload):
    request_id: Optional[str] = Field(None, alias="requestId")
    token: Optional[str] = None

    @model_validator(mode="after")
    def _one_key(self) -> "DownloadPdfPayload":
        if not (self.request_id or self.token):
            raise ValueError("requestId or token is required")
        return self


class SaveTemplatePayload(ActionPayload):
    template_name: str = Field(..., min_length=1, alias="templateName")
    structure: List[Dict[str, Any]] = Field(default_factory=list, alias="structureJSON")
    template_id: Optional[str] = Field(None, alias="templateId")


class TemplateIdPayload(ActionPayload):
    template_id: str = Field(..., min_length=1, alias="templateId")


class TokenPayload(ActionPayload):
    token: str = Field(..., min_length=1)


class SubmitReferencePayload(ActionPayload):
    token: str = Field(..., min_length=1)
    method: Literal["form", "upload", "decline"] = "form"
    responses: Optional[Dict[str, Any]] = None
    decline_reason: Optional[str] = Field(None, alias="declineReason")
    decline_details: Optional[str] = Field(None, alias="declineDetails")
    uploaded_file_url: Optional[str] = Field(None, alias="uploadedFileUrl")
    file_name: Optional[str] = Field(None, alias="fileName")

    @model_validator(mode="after")
    def _method_fields(self) -> "SubmitReferencePayload":
        if self.method == "upload" and not self.uploaded_file_url:
            raise ValueError("uploadedFileUrl is required for method 'upload'")
        if self.method == "decline" and not self.decline_reason:
            raise ValueError("declineReason is required for method 'decline'")
        return self


class UploadDocumentPayload(ActionPayload):
    token: str = Field(..., min_length=1)
    file_data: str = Field(..., min_length=1, alias="fileData")
    file_name: str = Field(..., min_length=1, alias="fileName")
    mime_type: str = Field("application/octet-stream", alias="mimeType")


class ConsentPayload(ActionPayload):
    token: str = Field(..., min_length=1)
    decision: Literal["CONSENT_GIVEN", "CONSENT_DECLINED", "CONSENT_QUERY"]
    reason: Optional[str] = None
    message: Optional[str] = None


class BulkRequestsPayload(ActionPayload):
    request_ids: List[str] = Field(..., min_length=1, alias="requestIds")


ACTION_PAYLOADS: Dict[Action, Type[ActionPayload]] = {
    Action.INITIATE_REQUEST: InitiateRequestPayload,
    Action.GET_MY_REQUESTS: GetMyRequestsPayload,
    Action.GET_REQUEST: RequestIdPayload,
    Action.GET_TEMPLATES: EmptyPayload,
    Action.SAVE_TEMPLATE: SaveTemplatePayload,
    Action.DELETE_TEMPLATE: TemplateIdPayload,
    Action.VALIDATE_REFEREE_TOKEN: TokenPayload,
    Action.SUBMIT_REFERENCE: SubmitReferencePayload,
    Action.UPLOAD_REFERENCE_DOCUMENT: UploadDocumentPayload,
    Action.AUTHORIZE_CONSENT: ConsentPayload,
    Action.SEAL_REQUEST: RequestIdPayload,
    Action.ANALYZE_REFERENCE: RequestIdPayload,
    Action.GET_AUDIT_TRAIL: RequestIdPayload,
    Action.VERIFY_STAFF: EmptyPayload,
    Action.ARCHIVE_REQUESTS: BulkRequestsPayload,
    Action.UNARCHIVE_REQUESTS: BulkRequestsPayload,
    Action.DELETE_REQUESTS: BulkRequestsPayload,
    Action.DOWNLOAD_PDF_PAYLOAD: DownloadPdfPayload,
    Action.INITIALIZE_DATABASE: EmptyPayload,
    Action.SEED_EMPLOYMENT_TEMPLATE: EmptyPayload,
    Action.FIX_TEMPLATE_STRUCTURE: EmptyPayload,
}


def resolve_action(name: "Action | str") -> Action:
    if isinstance(name, Action):
        return name
    try:
        return Action(name)
    except ValueError:
        raise UnknownAction(f"unknown action: {name}") from None


def build_payload(
    action: Action,
    payload: Dict[str, Any] | ActionPayload | None = None,
    user_email: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate ``payload`` for ``action`` and return its wire form."""
    model_cls = ACTION_PAYLOADS[action]
    if isinstance(payload, ActionPayload):
        if not isinstance(payload, model_cls):
            raise InvalidActionPayload(action, f"expected {model_cls.__name__}, got {type(payload).__name__}")
        data = payload.model_dump(by_alias=True)
    else:
        data = dict(payload or {})
    if user_email:
        data["userEmail"] = user_email
    try:
        model = model_cls.model_validate(data)
    except ValidationError as exc:
        raise InvalidActionPayload(action, str(exc)) from exc
    return model.model_dump(by_alias=True, exclude_none=True)


class ActionResult(BaseModel):
    """Normalised ``{success, error?, ...}`` body of every action."""

    model_config = ConfigDict(extra="allow")

    success: bool
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)

    @classmethod
    def from_body(cls, body: Any) -> "ActionResult":
        if isinstance(body, str):
            try:
                body = json.loads(body)
            except json.JSONDecodeError:
                return cls(success=True, data=body)
        if isinstance(body, list):
            return cls(success=True, data=body)
        if not isinstance(body, dict):
            return cls(success=True, data=body)
        data = dict(body)
        error = data.get("error")
        if error is not None and not isinstance(error, str):
            data["error"] = str(error)
        if "success" not in data:
            # validateRefereeToken answers with ``valid`` instead of ``success``.
            data["success"] = bool(data.get("valid", True)) and not error
        try:
            return cls.model_validate(data)
        except ValidationError:
            return cls.failure(data.get("error") or INVALID_BODY_ERROR)

    def get(self, key: str, default: Any = None) -> Any:
        extra = self.model_extra or {}
        return extra.get(key, default)

    def items(self) -> List[Any]:
        """The list carried by the result, whichever shape the backend used."""
        data = self.get("data")
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                return []
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            return data["data"]
        return []

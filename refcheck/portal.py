"""Referee and candidate flows reached through an emailed token link."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from . import audit, config
from .actions import Action
from .form_renderer import FormSession
from .gateway import Gateway
from .schemas import Template
from .validation import (
    SchemaValidationError,
    TemplateStructureEmpty,
    ensure_usable_template,
    restore_default_structure,
)

logger = logging.getLogger(__name__)

CONSENT_GIVEN = "CONSENT_GIVEN"
CONSENT_DECLINED = "CONSENT_DECLINED"
CONSENT_QUERY = "CONSENT_QUERY"

_CONSENT_MESSAGES = {
    CONSENT_GIVEN: "Thank you. Your consent has been recorded and an invitation has been sent to your referee.",
    CONSENT_DECLINED: "Thank you. We have recorded that you declined this request. The recruitment team has been notified.",
    CONSENT_QUERY: "Thank you. Your query has been sent to the recruitment team. They will be in touch shortly.",
}


class UploadTooLarge(ValueError):
    pass


class PortalNotReady(RuntimeError):
    pass


@dataclass
class PortalResult:
    ok: bool
    message: str = ""
    error: Optional[str] = None
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {"success": self.ok, "message": self.message, "error": self.error, "errors": self.errors}


class RefereePortal:
    def __init__(
        self,
        gateway: Gateway,
        token: Optional[str],
        *,
        max_upload_bytes: Optional[int] = None,
        repair_empty_template: bool = True,
    ) -> None:
        self.gateway = gateway
        self.token = (token or "").strip()
        self.max_upload_bytes = config.MAX_UPLOAD_BYTES if max_upload_bytes is None else max_upload_bytes
        self.repair_empty_template = repair_empty_template
        self.candidate_name = ""
        self.template: Optional[Template] = None
        self.form: Optional[FormSession] = None
        self.error: Optional[str] = None

    def load(self) -> bool:
        """Validate the token and prepare the form. Sets ``error`` on failure."""
        if not self.token:
            self.error = "Missing access token. Please check the link in your email."
            return False

        result = self.gateway.call(Action.VALIDATE_REFEREE_TOKEN, {"token": self.token})
        if not result.success:
            self.error = result.error or "Invalid or expired token."
            return False

        fixer = restore_default_structure if self.repair_empty_template else None
        try:
            self.template = ensure_usable_template(result.get("template") or {}, fixer=fixer)
        except TemplateStructureEmpty:
            self.error = "This reference form has no questions. Please contact the recruitment team."
            return False
        except SchemaValidationError as exc:
            logger.error("referee template rejected", extra={"extra_data": {"error": str(exc)}})
            self.error = "Failed to load reference form. Please try again."
            return False

        self.candidate_name = result.get("candidateName") or ""
        self.form = FormSession(self.template.structure)
        self.error = None
        return True

    def submit_form(self) -> PortalResult:
        if self.form is None:
            raise PortalNotReady("load() must succeed before submitting the form")

        outcome = self.form.submit(
            lambda responses: self.gateway.call(
                Action.SUBMIT_REFERENCE,
                {"token": self.token, "method": "form", "responses": responses},
            )
        )
        if not outcome.ok:
            return PortalResult(ok=False, errors=outcome.errors)

        result = outcome.result
        if not result.success:
            return PortalResult(ok=False, error=f"Submission failed: {result.error}")
        audit.log_event("reference_submitted", details={"method": "form"})
        return PortalResult(
            ok=True,
            message=(
                f"Thank you for providing a reference for {self.candidate_name}. "
                "Your input has been securely recorded."
            ),
        )

    def submit_upload(self, file_name: str, content: bytes, mime_type: str = "application/pdf") -> PortalResult:
        """Upload a reference document, then record the submission against it.

        The second call is only made once the upload has succeeded.
        """
        if len(content) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes // (1024 * 1024)
            raise UploadTooLarge(f"File size exceeds {limit_mb}MB limit. Please choose a smaller file.")

        uploaded = self.gateway.call(
            Action.UPLOAD_REFERENCE_DOCUMENT,
            {
                "token": self.token,
                "fileData": base64.b64encode(content).decode("ascii"),
                "fileName": file_name,
                "mimeType": mime_type,
            },
        )
        if not uploaded.success:
            return PortalResult(ok=False, error=f"Upload failed: {uploaded.error or 'Unknown error'}")

        file_url = uploaded.get("fileUrl")
        if not file_url:
            return PortalResult(ok=False, error="Upload failed: the server did not return a file link")

        final = self.gateway.call(
            Action.SUBMIT_REFERENCE,
            {"token": self.token, "method": "upload", "uploadedFileUrl": file_url, "fileName": file_name},
        )
        if not final.success:
            return PortalResult(ok=False, error=f"Upload failed: {final.error}")
        audit.log_event("reference_submitted", details={"method": "upload", "file_name": file_name})
        return PortalResult(
            ok=True,
            message=f"Thank you for uploading the reference for {self.candidate_name}. It has been securely received.",
        )

    def decline(self, reason: str, details: str = "") -> PortalResult:
        if not (reason or "").strip():
            return PortalResult(ok=False, error="Please provide a reason.")
        result = self.gateway.call(
            Action.SUBMIT_REFERENCE,
            {
                "token": self.token,
                "method": "decline",
                "responses": {},
                "declineReason": reason.strip(),
                "declineDetails": details,
            },
        )
        if not result.success:
            return PortalResult(ok=False, error=f"Submission failed: {result.error}")
        audit.log_event("reference_submitted", details={"method": "decline", "reason": reason})
        return PortalResult(ok=True, message="Thank you for letting us know. We have updated our records.")

    def consent(self, decision: str, reason: str = "", message: str = "") -> PortalResult:
        """Record the candidate's answer to the consent request."""
        if decision not in _CONSENT_MESSAGES:
            raise ValueError(f"unknown consent decision: {decision}")
        if not self.token:
            return PortalResult(ok=False, error="Missing authorization token.")
        payload = {"token": self.token, "decision": decision}
        if reason:
            payload["reason"] = reason
        if message:
            payload["message"] = message
        result = self.gateway.call(Action.AUTHORIZE_CONSENT, payload)
        if not result.success:
            return PortalResult(ok=False, error=result.error or "Failed to process consent.")
        audit.log_event("consent_recorded", details={"decision": decision})
        return PortalResult(ok=True, message=_CONSENT_MESSAGES[decision])

"""Recruiter-side review of a single request: detail, audit trail, seal, analysis."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import List, Optional, Tuple

from pydantic import ValidationError

from . import audit
from .actions import Action
from .gateway import Gateway
from .lifecycle import LifecycleProjection, is_sealed, project
from .schemas import AiAnalysis, AuditEvent, ReferenceRequest
from .session import SessionContext

logger = logging.getLogger(__name__)


class ReviewError(RuntimeError):
    pass


class RequestNotFound(ReviewError, LookupError):
    pass


class ReviewService:
    def __init__(self, gateway: Gateway, session: SessionContext) -> None:
        self.gateway = gateway
        self.session = session

    def load_request(self, request_id: str) -> ReferenceRequest:
        user = self.session.require_user()
        result = self.gateway.call(
            Action.GET_MY_REQUESTS, {"includeArchived": True}, user_email=user.email
        )
        if not result.success:
            raise ReviewError(result.error or "Failed to load request")
        for row in result.items():
            if isinstance(row, dict) and row.get("requestId") == request_id:
                try:
                    return ReferenceRequest.model_validate(row)
                except (ValidationError, json.JSONDecodeError) as exc:
                    raise ReviewError(f"Request {request_id} could not be read: {exc}") from exc
        raise RequestNotFound(f"Request not found: {request_id}")

    def audit_trail(self, request_id: str) -> List[AuditEvent]:
        """Backend audit events for ``request_id``; an empty list on any failure."""
        user = self.session.require_user()
        result = self.gateway.call(Action.GET_AUDIT_TRAIL, {"requestId": request_id}, user_email=user.email)
        if not result.success:
            logger.warning(
                "audit trail unavailable",
                extra={"extra_data": {"request_id": request_id, "error": result.error}},
            )
            return []
        events: List[AuditEvent] = []
        # Bare list, {"data": [...]} and JSON-string bodies all land in items().
        for item in result.items():
            if not isinstance(item, dict):
                continue
            try:
                events.append(AuditEvent.model_validate(item))
            except ValidationError:
                logger.warning("skipping malformed audit event", extra={"extra_data": {"event": item}})
        return events

    def progress(self, request: ReferenceRequest) -> LifecycleProjection:
        return project(request.status, archived=request.archived)

    def seal(self, request_id: str) -> Optional[str]:
        """Seal the request and return the PDF link, if the backend sent one."""
        request = self.load_request(request_id)
        if is_sealed(request.status):
            raise ReviewError(f"Request {request_id} is already sealed")

        user = self.session.require_user()
        result = self.gateway.call(Action.SEAL_REQUEST, {"requestId": request_id}, user_email=user.email)
        if not result.success:
            raise ReviewError(f"Failed to seal reference: {result.error or 'Unknown error occurred'}")
        audit.log_event("request_sealed", actor=user.email, details={"request_id": request_id})
        return result.get("pdfUrl")

    def analyze(self, request_id: str) -> AiAnalysis:
        user = self.session.require_user()
        result = self.gateway.call(Action.ANALYZE_REFERENCE, {"requestId": request_id}, user_email=user.email)
        if not result.success:
            raise ReviewError(f"Analysis failed: {result.error or 'Unknown error'}")
        raw = result.get("analysis") or {}
        return AiAnalysis.model_validate(raw)

    def download_pdf(self, request_id: str) -> Tuple[str, bytes]:
        """Return ``(file_name, pdf_bytes)`` for a sealed reference."""
        user = self.session.require_user()
        result = self.gateway.call(Action.DOWNLOAD_PDF_PAYLOAD, {"requestId": request_id}, user_email=user.email)
        file_data = result.get("fileData")
        if not result.success or not file_data:
            raise ReviewError(f"Failed to download PDF: {result.error or 'Unknown error'}")
        try:
            content = base64.b64decode(file_data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ReviewError("Failed to download PDF: payload is not valid base64") from exc
        return result.get("fileName") or f"Reference-{request_id}.pdf", content

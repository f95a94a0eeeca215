"""Canned records served by the mock transport and used for template repair."""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

DEFAULT_STRUCTURE: List[Dict[str, Any]] = [
    {"id": "q1", "type": "rating", "label": "Technical Competence", "required": True},
    {"id": "q2", "type": "rating", "label": "Communication Skills", "required": True},
    {"id": "q3", "type": "boolean", "label": "Would you rehire this person?", "required": True},
    {"id": "q4", "type": "text", "label": "Additional Comments", "required": False},
    {"id": "sig1", "type": "signature", "label": "I confirm this reference is accurate", "required": True},
]

# 1x1 white PNG.
SAMPLE_SIGNATURE_DATA_URL = (
    "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)


def default_structure() -> List[Dict[str, Any]]:
    return copy.deepcopy(DEFAULT_STRUCTURE)


def default_template() -> Dict[str, Any]:
    return {
        "templateId": "default",
        "name": "Standard Employment Reference",
        "active": True,
        "structureJSON": default_structure(),
    }


def _iso(delta: timedelta = timedelta(0)) -> str:
    return (datetime.now(timezone.utc) - delta).isoformat().replace("+00:00", "Z")


def sample_requests() -> List[Dict[str, Any]]:
    return [
        {
            "requestId": "mock-1",
            "candidateName": "John Doe",
            "candidateEmail": "john@example.com",
            "refereeName": "Jane Smith",
            "refereeEmail": "jane@company.com",
            "status": "Completed",
            "consentStatus": True,
            "anomalyFlag": False,
            "token": "test-token-001",
            "candidateToken": "consent-token-001",
            "refereeToken": "referee-token-001",
            "createdAt": _iso(timedelta(days=1)),
            "responses": {
                "q1": 5,
                "q2": 4,
                "q3": True,
                "q4": "Excellent candidate with strong technical skills and great team collaboration.",
                "sig1": {
                    "typedName": "Jane Smith",
                    "signedAt": _iso(),
                    "signatureDataUrl": SAMPLE_SIGNATURE_DATA_URL,
                },
            },
        },
        {
            "requestId": "mock-2",
            "candidateName": "Alice Johnson",
            "candidateEmail": "alice@example.com",
            "refereeName": "Bob Wilson",
            "refereeEmail": "bob@company.com",
            "status": "Declined",
            "consentStatus": True,
            "anomalyFlag": True,
            "token": "test-token-002",
            "candidateToken": "consent-token-002",
            "refereeToken": "referee-token-002",
            "createdAt": _iso(timedelta(hours=12)),
            "responses": {
                "declineReason": "policy",
                "declineDetails": "Company policy prohibits providing detailed references.",
            },
        },
        {
            "requestId": "mock-3",
            "candidateName": "Charlie Brown",
            "candidateEmail": "charlie@example.com",
            "refereeName": "Diana Prince",
            "refereeEmail": "diana@company.com",
            "status": "Completed",
            "consentStatus": True,
            "anomalyFlag": False,
            "token": "test-token-003",
            "candidateToken": "consent-token-003",
            "refereeToken": "referee-token-003",
            "createdAt": _iso(timedelta(days=2)),
            "responses": {
                "fileName": "reference_letter.pdf",
                "uploadedFileUrl": "https://example.com/mock-upload.pdf",
            },
        },
    ]


def sample_audit_trail() -> List[Dict[str, Any]]:
    return [
        {"auditId": "1", "timestamp": _iso(timedelta(seconds=100)), "actor": "requester@example.com", "action": "REQUEST_INITIATED", "metadata": "{}"},
        {"auditId": "2", "timestamp": _iso(timedelta(seconds=50)), "actor": "Candidate", "action": "CONSENT_GIVEN", "metadata": "{}"},
        {"auditId": "3", "timestamp": _iso(timedelta(seconds=10)), "actor": "Referee", "action": "REFERENCE_SUBMITTED", "metadata": "{}"},
    ]


SAMPLE_ANALYSIS: Dict[str, Any] = {
    "sentiment": "Positive",
    "summary": (
        "The reference demonstrates strong technical competence and excellent communication skills. "
        "The referee expressed willingness to rehire, indicating high satisfaction with the candidate's performance."
    ),
    "anomalies": [],
}

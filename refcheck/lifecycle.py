"""Status normalisation and lifecycle projection for progress display.

The backend writes statuses in several casings (``Sealed``/``SEALED``,
``Pending_Consent``/``PENDING_CONSENT``). Everything here goes through
:func:`normalize_status` first, so callers only ever see ``RequestStatus``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class RequestStatus(str, Enum):
    PENDING_CONSENT = "PENDING_CONSENT"
    CONSENT_GIVEN = "CONSENT_GIVEN"
    CONSENT_DECLINED = "CONSENT_DECLINED"
    CONSENT_QUERY = "CONSENT_QUERY"
    SENT = "SENT"
    VIEWED = "VIEWED"
    COMPLETED = "COMPLETED"
    DECLINED = "DECLINED"
    ANALYZED = "ANALYZED"
    SEALED = "SEALED"
    FLAGGED = "FLAGGED"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"


def normalize_status(raw: Any) -> RequestStatus:
    """Map any backend spelling onto ``RequestStatus``; never raises."""

    if isinstance(raw, RequestStatus):
        return raw
    if raw is None:
        return RequestStatus.UNKNOWN
    key = str(raw).strip().upper().replace(" ", "_").replace("-", "_")
    try:
        return RequestStatus(key)
    except ValueError:
        return RequestStatus.UNKNOWN


@dataclass(frozen=True)
class Stage:
    status: RequestStatus
    label: str
    icon: str


LIFECYCLE_STAGES: Tuple[Stage, ...] = (
    Stage(RequestStatus.PENDING_CONSENT, "Consent Pending", "📧"),
    Stage(RequestStatus.CONSENT_GIVEN, "Consent Given", "✅"),
    Stage(RequestStatus.COMPLETED, "Reference Submitted", "✍️"),
    Stage(RequestStatus.DECLINED, "Reference Declined", "🚫"),
    Stage(RequestStatus.ANALYZED, "AI Analyzed", "🤖"),
    Stage(RequestStatus.SEALED, "Sealed", "🔒"),
)

STAGE_COMPLETED = "completed"
STAGE_ACTIVE = "active"
STAGE_PENDING = "pending"


@dataclass
class StageView:
    key: str
    label: str
    icon: str
    state: str


@dataclass
class LifecycleProjection:
    status: RequestStatus
    active_index: int
    archived: bool = False
    matched: bool = True
    stages: List[StageView] = field(default_factory=list)

    @property
    def active_stage(self) -> StageView:
        return self.stages[self.active_index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "activeIndex": self.active_index,
            "archived": self.archived,
            "matched": self.matched,
            "stages": [
                {"key": s.key, "label": s.label, "icon": s.icon, "state": s.state}
                for s in self.stages
            ],
        }


def stage_index(status: Any) -> Optional[int]:
    canonical = normalize_status(status)
    for idx, stage in enumerate(LIFECYCLE_STAGES):
        if stage.status is canonical:
            return idx
    return None


def project(status: Any, archived: bool = False) -> LifecycleProjection:
    """Place ``status`` on the fixed stage list.

    Unrecognised statuses fall back to the first stage. The archived flag is
    reported alongside and does not move the active stage.
    """

    idx = stage_index(status)
    active = idx if idx is not None else 0
    views: List[StageView] = []
    for pos, stage in enumerate(LIFECYCLE_STAGES):
        if pos < active:
            state = STAGE_COMPLETED
        elif pos == active:
            state = STAGE_ACTIVE
        else:
            state = STAGE_PENDING
        views.append(StageView(stage.status.value, stage.label, stage.icon, state))
    return LifecycleProjection(
        status=normalize_status(status),
        active_index=active,
        archived=bool(archived),
        matched=idx is not None,
        stages=views,
    )


_BADGES: Dict[RequestStatus, Tuple[str, str]] = {
    RequestStatus.PENDING_CONSENT: ("warning", "Pending Consent"),
    RequestStatus.CONSENT_GIVEN: ("info", "Consent Given"),
    RequestStatus.CONSENT_DECLINED: ("error", "Declined"),
    RequestStatus.CONSENT_QUERY: ("warning", "Query Raised"),
    RequestStatus.SENT: ("info", "Sent"),
    RequestStatus.VIEWED: ("info", "Viewed"),
    RequestStatus.COMPLETED: ("success", "Completed"),
    RequestStatus.DECLINED: ("error", "Reference Declined"),
    RequestStatus.ANALYZED: ("success", "Analyzed"),
    RequestStatus.SEALED: ("success", "Sealed"),
    RequestStatus.FLAGGED: ("error", "Flagged"),
    RequestStatus.EXPIRED: ("error", "Expired"),
}


def status_badge(status: Any, archived: bool = False) -> Tuple[str, str]:
    """Return ``(variant, label)`` for list badges."""

    if archived:
        return ("default", "Archived")
    canonical = normalize_status(status)
    if canonical in _BADGES:
        return _BADGES[canonical]
    return ("default", str(status or "Unknown"))


PENDING_STATUSES = {RequestStatus.PENDING_CONSENT, RequestStatus.SENT}
COMPLETED_STATUSES = {
    RequestStatus.COMPLETED,
    RequestStatus.CONSENT_GIVEN,
    RequestStatus.SEALED,
    RequestStatus.DECLINED,
    RequestStatus.ANALYZED,
}
FLAGGED_STATUSES = {RequestStatus.EXPIRED, RequestStatus.FLAGGED}


def status_category(status: Any, anomaly_flag: bool = False) -> str:
    """Bucket a status for dashboard filters: pending, completed, flagged or other."""

    canonical = normalize_status(status)
    if anomaly_flag or canonical in FLAGGED_STATUSES:
        return "flagged"
    if canonical in PENDING_STATUSES:
        return "pending"
    if canonical in COMPLETED_STATUSES:
        return "completed"
    return "other"


def is_sealed(status: Any) -> bool:
    return normalize_status(status) is RequestStatus.SEALED


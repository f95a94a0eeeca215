"""Request list for the recruiter dashboard: loading, filtering, counts, bulk actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from . import audit, config
from .actions import Action
from .gateway import Gateway
from .lifecycle import COMPLETED_STATUSES, FLAGGED_STATUSES, PENDING_STATUSES
from .schemas import ReferenceRequest
from .session import SessionContext

logger = logging.getLogger(__name__)

FILTER_ALL = "all"
FILTER_PENDING = "pending"
FILTER_COMPLETED = "completed"
FILTER_FLAGGED = "flagged"
FILTER_ARCHIVED = "archived"
STATUS_FILTERS = (FILTER_ALL, FILTER_PENDING, FILTER_COMPLETED, FILTER_FLAGGED, FILTER_ARCHIVED)


class DashboardError(RuntimeError):
    pass


@dataclass
class DashboardStats:
    total: int = 0
    pending: int = 0
    completed: int = 0
    flagged: int = 0
    archived: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "completed": self.completed,
            "flagged": self.flagged,
            "archived": self.archived,
        }


@dataclass
class BulkOutcome:
    ok: bool
    count: int = 0
    skipped: int = 0
    message: str = ""
    error: Optional[str] = None


def is_pending(request: ReferenceRequest) -> bool:
    return request.canonical_status in PENDING_STATUSES


def is_completed(request: ReferenceRequest) -> bool:
    return request.canonical_status in COMPLETED_STATUSES


def is_flagged(request: ReferenceRequest) -> bool:
    return request.anomaly_flag or request.canonical_status in FLAGGED_STATUSES


_FILTERS = {
    FILTER_PENDING: is_pending,
    FILTER_COMPLETED: is_completed,
    FILTER_FLAGGED: is_flagged,
}


def _matches_query(request: ReferenceRequest, query: str) -> bool:
    haystack = (
        request.candidate_name,
        request.referee_name,
        request.candidate_email,
        request.referee_email,
    )
    return any(query in (value or "").lower() for value in haystack)


def filter_requests(
    requests: Iterable[ReferenceRequest],
    status_filter: str = FILTER_ALL,
    query: str = "",
    show_archived: bool = False,
) -> List[ReferenceRequest]:
    """Apply the archive toggle, the status bucket and the free-text search, in that order.

    ``archived`` as a status filter shows only archived rows whatever
    ``show_archived`` says.
    """
    if status_filter not in STATUS_FILTERS:
        raise ValueError(f"unknown status filter: {status_filter}")

    rows = list(requests)
    if status_filter == FILTER_ARCHIVED:
        rows = [r for r in rows if r.archived]
    else:
        if not show_archived:
            rows = [r for r in rows if not r.archived]
        predicate = _FILTERS.get(status_filter)
        if predicate is not None:
            rows = [r for r in rows if predicate(r)]

    needle = (query or "").strip().lower()
    if needle:
        rows = [r for r in rows if _matches_query(r, needle)]
    return rows


def dashboard_stats(requests: Iterable[ReferenceRequest]) -> DashboardStats:
    """Counts over non-archived requests; ``archived`` counts the rest.

    A request can land in more than one bucket (a completed request with an
    anomaly is both completed and flagged).
    """
    rows = list(requests)
    active = [r for r in rows if not r.archived]
    return DashboardStats(
        total=len(active),
        pending=sum(1 for r in active if is_pending(r)),
        completed=sum(1 for r in active if is_completed(r)),
        flagged=sum(1 for r in active if is_flagged(r)),
        archived=len(rows) - len(active),
    )


def load_requests(gateway: Gateway, session: SessionContext) -> List[ReferenceRequest]:
    """Fetch every request, archived included, skipping rows that do not parse."""
    user = session.require_user()
    result = gateway.call(Action.GET_MY_REQUESTS, {"includeArchived": True}, user_email=user.email)
    if not result.success:
        raise DashboardError(result.error or "Failed to load requests")
    requests: List[ReferenceRequest] = []
    for row in result.items():
        try:
            requests.append(ReferenceRequest.model_validate(row))
        except (ValidationError, ValueError) as exc:
            logger.warning("skipping unreadable request row", extra={"extra_data": {"error": str(exc)}})
    return requests


def create_request(
    gateway: Gateway,
    session: SessionContext,
    *,
    candidate_name: str,
    candidate_email: str,
    referee_name: str,
    referee_email: str,
    template_id: Optional[str] = None,
) -> str:
    """Start a new reference request and return its id."""
    user = session.require_user()
    result = gateway.call(
        Action.INITIATE_REQUEST,
        {
            "candidateName": candidate_name,
            "candidateEmail": candidate_email,
            "refereeName": referee_name,
            "refereeEmail": referee_email,
            "templateId": template_id or config.DEFAULT_TEMPLATE_ID,
        },
        user_email=user.email,
    )
    request_id = result.get("requestId")
    if not result.success or not request_id:
        raise DashboardError(f"Failed to create request: {result.error or 'no request id returned'}")
    audit.log_event("request_initiated", actor=user.email, details={"request_id": request_id})
    return request_id


def _bulk(
    gateway: Gateway,
    session: SessionContext,
    action: Action,
    request_ids: Iterable[str],
    count_key: str,
    verb: str,
) -> BulkOutcome:
    ids = [rid for rid in dict.fromkeys(request_ids) if rid]
    if not ids:
        return BulkOutcome(ok=False, error="No requests selected")
    user = session.require_user()
    result = gateway.call(action, {"requestIds": ids}, user_email=user.email)
    if not result.success:
        return BulkOutcome(ok=False, error=f"Failed to {verb.lower()} requests: {result.error or 'Unknown error'}")
    count = result.get(count_key)
    count = len(ids) if count is None else int(count)
    skipped = int(result.get("skippedCount") or 0)
    message = f"{verb}d {count} request(s)"
    if skipped:
        message += f". {skipped} skipped."
    audit.log_event(f"requests_{verb.lower()}d", actor=user.email, details={"request_ids": ids, "count": count})
    return BulkOutcome(ok=True, count=count, skipped=skipped, message=message)


def archive_requests(gateway: Gateway, session: SessionContext, request_ids: Iterable[str]) -> BulkOutcome:
    return _bulk(gateway, session, Action.ARCHIVE_REQUESTS, request_ids, "archivedCount", "Archive")


def unarchive_requests(gateway: Gateway, session: SessionContext, request_ids: Iterable[str]) -> BulkOutcome:
    return _bulk(gateway, session, Action.UNARCHIVE_REQUESTS, request_ids, "unarchivedCount", "Unarchive")


def delete_requests(gateway: Gateway, session: SessionContext, request_ids: Iterable[str]) -> BulkOutcome:
    """The backend only deletes test data; other ids come back as skipped."""
    return _bulk(gateway, session, Action.DELETE_REQUESTS, request_ids, "deletedCount", "Delete")

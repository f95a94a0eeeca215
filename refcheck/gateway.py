"""Remote action gateway: one call path to the spreadsheet backend.

Callers only branch on ``ActionResult.success``. Logical failures reported by
the backend and transport failures (connection errors, non-2xx responses,
bodies that are not JSON) both come back as ``success=False`` with a readable
``error``. There are no retries.
"""

from __future__ import annotations

import json
import logging
import random
import time
from typing import Any, Callable, Dict, Optional, Protocol

import requests

from . import audit, config, metrics
from .actions import (
    ADMIN_PROTECTED_ACTIONS,
    Action,
    ActionPayload,
    ActionResult,
    build_payload,
    resolve_action,
)
from .mock_data import SAMPLE_ANALYSIS, default_template, sample_audit_trail, sample_requests

logger = logging.getLogger(__name__)

BODY_SNIPPET_LIMIT = 200


class TransportError(RuntimeError):
    pass


class Transport(Protocol):
    def send(self, action: Action, payload: Dict[str, Any]) -> Any:
        ...


def _decode_response(resp: requests.Response) -> Any:
    if not resp.ok:
        raise TransportError(f"Network Error: {resp.status_code} {resp.text[:BODY_SNIPPET_LIMIT]}")
    try:
        return resp.json()
    except ValueError:
        text = resp.text or ""
        if "<!DOCTYPE html>" in text or "<html" in text.lower():
            raise TransportError("Bad Gateway: Received HTML instead of JSON (Check deployment URL)") from None
        raise TransportError("Bad Gateway: Invalid response from backend") from None


class HttpTransport:
    """POSTs ``{"action": ..., **payload}`` to a single Apps Script endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        admin_key: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("GAS backend URL not configured. Set GAS_BASE_URL")
        self.base_url = base_url
        self.admin_key = admin_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, action: Action, payload: Dict[str, Any]) -> Any:
        body: Dict[str, Any] = {"action": action.value, **payload}
        if self.admin_key and action in ADMIN_PROTECTED_ACTIONS:
            body["adminKey"] = self.admin_key
        try:
            # text/plain keeps the Apps Script endpoint free of CORS preflight.
            resp = self.session.post(
                self.base_url,
                data=json.dumps(body),
                headers={"Content-Type": "text/plain;charset=utf-8"},
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Request failed: {exc}") from exc
        return _decode_response(resp)


class ProxyTransport:
    """POSTs the payload as JSON to ``{base_url}/{action}``; the proxy adds credentials."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, action: Action, payload: Dict[str, Any]) -> Any:
        try:
            resp = self.session.post(f"{self.base_url}/{action.value}", json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Request failed: {exc}") from exc
        return _decode_response(resp)


# Simulated latency per action, in seconds.
_MOCK_DELAYS: Dict[Action, float] = {
    Action.INITIATE_REQUEST: 1.0,
    Action.GET_MY_REQUESTS: 0.8,
    Action.GET_TEMPLATES: 0.6,
    Action.SAVE_TEMPLATE: 0.8,
    Action.VALIDATE_REFEREE_TOKEN: 1.0,
    Action.SUBMIT_REFERENCE: 1.5,
    Action.UPLOAD_REFERENCE_DOCUMENT: 1.5,
    Action.SEAL_REQUEST: 1.0,
    Action.GET_AUDIT_TRAIL: 0.8,
    Action.ANALYZE_REFERENCE: 1.5,
}

MOCK_INVALID_TOKEN = "invalid"


def _millis() -> int:
    return int(time.time() * 1000)


class MockTransport:
    """In-memory stand-in answering a subset of actions with canned bodies."""

    def __init__(
        self,
        delay_scale: float = 1.0,
        *,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.delay_scale = delay_scale
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.calls: list[tuple[Action, Dict[str, Any]]] = []
        self._handlers: Dict[Action, Callable[[Dict[str, Any]], Any]] = {
            Action.INITIATE_REQUEST: lambda p: {"success": True, "requestId": f"mock-id-{_millis()}"},
            Action.GET_MY_REQUESTS: lambda p: sample_requests(),
            Action.GET_TEMPLATES: lambda p: [default_template()],
            Action.SAVE_TEMPLATE: lambda p: {"success": True, "templateId": p.get("templateId") or f"mock-tpl-{_millis()}"},
            Action.VALIDATE_REFEREE_TOKEN: self._validate_token,
            Action.SUBMIT_REFERENCE: self._token_guard(lambda p: {"success": True}),
            Action.UPLOAD_REFERENCE_DOCUMENT: self._token_guard(
                lambda p: {"success": True, "fileUrl": f"https://example.com/mock-upload/{p['fileName']}"}
            ),
            Action.AUTHORIZE_CONSENT: self._token_guard(lambda p: {"success": True, "decision": p["decision"]}),
            Action.SEAL_REQUEST: lambda p: {"success": True, "pdfUrl": "https://example.com/mock-reference.pdf"},
            Action.GET_AUDIT_TRAIL: lambda p: sample_audit_trail(),
            Action.ANALYZE_REFERENCE: lambda p: {"success": True, "analysis": dict(SAMPLE_ANALYSIS)},
            Action.VERIFY_STAFF: self._verify_staff,
            Action.INITIALIZE_DATABASE: lambda p: {"success": True, "message": "Templates restored where missing"},
            Action.SEED_EMPLOYMENT_TEMPLATE: lambda p: {"success": True, "templateId": "default"},
            Action.FIX_TEMPLATE_STRUCTURE: lambda p: {"success": True, "templateId": "default", "fieldCount": len(default_template()["structureJSON"])},
        }

    @staticmethod
    def _token_guard(handler: Callable[[Dict[str, Any]], Any]) -> Callable[[Dict[str, Any]], Any]:
        def _guarded(payload: Dict[str, Any]) -> Any:
            if payload.get("token") == MOCK_INVALID_TOKEN:
                return {"success": False, "error": "Token expired or invalid"}
            return handler(payload)

        return _guarded

    @staticmethod
    def _validate_token(payload: Dict[str, Any]) -> Dict[str, Any]:
        if payload.get("token") == MOCK_INVALID_TOKEN:
            return {"valid": False, "error": "Token expired or invalid"}
        return {"valid": True, "candidateName": "John Doe", "template": default_template()}

    @staticmethod
    def _verify_staff(payload: Dict[str, Any]) -> Dict[str, Any]:
        email = payload.get("userEmail") or ""
        local = email.split("@")[0]
        return {"success": True, "user": {"email": email, "name": local.title(), "role": "Recruiter"}}

    def send(self, action: Action, payload: Dict[str, Any]) -> Any:
        self.calls.append((action, dict(payload)))
        handler = self._handlers.get(action)
        if handler is None:
            logger.warning("mock action not implemented", extra={"extra_data": {"action": action.value}})
            return {"success": True}
        delay = _MOCK_DELAYS.get(action, 0.5) * self.delay_scale
        if delay > 0:
            self.sleep(delay * self.rng.uniform(0.75, 1.25))
        return handler(payload)


class Gateway:
    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    def call(
        self,
        action: Action | str,
        payload: Dict[str, Any] | ActionPayload | None = None,
        user_email: Optional[str] = None,
    ) -> ActionResult:
        """Invoke ``action``; transport failures are returned, not raised.

        Raises ``UnknownAction`` / ``InvalidActionPayload`` for caller bugs.
        """
        resolved = resolve_action(action)
        body = build_payload(resolved, payload, user_email)
        log_extra = {"action": resolved.value, "transport": type(self.transport).__name__}

        start = time.perf_counter()
        try:
            raw = self.transport.send(resolved, body)
        except TransportError as exc:
            metrics.incr("gateway_transport_error")
            logger.warning("action transport failure", extra={"extra_data": {**log_extra, "error": str(exc)}})
            audit.log_action_call(resolved.value, success=False, actor=user_email, error=str(exc), kind="transport")
            return ActionResult.failure(str(exc))
        finally:
            metrics.timing(f"gateway.{resolved.value}", time.perf_counter() - start)

        result = ActionResult.from_body(raw)
        if result.success:
            metrics.incr("gateway_success")
        else:
            metrics.incr("gateway_logical_error")
            logger.info("action reported failure", extra={"extra_data": {**log_extra, "error": result.error}})
        audit.log_action_call(resolved.value, success=result.success, actor=user_email, error=result.error)
        return result


def gateway_from_config() -> Gateway:
    mode = config.GATEWAY_MODE
    if mode == "mock":
        transport: Transport = MockTransport(config.MOCK_DELAY_SCALE)
    elif mode == "proxy":
        transport = ProxyTransport(config.PROXY_URL, timeout=config.GATEWAY_TIMEOUT)
    elif mode == "live":
        transport = HttpTransport(config.GAS_BASE_URL, admin_key=config.ADMIN_API_KEY, timeout=config.GATEWAY_TIMEOUT)
    else:
        raise RuntimeError(f"Unknown GATEWAY_MODE: {mode}")
    logger.info("gateway configured", extra={"extra_data": {"mode": mode}})
    return Gateway(transport)

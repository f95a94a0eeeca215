import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from . import __version__, audit, config, metrics
from .form_renderer import layout_rows
from .form_validator import validate_responses, visible_field_ids
from .gateway import Gateway, gateway_from_config
from .lifecycle import project, status_badge
from .portal import RefereePortal
from .schemas import (
    FormValidationRequest,
    LayoutRequest,
    LifecycleRequest,
    PortalDeclineRequest,
    PortalSubmitRequest,
    TemplateField,
)
from .validation import SchemaValidationError, TemplateStructureEmpty, ensure_usable_template, restore_default_structure

logger = logging.getLogger(__name__)

app = FastAPI(title="refcheck", version=__version__)
_GATEWAY: Optional[Gateway] = None


def get_gateway() -> Gateway:
    global _GATEWAY
    if _GATEWAY is None:
        _GATEWAY = gateway_from_config()
    return _GATEWAY


@app.exception_handler(Exception)
async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error", extra={"extra_data": {"path": request.url.path}})
    audit.log_exception("server_error", error=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Something went wrong", "reload": True},
    )


def _rows(fields: List[TemplateField], preview_mode: str, responses: Dict[str, Any]) -> List[List[Optional[Dict[str, Any]]]]:
    visible = visible_field_ids(fields, responses)
    shown = [f for f in fields if f.id in visible]
    return [[item.to_wire() if item else None for item in row] for row in layout_rows(shown, preview_mode)]


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"status": "ok", "version": __version__, "gateway_mode": config.GATEWAY_MODE}


@app.post("/forms/validate")
def forms_validate(req: FormValidationRequest) -> Dict[str, Any]:
    errors = validate_responses(req.structure, req.responses)
    if errors:
        metrics.incr("form_validation_failed")
    return {"valid": not errors, "errors": errors}


@app.post("/forms/layout")
def forms_layout(req: LayoutRequest) -> Dict[str, Any]:
    return {"preview_mode": req.preview_mode, "rows": _rows(req.structure, req.preview_mode, req.responses)}


@app.post("/templates/check")
def templates_check(payload: Dict[str, Any], repair: bool = False) -> Dict[str, Any]:
    repaired: List[bool] = []

    def _fixer(wire: Dict[str, Any]) -> Dict[str, Any]:
        repaired.append(True)
        return restore_default_structure(wire)

    try:
        template = ensure_usable_template(payload, fixer=_fixer if repair else None)
    except TemplateStructureEmpty as exc:
        raise HTTPException(status_code=422, detail={"error": "empty_structure", "message": str(exc)})
    except SchemaValidationError as exc:
        raise HTTPException(status_code=422, detail={"error": "invalid_template", "message": str(exc)})
    return {
        "valid": True,
        "repaired": bool(repaired),
        "field_count": len(template.structure),
        "template": template.to_wire(),
    }


@app.post("/requests/lifecycle")
def requests_lifecycle(req: LifecycleRequest) -> Dict[str, Any]:
    variant, label = status_badge(req.status, req.archived)
    return {**project(req.status, req.archived).to_dict(), "badge": {"variant": variant, "label": label}}


def _load_portal(token: str, gateway: Gateway) -> RefereePortal:
    portal = RefereePortal(gateway, token)
    if not portal.load():
        raise HTTPException(status_code=404, detail=portal.error)
    return portal


@app.get("/portal/{token}")
def portal_load(token: str, gateway: Gateway = Depends(get_gateway)) -> Dict[str, Any]:
    portal = _load_portal(token, gateway)
    return {
        "candidateName": portal.candidate_name,
        "template": portal.template.to_wire(),
        "rows": _rows(portal.form.fields, portal.form.preview_mode, {}),
    }


@app.post("/portal/{token}/submit")
def portal_submit(token: str, req: PortalSubmitRequest, gateway: Gateway = Depends(get_gateway)) -> Dict[str, Any]:
    portal = _load_portal(token, gateway)
    portal.form.update_responses(req.responses)
    outcome = portal.submit_form()
    if outcome.errors:
        raise HTTPException(status_code=422, detail={"errors": outcome.errors})
    if not outcome.ok:
        raise HTTPException(status_code=502, detail=outcome.error)
    return outcome.to_dict()


@app.post("/portal/{token}/decline")
def portal_decline(token: str, req: PortalDeclineRequest, gateway: Gateway = Depends(get_gateway)) -> Dict[str, Any]:
    if not req.reason:
        raise HTTPException(status_code=400, detail="Please provide a reason.")
    portal = RefereePortal(gateway, token)
    outcome = portal.decline(req.reason, req.details)
    if not outcome.ok:
        raise HTTPException(status_code=502, detail=outcome.error)
    return outcome.to_dict()


@app.get("/metrics/snapshot")
def metrics_snapshot() -> dict:
    return metrics.snapshot()

import os
from pathlib import Path
from typing import Optional


def _parse_int_default(default: int, *names: str) -> int:
    for name in names:
        raw = os.environ.get(name)
        if raw is None or raw == "":
            continue
        try:
            return int(raw)
        except ValueError:
            continue
    return default


def _parse_float_default(default: float, *names: str) -> float:
    for name in names:
        raw = os.environ.get(name)
        if raw is None or raw == "":
            continue
        try:
            return float(raw)
        except ValueError:
            continue
    return default


def _parse_optional_float(*names: str) -> Optional[float]:
    for name in names:
        raw = os.environ.get(name)
        if raw is None or raw == "":
            continue
        try:
            return float(raw)
        except ValueError:
            continue
    return None


def _parse_bool(default: bool, *names: str) -> bool:
    for name in names:
        raw = os.environ.get(name)
        if raw is None or raw == "":
            continue
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    return default


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if value is None or value == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


# Production Apps Script deployment; used whenever the configured URL is
# missing or points at a deployment known to be broken.
WORKING_GAS_ID = "AKfycbw7F-NmvSVO8peVIjt7WaxKuvrKnSxXnbiNGvHWvb8DBJy-bu1mI7G8CU8s-9kSOZnI"
BROKEN_GAS_IDS = (
    "AKfycbw_bRkR4pDtIDtQv2mP8bSoB1ZqQDSkOVndaEgfluA8QEPf-9azWjb7L6-BVHHGsAtb",
    "AKfycbzuzXVqL74-ikBAfNMyAgBwwPXqFBxleHXrF4makw4i7TCjwnlay3J1h4aMsA-dHsvZ",
)


def resolve_gas_base_url(env_url: Optional[str]) -> str:
    if not env_url or any(broken in env_url for broken in BROKEN_GAS_IDS):
        return f"https://script.google.com/macros/s/{WORKING_GAS_ID}/exec"
    return env_url


GAS_BASE_URL = resolve_gas_base_url(os.environ.get("GAS_BASE_URL"))
PROXY_URL = os.environ.get("PROXY_URL", "http://localhost:3001/api")
USE_MOCKS = _parse_bool(False, "USE_MOCKS")
# mock | live | proxy; USE_MOCKS=true wins over an unset mode.
GATEWAY_MODE = (os.environ.get("GATEWAY_MODE") or ("mock" if USE_MOCKS else "live")).lower()
REQUIRE_ADMIN_KEY = _parse_bool(False, "REQUIRE_ADMIN_KEY")
ADMIN_API_KEY: Optional[str] = _require_env("ADMIN_API_KEY") if REQUIRE_ADMIN_KEY else os.environ.get("ADMIN_API_KEY")
# None leaves the transport default in place (requests waits indefinitely).
GATEWAY_TIMEOUT = _parse_optional_float("GATEWAY_TIMEOUT")
MOCK_DELAY_SCALE = _parse_float_default(1.0, "MOCK_DELAY_SCALE")

ALLOWED_EMAIL_DOMAIN = os.environ.get("ALLOWED_EMAIL_DOMAIN", "semester.co.uk")
MAX_UPLOAD_BYTES = _parse_int_default(5 * 1024 * 1024, "MAX_UPLOAD_BYTES")
DEFAULT_TEMPLATE_ID = os.environ.get("DEFAULT_TEMPLATE_ID", "default")
# Comma-separated staff emails allowed to edit templates, in addition to role Admin.
TEMPLATE_ADMIN_EMAILS = frozenset(
    email.strip().lower()
    for email in os.environ.get("TEMPLATE_ADMIN_EMAILS", "").split(",")
    if email.strip()
)

AUDIT_LOG_PATH = os.environ.get(
    "AUDIT_LOG_PATH",
    str(Path(__file__).resolve().parent.parent / "data" / "audit.log"),
)

SESSION_CACHE_PATH = os.environ.get(
    "SESSION_CACHE_PATH",
    str(Path.home() / ".refcheck" / "session.json"),
)

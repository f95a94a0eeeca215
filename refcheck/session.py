"""Signed-in staff user, cached between runs in a small JSON file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from . import audit, config
from .actions import Action
from .gateway import Gateway
from .schemas import StaffUser

logger = logging.getLogger(__name__)


class AccessDenied(RuntimeError):
    pass


class SessionContext:
    """Explicit session value handed to the flows that need a user.

    ``load()`` restores the cached user at startup, ``login()`` verifies a new
    one against the backend, ``logout()`` clears memory and cache together.
    """

    def __init__(
        self,
        gateway: Gateway,
        cache_path: str | Path | None = None,
        allowed_domain: Optional[str] = None,
    ) -> None:
        self.gateway = gateway
        self.cache_path = Path(cache_path or config.SESSION_CACHE_PATH)
        self.allowed_domain = config.ALLOWED_EMAIL_DOMAIN if allowed_domain is None else allowed_domain
        self._user: Optional[StaffUser] = None

    @property
    def current_user(self) -> Optional[StaffUser]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def user_email(self) -> Optional[str]:
        return self._user.email if self._user else None

    def require_user(self) -> StaffUser:
        if self._user is None:
            raise AccessDenied("Not signed in")
        return self._user

    def load(self) -> Optional[StaffUser]:
        if not self.cache_path.exists():
            return None
        try:
            raw = json.loads(self.cache_path.read_text(encoding="utf-8"))
            self._user = StaffUser.model_validate(raw)
        except (json.JSONDecodeError, ValidationError, OSError) as exc:
            logger.warning("discarding unreadable session cache", extra={"extra_data": {"error": str(exc)}})
            self._remove_cache()
            self._user = None
        return self._user

    def login(self, email: str, picture: str = "") -> StaffUser:
        email = (email or "").strip().lower()
        if self.allowed_domain and not email.endswith("@" + self.allowed_domain):
            audit.log_event("login_denied", details={"email": email, "reason": "domain"}, severity="warning")
            raise AccessDenied(f"Access restricted to @{self.allowed_domain} accounts only.")

        result = self.gateway.call(Action.VERIFY_STAFF, user_email=email)
        user_data = result.get("user")
        if not result.success or not isinstance(user_data, dict):
            audit.log_event("login_denied", details={"email": email, "reason": result.error}, severity="warning")
            raise AccessDenied(f"Not Authorized: {result.error or 'You are not listed in the Staff database.'}")

        user = StaffUser(
            email=user_data.get("email") or email,
            name=user_data.get("name") or "",
            picture=picture,
            role=user_data.get("role"),
        )
        self._user = user
        self._save()
        audit.log_event("login", actor=user.email, details={"role": user.role})
        return user

    def logout(self) -> None:
        if self._user is not None:
            audit.log_event("logout", actor=self._user.email)
        self._user = None
        self._remove_cache()

    def _save(self) -> None:
        if self._user is None:
            return
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        self.cache_path.write_text(self._user.model_dump_json(), encoding="utf-8")

    def _remove_cache(self) -> None:
        try:
            self.cache_path.unlink()
        except FileNotFoundError:
            pass

"""Two-part signature state: a typed name plus drawn ink."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from .schemas import SignatureResponse


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SignatureState:
    """Tracks one signature field.

    ``signed_at`` is stamped on the first non-empty interaction and is never
    changed afterwards, including by ``clear()``.
    """

    def __init__(
        self,
        value: SignatureResponse | Mapping[str, Any] | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        on_change: Optional[Callable[[SignatureResponse], None]] = None,
    ) -> None:
        if isinstance(value, Mapping):
            value = SignatureResponse.model_validate(value)
        self.typed_name: str = value.typed_name if value else ""
        self.signature_data_url: Optional[str] = value.signature_data_url if value else None
        self.signed_at: str = value.signed_at if value else ""
        self._clock = clock
        self._on_change = on_change

    @property
    def has_drawn(self) -> bool:
        return bool(self.signature_data_url)

    @property
    def has_typed_name(self) -> bool:
        return bool(self.typed_name.strip())

    @property
    def is_complete(self) -> bool:
        return self.has_typed_name and self.has_drawn

    def missing_parts(self) -> list[str]:
        missing = []
        if not self.has_typed_name:
            missing.append("Please type your full legal name")
        if not self.has_drawn:
            missing.append("Please draw your signature above")
        return missing

    def _stamp(self) -> None:
        if not self.signed_at:
            self.signed_at = _iso(self._clock())

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.to_response())

    def set_typed_name(self, name: str) -> None:
        self.typed_name = name or ""
        if self.typed_name:
            self._stamp()
        self._notify()

    def draw(self, data_url: str) -> None:
        if not data_url:
            self.clear()
            return
        self.signature_data_url = data_url
        self._stamp()
        self._notify()

    def clear(self) -> None:
        self.signature_data_url = None
        self._notify()

    def to_response(self) -> SignatureResponse:
        return SignatureResponse(
            typed_name=self.typed_name,
            signed_at=self.signed_at,
            signature_data_url=self.signature_data_url,
        )

"""Shared controller state definitions for the check-in kiosk."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .backend.schemas import VisitorInfo


class SessionPhase(str, enum.Enum):
    """
    Session phases in chronological order:

    1. IDLE        - Phone entry form (shows inline validation/check-in errors)
    2. SUBMITTING  - Check-in request in flight
    3. WELCOME     - Welcome celebration (auto-dismiss) → IDLE
    """
    IDLE = "idle"
    SUBMITTING = "submitting"
    WELCOME = "welcome"


@dataclass
class ControllerEvent:
    """Event payload distributed to UI clients over the local WebSocket."""

    type: str
    data: Dict[str, Any]
    phase: SessionPhase
    error: Optional[str] = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the controller handed to the renderer."""

    phase: SessionPhase
    phone: str = ""
    region: str = "US"
    normalized_phone: Optional[str] = None
    validation_message: Optional[str] = None
    error: Optional[str] = None
    visitor: Optional[VisitorInfo] = None
    can_submit: bool = False
    branding_image: Optional[str] = None
    badges: List[str] = field(default_factory=list)

    @property
    def greeting(self) -> Optional[str]:
        if self.visitor and self.visitor.user_name:
            return f"Hello, {self.visitor.user_name}!"
        return None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "phone": self.phone,
            "region": self.region,
            "normalized_phone": self.normalized_phone,
            "validation_message": self.validation_message,
            "error": self.error,
            "visitor": self.visitor.model_dump(by_alias=True) if self.visitor else None,
            "greeting": self.greeting,
            "badges": list(self.badges),
            "can_submit": self.can_submit,
            "branding_image": self.branding_image,
        }


def welcome_badges(visitor: Optional[VisitorInfo]) -> List[str]:
    """Status badges shown on the welcome screen, in display order."""

    if visitor is None:
        return []
    badges = ["member" if visitor.is_member else "visitor"]
    if visitor.is_new_visitor:
        badges.append("first_visit")
    return badges


__all__ = ["SessionPhase", "ControllerEvent", "SessionSnapshot", "welcome_badges"]

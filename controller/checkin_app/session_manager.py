"""Session orchestration for the visitor check-in kiosk."""
from __future__ import annotations

import asyncio
from asyncio import QueueEmpty
import logging
from dataclasses import dataclass
from typing import List, Optional

from .backend.branding import BackgroundImageLoader
from .backend.http_client import CheckInBackend, CheckInHttpClient, NetworkError
from .backend.schemas import CheckInRequest, VisitorInfo
from .config import Settings, get_settings
from .logging_config import mask_phone
from .phone import (
    EMPTY_PHONE_MESSAGE,
    INVALID_PHONE_MESSAGE,
    Invalid,
    PhoneValidator,
    Valid,
    ValidationResult,
    digits_only,
)
from .state import ControllerEvent, SessionPhase, SessionSnapshot, welcome_badges
from .timers import DismissTimer, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

CHECKIN_FAILED_MESSAGE = "An error occurred during check-in. Please try again."


@dataclass
class SessionContext:
    raw_phone: str = ""
    region: str = "US"
    validation: Optional[ValidationResult] = None
    visitor: Optional[VisitorInfo] = None


class SessionController:
    """Coordinates phone validation, check-in submission and UI state updates."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        client: Optional[CheckInBackend] = None,
        scheduler: Optional[Scheduler] = None,
        validator: Optional[PhoneValidator] = None,
    ) -> None:
        self.settings = settings or get_settings()
        checkin = self.settings.checkin
        self._phase: SessionPhase = SessionPhase.IDLE
        self._error: Optional[str] = None
        self._current = SessionContext(region=checkin.default_region)
        self._ui_subscribers: List[asyncio.Queue[ControllerEvent]] = []

        self._client: CheckInBackend = client or CheckInHttpClient(self.settings)
        self._scheduler: Scheduler = scheduler or DismissTimer()
        self._validator = validator or PhoneValidator(
            default_region=checkin.default_region,
            min_digits=checkin.min_phone_digits,
            strict=checkin.strict_validation,
        )
        self._branding_loader = BackgroundImageLoader(
            self._client,
            service_base_url=self.settings.service_base_url,
            page_name=self.settings.branding.page_name,
        )

        self._attempt_seq: int = 0
        self._dismiss_handle: Optional[TimerHandle] = None
        self._branding_image: Optional[str] = None
        self._branding_task: Optional[asyncio.Task[Optional[str]]] = None
        self._branding_loaded = False

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def branding_image(self) -> str:
        return self._branding_image or self.settings.branding.default_image

    @property
    def submission_in_flight(self) -> bool:
        return self._phase == SessionPhase.SUBMITTING

    async def start(self) -> None:
        logger.info("Starting check-in controller")
        if not self._branding_loaded and self._branding_task is None:
            self._branding_task = asyncio.create_task(self._fetch_branding(), name="branding-loader")
        logger.info("Check-in controller started in IDLE state")

    async def stop(self) -> None:
        logger.info("Stopping check-in controller")

        task = self._branding_task
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._branding_task = None

        self._scheduler.cancel(self._dismiss_handle)
        self._dismiss_handle = None
        await self._scheduler.aclose()

        await self._client.aclose()
        logger.info("Check-in controller stopped")

    def register_ui(self) -> asyncio.Queue[ControllerEvent]:
        queue: asyncio.Queue[ControllerEvent] = asyncio.Queue(maxsize=self.settings.ui_event_queue_size)
        self._ui_subscribers.append(queue)
        return queue

    def unregister_ui(self, queue: asyncio.Queue[ControllerEvent]) -> None:
        if queue in self._ui_subscribers:
            self._ui_subscribers.remove(queue)

    def snapshot(self) -> SessionSnapshot:
        validation = self._current.validation
        visitor = self._current.visitor
        return SessionSnapshot(
            phase=self._phase,
            phone=self._current.raw_phone,
            region=self._current.region,
            normalized_phone=validation.phone if isinstance(validation, Valid) else None,
            validation_message=self._validation_message(),
            error=self._error,
            visitor=visitor,
            can_submit=self._can_submit(),
            branding_image=self.branding_image,
            badges=welcome_badges(visitor),
        )

    # ============================================================
    # USER ACTIONS
    # ============================================================

    async def load_branding(self) -> Optional[str]:
        """Fetch the background image once; later calls return the cached value."""
        if self._branding_loaded:
            return self._branding_image
        if self._branding_task is None:
            self._branding_task = asyncio.create_task(self._fetch_branding(), name="branding-loader")
        # Callers share the single fetch; cancelling one caller leaves it running.
        return await asyncio.shield(self._branding_task)

    async def _fetch_branding(self) -> Optional[str]:
        image = await self._branding_loader.load()
        self._branding_image = image
        self._branding_loaded = True
        if image:
            logger.info("🖼️ Branding image loaded: %s", image)
        else:
            logger.info("🖼️ Using default branding image %s", self.settings.branding.default_image)
        await self._broadcast(
            ControllerEvent(type="branding", data={"image": self.branding_image}, phase=self._phase)
        )
        return image

    async def update_phone(self, raw: str, region: Optional[str] = None) -> ValidationResult:
        """Record a keystroke and replace the validation result."""
        if self._phase == SessionPhase.WELCOME:
            logger.debug("Phone edit ignored while welcome screen is showing")
            return self._current.validation or Invalid(INVALID_PHONE_MESSAGE)

        if region:
            self._current.region = region.upper()
        self._current.raw_phone = raw or ""
        self._current.validation = self._validator.validate(self._current.raw_phone, self._current.region)
        self._error = None
        await self._publish_state()
        return self._current.validation

    async def submit(self) -> SessionSnapshot:
        """Submit the current number; returns the state once the attempt resolves."""
        if self._phase != SessionPhase.IDLE:
            logger.info("Check-in ignored; controller is %s", self._phase.value)
            return self.snapshot()

        if not digits_only(self._current.raw_phone):
            await self._set_error(EMPTY_PHONE_MESSAGE)
            return self.snapshot()

        result = self._current.validation
        if result is None:
            result = self._validator.validate(self._current.raw_phone, self._current.region)
            self._current.validation = result
        if not isinstance(result, Valid):
            await self._set_error(result.reason)
            return self.snapshot()

        # Phase flips before the first await so a second submit is rejected above.
        self._attempt_seq += 1
        attempt = self._attempt_seq
        self._error = None
        await self._advance_phase(SessionPhase.SUBMITTING)
        logger.info("📱 Check-in attempt %d for %s", attempt, mask_phone(result.phone))

        try:
            response = await self._client.submit_check_in(CheckInRequest(phone=result.phone))
        except NetworkError as exc:
            logger.error("❌ Check-in attempt %d failed: %s", attempt, exc)
            if self._is_current_attempt(attempt):
                await self._fail_attempt(CHECKIN_FAILED_MESSAGE)
            return self.snapshot()
        except Exception:
            logger.exception("❌ Unexpected check-in error on attempt %d", attempt)
            if self._is_current_attempt(attempt):
                await self._fail_attempt(CHECKIN_FAILED_MESSAGE)
            return self.snapshot()

        if not self._is_current_attempt(attempt):
            logger.info("Discarding stale check-in response for attempt %d", attempt)
            return self.snapshot()

        if response.success:
            await self._show_welcome(response.data or VisitorInfo())
        else:
            logger.warning("Check-in attempt %d rejected: %s", attempt, response.message)
            await self._fail_attempt(response.message or CHECKIN_FAILED_MESSAGE)
        return self.snapshot()

    async def dismiss(self) -> SessionSnapshot:
        """Close the welcome screen (or abandon a pending attempt) and reset."""
        await self._reset(source="manual")
        return self.snapshot()

    # ============================================================
    # TRANSITIONS
    # ============================================================

    async def _show_welcome(self, visitor: VisitorInfo) -> None:
        self._scheduler.cancel(self._dismiss_handle)
        self._current.visitor = visitor
        self._error = None
        duration = self.settings.checkin.welcome_dismiss_seconds
        handle = self._scheduler.arm(duration, lambda: self._on_dismiss_timer(handle))
        self._dismiss_handle = handle
        await self._advance_phase(SessionPhase.WELCOME)
        logger.info("🎉 Welcome shown (member=%s, new=%s); auto-dismiss in %.0fs",
                    visitor.is_member, visitor.is_new_visitor, duration)

    async def _fail_attempt(self, message: str) -> None:
        self._error = message
        await self._advance_phase(SessionPhase.IDLE, error=message)

    async def _on_dismiss_timer(self, handle: TimerHandle) -> None:
        if handle is not self._dismiss_handle:
            logger.debug("Ignoring superseded dismiss timer")
            return
        await self._reset(source="timer")

    async def _reset(self, *, source: str) -> bool:
        if self._phase == SessionPhase.IDLE:
            return False

        self._scheduler.cancel(self._dismiss_handle)
        self._dismiss_handle = None
        # Invalidates any response still in flight.
        self._attempt_seq += 1
        self._current = SessionContext(region=self.settings.checkin.default_region)
        self._error = None
        await self._advance_phase(SessionPhase.IDLE)
        logger.info("🔄 Session reset (%s), ready for next visitor", source)
        return True

    async def _set_error(self, message: str) -> None:
        self._error = message
        logger.info("Check-in blocked: %s", message)
        await self._publish_state()

    def _is_current_attempt(self, attempt: int) -> bool:
        return attempt == self._attempt_seq and self._phase == SessionPhase.SUBMITTING

    def _can_submit(self) -> bool:
        return self._phase == SessionPhase.IDLE and isinstance(self._current.validation, Valid)

    def _validation_message(self) -> Optional[str]:
        validation = self._current.validation
        if validation is None or validation.is_valid or not self._current.raw_phone:
            return None
        return validation.reason

    async def _advance_phase(self, phase: SessionPhase, *, error: Optional[str] = None) -> None:
        self._phase = phase
        if phase != SessionPhase.IDLE:
            self._error = None
        await self._publish_state(error=error)

    async def _publish_state(self, *, error: Optional[str] = None) -> None:
        snapshot = self.snapshot()
        await self._broadcast(
            ControllerEvent(type="state", data=snapshot.to_payload(), phase=self._phase, error=error or self._error)
        )

    async def _broadcast(self, event: ControllerEvent) -> None:
        """Broadcast event to all UI subscribers with error handling."""
        for queue in list(self._ui_subscribers):
            try:
                if queue.full():
                    try:
                        queue.get_nowait()
                    except QueueEmpty:
                        pass
                queue.put_nowait(event)
            except Exception as e:
                logger.warning("Failed to broadcast event to subscriber: %s", e)


__all__ = ["CHECKIN_FAILED_MESSAGE", "SessionContext", "SessionController"]

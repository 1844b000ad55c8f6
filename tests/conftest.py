"""Shared fixtures: settings, an in-memory check-in service and a manual clock."""
from __future__ import annotations

import asyncio
from typing import List, Optional, Union

import pytest

from checkin_app.backend.schemas import CheckInRequest, CheckInResponse, PageSetting, PageSettingResponse
from checkin_app.config import Settings
from checkin_app.timers import OnFire, TimerHandle

BASE_URL = "https://api.example.test"


class FakeBackend:
    """In-memory stand-in for CheckInHttpClient."""

    def __init__(self) -> None:
        self.responses: List[Union[CheckInResponse, Exception]] = []
        self.requests: List[CheckInRequest] = []
        self.branding: Union[PageSettingResponse, Exception] = PageSettingResponse(
            success=True, data=[PageSetting(image="/uploads/login.png")]
        )
        self.branding_calls = 0
        self.gate: Optional[asyncio.Event] = None
        self.branding_gate: Optional[asyncio.Event] = None
        self.closed = False

    async def submit_check_in(self, request: CheckInRequest) -> CheckInResponse:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def fetch_branding(self, page_name: str) -> PageSettingResponse:
        self.branding_calls += 1
        if self.branding_gate is not None:
            await self.branding_gate.wait()
        if isinstance(self.branding, Exception):
            raise self.branding
        return self.branding

    async def aclose(self) -> None:
        self.closed = True


class FakeScheduler:
    """Scheduler driven by explicit ``advance`` calls instead of wall time."""

    def __init__(self) -> None:
        self.now = 0.0
        self.entries: List[tuple] = []
        self.closed = False

    @property
    def armed(self) -> List[TimerHandle]:
        return [handle for _, handle, _ in self.entries]

    def arm(self, duration: float, on_fire: OnFire) -> TimerHandle:
        handle = TimerHandle(duration=duration)
        self.entries.append((self.now + duration, handle, on_fire))
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is not None and handle.pending:
            handle.cancelled = True

    async def aclose(self) -> None:
        for _, handle, _ in self.entries:
            self.cancel(handle)
        self.closed = True

    async def advance(self, seconds: float) -> None:
        self.now += seconds
        for deadline, handle, on_fire in list(self.entries):
            if deadline <= self.now and handle.pending:
                handle.fired = True
                await on_fire()


def success_response(**visitor) -> CheckInResponse:
    return CheckInResponse.model_validate({"success": True, "data": visitor})


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, service_base_url=BASE_URL)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()

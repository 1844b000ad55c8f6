"""Wire models for the check-in service REST API."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CheckInRequest(BaseModel):
    """Body of `POST /api/visitors/checkin`."""

    phone: str = Field(..., description="Phone number in E.164 format")


class VisitorInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    user_name: Optional[str] = Field(None, alias="userName")
    is_member: bool = Field(False, alias="isMember")
    is_new_visitor: bool = Field(False, alias="isNewVisitor")

    @field_validator("is_member", "is_new_visitor", mode="before")
    @classmethod
    def _null_as_false(cls, value: object) -> object:
        if value is None:
            return False
        return value


class CheckInResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool = False
    data: Optional[VisitorInfo] = None
    message: Optional[str] = None


class PageSetting(BaseModel):
    model_config = ConfigDict(extra="ignore")

    image: Optional[str] = None


class PageSettingResponse(BaseModel):
    """Body of `GET /api/pagesetting`; only the image of each entry is read."""

    model_config = ConfigDict(extra="ignore")

    success: bool = False
    data: List[PageSetting] = Field(default_factory=list)

    @field_validator("data", mode="before")
    @classmethod
    def _null_as_empty(cls, value: object) -> object:
        if value is None:
            return []
        return value


__all__ = [
    "CheckInRequest",
    "CheckInResponse",
    "PageSetting",
    "PageSettingResponse",
    "VisitorInfo",
]

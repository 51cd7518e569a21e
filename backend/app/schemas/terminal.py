"""Schemas for terminal inventory endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..db_types import normalize_ip_address
from ..models.terminal import TerminalSite, TerminalStatus
from ..models.user import UserRole
from .common import PaginatedResponse


def _clean_ip(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return normalize_ip_address(value)
    except ValueError as exc:
        raise ValueError("ip_address must be a valid IPv4 or IPv6 address") from exc


class TerminalBase(BaseModel):
    unit_id: str = Field(..., min_length=1, max_length=64)
    type: str = Field(..., min_length=1, max_length=64, description="Terminal type, e.g. ATM")
    terminal_id: str = Field(..., min_length=1, max_length=64)
    terminal_name: Optional[str] = Field(default=None, max_length=255)
    branch_name: str = Field(..., min_length=1, max_length=255)
    district: str = Field(..., min_length=1, max_length=255)
    site: TerminalSite
    cbs_account: str = Field(..., min_length=1, max_length=64)
    port: int = Field(..., ge=0, description="Port number the terminal is attached to")
    ip_address: str = Field(..., description="Terminal IP address")

    @field_validator("unit_id", "type", "terminal_id", "branch_name", "district", "cbs_account")
    @classmethod
    def _strip_strings(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("terminal_name")
    @classmethod
    def _strip_optional(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None

    @field_validator("ip_address")
    @classmethod
    def _normalize_ip(cls, value: str) -> str:
        return _clean_ip(value)


class TerminalCreate(TerminalBase):
    pass


class TerminalUpdate(BaseModel):
    unit_id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    type: Optional[str] = Field(default=None, min_length=1, max_length=64)
    terminal_id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    terminal_name: Optional[str] = Field(default=None, max_length=255)
    branch_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    district: Optional[str] = Field(default=None, min_length=1, max_length=255)
    site: Optional[TerminalSite] = None
    cbs_account: Optional[str] = Field(default=None, min_length=1, max_length=64)
    port: Optional[int] = Field(default=None, ge=0)
    ip_address: Optional[str] = None
    status: Optional[TerminalStatus] = None

    @field_validator("unit_id", "type", "terminal_id", "branch_name", "district", "cbs_account")
    @classmethod
    def _strip_updatable(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("ip_address")
    @classmethod
    def _normalize_ip(cls, value: Optional[str]) -> Optional[str]:
        return _clean_ip(value)

    @field_validator("status")
    @classmethod
    def _reject_deleted(cls, value: Optional[TerminalStatus]) -> Optional[TerminalStatus]:
        if value is TerminalStatus.DELETED:
            raise ValueError("terminals are deleted through the DELETE endpoint")
        return value


class TerminalRead(TerminalBase):
    id: str
    status: TerminalStatus
    is_deleted: bool
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TerminalListResponse(PaginatedResponse[TerminalRead]):
    role: Optional[UserRole] = None


class TerminalMutationResponse(BaseModel):
    status: str = "success"
    message: str
    terminal: TerminalRead


class TerminalTypeCount(BaseModel):
    type: str
    count: int


class TerminalCountsResponse(BaseModel):
    status: str = "true"
    terminals_count: list[TerminalTypeCount]


class TerminalSiteCount(BaseModel):
    type: str
    onsite: int
    offsite: int
    total: int


class TerminalSiteCountsResponse(BaseModel):
    data: list[TerminalSiteCount]

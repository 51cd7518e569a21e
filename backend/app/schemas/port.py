from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import PaginatedResponse


class PortBase(BaseModel):
    port_number: int = Field(..., ge=0, description="Unique port number terminals refer to")
    port_capacity: int = Field(..., ge=0, description="How many terminals may share the port")
    description: Optional[str] = Field(default=None, max_length=255)


class PortCreate(PortBase):
    pass


class PortUpdate(BaseModel):
    port_capacity: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, max_length=255)


class PortRead(PortBase):
    id: int
    used_ports: int
    available: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PortListResponse(PaginatedResponse[PortRead]):
    pass

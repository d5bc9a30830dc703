from typing import Any, Literal, Optional

from pydantic import Field

from .common import CamelModel


ServiceStatus = Literal["active", "inactive", "pending"]


class ServiceCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1)
    status: ServiceStatus = "pending"
    company: Any = None


class ServiceUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    status: Optional[ServiceStatus] = None

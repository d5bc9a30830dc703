from typing import Optional

from pydantic import EmailStr, Field

from .common import CamelModel


class CompanyCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    postcode: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: EmailStr
    description: Optional[str] = None
    room_count: Optional[int] = Field(default=None, ge=0)


class CompanyUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    address: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    description: Optional[str] = None
    room_count: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None

from datetime import date
from typing import Any, Optional

from pydantic import EmailStr, Field, field_validator

from .common import CamelModel


class EmployeeCreate(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=1)
    role: str = Field(min_length=1)
    department: str = Field(min_length=1)
    start_date: date
    company: Any = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class EmployeeUpdate(CamelModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None
    start_date: Optional[date] = None
    is_active: Optional[bool] = None
    company: Any = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

from typing import Any, Optional

from pydantic import EmailStr, Field, field_validator

from .common import CamelModel


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    role: Optional[str] = None  # only honored when an admin registers the account
    company: Any = None

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        if v is not None and v not in ("admin", "manager", "staff"):
            raise ValueError("Role must be admin, manager or staff")
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class OtpRequest(CamelModel):
    email: EmailStr


class OtpVerify(CamelModel):
    email: EmailStr
    otp: str = Field(min_length=4, max_length=12)

    @field_validator("otp")
    @classmethod
    def digits_only(cls, v: str) -> str:
        v = v.strip()
        if not v.isdigit():
            raise ValueError("OTP must contain digits only")
        return v

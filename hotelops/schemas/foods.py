from typing import Any, Literal, Optional

from pydantic import Field, field_validator

from .common import CamelModel, blank_to_none


FoodCategory = Literal["breakfast", "lunch", "dinner", "snack", "beverage", "dessert", "other"]


def check_image_url(v: Optional[str]) -> Optional[str]:
    v = blank_to_none(v)
    if v is None:
        return v
    if v.startswith("data:image/") or v.startswith("http://") or v.startswith("https://"):
        return v
    raise ValueError("Image URL must be an http(s) URL or a data:image/ URL")


class FoodCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    category: FoodCategory
    image_url: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    is_available: bool = True
    company: Any = None

    @field_validator("image_url")
    @classmethod
    def valid_image(cls, v):
        return check_image_url(v)


class FoodUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[FoodCategory] = None
    image_url: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    is_available: Optional[bool] = None

    @field_validator("image_url")
    @classmethod
    def valid_image(cls, v):
        return check_image_url(v)

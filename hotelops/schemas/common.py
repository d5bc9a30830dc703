from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request body accepting either snake_case or camelCase keys."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


def blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v

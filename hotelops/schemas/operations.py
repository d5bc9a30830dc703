"""
Operation payloads, one model per operation type.

All variants share the base fields (company, references, room number, status);
`type` selects the variant and with it the fields that are required. Storage is a
single table, so `model_dump()` of any variant maps straight onto Operation
columns once the reference fields are resolved.
"""
import datetime as dt
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field, TypeAdapter, field_validator

from .common import CamelModel


OperationStatus = Literal["pending", "in-progress", "completed", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]
MealType = Literal["breakfast", "lunch", "dinner"]

REFERENCE_FIELDS = ("company", "employee", "service", "assigned_by", "food")


class OperationBase(CamelModel):
    company: Any = None
    employee: Any = None
    service: Any = None
    assigned_by: Any = None
    room_number: str = Field(min_length=1, max_length=32)
    description: Optional[str] = None
    status: OperationStatus = "pending"

    @field_validator("room_number", mode="before")
    @classmethod
    def room_as_text(cls, v):
        # mobile clients send room numbers as integers
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, str):
            return v.strip()
        return v

    def column_values(self) -> dict:
        return self.model_dump(exclude=set(REFERENCE_FIELDS))


class CheckIn(OperationBase):
    type: Literal["check-in"]
    guest_name: str = Field(min_length=1, max_length=255)
    number_of_people: int = Field(ge=1)
    check_in_date: Optional[dt.datetime] = None


class CheckOut(OperationBase):
    type: Literal["check-out"]
    guest_name: str = Field(min_length=1, max_length=255)
    number_of_people: int = Field(ge=1)
    check_out_date: Optional[dt.datetime] = None


class ServiceRequest(OperationBase):
    type: Literal["service-request"]
    assigned_to_department: str = Field(min_length=1, max_length=120)
    priority: Priority = "medium"


class Maintenance(OperationBase):
    type: Literal["maintenance"]
    assigned_to_department: str = Field(min_length=1, max_length=120)
    priority: Priority = "medium"


class WelfareCheck(OperationBase):
    type: Literal["welfare-check"]
    guest_name: Optional[str] = None
    notes: Optional[str] = None


class MealMarker(OperationBase):
    type: Literal["meal-marker"]
    meal_type: MealType
    guest_name: Optional[str] = None
    number_of_people: Optional[int] = Field(default=None, ge=1)


class FoodImage(OperationBase):
    type: Literal["food-image"]
    image_url: str = Field(min_length=1)
    food: Any = None

    @field_validator("image_url")
    @classmethod
    def valid_image(cls, v: str) -> str:
        if v.startswith("data:image/") or v.startswith("http://") or v.startswith("https://"):
            return v
        raise ValueError("Image URL must be an http(s) URL or a data:image/ URL")


class FoodFeedback(OperationBase):
    type: Literal["food-feedback"]
    rating: int = Field(ge=1, le=5)
    feedback: Optional[str] = None
    food: Any = None


class OtherOperation(OperationBase):
    type: Literal["other"]
    description: str = Field(min_length=1)


OperationCreate = Annotated[
    Union[
        CheckIn,
        CheckOut,
        ServiceRequest,
        Maintenance,
        WelfareCheck,
        MealMarker,
        FoodImage,
        FoodFeedback,
        OtherOperation,
    ],
    Field(discriminator="type"),
]

operation_adapter = TypeAdapter(OperationCreate)

OPERATION_TYPES = (
    "check-in",
    "check-out",
    "service-request",
    "maintenance",
    "welfare-check",
    "meal-marker",
    "food-image",
    "food-feedback",
    "other",
)


class OperationUpdate(CamelModel):
    """Partial update; the operation type itself cannot change."""

    employee: Any = None
    service: Any = None
    assigned_by: Any = None
    food: Any = None
    room_number: Optional[str] = None
    description: Optional[str] = None
    status: Optional[OperationStatus] = None
    guest_name: Optional[str] = None
    number_of_people: Optional[int] = None
    check_in_date: Optional[dt.datetime] = None
    check_out_date: Optional[dt.datetime] = None
    assigned_to_department: Optional[str] = None
    priority: Optional[Priority] = None
    notes: Optional[str] = None
    meal_type: Optional[MealType] = None
    image_url: Optional[str] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None

    @field_validator("room_number", mode="before")
    @classmethod
    def room_as_text(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

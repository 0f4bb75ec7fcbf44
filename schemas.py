"""
Request schemas for the Condominium Manager

Each create model describes one MongoDB collection (collection name is the
lowercased record name: building, apartmentowner, payment). Update models
make every field optional; only the fields a caller actually supplied are
applied, and the merged record is validated again with the create model.

All field rules are enforced here, before anything reaches the database.
Uniqueness is checked by the service layer.
"""
import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, Optional, Type, TypeVar

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from errors import ValidationError

MONTH_PATTERN = r"^[0-9]{4}-[0-9]{2}$"


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    overdue = "overdue"


class RecordModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid", use_enum_values=True, validate_default=True)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _check_object_id(value: Optional[str]) -> Optional[str]:
    if value is not None and not ObjectId.is_valid(value):
        raise ValueError("must be a valid id")
    return value


def _lowercase(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _check_month(value: Any) -> Any:
    # runs before whitespace stripping; " 2024-01" is not a month key
    if isinstance(value, str) and not re.fullmatch(MONTH_PATTERN, value):
        raise ValueError(f"'{value}' is not in YYYY-MM format")
    return value


LowercaseEmail = Annotated[EmailStr, BeforeValidator(_lowercase)]
ObjectIdStr = Annotated[str, AfterValidator(_check_object_id)]
OptionalObjectIdStr = Annotated[Optional[str], BeforeValidator(_blank_to_none), AfterValidator(_check_object_id)]
Month = Annotated[str, BeforeValidator(_check_month), Field(pattern=MONTH_PATTERN)]


# -------------------- Buildings --------------------
class BuildingCreate(RecordModel):
    name: str = Field(..., min_length=1, description="Building name, unique")
    address: str = Field(..., min_length=1, description="Street address")
    total_floors: int = Field(..., ge=1, description="Number of floors, at least 1")
    description: Optional[str] = Field(None, description="Free text notes")


class BuildingUpdate(RecordModel):
    name: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = Field(None, min_length=1)
    total_floors: Optional[int] = Field(None, ge=1)
    description: Optional[str] = None


# -------------------- Apartment owners --------------------
class ApartmentOwnerCreate(RecordModel):
    name: str = Field(..., min_length=1, description="Owner full name")
    email: LowercaseEmail = Field(..., description="Contact email, stored lowercased, unique")
    apartment_number: str = Field(..., min_length=1, description="Apartment number, e.g. A101, unique")
    building_id: OptionalObjectIdStr = Field(None, description="Id of the building the apartment is in")
    phone_number: Optional[str] = Field(None, description="Contact number")


class ApartmentOwnerUpdate(RecordModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[LowercaseEmail] = None
    apartment_number: Optional[str] = Field(None, min_length=1)
    building_id: OptionalObjectIdStr = None
    phone_number: Optional[str] = None


# -------------------- Payments --------------------
class PaymentCreate(RecordModel):
    apartment_owner_id: ObjectIdStr = Field(..., description="Id of the paying apartment owner")
    amount: float = Field(..., ge=0, allow_inf_nan=False, description="Amount, never negative")
    month: Month = Field(..., description="Billing month, YYYY-MM")
    description: Optional[str] = None
    status: PaymentStatus = Field(PaymentStatus.pending, description="pending, paid, overdue")
    payment_date: Optional[datetime] = Field(None, description="Defaults to the creation time")


class PaymentUpdate(RecordModel):
    amount: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    month: Optional[Month] = None
    description: Optional[str] = None
    status: Optional[PaymentStatus] = None


M = TypeVar("M", bound=BaseModel)


def validate(model: Type[M], data: Dict[str, Any]) -> M:
    """Validate ``data`` with ``model``, reporting the first bad field by its API name."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = first.get("loc") or ()
        field = to_camel(str(loc[0])) if loc else model.__name__
        raise ValidationError(field, first["msg"]) from e

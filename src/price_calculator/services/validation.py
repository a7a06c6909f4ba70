"""
Input validation for everything a user types before it reaches a store.

Each form has a pydantic model; failures are flattened into a
{field: message} mapping and raised as ValidationFailed.
"""
from typing import Optional, TypeVar

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator, model_validator

from ..errors import ValidationFailed

ModelT = TypeVar("ModelT", bound=BaseModel)


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class CustomerInput(BaseModel):
    """Customer form."""
    name: str = Field(min_length=1, max_length=100)
    address: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = Field(default=None, max_length=20)
    email: Optional[EmailStr] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    _strip_name = field_validator("name", mode="before")(_strip)
    _blank_optional = field_validator("address", "phone", "email", "notes", mode="before")(_blank_to_none)

    @field_validator("email")
    @classmethod
    def _email_length(cls, value):
        if value is not None and len(value) > 100:
            raise ValueError("Email maksimal 100 karakter")
        return value


class TierInput(BaseModel):
    """Customer pricing tier form."""
    tier_name: str = Field(min_length=1, max_length=50)
    discount_percentage: float = Field(ge=0, le=100)
    description: Optional[str] = Field(default=None, max_length=200)

    _strip_name = field_validator("tier_name", mode="before")(_strip)
    _blank_optional = field_validator("description", mode="before")(_blank_to_none)


class ProductInput(BaseModel):
    """Product form."""
    name: str = Field(min_length=1, max_length=100)
    category: str = Field(default="", max_length=50)
    base_price: float = Field(ge=0)
    unit: str = Field(min_length=1, max_length=20)

    _strip_text = field_validator("name", "category", "unit", mode="before")(_strip)


class HistoryEditInput(BaseModel):
    """Direct edit of a saved price (final price and margin)."""
    final_price: float = Field(ge=0)
    margin_amount: float = Field(ge=0)
    margin_type: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=1000)

    _blank_optional = field_validator("margin_type", "notes", mode="before")(_blank_to_none)

    @model_validator(mode="after")
    def _net_not_negative(self):
        if self.final_price - self.margin_amount < 0:
            raise ValueError("Harga nett tidak boleh negatif (margin melebihi harga final)")
        return self

    @property
    def net_price(self) -> float:
        return self.final_price - self.margin_amount


def validation_errors(error: ValidationError) -> dict[str, str]:
    """Flatten pydantic errors to the first message per field."""
    errors: dict[str, str] = {}
    for item in error.errors():
        field = str(item["loc"][0]) if item.get("loc") else "__all__"
        message = item.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(field, message)
    return errors


def validate_input(model: type[ModelT], data: dict) -> ModelT:
    """Validate form data, raising ValidationFailed with per-field messages."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(validation_errors(e)) from e

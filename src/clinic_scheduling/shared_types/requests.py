"""
Input schemas for booking and rescheduling.

Caller layers pass raw values (strings from a form or JSON body, or already
parsed date/time objects); these pydantic models normalise them and turn
malformed input into the engine's ValidationError.
"""

from datetime import date, time
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from clinic_scheduling.core.exceptions import ValidationError
from clinic_scheduling.utils.datetime_utils import coerce_date, coerce_time

RequestT = TypeVar("RequestT", bound=BaseModel)


class BookingRequest(BaseModel):
    """Schema for a new appointment."""
    model_config = ConfigDict(str_strip_whitespace=True)

    patient_id: str = Field(min_length=1)
    doctor_id: str = Field(min_length=1)
    specialty_id: str = Field(min_length=1)
    appointment_date: date
    appointment_time: time
    reason: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('appointment_date', mode='before')
    @classmethod
    def parse_appointment_date(cls, value: Any) -> date:
        return coerce_date(value)

    @field_validator('appointment_time', mode='before')
    @classmethod
    def parse_appointment_time(cls, value: Any) -> time:
        return coerce_time(value)


class RescheduleRequest(BaseModel):
    """Schema for moving an appointment to a new date and time."""
    model_config = ConfigDict(str_strip_whitespace=True)

    new_date: date
    new_time: time
    reason: Optional[str] = None

    @field_validator('new_date', mode='before')
    @classmethod
    def parse_new_date(cls, value: Any) -> date:
        return coerce_date(value)

    @field_validator('new_time', mode='before')
    @classmethod
    def parse_new_time(cls, value: Any) -> time:
        return coerce_time(value)


def parse_request(model_cls: Type[RequestT], **data: Any) -> RequestT:
    """
    Build a request model, converting pydantic errors into ValidationError.

    Args:
        model_cls: Request schema class
        **data: Raw field values

    Returns:
        Validated request model

    Raises:
        ValidationError: If any field is missing or malformed
    """
    try:
        return model_cls(**data)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
        raise ValidationError(f"Invalid input ({summary})", errors=errors) from e

"""Input schemas for signup, login and the injection demo."""
from __future__ import annotations

from typing import Annotated, Any, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, TypeAdapter, ValidationError

from web.errors import ValidationFailed

MAX_LENGTH = 20

M = TypeVar("M", bound=BaseModel)


class SignupForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=1, max_length=MAX_LENGTH, pattern=r"^[A-Za-z0-9]+$")
    email: EmailStr
    password: str = Field(min_length=1, max_length=MAX_LENGTH)


class LoginForm(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=MAX_LENGTH)


# Shape-only check for the injection demo: any string up to 20 chars passes.
LookupName = Annotated[str, StringConstraints(strict=True, min_length=1, max_length=MAX_LENGTH)]
lookup_name = TypeAdapter(LookupName)


def _describe(error: dict, default_field: str = "value") -> str:
    """Human-readable message for one pydantic error."""
    loc = error.get("loc") or ()
    field = str(loc[0]) if loc else default_field
    ctx = error.get("ctx") or {}
    kind = error.get("type", "")
    if kind == "missing":
        return f'"{field}" is required'
    if kind == "string_too_short":
        return f'"{field}" is not allowed to be empty'
    if kind == "string_too_long":
        return f'"{field}" length must be less than or equal to {ctx.get("max_length", MAX_LENGTH)} characters long'
    if kind == "string_pattern_mismatch":
        return f'"{field}" must only contain alpha-numeric characters'
    if kind == "string_type":
        return f'"{field}" must be a string'
    if kind == "extra_forbidden":
        return f'"{field}" is not allowed'
    if field == "email":
        return '"email" must be a valid email'
    return f'"{field}" {error.get("msg", "is invalid")}'


def first_error_message(exc: ValidationError, default_field: str = "value") -> str:
    errors = exc.errors()
    if not errors:
        return f'"{default_field}" is invalid'
    return _describe(errors[0], default_field)


def validate_form(model: type[M], data: Mapping[str, Any]) -> M:
    """Validate form data against model, raising ValidationFailed with the first violation."""
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        raise ValidationFailed(first_error_message(e)) from e


def validate_lookup(value: Any) -> str:
    """Shape-check an injection-demo lookup value."""
    try:
        return lookup_name.validate_python(value)
    except ValidationError as e:
        raise ValidationFailed(first_error_message(e, default_field="user")) from e

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
CONTENT_MIN_LENGTH = 10
CONTENT_MAX_LENGTH = 5000
SUBJECT_MAX_LENGTH = 200

NAME_PUNCTUATION = frozenset("-'.")
NAME_PATTERN_MESSAGE = (
    "Name can only contain letters, spaces, hyphens, apostrophes, and periods"
)
NOT_AN_OBJECT_MESSAGE = "Request body must be a JSON object"

_NAME_LENGTH_ERRORS = frozenset({"string_too_short", "string_too_long"})


def has_invalid_name_characters(value: str) -> bool:
    return not all(ch.isalpha() or ch.isspace() or ch in NAME_PUNCTUATION for ch in value)


class ContactMessage(BaseModel):
    """A contact submission that passed every field rule."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    name: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    email: EmailStr
    content: str = Field(..., min_length=CONTENT_MIN_LENGTH, max_length=CONTENT_MAX_LENGTH)
    subject: Optional[str] = Field(default=None, max_length=SUBJECT_MAX_LENGTH)

    @field_validator("name")
    @classmethod
    def validate_name_characters(cls, v: str) -> str:
        if has_invalid_name_characters(v):
            raise PydanticCustomError("name_pattern", NAME_PATTERN_MESSAGE)
        return v


# (field, pydantic error type) -> client-facing message
_MESSAGES: Dict[Tuple[str, str], str] = {
    ("name", "missing"): "Name is required",
    ("name", "string_type"): "Name must be a string",
    ("name", "string_too_short"): f"Name must be at least {NAME_MIN_LENGTH} characters long",
    ("name", "string_too_long"): f"Name cannot exceed {NAME_MAX_LENGTH} characters",
    ("name", "name_pattern"): NAME_PATTERN_MESSAGE,
    ("email", "missing"): "Email is required",
    ("email", "string_type"): "Email must be a string",
    ("email", "value_error"): "Please provide a valid email address",
    ("content", "missing"): "Message content is required",
    ("content", "string_type"): "Message content must be a string",
    ("content", "string_too_short"): (
        f"Message must be at least {CONTENT_MIN_LENGTH} characters long"
    ),
    ("content", "string_too_long"): f"Message cannot exceed {CONTENT_MAX_LENGTH} characters",
    ("subject", "string_type"): "Subject must be a string",
    ("subject", "string_too_long"): f"Subject cannot exceed {SUBJECT_MAX_LENGTH} characters",
}


@dataclass(frozen=True)
class Accepted:
    message: ContactMessage


@dataclass(frozen=True)
class Rejected:
    reasons: Tuple[str, ...]

    @property
    def summary(self) -> str:
        return ", ".join(self.reasons)


ValidationOutcome = Union[Accepted, Rejected]


def _describe(error: Dict[str, Any]) -> str:
    field = str(error["loc"][0]) if error["loc"] else ""
    message = _MESSAGES.get((field, error["type"]))
    if message is not None:
        return message
    if field:
        return f"{field.capitalize()} is invalid: {error['msg']}"
    return error["msg"]


def validate_contact_form(raw: Any) -> ValidationOutcome:
    """
    Check an untrusted payload against the contact form rules.

    Every failing field is reported, in declaration order (name, email,
    content, subject). Unknown keys are dropped. An omitted subject stays
    None; the default is applied when the email is composed.
    """
    if not isinstance(raw, dict):
        return Rejected(reasons=(NOT_AN_OBJECT_MESSAGE,))

    try:
        return Accepted(message=ContactMessage.model_validate(raw))
    except ValidationError as exc:
        errors = exc.errors()
        reasons = [_describe(error) for error in errors]

        # A failed length check stops pydantic before the character check runs.
        name_errors = [i for i, error in enumerate(errors) if error["loc"][:1] == ("name",)]
        name = raw.get("name")
        if (
            name_errors
            and errors[name_errors[-1]]["type"] in _NAME_LENGTH_ERRORS
            and isinstance(name, str)
            and has_invalid_name_characters(name.strip())
        ):
            reasons.insert(name_errors[-1] + 1, NAME_PATTERN_MESSAGE)

        return Rejected(reasons=tuple(reasons))


class ContactResponse(BaseModel):
    success: bool = True
    message: str
    message_id: Optional[str] = Field(default=None, serialization_alias="messageId")


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: Optional[str] = None

"""Request schemas for credentials.

Validation is all-or-nothing from the caller's point of view: the gateway only
reports that validation failed, never which field.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, ValidationError


class LoginCredentials(BaseModel):
    """Fields shared by login and registration.

    `username` is accepted (so a register-shaped body can be replayed against
    login) but not required here.
    """

    email: EmailStr
    password: str = Field(min_length=1)
    username: Optional[str] = Field(default=None, pattern=r"\S")


class RegisterCredentials(LoginCredentials):
    username: str = Field(pattern=r"\S")


def parse_credentials(model: type[LoginCredentials], payload: Any) -> Optional[LoginCredentials]:
    """Validate a raw JSON body, returning None when it does not fit the schema."""
    if not isinstance(payload, dict):
        return None
    try:
        return model.model_validate(payload)
    except ValidationError:
        return None

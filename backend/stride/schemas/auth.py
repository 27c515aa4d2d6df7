"""Request and response bodies for sign-up, sign-in and sign-out."""

import re
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field

PASSWORD_RULES = (
    (re.compile(r"[a-z]"), "lowercase letter"),
    (re.compile(r"[A-Z]"), "uppercase letter"),
    (re.compile(r"\d"), "number"),
)


def _check_strength(password: str) -> str:
    missing = [label for pattern, label in PASSWORD_RULES if not pattern.search(password)]
    if missing:
        raise ValueError(f"Password must contain at least one: {', '.join(missing)}")
    return password


StrongPassword = Annotated[str, Field(min_length=8, max_length=100), AfterValidator(_check_strength)]


class UserRegister(BaseModel):
    email: EmailStr
    password: StrongPassword


class UserLogin(BaseModel):
    """Credentials plus an optional client-supplied device identifier."""

    email: str
    password: str
    device_id: str | None = Field(None, max_length=255)


class UserInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    two_factor_enabled: bool = False


class TokenResponse(BaseModel):
    """Issued once a sign-in is complete; session_id is the token's ``sid``."""

    access_token: str
    token_type: str = "bearer"
    session_id: str
    user: UserInfo


class MessageResponse(BaseModel):
    message: str

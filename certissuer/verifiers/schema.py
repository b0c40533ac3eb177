"""Verifier request schemas."""

from pydantic import BaseModel, EmailStr, Field


class SignupRequest(BaseModel):
    """New verifier account."""

    first_name: str = Field(..., alias="firstName", min_length=2, max_length=10)
    last_name: str = Field(..., alias="lastName", min_length=2, max_length=10)
    email: EmailStr = Field(..., description="Login email, stored lowercase")
    # bcrypt only looks at the first 72 bytes
    password: str = Field(..., min_length=8, max_length=72)

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}


class SigninRequest(BaseModel):
    """Verifier credentials."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class VerificationRequest(BaseModel):
    """A verification event referencing a stored file."""

    name: str = Field(..., min_length=1)
    email: EmailStr
    cid: str = Field(..., min_length=1, description="Content identifier of the verified file")

    model_config = {"str_strip_whitespace": True}

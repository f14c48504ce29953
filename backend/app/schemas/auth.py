"""Auth schemas."""
from pydantic import BaseModel, Field

from app.schemas.base import CamelModel


class SendCodeRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class VerifyCodeRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    code: str = Field(..., pattern=r"^\d{6}$")


class AccountResponse(CamelModel):
    id: str
    email: str
    name: str | None = None
    is_admin: bool = False


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    account: AccountResponse

from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    display_name: Optional[str] = Field(None, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class GoogleSignInRequest(BaseModel):
    """ID token obtained by the client from Google Sign-In."""
    id_token: str


class TokenResponse(BaseModel):
    """
    Response on successful sign-in.
    """
    access_token: str
    token_type: Literal["bearer"]
    user_id: str
    has_profile: bool
    expires_in_ms: int


class SessionRead(BaseModel):
    state: str
    user_id: Optional[str] = None

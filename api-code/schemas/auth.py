from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(..., description="Operator username.")
    password: str = Field(..., description="Operator password.")


class LoginResponse(BaseModel):
    username: str = Field(..., description="Authenticated operator.")
    access_token: str = Field(..., description="Bearer token, also set as a cookie.")
    expires_at: datetime = Field(..., description="Token expiry.")


class LogoutResponse(BaseModel):
    success: bool = Field(..., description="True when the cookie is cleared.")


class MeResponse(BaseModel):
    username: str = Field(..., description="Operator extracted from the token.")

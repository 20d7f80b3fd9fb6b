from __future__ import annotations

import hmac
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

import jwt
from fastapi import Cookie, Header, HTTPException, Response, status

from settings import Settings


class AuthService:
    """Operator authentication guarding deploy and rollback endpoints.

    Tokens are HS256 JWTs accepted from the auth cookie or an
    ``Authorization: Bearer`` header, so both the browser and a CI job
    (the approval step of a pipeline) can call the API.
    """

    algorithm = "HS256"

    def __init__(self, settings: Settings):
        self.login_user = settings.login_user
        self.login_password = settings.login_password
        self.jwt_secret_key = settings.jwt_secret_key
        self.jwt_expire_minutes = int(settings.jwt_expire_minutes or 60)
        self.cookie_name = settings.auth_cookie_name
        self.cookie_secure = bool(settings.auth_cookie_secure)

        if not self.jwt_secret_key or self.jwt_secret_key == "change-me":
            raise RuntimeError("JWT_SECRET_KEY must be configured with a non-default value.")

    def verify_credentials(self, username: str, password: str) -> bool:
        user_ok = hmac.compare_digest(username.encode(), self.login_user.encode())
        password_ok = hmac.compare_digest(password.encode(), self.login_password.encode())
        return user_ok and password_ok

    def create_access_token(self, subject: str) -> Tuple[str, datetime]:
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(minutes=self.jwt_expire_minutes)
        payload = {
            "sub": subject,
            "role": "operator",
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self.jwt_secret_key, algorithm=self.algorithm)
        return token, expires_at

    def set_auth_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            httponly=True,
            secure=self.cookie_secure,
            samesite="lax",
            max_age=self.jwt_expire_minutes * 60,
            path="/",
        )

    def clear_auth_cookie(self, response: Response) -> None:
        response.delete_cookie(key=self.cookie_name, path="/")

    def require_operator(self, token: Optional[str]) -> Dict[str, str]:
        if not token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication token missing.",
            )
        try:
            payload = jwt.decode(token, self.jwt_secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication token expired.",
            ) from exc
        except jwt.InvalidTokenError as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication token.",
            ) from exc

        subject = payload.get("sub")
        if subject != self.login_user or payload.get("role") != "operator":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Token does not grant operator access.",
            )
        return {"username": subject}

    @staticmethod
    def _bearer_token(authorization: Optional[str]) -> Optional[str]:
        if not authorization:
            return None
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() != "bearer" or not credentials.strip():
            return None
        return credentials.strip()

    def build_auth_dependency(self):
        async def dependency(
            auth_token: Optional[str] = Cookie(default=None, alias=self.cookie_name),
            authorization: Optional[str] = Header(default=None),
        ) -> Dict[str, str]:
            return self.require_operator(self._bearer_token(authorization) or auth_token)

        return dependency

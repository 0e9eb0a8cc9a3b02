from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from filegate.core.config import get_settings


class TokenError(Exception):
    """Raised when token validation fails."""


def create_access_token(
    subject: str | int,
    role: str,
    expires_delta: timedelta | None = None,
    login: str | None = None,
) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    to_encode: dict[str, Any] = {"sub": str(subject), "role": role, "exp": expire}
    if login:
        to_encode["login"] = login
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        raise TokenError("Invalid token") from exc

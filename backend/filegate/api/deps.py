from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from filegate.core.config import get_settings
from filegate.core.security import TokenError, decode_access_token
from filegate.schemas import Identity
from filegate.services.files import FileService

bearer_scheme = HTTPBearer(auto_error=False)


def get_file_service(request: Request) -> FileService:
    return request.app.state.file_service


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_access_token(credentials.credentials)
    except TokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    subject_id = payload.get("sub")
    role = payload.get("role")
    if not subject_id or not role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Identity(subject_id=str(subject_id), role=str(role), login=payload.get("login"))


def require_delete_role() -> Callable[..., Awaitable[Identity]]:
    async def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in get_settings().delete_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return identity

    return dependency

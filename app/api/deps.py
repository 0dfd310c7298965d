from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.core.db import get_session
from app.core.security import decode_access_token
from app.services.assistant_service import ChatCompletionsAssistant, TextGenerator

security = HTTPBearer(auto_error=False)

__all__ = ["get_assistant", "get_current_owner_id", "get_session"]


async def get_current_owner_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> int:
    """Owning business account from the bearer token issued by the identity layer."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    owner_id = decode_access_token(credentials.credentials)
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return int(owner_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_assistant() -> TextGenerator:
    return ChatCompletionsAssistant.from_settings(settings)

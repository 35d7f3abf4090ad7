from typing import Optional

from fastapi import HTTPException, Request, status

from billing_api.core.config import settings


async def get_actor_id(request: Request) -> str:
    """Acting user id, as established by the upstream auth layer.

    The engine does not authenticate; it only records who triggered a write.
    """
    actor_id: Optional[str] = request.headers.get(settings.ACTOR_HEADER)
    if not actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {settings.ACTOR_HEADER} header"
        )
    return actor_id

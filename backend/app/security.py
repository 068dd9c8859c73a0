from fastapi import Depends, HTTPException, Request, status

from . import config

_PREFIX = "Bearer "


async def require_user_id(request: Request) -> str:
    """
    Resolve the caller's user id from ``Authorization: Bearer <token>``.

    Tokens map to user ids through BUDGETSPACE_API_TOKENS. Every route is
    scoped by the returned id, so an unknown or missing token is a 401 and
    never falls back to a shared user.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_PREFIX):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHENTICATED", "message": "Missing bearer token."},
        )
    user_id = config.API_TOKENS.get(auth_header[len(_PREFIX):].strip())
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHENTICATED", "message": "Invalid API token."},
        )
    return user_id


CurrentUser = Depends(require_user_id)

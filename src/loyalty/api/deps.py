"""Request dependencies shared by the routers."""

from fastapi import Depends, HTTPException, Request, status

from ..core.config import get_settings


def get_current_user_id(request: Request) -> str:
    """Return the user id asserted by the upstream identity middleware."""

    header = get_settings().user_id_header
    user_id = (request.headers.get(header) or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Missing {header} header")
    return user_id


def require_admin(request: Request, user_id: str = Depends(get_current_user_id)) -> str:
    """Allow only callers the identity middleware marked with the admin role."""

    settings = get_settings()
    role = (request.headers.get(settings.user_role_header) or "").strip()
    if not role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {settings.user_role_header} header",
        )
    if role.lower() != settings.admin_role.lower():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return user_id

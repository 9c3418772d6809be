from typing import Dict

from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole

_CRUD = {"create": True, "read": True, "update": True, "delete": True}
_READ = {"read": True}

# Static role -> module -> action map. ADMIN bypasses the check entirely.
ROLE_PERMISSIONS: Dict[str, Dict[str, Dict[str, bool]]] = {
    UserRole.TEACHER.value: {
        "students": {"create": True, "read": True, "update": True},
        "promotions": {"create": True},
        "sections": _READ,
        "departments": _READ,
        "staff": _READ,
        "marks": {"create": True, "read": True, "update": True},
    },
    UserRole.INCHARGE.value: {
        "students": {"read": True, "update": True},
        "promotions": {"create": True},
        "sections": {"read": True, "update": True},
        "departments": _READ,
        "staff": _READ,
        "marks": _CRUD,
    },
}


def permissions_for_role(role: str) -> Dict[str, Dict[str, bool]]:
    return ROLE_PERMISSIONS.get(role, {})


def has_permission(user: CurrentUser, module: str, action: str) -> bool:
    if user.role == UserRole.ADMIN.value:
        return True
    return bool((user.permissions or {}).get(module, {}).get(action, False))


def check_permission(module: str, action: str):
    """
    Dependency factory to enforce a specific permission.

    Example:
        Depends(check_permission("sections", "delete"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if not has_permission(current_user, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

    return _checker

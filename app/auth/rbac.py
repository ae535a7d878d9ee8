from typing import Dict

from fastapi import Depends, HTTPException

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.exceptions import PermissionDeniedError

SUPER_ADMIN_ROLES = ("SUPER_ADMIN",)


def check_permission(module: str, action: str):
    """
    Dependency factory to enforce a specific permission.

    Example:
        Depends(check_permission("wash_policies", "create"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if current_user.role in SUPER_ADMIN_ROLES:
            return
        permissions: Dict[str, Dict[str, bool]] = current_user.permissions or {}
        module_perms = permissions.get(module, {})
        if not module_perms.get(action, False):
            e = PermissionDeniedError()
            raise HTTPException(status_code=e.status_code, detail=e.message)

    return _checker

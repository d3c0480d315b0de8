from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import Role


def require_roles(*roles: Role):
    """
    Dependency factory restricting a route to the given roles.

    Example:
        dependencies=[Depends(require_roles(Role.ADMIN, Role.TEACHER))]
    """

    allowed = frozenset(roles)

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


require_admin = require_roles(Role.ADMIN)
require_staff = require_roles(Role.ADMIN, Role.TEACHER)
require_attendance_marker = require_roles(Role.ADMIN, Role.TEACHER, Role.STAROSTA)

# deps/admin.py
from fastapi import Depends, HTTPException, status

from deps.auth import CurrentUser, get_current_user
from services.authz import ACTION_ADMIN_PAYOUTS, authorize


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not authorize(user, ACTION_ADMIN_PAYOUTS, None):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="ADMIN_REQUIRED",
        )
    return user

from fastapi import APIRouter, Depends

from resource_portal.core.auth import get_current_user
from resource_portal.core.roles import is_admin, is_manager
from resource_portal.schemas.user import UserContext

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=UserContext)
async def me(user: UserContext = Depends(get_current_user)):
    return user


@router.get("/me/capabilities", response_model=dict)
async def my_capabilities(user: UserContext = Depends(get_current_user)):
    return {
        "is_admin": is_admin(user.roles),
        "is_manager": is_manager(user.roles),
        "has_employee_record": user.employee_id is not None,
    }

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, EmailStr

from resource_portal.core.roles import Role


class UserContext(BaseModel):
    user_id: str
    email: EmailStr
    roles: List[Role]
    employee_id: Optional[int] = None
    full_name: Optional[str] = None
    department: Optional[str] = None
    manager_id: Optional[int] = None

# rollcall/core/rbac.py
from fastapi import Depends, HTTPException, status
from rollcall.api.deps import get_current_user
from rollcall.models.user import UserRole

ROLE_ADMIN = UserRole.admin.value
ROLE_INSTRUCTOR = UserRole.instructor.value
ROLE_STUDENT = UserRole.student.value

def require_roles(*roles: str):
    allowed = set(roles)
    def dep(user = Depends(get_current_user)):
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user
    return dep

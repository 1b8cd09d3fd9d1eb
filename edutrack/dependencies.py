"""FastAPI dependencies for route handlers."""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from edutrack.database import get_db
from edutrack.exceptions import AuthorizationError
from edutrack.models.classroom import Classroom
from edutrack.models.user import User
from edutrack.services.auth import get_user_by_id


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """Require a valid bearer token for an active user."""
    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        detail = getattr(request.state, "auth_error", None)
        raise HTTPException(
            status_code=401,
            detail=detail or "Access denied. No token provided or invalid format.",
        )
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Token is invalid. User not found.")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account is deactivated.")
    return user


def require_roles(*roles: str):
    """Build a dependency that admits only the given roles."""

    async def _require(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"Access denied. Required role: {' or '.join(roles)}.",
            )
        return user

    return _require


require_teacher = require_roles("teacher")
require_student = require_roles("student")
require_parent = require_roles("parent")


async def get_class_or_404(db: AsyncSession, class_id: int) -> Classroom:
    classroom = await db.get(Classroom, class_id)
    if classroom is None:
        raise HTTPException(status_code=404, detail="Class not found")
    return classroom


async def get_taught_class(
    class_id: int,
    user: User = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> Classroom:
    """Path dependency: the class must be taught by the current teacher."""
    classroom = await get_class_or_404(db, class_id)
    if classroom.teacher_id != user.id:
        raise AuthorizationError("Access denied. Only class teacher can perform this action.")
    return classroom


def can_view_class(user: User, classroom: Classroom) -> bool:
    """Class teacher or an enrolled student."""
    if classroom.teacher_id == user.id:
        return True
    return user.role == "student" and classroom.has_student(user.id)

"""User lookup API routes."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from edutrack.database import get_db
from edutrack.dependencies import get_current_user, require_roles
from edutrack.models.user import ROLES, User
from edutrack.serializers import pagination, user_out

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("")
async def list_users(
    role: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(require_roles("teacher", "parent")),
    db: AsyncSession = Depends(get_db),
):
    """List active users, newest first."""
    if role is not None and role not in ROLES:
        raise HTTPException(status_code=400, detail="Invalid role")

    query = select(User).where(User.is_active == True)  # noqa: E712
    if role:
        query = query.where(User.role == role)

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0
    result = await db.execute(
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return {
        "users": [user_out(u) for u in result.scalars().all()],
        "pagination": pagination(page, limit, total),
    }


@router.get("/me")
async def get_me(user: User = Depends(get_current_user)):
    return {"user": user_out(user)}


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    target = await db.get(User, user_id)
    if target is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user": user_out(target)}

"""Class media API routes - uploads, listing, view tracking."""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from edutrack.database import get_db
from edutrack.dependencies import (
    can_view_class,
    get_class_or_404,
    get_current_user,
    get_taught_class,
    require_student,
    require_teacher,
)
from edutrack.models.classroom import Classroom
from edutrack.models.media import CATEGORIES, MEDIA_TYPES, Media
from edutrack.models.user import User
from edutrack.serializers import media_out, pagination
from edutrack.services.periods import utcnow
from edutrack.services.scoring import average_watch_percentage, record_view
from edutrack.services.storage import UploadStorage, get_upload_storage, media_type_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/media", tags=["media"])


class ViewRequest(BaseModel):
    percentage: float = Field(ge=0, le=100)


class MediaUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    category: str | None = None
    tags: str | None = None
    is_public: bool | None = None


def _split_tags(tags: str | None) -> list[str]:
    if not tags:
        return []
    return [t.strip() for t in tags.split(",") if t.strip()]


async def _media_or_404(db: AsyncSession, media_id: int) -> Media:
    media = await db.get(Media, media_id)
    if media is None:
        raise HTTPException(status_code=404, detail="Media not found")
    return media


async def _require_manager(db: AsyncSession, media: Media, user: User) -> None:
    """Only the uploader or the class teacher may change a media item."""
    if media.uploaded_by == user.id:
        return
    classroom = await db.get(Classroom, media.class_id)
    if classroom is None or classroom.teacher_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied")


@router.post("/upload", status_code=201)
async def upload_media(
    file: UploadFile = File(...),
    title: str = Form(..., min_length=1, max_length=200),
    class_id: int = Form(...),
    description: str | None = Form(None, max_length=1000),
    category: str = Form("general"),
    tags: str | None = Form(None),
    user: User = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
    storage: UploadStorage = Depends(get_upload_storage),
):
    """Store an uploaded file and register it as class media."""
    if category not in CATEGORIES:
        raise HTTPException(status_code=400, detail="Invalid category")

    classroom = await get_class_or_404(db, class_id)
    if classroom.teacher_id != user.id:
        raise HTTPException(
            status_code=403,
            detail="Access denied. Only class teacher can upload media.",
        )

    stored = await storage.save(file)
    try:
        media = Media(
            title=title.strip(),
            description=description,
            file_path=stored.path,
            original_name=stored.original_name,
            mime_type=stored.mime_type,
            file_size=stored.size,
            type=media_type_for(stored.mime_type),
            category=category,
            class_id=classroom.id,
            uploaded_by=user.id,
            views=[],
            tags=_split_tags(tags),
        )
        db.add(media)
        await db.commit()
        await db.refresh(media)
    except Exception:
        logger.exception("Failed to register upload %s, removing file", stored.path)
        await db.rollback()
        storage.delete(stored.path)
        raise

    return {"message": "Media uploaded successfully", "media": media_out(media)}


@router.get("/class/{class_id}")
async def list_class_media(
    class_id: int,
    type: str | None = None,
    category: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if type is not None and type not in MEDIA_TYPES:
        raise HTTPException(status_code=400, detail="Invalid media type")
    if category is not None and category not in CATEGORIES:
        raise HTTPException(status_code=400, detail="Invalid category")

    classroom = await get_class_or_404(db, class_id)
    if not can_view_class(user, classroom):
        raise HTTPException(status_code=403, detail="Access denied")

    query = select(Media).where(Media.class_id == class_id, Media.is_active == True)  # noqa: E712
    if type:
        query = query.where(Media.type == type)
    if category:
        query = query.where(Media.category == category)

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0
    result = await db.execute(
        query.order_by(Media.uploaded_at.desc(), Media.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return {
        "media": [media_out(m) for m in result.scalars().all()],
        "pagination": pagination(page, limit, total),
    }


@router.get("/analytics/{class_id}")
async def media_analytics(
    classroom: Classroom = Depends(get_taught_class),
    db: AsyncSession = Depends(get_db),
):
    """Per-item view statistics for a class's media."""
    result = await db.execute(
        select(Media)
        .where(Media.class_id == classroom.id)
        .order_by(Media.uploaded_at.desc(), Media.id.desc())
    )
    analytics = []
    for media in result.scalars().all():
        views = media.views or []
        analytics.append({
            "id": media.id,
            "title": media.title,
            "type": media.type,
            "category": media.category,
            "upload_date": media.uploaded_at,
            "total_views": len(views),
            "unique_viewers": len({v["student_id"] for v in views}),
            "average_watch_percentage": average_watch_percentage(views),
            "views": views,
        })
    return {"analytics": analytics}


@router.get("/{media_id}")
async def get_media(
    media_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    media = await _media_or_404(db, media_id)
    classroom = await get_class_or_404(db, media.class_id)
    if not can_view_class(user, classroom):
        raise HTTPException(status_code=403, detail="Access denied")
    return {"media": media_out(media)}


@router.post("/{media_id}/view")
async def view_media(
    media_id: int,
    body: ViewRequest,
    user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    media = await _media_or_404(db, media_id)
    classroom = await db.get(Classroom, media.class_id)
    if classroom is None or not classroom.has_student(user.id):
        raise HTTPException(status_code=403, detail="Access denied")

    view = record_view(media, user.id, body.percentage)
    await db.commit()
    return {"message": "View recorded successfully", "view": view}


@router.put("/{media_id}")
async def update_media(
    media_id: int,
    body: MediaUpdateRequest,
    user: User = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
):
    media = await _media_or_404(db, media_id)
    await _require_manager(db, media, user)

    if body.category is not None and body.category not in CATEGORIES:
        raise HTTPException(status_code=400, detail="Invalid category")

    if body.title:
        media.title = body.title.strip()
    if body.description is not None:
        media.description = body.description
    if body.category:
        media.category = body.category
    if body.tags:
        media.tags = _split_tags(body.tags)
    if body.is_public is not None:
        media.is_public = body.is_public
    media.updated_at = utcnow()

    await db.commit()
    await db.refresh(media)
    return {"message": "Media updated successfully", "media": media_out(media)}


@router.delete("/{media_id}")
async def delete_media(
    media_id: int,
    user: User = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
    storage: UploadStorage = Depends(get_upload_storage),
):
    media = await _media_or_404(db, media_id)
    await _require_manager(db, media, user)

    file_path = media.file_path
    await db.delete(media)
    await db.commit()
    storage.delete(file_path)
    logger.info("Deleted media %s", media_id)

    return {"message": "Media deleted successfully"}

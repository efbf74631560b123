import logging
import math
import time
from datetime import date

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from ..blog_content import calculate_read_time, generate_slug, parse_content, parse_tags
from ..db import get_db, transaction
from ..errors import NotFoundError, ValidationError
from ..models import BLOG_STATUSES, Blog, utcnow
from ..rbac import admin_user
from ..uploads import delete_upload, public_image_url, save_blog_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blogs", tags=["blogs"])

REQUIRED_FIELDS = ["title", "excerpt", "author", "date", "category", "content"]


def to_dict(b: Blog) -> dict:
    return {
        "id": b.id,
        "slug": b.slug,
        "title": b.title,
        "excerpt": b.excerpt,
        "author": b.author,
        "date": b.date,
        "read_time": b.read_time,
        "image": b.image,
        "category": b.category,
        "tags": b.tags or [],
        "content": b.content or [],
        "status": b.status,
        "created_at": b.created_at,
        "updated_at": b.updated_at,
    }


def to_public(b: Blog, request: Request) -> dict:
    return {
        "id": str(b.id),
        "slug": b.slug,
        "title": b.title,
        "excerpt": b.excerpt,
        "author": b.author,
        "date": b.date,
        "readTime": b.read_time,
        "image": public_image_url(request.app.state.settings, b.image),
        "category": b.category,
        "tags": b.tags or [],
        "content": b.content or [],
    }


def _filters(search: str | None, category: str | None) -> list:
    conditions = []
    if search:
        pattern = f"%{search}%"
        conditions.append(Blog.title.ilike(pattern) | Blog.excerpt.ilike(pattern))
    if category and category != "all":
        conditions.append(Blog.category == category)
    return conditions


def _pagination(total: int, page: int, limit: int) -> dict:
    return {"total": total, "page": page, "limit": limit, "totalPages": math.ceil(total / limit)}


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ValidationError("Invalid date", detail=value)


def _check_status(value: str | None):
    if value and value not in BLOG_STATUSES:
        raise ValidationError("Invalid status", extra={"validStatuses": list(BLOG_STATUSES)})


async def _unique_slug(db: AsyncSession, title: str, exclude_id: int | None = None) -> str:
    slug = generate_slug(title)
    stmt = select(Blog.id).where(Blog.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(Blog.id != exclude_id)
    if (await db.execute(stmt)).first():
        slug = f"{slug}-{int(time.time() * 1000)}"
    return slug


async def _image_field(request: Request):
    """`image` arrives either as an uploaded file or as a plain URL string."""
    value = (await request.form()).get("image")
    if isinstance(value, UploadFile):
        return value if value.filename else None
    return value or None


async def _get_blog(db: AsyncSession, blog_id: int) -> Blog:
    blog = await db.get(Blog, blog_id)
    if not blog:
        raise NotFoundError("Blog not found")
    return blog


@router.get("", dependencies=[Depends(admin_user)])
async def list_blogs(
    search: str | None = None,
    category: str | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
):
    page, limit = max(1, page), max(1, limit)
    conditions = _filters(search, category)
    if status:
        conditions.append(Blog.status == status)

    res = await db.execute(
        select(Blog).where(*conditions).order_by(Blog.created_at.desc(), Blog.id.desc())
        .limit(limit).offset((page - 1) * limit)
    )
    total = (await db.execute(select(func.count(Blog.id)).where(*conditions))).scalar_one()

    return {"blogs": [to_dict(b) for b in res.scalars().all()], "pagination": _pagination(total, page, limit)}


@router.get("/public")
async def list_public_blogs(
    request: Request,
    search: str | None = None,
    category: str | None = None,
    page: int = 1,
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
):
    page, limit = max(1, page), max(1, limit)
    conditions = [Blog.status == "published", *_filters(search, category)]

    res = await db.execute(
        select(Blog).where(*conditions).order_by(Blog.date.desc(), Blog.created_at.desc())
        .limit(limit).offset((page - 1) * limit)
    )
    total = (await db.execute(select(func.count(Blog.id)).where(*conditions))).scalar_one()

    return {
        "blogs": [to_public(b, request) for b in res.scalars().all()],
        "pagination": _pagination(total, page, limit),
    }


@router.get("/public/{slug}")
async def get_public_blog(slug: str, request: Request, db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(Blog).where(Blog.slug == slug, Blog.status == "published"))
    blog = res.scalar_one_or_none()
    if not blog:
        raise NotFoundError("Blog not found")
    return to_public(blog, request)


@router.get("/{blog_id}", dependencies=[Depends(admin_user)])
async def get_blog(blog_id: int, db: AsyncSession = Depends(get_db)):
    return to_dict(await _get_blog(db, blog_id))


@router.post("", status_code=201, dependencies=[Depends(admin_user)])
async def create_blog(
    request: Request,
    title: str | None = Form(None),
    excerpt: str | None = Form(None),
    author: str | None = Form(None),
    date: str | None = Form(None),
    category: str | None = Form(None),
    tags: str | None = Form(None),
    content: str | None = Form(None),
    status: str | None = Form("draft"),
    db: AsyncSession = Depends(get_db),
):
    if not all([title, excerpt, author, date, category, content]):
        raise ValidationError("Missing required fields", extra={"required": REQUIRED_FIELDS})
    status = status or "draft"
    _check_status(status)

    blocks = parse_content(content)
    tag_list = parse_tags(tags)
    published_on = _parse_date(date)
    slug = await _unique_slug(db, title)

    image = await _image_field(request)
    image_url = await save_blog_image(request.app.state.settings, image) if isinstance(image, UploadFile) else image

    blog = Blog(
        slug=slug,
        title=title,
        excerpt=excerpt,
        author=author,
        date=published_on,
        read_time=calculate_read_time(blocks),
        image=image_url or "",
        category=category,
        tags=tag_list,
        content=blocks,
        status=status,
    )
    try:
        async with transaction(db, "create blog"):
            db.add(blog)
            await db.flush()
    except Exception:
        if isinstance(image, UploadFile):
            await delete_upload(request.app.state.settings, image_url)
        raise

    logger.info("created blog id=%s slug=%s", blog.id, blog.slug)
    return {"message": "Blog created successfully", "blog": to_dict(blog)}


@router.put("/{blog_id}", dependencies=[Depends(admin_user)])
async def update_blog(
    blog_id: int,
    request: Request,
    title: str | None = Form(None),
    excerpt: str | None = Form(None),
    author: str | None = Form(None),
    date: str | None = Form(None),
    category: str | None = Form(None),
    tags: str | None = Form(None),
    content: str | None = Form(None),
    status: str | None = Form(None),
    db: AsyncSession = Depends(get_db),
):
    settings = request.app.state.settings
    blog = await _get_blog(db, blog_id)
    _check_status(status)

    changes = {
        field: value
        for field, value in (("title", title), ("excerpt", excerpt), ("author", author),
                             ("category", category), ("status", status))
        if value
    }
    if title and title != blog.title:
        changes["slug"] = await _unique_slug(db, title, exclude_id=blog_id)
    if date:
        changes["date"] = _parse_date(date)
    if content is not None:
        changes["content"] = parse_content(content)
        changes["read_time"] = calculate_read_time(changes["content"])
    if tags is not None:
        changes["tags"] = parse_tags(tags)

    old_image = blog.image
    image = await _image_field(request)
    if isinstance(image, UploadFile):
        changes["image"] = await save_blog_image(settings, image)
    elif image and image != old_image:
        changes["image"] = image

    try:
        async with transaction(db, "update blog"):
            for field, value in changes.items():
                setattr(blog, field, value)
            blog.updated_at = utcnow()
    except Exception:
        if isinstance(image, UploadFile):
            await delete_upload(settings, changes["image"])
        raise

    if isinstance(image, UploadFile):
        await delete_upload(settings, old_image)

    return {"message": "Blog updated successfully", "blog": to_dict(blog)}


@router.delete("/{blog_id}", dependencies=[Depends(admin_user)])
async def delete_blog(blog_id: int, request: Request, db: AsyncSession = Depends(get_db)):
    blog = await _get_blog(db, blog_id)
    image = blog.image

    async with transaction(db, "delete blog"):
        await db.delete(blog)

    await delete_upload(request.app.state.settings, image)
    logger.info("deleted blog id=%s", blog_id)
    return {"message": "Blog deleted successfully"}

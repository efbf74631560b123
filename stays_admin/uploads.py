import logging
import os
import random
import time
from pathlib import Path

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from .config import Settings
from .errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ("jpeg", "jpg", "png", "gif", "webp")
MAX_IMAGE_BYTES = 10 * 1024 * 1024

UPLOAD_URL_PREFIX = "/uploads/"


def is_allowed_image(filename: str | None, content_type: str | None) -> bool:
    ext = os.path.splitext(filename or "")[1].lower().lstrip(".")
    mimetype = (content_type or "").lower()
    return ext in ALLOWED_IMAGE_TYPES and any(t in mimetype for t in ALLOWED_IMAGE_TYPES)


def unique_blog_filename(original: str) -> str:
    ext = os.path.splitext(original)[1]
    return f"blog-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"


def _write(path: Path, data: bytes):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def save_blog_image(settings: Settings, upload: UploadFile) -> str:
    """Store an uploaded blog image and return its public `/uploads/blogs/...` path."""
    if not is_allowed_image(upload.filename, upload.content_type):
        raise ValidationError("Only image files are allowed!")

    data = await upload.read(MAX_IMAGE_BYTES + 1)
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationError("File too large", detail=f"max {MAX_IMAGE_BYTES} bytes")

    name = unique_blog_filename(upload.filename)
    await run_in_threadpool(_write, settings.upload_dir / "blogs" / name, data)
    logger.info("stored blog image %s (%s bytes)", name, len(data))
    return f"{UPLOAD_URL_PREFIX}blogs/{name}"


def local_upload_path(settings: Settings, url_path: str | None) -> Path | None:
    if not url_path or not url_path.startswith(UPLOAD_URL_PREFIX):
        return None
    relative = Path(url_path[len(UPLOAD_URL_PREFIX):])
    if ".." in relative.parts:
        return None
    return settings.upload_dir / relative


async def delete_upload(settings: Settings, url_path: str | None):
    path = local_upload_path(settings, url_path)
    if path is None:
        return
    try:
        await run_in_threadpool(path.unlink)
    except FileNotFoundError:
        pass
    except OSError:
        logger.exception("could not delete upload %s", path)


def public_image_url(settings: Settings, image: str | None) -> str | None:
    if image and image.startswith("/uploads"):
        return f"{settings.public_base_url.rstrip('/')}{image}"
    return image

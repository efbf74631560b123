import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db, transaction
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import USER_ROLES, USER_STATUSES, User
from ..rbac import admin_user
from ..schemas import CreateUser, UpdateUser, UpdateUserStatus
from ..security import hash_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(admin_user)])

REQUIRED_FIELDS = ["name", "email", "phoneNumber", "role", "status", "password"]


def to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "role": u.role,
        "status": u.status,
        "phoneNumber": u.phone_number,
        "avatar": u.avatar,
    }


def _check_role(role: str | None):
    if role and role not in USER_ROLES:
        raise ValidationError("Invalid role", extra={"validRoles": list(USER_ROLES)})


def _check_status(value: str | None):
    if value and value not in USER_STATUSES:
        raise ValidationError("Invalid status", extra={"validStatuses": list(USER_STATUSES)})


async def _get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def _taken(db: AsyncSession, column, value, exclude_id: int | None = None) -> bool:
    stmt = select(User.id).where(column == value)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


@router.get("")
async def list_users(db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(User).order_by(User.id.desc()))
    return [to_dict(u) for u in res.scalars().all()]


@router.get("/{user_id}")
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return to_dict(await _get_user(db, user_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(data: CreateUser, db: AsyncSession = Depends(get_db)):
    if not all([data.name, data.email, data.phone_number, data.role, data.status, data.password]):
        raise ValidationError("Missing required fields", extra={"required": REQUIRED_FIELDS})

    _check_role(data.role)
    _check_status(data.status)

    existing = await db.execute(
        select(User.id).where(or_(User.email == data.email, User.phone_number == data.phone_number))
    )
    if existing.first():
        raise ConflictError("Email or phone number already exists")

    user = User(
        name=data.name,
        email=data.email,
        phone_number=data.phone_number,
        role=data.role,
        status=data.status,
        avatar=data.avatar,
        password=hash_password(data.password),
    )
    async with transaction(db, "create user"):
        db.add(user)

    logger.info("created user id=%s role=%s", user.id, user.role)
    return to_dict(user)


@router.put("/{user_id}")
async def update_user(user_id: int, data: UpdateUser, db: AsyncSession = Depends(get_db)):
    user = await _get_user(db, user_id)

    _check_role(data.role)
    _check_status(data.status)

    if data.email and await _taken(db, User.email, data.email, exclude_id=user_id):
        raise ConflictError("Email already exists")
    if data.phone_number and await _taken(db, User.phone_number, data.phone_number, exclude_id=user_id):
        raise ConflictError("Phone number already exists")

    changes = {
        field: value
        for field, value in (
            ("name", data.name),
            ("email", data.email),
            ("phone_number", data.phone_number),
            ("role", data.role),
            ("status", data.status),
        )
        if value
    }
    # avatar may be cleared explicitly
    if "avatar" in data.model_fields_set:
        changes["avatar"] = data.avatar
    if data.password:
        changes["password"] = hash_password(data.password)

    if not changes:
        raise ValidationError("No fields to update")

    async with transaction(db, "update user"):
        for field, value in changes.items():
            setattr(user, field, value)

    return to_dict(user)


@router.delete("/{user_id}")
async def delete_user(user_id: int, db: AsyncSession = Depends(get_db)):
    user = await _get_user(db, user_id)
    name = user.name

    async with transaction(db, "delete user"):
        await db.execute(delete(User).where(User.id == user_id))

    logger.info("deleted user id=%s", user_id)
    return {"message": "User deleted successfully", "deletedUser": {"id": user_id, "name": name}}


@router.patch("/{user_id}/status")
async def update_user_status(user_id: int, data: UpdateUserStatus, db: AsyncSession = Depends(get_db)):
    if not data.status:
        raise ValidationError("Status is required")
    _check_status(data.status)

    user = await _get_user(db, user_id)
    async with transaction(db, "update user status"):
        user.status = data.status

    return to_dict(user)

import logging
import math

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db, transaction
from ..errors import NotFoundError, ValidationError
from ..models import Accommodation, AccommodationAmenity, Booking, City, User, utcnow
from ..partial_update import build_assignments
from ..rbac import admin_user
from ..schemas import AccommodationPayload, ToggleAvailability

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/properties", tags=["properties"], dependencies=[Depends(admin_user)])

SORT_FIELDS = ("id", "name", "type", "price", "capacity", "rooms", "available", "created_at", "updated_at")
MAX_PAGE_SIZE = 100

# payload path -> column
UPDATE_COLUMNS = {
    "basic_info.name": "name",
    "basic_info.description": "description",
    "basic_info.type": "type",
    "basic_info.capacity": "capacity",
    "basic_info.rooms": "rooms",
    "basic_info.price": "price",
    "basic_info.features": "features",
    "basic_info.images": "images",
    "basic_info.available": "available",
    "basic_info.MaxPersonVilla": "max_person_villa",
    "basic_info.RatePersonVilla": "rate_person_villa",
    "owner_id": "owner_id",
    "location.address": "address",
    "location.city_id": "city_id",
    "location.coordinates.latitude": "latitude",
    "location.coordinates.longitude": "longitude",
    "packages.name": "package_name",
    "packages.description": "package_description",
    "packages.images": "package_images",
    "packages.pricing.adult": "adult_price",
    "packages.pricing.child": "child_price",
    "packages.pricing.max_guests": "max_guests",
}
NULLABLE_COLUMNS = frozenset({
    "description",
    "owner_id",
    "city_id",
    "address",
    "latitude",
    "longitude",
    "package_name",
    "package_description",
    "max_person_villa",
    "rate_person_villa",
})


def list_item(a: Accommodation) -> dict:
    return {
        "id": a.id,
        "name": a.name,
        "type": a.type,
        "description": a.description,
        "price": a.price,
        "capacity": a.capacity,
        "rooms": a.rooms,
        "available": bool(a.available),
        "features": a.features or [],
        "images": a.images or [],
        "amenities": a.amenity_ids,
        "maxPerson": a.max_person_villa,
        "ratePerPerson": a.rate_person_villa,
        "location": {
            "address": a.address,
            "coordinates": {"latitude": a.latitude, "longitude": a.longitude},
        },
        "ownerId": a.owner_id,
        "cityId": a.city_id,
        "package": {
            "name": a.package_name,
            "description": a.package_description,
            "images": a.package_images or [],
            "pricing": {"adult": a.adult_price, "child": a.child_price, "maxGuests": a.max_guests},
        },
        "timestamps": {"createdAt": a.created_at, "updatedAt": a.updated_at},
    }


def detail(a: Accommodation, owner_name: str | None, city_name: str | None, country: str | None) -> dict:
    return {
        "id": a.id,
        "basicInfo": {
            "name": a.name or "",
            "description": a.description or "",
            "type": a.type or "",
            "capacity": a.capacity,
            "rooms": a.rooms,
            "price": a.price,
            "available": bool(a.available),
            "features": a.features or [],
            "images": a.images or [],
            "MaxPersonVilla": a.max_person_villa,
            "RatePersonVilla": a.rate_person_villa,
        },
        "location": {
            "owner": {"id": a.owner_id, "name": owner_name},
            "city": {"id": a.city_id, "name": city_name, "country": country},
            "address": a.address or "",
            "coordinates": {"latitude": a.latitude, "longitude": a.longitude},
        },
        "amenities": {"ids": a.amenity_ids},
        "packages": {
            "name": a.package_name or "",
            "description": a.package_description or "",
            "images": a.package_images or [],
            "pricing": {"adult": a.adult_price, "child": a.child_price, "maxGuests": a.max_guests},
        },
        "metadata": {"createdAt": a.created_at, "updatedAt": a.updated_at},
    }


def _parse_amenity_ids(raw: str) -> list[int]:
    try:
        return [int(part.strip()) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise ValidationError("Invalid amenities filter", detail=raw)


def _check_positive(a: Accommodation):
    if a.capacity <= 0 or a.rooms <= 0 or a.price <= 0:
        raise ValidationError("Capacity, rooms, and price must be positive numbers")


@router.get("/accommodations")
async def list_accommodations(
    type: str | None = None,
    min_capacity: int | None = None,
    max_capacity: int | None = None,
    is_available: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    search: str | None = None,
    amenities: str | None = None,
    page: int = 1,
    limit: int = MAX_PAGE_SIZE,
    sort: str = "created_at",
    order: str = "DESC",
    db: AsyncSession = Depends(get_db),
):
    page = max(1, page)
    limit = min(MAX_PAGE_SIZE, max(1, limit))

    conditions = []
    if type:
        conditions.append(Accommodation.type == type)
    if min_capacity is not None:
        conditions.append(Accommodation.capacity >= min_capacity)
    if max_capacity is not None:
        conditions.append(Accommodation.capacity <= max_capacity)
    if is_available == "true":
        conditions.append(Accommodation.available.is_(True))
    elif is_available == "false":
        conditions.append(Accommodation.available.is_(False))
    if min_price is not None:
        conditions.append(Accommodation.price >= min_price)
    if max_price is not None:
        conditions.append(Accommodation.price <= max_price)
    if search:
        pattern = f"%{search}%"
        conditions.append(Accommodation.name.ilike(pattern) | Accommodation.description.ilike(pattern))
    if amenities:
        ids = _parse_amenity_ids(amenities)
        conditions.append(Accommodation.id.in_(
            select(AccommodationAmenity.accommodation_id).where(AccommodationAmenity.amenity_id.in_(ids))
        ))

    sort_column = getattr(Accommodation, sort if sort in SORT_FIELDS else "created_at")
    ordering = sort_column.asc() if order.upper() == "ASC" else sort_column.desc()

    res = await db.execute(
        select(Accommodation)
        .where(*conditions)
        .order_by(ordering, Accommodation.id)
        .limit(limit)
        .offset((page - 1) * limit)
    )
    rows = res.scalars().all()

    total = (await db.execute(select(func.count(Accommodation.id)).where(*conditions))).scalar_one()
    total_pages = math.ceil(total / limit)

    return {
        "data": [list_item(a) for a in rows],
        "pagination": {
            "total": total,
            "totalPages": total_pages,
            "currentPage": page,
            "perPage": limit,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }


@router.get("/accommodations/stats")
async def accommodation_stats(db: AsyncSession = Depends(get_db)):
    row = (await db.execute(
        select(
            func.count(Accommodation.id).label("total"),
            func.coalesce(func.sum(case((Accommodation.available.is_(True), 1), else_=0)), 0).label("available"),
            func.coalesce(func.sum(case((Accommodation.available.is_(False), 1), else_=0)), 0).label("unavailable"),
            func.avg(Accommodation.price).label("avg_price"),
            func.min(Accommodation.price).label("min_price"),
            func.max(Accommodation.price).label("max_price"),
        )
    )).one()

    return {
        "total": row.total,
        "available": int(row.available),
        "unavailable": int(row.unavailable),
        "avg_price": float(row.avg_price) if row.avg_price is not None else None,
        "min_price": float(row.min_price) if row.min_price is not None else None,
        "max_price": float(row.max_price) if row.max_price is not None else None,
    }


@router.get("/accommodations/{accommodation_id}")
async def get_accommodation(accommodation_id: int = Path(ge=0), db: AsyncSession = Depends(get_db)):
    row = (await db.execute(
        select(Accommodation, User.name, City.name, City.country)
        .outerjoin(User, Accommodation.owner_id == User.id)
        .outerjoin(City, Accommodation.city_id == City.id)
        .where(Accommodation.id == accommodation_id)
    )).first()
    if not row:
        raise NotFoundError("Accommodation not found")

    accommodation, owner_name, city_name, country = row
    return detail(accommodation, owner_name, city_name, country)


@router.post("/accommodations", status_code=status.HTTP_201_CREATED)
async def create_accommodation(data: AccommodationPayload, db: AsyncSession = Depends(get_db)):
    basic = data.basic_info
    if not basic or not basic.name or not basic.type or not basic.capacity or not basic.rooms or not basic.price:
        raise ValidationError("Missing required fields")

    location = data.location
    coords = location.coordinates if location else None
    packages = data.packages
    pricing = packages.pricing if packages else None

    accommodation = Accommodation(
        name=basic.name,
        description=basic.description,
        type=basic.type,
        capacity=basic.capacity,
        rooms=basic.rooms,
        price=basic.price,
        features=basic.features or [],
        images=basic.images or [],
        available=True if basic.available is None else basic.available,
        max_person_villa=basic.MaxPersonVilla,
        rate_person_villa=basic.RatePersonVilla,
        owner_id=data.owner_id,
        city_id=location.city_id if location else None,
        address=location.address if location else None,
        latitude=coords.latitude if coords else None,
        longitude=coords.longitude if coords else None,
        package_name=packages.name if packages else None,
        package_description=packages.description if packages else None,
        package_images=(packages.images if packages else None) or [],
        adult_price=(pricing.adult if pricing else None) or 0,
        child_price=(pricing.child if pricing else None) or 0,
        max_guests=(pricing.max_guests if pricing else None) or 2,
    )
    amenity_ids = (data.amenities.ids if data.amenities else None) or []
    accommodation.amenities = [AccommodationAmenity(amenity_id=i) for i in sorted(set(amenity_ids))]
    _check_positive(accommodation)

    async with transaction(db, "create accommodation"):
        db.add(accommodation)
        await db.flush()

    logger.info("created accommodation id=%s", accommodation.id)
    return {"message": "Accommodation created successfully", "id": accommodation.id, "name": accommodation.name}


@router.put("/accommodations/{accommodation_id}")
async def update_accommodation(
    accommodation_id: int,
    data: AccommodationPayload,
    db: AsyncSession = Depends(get_db),
):
    assignments = build_assignments(data, UPDATE_COLUMNS, nullable=NULLABLE_COLUMNS)

    async with transaction(db, "update accommodation"):
        res = await db.execute(
            select(Accommodation).where(Accommodation.id == accommodation_id).with_for_update()
        )
        accommodation = res.scalar_one_or_none()
        if not accommodation:
            raise NotFoundError("Accommodation not found")

        for column, value in assignments.items():
            setattr(accommodation, column, value)

        if data.amenities is not None and data.amenities.ids is not None:
            accommodation.amenities = [
                AccommodationAmenity(amenity_id=i) for i in sorted(set(data.amenities.ids))
            ]

        _check_positive(accommodation)
        accommodation.updated_at = utcnow()

    logger.info("updated accommodation id=%s fields=%s", accommodation_id, sorted(assignments))
    return {"id": accommodation_id, "message": "Accommodation updated successfully"}


@router.delete("/accommodations/{accommodation_id}")
async def delete_accommodation(accommodation_id: int, db: AsyncSession = Depends(get_db)):
    if accommodation_id <= 0:
        raise ValidationError("Invalid accommodation ID format")

    async with transaction(db, "delete accommodation"):
        res = await db.execute(
            select(Accommodation.id).where(Accommodation.id == accommodation_id).with_for_update()
        )
        if res.first() is None:
            raise NotFoundError("Accommodation not found")

        await db.execute(delete(AccommodationAmenity).where(AccommodationAmenity.accommodation_id == accommodation_id))
        await db.execute(delete(Booking).where(Booking.accommodation_id == accommodation_id))
        await db.execute(delete(Accommodation).where(Accommodation.id == accommodation_id))

    logger.info("deleted accommodation id=%s with related rows", accommodation_id)
    return {"message": "Accommodation and all related data deleted successfully", "deletedId": accommodation_id}


@router.patch("/accommodations/{accommodation_id}/toggle-availability")
async def toggle_availability(
    accommodation_id: int,
    data: ToggleAvailability,
    db: AsyncSession = Depends(get_db),
):
    async with transaction(db, "update availability"):
        res = await db.execute(
            update(Accommodation)
            .where(Accommodation.id == accommodation_id)
            .values(available=data.available, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            raise NotFoundError("Accommodation not found")

    return {"message": "Availability updated successfully", "available": data.available}


@router.get("/users")
async def owner_lookup(db: AsyncSession = Depends(get_db)):
    res = await db.execute(select(User.id, User.name, User.email).order_by(User.id))
    return [{"id": r.id, "name": r.name, "email": r.email} for r in res.all()]


@router.get("/cities")
async def city_lookup(db: AsyncSession = Depends(get_db)):
    res = await db.execute(
        select(City.id, City.name, City.country).where(City.active.is_(True)).order_by(City.name)
    )
    return [{"id": r.id, "name": r.name, "country": r.country} for r in res.all()]

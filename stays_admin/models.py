import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    # naive UTC, stored as DATETIME
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    EXPIRED = "expired"

    @classmethod
    def values(cls) -> list[str]:
        return [s.value for s in cls]


USER_ROLES = ("admin", "manager", "staff")
USER_STATUSES = ("active", "inactive", "suspended")
BLOG_STATUSES = ("draft", "published")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone_number = Column(String(32), unique=True, nullable=False)
    role = Column(String(16), nullable=False, default="staff")
    status = Column(String(16), nullable=False, default="active")
    avatar = Column(String(512), nullable=True)
    password = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    accommodations = relationship("Accommodation", back_populates="owner", passive_deletes=True)


class City(Base):
    __tablename__ = "cities"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    country = Column(String(255), nullable=True)
    active = Column(Boolean, nullable=False, default=True)


class Accommodation(Base):
    __tablename__ = "accommodations"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(64), nullable=False)
    capacity = Column(Integer, nullable=False)
    rooms = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    features = Column(JSON, nullable=False, default=list)
    images = Column(JSON, nullable=False, default=list)
    available = Column(Boolean, nullable=False, default=True)

    owner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="SET NULL"), nullable=True)
    address = Column(String(512), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    package_name = Column(String(255), nullable=True)
    package_description = Column(Text, nullable=True)
    package_images = Column(JSON, nullable=False, default=list)
    adult_price = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    child_price = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    max_guests = Column(Integer, nullable=False, default=2)
    max_person_villa = Column(Integer, nullable=True)
    rate_person_villa = Column(Numeric(10, 2, asdecimal=False), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="accommodations")
    city = relationship("City")
    amenities = relationship(
        "AccommodationAmenity",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def amenity_ids(self) -> list[int]:
        return sorted(a.amenity_id for a in self.amenities)


class AccommodationAmenity(Base):
    __tablename__ = "accommodation_amenities"

    accommodation_id = Column(
        Integer, ForeignKey("accommodations.id", ondelete="CASCADE"), primary_key=True
    )
    amenity_id = Column(Integer, primary_key=True)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)

    guest_name = Column(String(255), nullable=False)
    guest_email = Column(String(255), nullable=True, index=True)
    guest_phone = Column(String(32), nullable=True)

    accommodation_id = Column(Integer, ForeignKey("accommodations.id"), nullable=False, index=True)
    package_id = Column(Integer, nullable=True)

    check_in = Column(Date, nullable=False, index=True)
    check_out = Column(Date, nullable=False)

    adults = Column(Integer, nullable=False, default=1)
    children = Column(Integer, nullable=False, default=0)
    rooms = Column(Integer, nullable=False, default=1)

    food_veg = Column(Integer, nullable=False, default=0)
    food_nonveg = Column(Integer, nullable=False, default=0)
    food_jain = Column(Integer, nullable=False, default=0)

    total_amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    advance_amount = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    discount = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    coupon_code = Column(String(64), nullable=True)

    payment_status = Column(String(16), nullable=False, index=True)  # pending/success/failed/expired
    payment_txn_id = Column(String(64), unique=True, nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    accommodation = relationship("Accommodation")


class Blog(Base):
    __tablename__ = "blogs"

    id = Column(Integer, primary_key=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    excerpt = Column(Text, nullable=False)
    author = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)
    read_time = Column(String(32), nullable=False)
    image = Column(String(512), nullable=True)
    category = Column(String(128), nullable=False, index=True)
    tags = Column(JSON, nullable=False, default=list)
    content = Column(JSON, nullable=False, default=list)
    status = Column(String(16), nullable=False, default="draft", index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ---- Bookings ----

class BookingFields(BaseModel):
    """Loose booking payload; presence and ranges are checked by the repository."""

    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    accommodation_id: Optional[int] = None
    package_id: Optional[int] = None

    check_in: Optional[date] = None
    check_out: Optional[date] = None

    adults: int = 1
    children: int = 0
    rooms: int = 1

    food_veg: int = 0
    food_nonveg: int = 0
    food_jain: int = 0

    total_amount: Optional[float] = None
    advance_amount: float = 0
    discount: float = 0
    coupon_code: Optional[str] = None


class OfflineBookingFields(BookingFields):
    full_amount: Optional[float] = None


class BookingStatusUpdate(BaseModel):
    payment_status: Optional[str] = None


class ManualMailerRequest(BaseModel):
    txn_id: Optional[str] = None


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    guest_name: str
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    accommodation_id: int
    package_id: Optional[int] = None
    check_in: date
    check_out: date
    adults: int
    children: int
    rooms: int
    food_veg: int
    food_nonveg: int
    food_jain: int
    total_amount: float
    advance_amount: float
    discount: float
    coupon_code: Optional[str] = None
    payment_status: str
    payment_txn_id: str
    created_at: Optional[datetime] = None


# ---- Payments ----

class PaymentInitRequest(BaseModel):
    amount: Optional[Union[float, str]] = None
    firstname: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[Union[str, int]] = None
    booking_id: Optional[int] = None
    productinfo: Optional[str] = None
    coupon_code: Optional[str] = None


# ---- Auth ----

class Login(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


# ---- Users ----

class CreateUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    role: Optional[str] = None
    status: Optional[str] = None
    avatar: Optional[str] = None
    password: Optional[str] = None


class UpdateUser(CreateUser):
    pass


class UpdateUserStatus(BaseModel):
    status: Optional[str] = None


# ---- Properties ----

class Coordinates(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class BasicInfo(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    capacity: Optional[int] = None
    rooms: Optional[int] = None
    price: Optional[float] = None
    features: Optional[List[str]] = None
    images: Optional[List[str]] = None
    available: Optional[bool] = None
    MaxPersonVilla: Optional[int] = None
    RatePersonVilla: Optional[float] = None


class Location(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address: Optional[str] = None
    city_id: Optional[int] = Field(default=None, alias="cityId")
    coordinates: Optional[Coordinates] = None


class Amenities(BaseModel):
    ids: Optional[List[int]] = None


class PackagePricing(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    adult: Optional[float] = None
    child: Optional[float] = None
    max_guests: Optional[int] = Field(default=None, alias="maxGuests")


class PackageInfo(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    images: Optional[List[str]] = None
    pricing: Optional[PackagePricing] = None


class AccommodationPayload(BaseModel):
    """Nested accommodation body used for both create and partial update."""

    model_config = ConfigDict(populate_by_name=True)

    basic_info: Optional[BasicInfo] = Field(default=None, alias="basicInfo")
    location: Optional[Location] = None
    amenities: Optional[Amenities] = None
    owner_id: Optional[int] = Field(default=None, alias="ownerId")
    packages: Optional[PackageInfo] = None


class ToggleAvailability(BaseModel):
    available: bool


# ---- Blogs ----

class ParagraphBlock(BaseModel):
    type: Literal["paragraph"]
    text: str = ""


class HeadingBlock(BaseModel):
    type: Literal["heading"]
    text: str = ""
    level: Optional[int] = None


class ListBlock(BaseModel):
    type: Literal["list"]
    items: List[str] = Field(default_factory=list)
    ordered: bool = False


ContentBlock = Annotated[
    Union[ParagraphBlock, HeadingBlock, ListBlock],
    Field(discriminator="type"),
]

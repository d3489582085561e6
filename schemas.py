"""
Kora Schemas (MongoDB via Pydantic)
Each collection model = one collection (lowercased name)
- User -> user
- Profile -> profile
- PropertyType -> propertytype
- Amenities -> amenities, AmenityIcon -> amenityicon
- Listings -> listings, ListingsImg -> listingsimg
- Review -> review
- Favourites -> favourites
- Transaction -> transaction

Field names are snake_case in Python and camelCase on the wire and in the
database (phone_no <-> phoneNo).
"""

from datetime import datetime
from typing import Annotated, Dict, List, Optional

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

ROLES_LIST = {
    "User": 2001,
    "Editor": 1984,
    "Admin": 5150,
}


def _check_object_id(value: str) -> str:
    if not ObjectId.is_valid(value):
        raise ValueError("Invalid identifier")
    return value


ObjectIdStr = Annotated[str, AfterValidator(_check_object_id)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


class Location(CamelModel):
    longitude: float
    latitude: float


# ---------- Collections ----------

class User(CamelModel):
    email: EmailStr
    password: str
    phone_no: str
    roles: Dict[str, int] = Field(default_factory=lambda: {"User": ROLES_LIST["User"]})
    is_verified: bool = False
    account_disabled: bool = False
    otp: Optional[str] = None
    otp_expires_at: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class Profile(CamelModel):
    user: ObjectId
    property_type: List[ObjectId]
    bedrooms: int
    pets: int
    min_price: float
    max_price: float
    location: Location


class PropertyType(CamelModel):
    name: str


class Attachment(CamelModel):
    """An externally stored file (AmenityIcon, ListingsImg)."""
    file_url: str
    file_type: str
    file_name: str
    public_id: str


class Amenities(CamelModel):
    name: str
    icon: ObjectId


class Listings(CamelModel):
    name: str
    description: str
    amenities: List[ObjectId] = []
    property_type: ObjectId
    location: Location
    price: float
    listing_img: List[ObjectId] = []
    rating: float = 0


class Review(CamelModel):
    user: ObjectId
    listing: ObjectId
    rating: int = Field(..., ge=1, le=5)
    comment: str


class Favourites(CamelModel):
    user: ObjectId
    listing: List[ObjectId]


class Transaction(CamelModel):
    user: ObjectId
    listing: ObjectId


# ---------- Requests ----------

class SignupRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    phone_no: str = Field(..., min_length=1)


class LoginRequest(CamelModel):
    email: str = ""
    password: str = ""


class ForgotPasswordRequest(CamelModel):
    email: str


class ResetPasswordRequest(CamelModel):
    email: str
    otp: str
    new_password: str = Field(..., min_length=1)


class ChangePasswordRequest(CamelModel):
    user_id: ObjectIdStr
    current_password: str
    new_password: str = Field(..., min_length=1)


class PropertyTypeCreate(CamelModel):
    name: str = Field(..., min_length=1)


class ProfileCreate(CamelModel):
    user: ObjectIdStr
    property_type: List[ObjectIdStr] = Field(..., min_length=1)
    bedrooms: int = Field(..., ge=0)
    pets: int = Field(..., ge=0)
    min_price: float = Field(..., ge=0)
    max_price: float = Field(..., ge=0)
    location: Location


PROFILE_UPDATE_FIELDS = ["propertyType", "bedrooms", "pets", "minPrice", "maxPrice", "location"]


class ProfileUpdate(CamelModel):
    property_type: Optional[List[ObjectIdStr]] = None
    bedrooms: Optional[int] = Field(None, ge=0)
    pets: Optional[int] = Field(None, ge=0)
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    location: Optional[Location] = None


class ReviewCreate(CamelModel):
    user: ObjectIdStr
    listing: ObjectIdStr
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)


class FavouriteRequest(CamelModel):
    user_id: ObjectIdStr
    listing_id: ObjectIdStr


class TransactionCreate(CamelModel):
    user: Optional[str] = None
    listing: Optional[str] = None
    location: Optional[str] = None

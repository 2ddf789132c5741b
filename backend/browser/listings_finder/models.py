"""Result records produced by crawlers and extractors.

Attributes are snake_case in Python and serialise with camelCase aliases
(``listing_id`` -> ``listingId``) through ``to_dict()``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SORT_KEYS = ("mostRelevant", "mostRecent", "highestRated", "lowestRated")


def _require_numeric(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = str(value).strip()
    if not value.isdigit():
        raise ValueError(f"expected a numeric id, got {value!r}")
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# --- Search phase ---

class ListingSummary(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    listing_id: str
    listing_url: str
    location: str
    title: Optional[str] = None
    description: Optional[str] = None
    bedrooms: Optional[float] = None
    price_per_night: Optional[float] = None
    total_price: Optional[float] = None
    stay_length_nights: Optional[int] = None
    raw_price_text: Optional[str] = None
    number_of_reviews: Optional[int] = None
    overall_review_score: Optional[float] = None

    @field_validator("listing_id")
    @classmethod
    def check_listing_id(cls, value: str) -> str:
        return _require_numeric(value)


# --- Detail phase ---

class Coordinates(CamelModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class LocationInfo(CamelModel):
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    coordinates: Coordinates = Field(default_factory=Coordinates)


class PricingInfo(CamelModel):
    price_per_night: Optional[float] = None
    currency: Optional[str] = None
    total_for_3_nights: Optional[float] = None
    price_before_discount: Optional[float] = None
    discount_percentage: Optional[float] = None


class CategoryRatings(CamelModel):
    cleanliness: Optional[float] = None
    accuracy: Optional[float] = None
    check_in: Optional[float] = None
    communication: Optional[float] = None
    location: Optional[float] = None
    value: Optional[float] = None


class ReviewScore(CamelModel):
    overall_rating: Optional[float] = Field(default=None, ge=0, le=5)
    reviews_count: Optional[int] = None
    category_ratings: CategoryRatings = Field(default_factory=CategoryRatings)


class ReviewDetails(CamelModel):
    city: Optional[str] = None
    country: Optional[str] = None
    date: Optional[str] = None


class Review(CamelModel):
    review_id: str
    name: str
    text: Optional[str] = None
    score: int = 0
    review_details: ReviewDetails = Field(default_factory=ReviewDetails)


class ReviewsByCategory(CamelModel):
    most_relevant: List[Review] = Field(default_factory=list)
    most_recent: List[Review] = Field(default_factory=list)
    highest_rated: List[Review] = Field(default_factory=list)
    lowest_rated: List[Review] = Field(default_factory=list)

    def bucket(self, sort_key: str) -> List[Review]:
        return getattr(self, _SORT_ATTRS[sort_key])

    def total(self) -> int:
        return sum(len(self.bucket(key)) for key in SORT_KEYS)


_SORT_ATTRS = {
    "mostRelevant": "most_relevant",
    "mostRecent": "most_recent",
    "highestRated": "highest_rated",
    "lowestRated": "lowest_rated",
}


class Amenity(CamelModel):
    name: str
    description: Optional[str] = None


class HouseRules(CamelModel):
    check_in: str = ""
    check_out: str = ""
    self_check_in: bool = False
    max_guests: int = 0
    pets: bool = False
    quiet_hours: str = ""
    no_parties: bool = False
    no_commercial_photography: bool = False
    no_smoking: bool = False
    additional_rules: str = ""
    before_you_leave: List[str] = Field(default_factory=list)


class CoHost(CamelModel):
    name: Optional[str] = None
    profile_id: str

    @field_validator("profile_id")
    @classmethod
    def check_profile_id(cls, value: str) -> str:
        return _require_numeric(value)


class HostListing(CamelModel):
    title: str = ""
    subtitle: str = ""
    rating: float = 0
    reviews_count: int = 0
    url: str = ""


class HostProfile(CamelModel):
    name: Optional[str] = None
    is_superhost: bool = False
    is_identity_verified: bool = False
    reviews_count: int = 0
    rating: Optional[float] = None
    years_hosting: int = 0
    work: Optional[str] = None
    pets: Optional[str] = None
    location: Optional[str] = None
    languages: List[str] = Field(default_factory=list)
    about: Optional[str] = None
    unique_home: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_company: bool = False
    company_name: str = ""
    listings: Optional[List[HostListing]] = None


class DetailedListing(CamelModel):
    listing_id: str
    listing_url: str
    search_location: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    host_profile_id: Optional[str] = None
    host_profile: Optional[HostProfile] = None
    co_hosts: List[CoHost] = Field(default_factory=list)
    max_guests: Optional[int] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    is_guest_favorite: bool = False
    is_superhost: bool = False
    location: Optional[LocationInfo] = None
    pricing: Optional[PricingInfo] = None
    review_score: Optional[ReviewScore] = None
    overall_rating: Optional[float] = None
    reviews_count: Optional[int] = None
    amenities: List[Amenity] = Field(default_factory=list)
    reviews: Optional[ReviewsByCategory] = None
    house_rules: Optional[HouseRules] = None
    error: Optional[str] = None

    @field_validator("listing_id", "host_profile_id")
    @classmethod
    def check_ids(cls, value: Optional[str]) -> Optional[str]:
        return _require_numeric(value)

    @classmethod
    def failed(cls, listing_id: str, listing_url: str, search_location: Optional[str], error: str) -> "DetailedListing":
        """Error-only record emitted when a listing could not be scraped at all."""
        return cls(
            listing_id=listing_id,
            listing_url=listing_url,
            search_location=search_location,
            error=error,
        )


class HostLookup(CamelModel):
    listing_id: str
    listing_url: str
    host_profile_id: str
    host_profile_url: str
    host: Optional[HostProfile] = None
    co_hosts: List[CoHost] = Field(default_factory=list)


# --- Envelopes ---

class ResultMeta(CamelModel):
    scraped_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    processing_time_seconds: float = 0.0


class ResultEnvelope(CamelModel):
    success: bool = True
    data: Any = None
    meta: Optional[ResultMeta] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        out: Dict[str, Any] = {"success": True, "data": self.data}
        if self.meta is not None:
            out["meta"] = self.meta.to_dict()
        return out

    @classmethod
    def ok(cls, data: Any, processing_time_seconds: float) -> "ResultEnvelope":
        return cls(data=data, meta=ResultMeta(processing_time_seconds=round(processing_time_seconds, 2)))

    @classmethod
    def failure(cls, error: str) -> "ResultEnvelope":
        return cls(success=False, error=error)

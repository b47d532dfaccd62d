"""
Listing Models.

Pydantic model for a normalized DWV property listing.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TITLE = "Imóvel DWV"
DEFAULT_PRICE = "Preço sob consulta"
DEFAULT_LOCATION = "Localização não informada"


class ListingStatus(str, Enum):
    """Listing availability, mirrors the properties.status check constraint."""

    ACTIVE = "active"
    PENDING = "pending"
    SOLD = "sold"


class Listing(BaseModel):
    """Normalized property listing, immutable once built."""

    model_config = ConfigDict(frozen=True)

    # Always present (defaults are applied by the normalizer)
    title: str
    price: str
    location: str
    listing_url: str

    # Details
    bedrooms: int | None = None
    bathrooms: int | None = None
    area_sq_ft: int | None = Field(default=None, description="Area in square feet")
    description: str | None = None
    image_url: str | None = None
    property_type: str | None = None
    features: list[str] | None = None

    # Agent
    agent_name: str | None = None
    agent_phone: str | None = None

    status: ListingStatus = ListingStatus.ACTIVE
    scraped_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("title", "price", "location", "listing_url", mode="before")
    @classmethod
    def strip_required_text(cls, v: Any) -> str:
        """Strip surrounding whitespace from required text fields."""
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("description", "agent_name", "agent_phone", "property_type", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> str | None:
        """Strip optional text fields and turn blanks into None."""
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @property
    def dedup_key(self) -> tuple[str, str]:
        """Case-insensitive (title, location) identity used within one run."""
        return self.title.strip().lower(), self.location.strip().lower()

    @property
    def has_only_defaults(self) -> bool:
        """True when title, price and location are all placeholder values."""
        return (
            self.title == DEFAULT_TITLE
            and self.price == DEFAULT_PRICE
            and self.location == DEFAULT_LOCATION
        )

    def to_db_row(self) -> dict:
        """Map to the properties table column names."""
        return {
            "title": self.title,
            "price": self.price,
            "location": self.location,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "square_feet": self.area_sq_ft,
            "description": self.description,
            "image_url": self.image_url,
            "property_type": self.property_type,
            "listing_url": self.listing_url,
            "scraped_at": self.scraped_at,
            "features": self.features,
            "agent_name": self.agent_name,
            "agent_phone": self.agent_phone,
            "status": self.status.value,
        }

import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .normalizer import extract_domain

CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")

# Fields a reader can fill, in merge order.
SCALAR_FIELDS = ("title", "description", "price", "currency", "sku")


class Provenance(str, Enum):
    STRUCTURED_DATA = "structured-data"
    SCRIPT_STATE = "script-state"
    SELECTORS = "selectors"
    NONE = "none"


class PartialProduct(BaseModel):
    """What a single reader managed to pull out of a page."""

    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    sku: Optional[str] = None
    images: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return all(getattr(self, f) is None for f in SCALAR_FIELDS) and not self.images


class Product(BaseModel):
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    url: str
    domain: Optional[str] = None          # e.g. "zara.com"
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    currency: Optional[str] = None
    sku: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    provenance: Provenance = Provenance.NONE
    structured_data_raw: Optional[Dict[str, Any]] = Field(default=None, alias="structuredDataRaw")
    error: Optional[str] = None           # only set on failure records

    @field_validator("currency")
    @classmethod
    def _iso_currency(cls, v):
        if v is not None and not CURRENCY_CODE.match(v):
            raise ValueError(f"currency must be a 3-letter ISO code, got {v!r}")
        return v

    @classmethod
    def for_url(cls, url: str) -> "Product":
        return cls(url=url, domain=extract_domain(url))

    @classmethod
    def failed(cls, url: str, error: str) -> "Product":
        """Record emitted once every retry for a page has been used up."""
        return cls(url=url, domain=extract_domain(url), error=error)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

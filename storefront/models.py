# storefront/models.py
from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime


class BusinessRecord(BaseModel):
    owner_id: str = Field(..., description="Id of the owning user document")
    name: str
    town: str
    description: Optional[str] = None
    payment_handle: Optional[str] = None  # swish number
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    tiktok: Optional[str] = None
    owners: List[str] = Field(default_factory=list)
    slug: Optional[str] = None
    old_slugs: List[str] = Field(default_factory=list)


class Item(BaseModel):
    id: str
    name: str
    description: str = ""
    price: float = Field(..., ge=0)
    type: Literal["product", "service"] = "product"
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class WebsitePayload(BaseModel):
    business: BusinessRecord
    items: List[Item] = Field(default_factory=list)

    @property
    def canonical_slug(self):
        """Slug the storefront should be served under, or None for unslugged records."""
        return self.business.slug

    def find_item(self, item_id):
        for item in self.items:
            if item.id == item_id:
                return item
        return None


class GovernorStats(BaseModel):
    daily_reads: int
    max_daily_reads: int
    cache_size: int
    max_cache_size: int
    usage_ratio: float
    level: Literal["ok", "caution", "warning"]
    daily_cost_at_limit: float
    monthly_cost_at_limit: float
    yearly_cost_at_limit: float

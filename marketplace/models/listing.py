from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict

ListingStatus = Literal["published", "unpublished", "sold"]


class ListingSnapshot(BaseModel):
    """
    The slice of a vehicle listing the entitlement engine reads.

    Only published listings count toward the active-listing quota; a featured
    listing holds one featured slot whatever its status.
    """
    model_config = ConfigDict(frozen=True)

    status: ListingStatus = "published"
    is_featured: bool = False
    listing_id: Optional[str] = None
    listing_expires_at: Optional[datetime] = None

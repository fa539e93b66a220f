from pydantic import Field
from datetime import datetime
from typing import Optional

from unimatch.schemas.base import CamelModel


class SwipeRequest(CamelModel):
    swiped_id: str = Field(min_length=1)
    is_like: bool


class SwipeResponse(CamelModel):
    is_match: bool
    match_id: Optional[str] = None


class BlockRequest(CamelModel):
    user_id: str = Field(min_length=1)


class StatusResponse(CamelModel):
    message: str


class MatchListItem(CamelModel):
    id: str
    user_id: str
    email: str
    first_name: str
    last_name: Optional[str] = None
    age: Optional[int] = None
    college: Optional[str] = None
    branch: Optional[str] = None
    graduation_year: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: datetime


class DeduplicateResponse(CamelModel):
    total_matches: int
    duplicates_removed: int
    unique_pairs: int
    reordered: int = 0

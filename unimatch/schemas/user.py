from pydantic import Field
from typing import Optional

from unimatch.schemas.base import CamelModel


class LoginRequest(CamelModel):
    email: str
    password: str = Field(min_length=1)


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"


class ProfileResponse(CamelModel):
    id: str
    first_name: str
    last_name: Optional[str] = None
    gender: str
    age: Optional[int] = None
    college: Optional[str] = None
    branch: Optional[str] = None
    graduation_year: Optional[str] = None
    profile_image_url: Optional[str] = None


class DiscoverNextResponse(CamelModel):
    profile: Optional[ProfileResponse] = None
    message: Optional[str] = None

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class BannerCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    imageUrl: str = ""
    link: str = ""
    position: str = "homepage_top"
    isActive: bool = True
    sortOrder: int = 0


class BannerUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    imageUrl: Optional[str] = None
    link: Optional[str] = None
    position: Optional[str] = None
    isActive: Optional[bool] = None
    sortOrder: Optional[int] = None


class PackageType(str, Enum):
    basic = "basic"
    featured = "featured"
    premium = "premium"


class PackageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    type: PackageType = PackageType.basic
    price: float = Field(..., ge=0, description="Price in rupees")
    duration: int = Field(..., ge=1, description="Validity in days")
    features: List[str] = Field(default_factory=list)
    isActive: bool = True
    sortOrder: int = 0


class PackageUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    type: Optional[PackageType] = None
    price: Optional[float] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=1)
    features: Optional[List[str]] = None
    isActive: Optional[bool] = None
    sortOrder: Optional[int] = None


class UserStatus(str, Enum):
    active = "active"
    suspended = "suspended"


class UserStatusUpdate(BaseModel):
    status: UserStatus

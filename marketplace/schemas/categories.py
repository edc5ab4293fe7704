from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    slug: Optional[str] = None
    # legacy clients send icon/order/active
    iconUrl: str = Field("", validation_alias=AliasChoices("iconUrl", "icon"))
    description: str = ""
    sortOrder: int = Field(0, validation_alias=AliasChoices("sortOrder", "order"))
    isActive: bool = Field(True, validation_alias=AliasChoices("isActive", "active"))

    class Config:
        json_schema_extra = {
            "example": {"name": "Buy", "slug": "buy", "iconUrl": "/icons/buy.svg", "sortOrder": 1, "isActive": True}
        }


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    slug: Optional[str] = None
    iconUrl: Optional[str] = Field(None, validation_alias=AliasChoices("iconUrl", "icon"))
    description: Optional[str] = None
    sortOrder: Optional[int] = Field(None, validation_alias=AliasChoices("sortOrder", "order"))
    isActive: Optional[bool] = Field(None, validation_alias=AliasChoices("isActive", "active"))


class SortOrderItem(BaseModel):
    id: str
    sortOrder: int


class SortOrderUpdate(BaseModel):
    updates: List[SortOrderItem]


class SubcategoryCreate(BaseModel):
    categoryId: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=120)
    slug: Optional[str] = None
    iconUrl: str = Field("", validation_alias=AliasChoices("iconUrl", "icon"))
    sortOrder: int = Field(0, validation_alias=AliasChoices("sortOrder", "order"))
    isActive: bool = Field(True, validation_alias=AliasChoices("isActive", "active"))


class SubcategoryUpdate(BaseModel):
    categoryId: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    slug: Optional[str] = None
    iconUrl: Optional[str] = Field(None, validation_alias=AliasChoices("iconUrl", "icon"))
    sortOrder: Optional[int] = Field(None, validation_alias=AliasChoices("sortOrder", "order"))
    isActive: Optional[bool] = Field(None, validation_alias=AliasChoices("isActive", "active"))

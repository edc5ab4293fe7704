from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class PropertyCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field("", max_length=5000)
    price: float = Field(..., ge=0)
    propertyType: str = Field(..., description="Category slug")
    subCategory: Optional[str] = Field(None, description="Subcategory slug")
    location: Dict[str, Any] = Field(default_factory=dict)
    specifications: Dict[str, Any] = Field(default_factory=dict)
    images: List[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "title": "2 BHK flat near Model Town",
                "price": 4500000,
                "propertyType": "residential",
                "subCategory": "2bhk",
                "location": {"city": "Rohtak", "area": "Model Town"},
                "specifications": {"bedrooms": 2, "bathrooms": 2, "area": 1100},
                "images": [],
            }
        }


class PropertyUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    price: Optional[float] = Field(None, ge=0)
    propertyType: Optional[str] = None
    subCategory: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    specifications: Optional[Dict[str, Any]] = None
    images: Optional[List[str]] = None


class ApprovalRequest(BaseModel):
    approvalStatus: ApprovalStatus
    rejectionReason: Optional[str] = None


class PropertyQuery(BaseModel):
    propertyType: Optional[str] = None
    subCategory: Optional[str] = None
    q: Optional[str] = None
    featured: Optional[bool] = None
    premium: Optional[bool] = None
    minPrice: Optional[float] = None
    maxPrice: Optional[float] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)

"""
Rider request/response schemas
"""
from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator

from roho.schemas.delivery import FirestoreRecord


class RiderCreate(BaseModel):
    """Register rider request"""
    phone: str = Field(..., description="WhatsApp address, e.g. whatsapp:+254712345678")
    name: str = Field(..., min_length=2)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        v = v.strip()
        if not v.startswith('whatsapp:'):
            raise ValueError('Phone must be in format: whatsapp:+254...')
        return v

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        return v.strip()


class Rider(FirestoreRecord):
    """Registered rider with delivery counters"""
    phone: str
    name: str
    status: Literal["active", "inactive"] = "active"
    created_at: datetime
    total_deliveries: int = Field(default=0, ge=0)
    earnings_minor: int = Field(default=0, ge=0)


class RiderRegistered(BaseModel):
    """Register rider response"""
    success: bool = True
    message: str
    phone: str


class RiderListResponse(BaseModel):
    """List of riders response"""
    count: int
    riders: List[Rider]

"""Pydantic schemas for request/response validation."""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


# ============================================================================
# Search Events
# ============================================================================

class SearchEventPayload(BaseModel):
    """A completed search reported by the search handler."""
    query: str = Field("", max_length=500)
    duration_ms: int = Field(..., ge=0)
    result_count: int = Field(0, ge=0)
    filters: List[str] = []
    succeeded: bool = True
    error_detail: Optional[str] = None


class SearchEventResponse(BaseModel):
    """Response for search event recording."""
    status: str
    window_size: int


# ============================================================================
# Click Tracking
# ============================================================================

class ClickTrackingPayload(BaseModel):
    """Click on a search result."""
    query: str = Field(..., min_length=1, max_length=500)
    product_id: str = Field(..., min_length=1, max_length=64)
    position: int = Field(..., ge=0)
    result_count: int = Field(0, ge=0)
    filters: List[str] = []
    category: Optional[str] = None
    price: Optional[float] = None
    score: Optional[float] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    timestamp: Optional[datetime] = None


class ConversionPayload(BaseModel):
    """Purchase attributed to a search."""
    query: str = Field(..., min_length=1, max_length=500)
    product_id: str = Field(..., min_length=1, max_length=64)
    revenue: float = Field(0.0, ge=0)


class AddToCartPayload(BaseModel):
    """Add-to-cart attributed to a search."""
    query: str = Field(..., min_length=1, max_length=500)
    product_id: str = Field(..., min_length=1, max_length=64)


# ============================================================================
# Error Response
# ============================================================================

class ErrorResponse(BaseModel):
    """Error response schema."""
    success: bool = False
    error: str

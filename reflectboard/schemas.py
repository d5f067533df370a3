"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming data validation
- Response models for API responses
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Pydantic Request Models
# =============================================================================

class MessageCreate(BaseModel):
    """
    Pydantic model for validating message submissions.

    Validates:
    - text: required, non-blank after trimming, max 4096 characters
    - category: optional, max 50 characters
    - author: optional, max 100 characters; blank means anonymous
    """
    text: str = Field(
        ...,
        max_length=4096,
        description="Message text"
    )
    category: Optional[str] = Field(
        None,
        max_length=50,
        description="Display category, defaults to 'Honest Message'"
    )
    author: Optional[str] = Field(
        None,
        max_length=100,
        description="Display author, defaults to 'Anonymous'"
    )

    @field_validator("text")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty or whitespace-only text and store it trimmed."""
        v = v.strip()
        if not v:
            raise ValueError("text must not be empty")
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "text": "What if we measured success by how often we choose courage over comfort?",
                    "category": "Question to Ponder",
                    "author": "Anonymous"
                }
            ]
        }
    }


# =============================================================================
# Pydantic Response Models
# =============================================================================

class MessageResponse(BaseModel):
    """Response model for a single message."""
    id: int = Field(..., description="Message identifier")
    text: str = Field(..., description="Message text")
    category: str = Field(..., description="Display category")
    author: str = Field(..., description="Display author")
    reflection_count: int = Field(..., ge=0, description="Number of reflections")
    created_at: datetime = Field(..., description="Creation time (UTC)")

    model_config = {"from_attributes": True}


class MessagesListResponse(BaseModel):
    """
    Response model for GET /messages.

    Contains:
    - data: most recent messages, newest first
    - total_reflections: sum of reflection counts across all messages
    """
    data: list[MessageResponse] = Field(
        default_factory=list,
        description="List of messages"
    )
    total_reflections: int = Field(
        ...,
        ge=0,
        description="Total reflections across all messages"
    )


class RankedMessagesResponse(BaseModel):
    """Response model for GET /reflections, most reflected first."""
    data: list[MessageResponse] = Field(default_factory=list)


class ReflectResponse(BaseModel):
    """
    Response model for POST /reflect/{message_id}.

    success is true only when a new reflection was recorded, in which case
    count carries the updated reflection count.
    """
    success: bool = Field(..., description="Whether a new reflection was recorded")
    count: Optional[int] = Field(None, ge=0, description="Updated reflection count")
    message: Optional[str] = Field(None, description="Reason when success is false")


class CategoryCount(BaseModel):
    """Message count for one category in stats."""
    category: str
    count: int = Field(..., ge=0)


class StatsResponse(BaseModel):
    """
    Response model for GET /stats.

    - total_messages: total count of all messages
    - total_reflections: sum of all reflection counters
    - unique_voters: distinct voter identities that reflected at least once
    - messages_per_category: messages per category sorted by count (descending)
    """
    total_messages: int = Field(..., ge=0)
    total_reflections: int = Field(..., ge=0)
    unique_voters: int = Field(..., ge=0)
    messages_per_category: list[CategoryCount] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")


class HealthCheckResponse(BaseModel):
    """Response model for GET /health."""
    status: str = Field(default="OK")
    timestamp: str = Field(..., description="Server time, ISO-8601")

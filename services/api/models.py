"""Pydantic models for API request/response schemas."""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from core.types import SessionPhase


class ParseRequest(BaseModel):
    """
    Request to parse one catalog category for a user.

    The URL must point at a catalog category page; supported filter
    parameters (priceU, xsubject, fbrand, fsupplier, sort) are carried over.
    """
    user_id: int = Field(..., description="Requesting user identifier")
    url: str = Field(..., min_length=1, description="Catalog category URL")

    model_config = {
        "json_schema_extra": {
            "example": {
                "user_id": 123456789,
                "url": "https://www.wildberries.ru/catalog/dom-i-dacha/vannaya/aksessuary?sort=newly"
            }
        }
    }


class ParseStartedResponse(BaseModel):
    """Parsing accepted and running in the background."""
    user_id: int = Field(..., description="Requesting user identifier")
    status: str = Field(default="started", description="Always 'started'")
    stream_url: str = Field(..., description="SSE endpoint with live progress")


class SessionStatusResponse(BaseModel):
    """
    Current parsing state of a user.

    ``phase`` is ``idle`` and ``active`` false when nothing runs.
    """
    user_id: int = Field(..., description="User identifier")
    active: bool = Field(..., description="Whether a session is running")
    phase: SessionPhase = Field(default=SessionPhase.IDLE, description="Session phase")
    page: int = Field(default=0, description="Page being processed")
    started_at: Optional[datetime] = Field(default=None, description="Session start time")
    progress: List[str] = Field(default_factory=list, description="Progress lines so far")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Overall health status")
    active_sessions: int = Field(..., description="Sessions currently running")


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str = Field(..., description="Error message")

    model_config = {
        "json_schema_extra": {
            "example": {
                "detail": "Parsing is already running"
            }
        }
    }

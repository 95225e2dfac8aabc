"""Health check endpoint."""
from fastapi import APIRouter, Depends

from ..dependencies import get_parser
from ..models import HealthResponse
from core.parsing_session import ParsingSession


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(parser: ParsingSession = Depends(get_parser)):
    """
    Health check.

    Verifies that the API service is running and reports how many parsing
    sessions are in flight.

    Example response:
        ```json
        {
            "status": "ok",
            "active_sessions": 1
        }
        ```
    """
    return {
        "status": "ok",
        "active_sessions": len(parser.registry)
    }

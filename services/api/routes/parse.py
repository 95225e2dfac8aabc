"""Parsing session endpoints."""
from fastapi import APIRouter, Depends, HTTPException
from typing import Set
import asyncio

from ..dependencies import get_app_settings, get_background_tasks, get_hub, get_parser
from ..models import ErrorResponse, ParseRequest, ParseStartedResponse, SessionStatusResponse
from .. import queue
from core.parsing_session import ParsingSession
from core.progress import ProgressHub
from utils.config_loader import Settings


router = APIRouter()


@router.post(
    "",
    response_model=ParseStartedResponse,
    status_code=202,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def start_parsing(
    req: ParseRequest,
    parser: ParsingSession = Depends(get_parser),
    tasks: Set[asyncio.Task] = Depends(get_background_tasks),
    settings: Settings = Depends(get_app_settings),
):
    """
    Start parsing a catalog category for a user.

    The run continues in the background; progress is available from the
    stream endpoint and the status endpoint.

    Args:
        req: User id and catalog URL
        parser: Shared orchestrator (injected)
        tasks: Background task set (injected)
        settings: Application settings (injected)

    Returns:
        ParseStartedResponse: Acknowledgement with the stream URL

    Raises:
        HTTPException: 403 for users without access, 400 for URLs outside
            the catalog, 409 if the user already has a run in progress

    Example request:
        ```json
        {
            "user_id": 123456789,
            "url": "https://www.wildberries.ru/catalog/dom-i-dacha/vannaya/aksessuary"
        }
        ```
    """
    allowed = settings.allowed_users
    if allowed and req.user_id not in allowed:
        raise HTTPException(status_code=403, detail="You do not have access to this service.")

    url = req.url.strip()
    if not url.startswith(settings.catalog_url_prefix):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid URL. The link must start with \"{settings.catalog_url_prefix}\"",
        )

    # Claims the user and resets its event stream before the 202 goes out.
    if not parser.reserve(req.user_id):
        raise HTTPException(
            status_code=409,
            detail="Parsing is already running. Please wait for it to finish.",
        )

    try:
        queue.enqueue_parse_session(parser, tasks, req.user_id, url)
    except Exception:
        parser.registry.release(req.user_id)
        raise

    return ParseStartedResponse(
        user_id=req.user_id,
        stream_url=f"/api/parse/{req.user_id}/stream",
    )


@router.get("/{user_id}", response_model=SessionStatusResponse)
async def get_parsing_status(
    user_id: int,
    parser: ParsingSession = Depends(get_parser),
    hub: ProgressHub = Depends(get_hub),
):
    """
    Get the parsing state of a user.

    Returns ``active: false`` and phase ``idle`` when no session runs.
    """
    state = parser.registry.get(user_id)
    if state is None:
        return SessionStatusResponse(user_id=user_id, active=False)

    return SessionStatusResponse(
        user_id=user_id,
        active=state.active,
        phase=state.phase,
        page=state.page,
        started_at=state.started_at,
        progress=hub.lines(user_id),
    )

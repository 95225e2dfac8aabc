"""Background execution of parsing sessions."""
import asyncio
import logging
from typing import Set

from core.parsing_session import ParsingSession

logger = logging.getLogger(__name__)


def enqueue_parse_session(
    parser: ParsingSession,
    tasks: Set[asyncio.Task],
    user_id: int,
    url: str,
) -> asyncio.Task:
    """
    Run a parsing session in the background of the API event loop.

    The caller must already hold the user through ``parser.reserve``; the
    session releases it when it ends. The task is kept in ``tasks`` until it
    finishes so it is not garbage collected mid-run and can be cancelled on
    shutdown.

    Args:
        parser: Shared orchestrator
        tasks: Set of running background tasks (app state)
        user_id: Requesting user
        url: Catalog category URL

    Returns:
        asyncio.Task: The running session task
    """
    task = asyncio.create_task(
        parser.start(user_id, url, reserved=True), name=f"parse-{user_id}"
    )
    tasks.add(task)

    def _done(finished: asyncio.Task) -> None:
        tasks.discard(finished)
        if not finished.cancelled() and finished.exception() is not None:
            logger.error(
                f"Parsing task for user {user_id} crashed: {finished.exception()}"
            )

    task.add_done_callback(_done)
    logger.info(f"Started parsing for user {user_id}: {url}")
    return task

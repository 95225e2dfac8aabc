"""FastAPI dependencies."""
from typing import Set
import asyncio

from fastapi import Request

from core.parsing_session import ParsingSession
from core.progress import ProgressHub
from utils.config_loader import Settings
from utils.export_writers import XlsxReportExporter


async def get_parser(request: Request) -> ParsingSession:
    """
    Get the parsing session orchestrator from app state.

    The orchestrator is built during application startup and shared by
    every request, so the one-run-per-user rule holds across requests.

    Args:
        request: FastAPI request object

    Returns:
        ParsingSession: Shared orchestrator
    """
    return request.app.state.parser


async def get_hub(request: Request) -> ProgressHub:
    return request.app.state.hub


async def get_exporter(request: Request) -> XlsxReportExporter:
    return request.app.state.exporter


async def get_background_tasks(request: Request) -> Set[asyncio.Task]:
    return request.app.state.background_tasks


async def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings

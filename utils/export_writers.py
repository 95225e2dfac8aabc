from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from importlib import import_module
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from core.progress import ProgressHub
from core.types import ReportRow, UserID
from utils.config_loader import Settings, get_settings

logger = logging.getLogger(__name__)

REPORT_SHEET = "data"
REPORT_HEADERS = ("Term", "Product count", "Monthly frequency")
REPORT_COLUMN_WIDTHS = (50, 30, 30)

_OPENPYXL_PRIMITIVES: Optional[Dict[str, Any]] = None
_OPENPYXL_STYLES: Optional[Dict[str, Any]] = None


def _load_openpyxl_primitives() -> Dict[str, Any]:
    """Lazy-load openpyxl symbols only when exports actually need them."""

    global _OPENPYXL_PRIMITIVES
    if _OPENPYXL_PRIMITIVES is None:
        openpyxl = import_module("openpyxl")
        styles = import_module("openpyxl.styles")
        utils_module = import_module("openpyxl.utils")
        _OPENPYXL_PRIMITIVES = {
            "Workbook": openpyxl.Workbook,
            "Alignment": styles.Alignment,
            "Border": styles.Border,
            "Font": styles.Font,
            "PatternFill": styles.PatternFill,
            "Side": styles.Side,
            "get_column_letter": utils_module.get_column_letter,
        }
    return _OPENPYXL_PRIMITIVES


def _get_openpyxl_styles() -> Dict[str, Any]:
    global _OPENPYXL_STYLES
    if _OPENPYXL_STYLES is None:
        primitives = _load_openpyxl_primitives()
        Side = primitives["Side"]
        Border = primitives["Border"]
        PatternFill = primitives["PatternFill"]
        Font = primitives["Font"]
        Alignment = primitives["Alignment"]

        thin_side = Side(style="thin", color="D1D5DB")
        _OPENPYXL_STYLES = {
            "GRID_BORDER": Border(
                top=thin_side, bottom=thin_side, left=thin_side, right=thin_side
            ),
            "HEADER_FILL": PatternFill(fill_type="solid", fgColor="E5E7EB"),
            "HEADER_FONT": Font(name="Calibri", size=11, bold=True, color="1F2937"),
            "BODY_FONT": Font(name="Calibri", size=11, color="111827"),
            "ALIGN_LEFT": Alignment(
                vertical="center", horizontal="left", wrap_text=True
            ),
            "ALIGN_RIGHT": Alignment(vertical="center", horizontal="right"),
            "ALIGN_CENTER": Alignment(
                vertical="center", horizontal="center", wrap_text=True
            ),
        }
    return _OPENPYXL_STYLES


def apply_tabular_style(ws) -> None:
    """Apply consistent styling to an openpyxl worksheet."""

    styles = _get_openpyxl_styles()
    grid_border = styles["GRID_BORDER"]

    if ws.max_row == 0 or ws.max_column == 0:
        return

    ws.freeze_panes = "A2"

    header_cells = next(ws.iter_rows(min_row=1, max_row=1))
    for cell in header_cells:
        cell.font = styles["HEADER_FONT"]
        cell.fill = styles["HEADER_FILL"]
        cell.alignment = styles["ALIGN_CENTER"]
        cell.border = grid_border

    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.font = styles["BODY_FONT"]
            cell.border = grid_border
            if isinstance(cell.value, (int, float)):
                cell.alignment = styles["ALIGN_RIGHT"]
            else:
                cell.alignment = styles["ALIGN_LEFT"]


def sanitize_filename(name: str) -> str:
    """Keep letters (any script), digits, dot, dash and underscore."""
    cleaned = re.sub(r"[^\w.\-]+", "_", name, flags=re.UNICODE).strip("._")
    return cleaned[:150] or "report"


def write_report_workbook(rows: List[ReportRow], path: Path) -> Path:
    """Write report rows to an xlsx file with one ``data`` sheet."""
    primitives = _load_openpyxl_primitives()
    get_column_letter = primitives["get_column_letter"]

    workbook = primitives["Workbook"]()
    ws = workbook.active
    ws.title = REPORT_SHEET
    ws.append(list(REPORT_HEADERS))
    for row in rows:
        ws.append([row.term, row.product_count, row.monthly_frequency])

    for index, width in enumerate(REPORT_COLUMN_WIDTHS, start=1):
        ws.column_dimensions[get_column_letter(index)].width = width

    apply_tabular_style(ws)

    path.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(path)
    return path


class XlsxReportExporter:
    """Default report collaborator: xlsx on disk, announced on the progress hub.

    Delivered files are deleted after ``report_retention_seconds`` so the
    output directory does not grow without bound.
    """

    def __init__(self, hub: ProgressHub, settings: Optional[Settings] = None):
        self.hub = hub
        self.settings = settings or get_settings()
        self.output_dir = Path(self.settings.output_dir)
        self._cleanup_tasks: Set[asyncio.Task] = set()

    async def export(self, rows: List[ReportRow], name: str) -> Optional[Path]:
        if not rows:
            logger.warning("No data to save to Excel", extra={"stage": "report"})
            return None
        path = self.output_dir / f"{sanitize_filename(name)}.xlsx"
        await asyncio.to_thread(write_report_workbook, rows, path)
        logger.info(f"Saved Excel to {path}", extra={"stage": "report"})
        return path

    async def deliver(self, location: Optional[Path], user_id: UserID) -> None:
        if location is None:
            return
        path = Path(location)
        if not path.exists():
            raise FileNotFoundError(f"Report file is missing: {path}")

        today = datetime.now(timezone.utc).strftime("%d.%m.%Y")
        await self.hub.report_ready(
            user_id,
            path.name,
            caption=f"📊 Catalog category analysis ({today})",
            size_bytes=path.stat().st_size,
        )
        logger.info(f"Report sent to user {user_id}: {path}", extra={"stage": "report"})
        self._schedule_cleanup(path)

    def resolve_report(self, filename: str) -> Optional[Path]:
        """Path of a generated report, or None for unknown or unsafe names."""
        if filename != Path(filename).name or not filename.endswith(".xlsx"):
            return None
        path = self.output_dir / filename
        return path if path.is_file() else None

    def _schedule_cleanup(self, path: Path) -> None:
        task = asyncio.create_task(self._delete_later(path))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _delete_later(self, path: Path) -> None:
        await asyncio.sleep(self.settings.report_retention_seconds)
        try:
            path.unlink()
            logger.info(f"Temporary file deleted: {path}", extra={"stage": "report"})
        except OSError as exc:
            logger.error(
                f"Error deleting temporary file {path}: {exc}", extra={"stage": "report"}
            )

    async def aclose(self) -> None:
        """Cancel pending deletions (files are left in place)."""
        for task in list(self._cleanup_tasks):
            task.cancel()
        if self._cleanup_tasks:
            await asyncio.gather(*self._cleanup_tasks, return_exceptions=True)

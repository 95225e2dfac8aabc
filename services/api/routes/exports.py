"""Report download endpoint."""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from ..dependencies import get_exporter
from utils.export_writers import XlsxReportExporter


router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/reports/{filename}")
async def download_report(
    filename: str,
    exporter: XlsxReportExporter = Depends(get_exporter),
):
    """
    Download a generated report.

    Reports are announced by the ``report`` SSE event and stay available
    until their retention period ends.

    Args:
        filename: Report file name from the ``report`` event
        exporter: Report exporter (injected)

    Returns:
        FileResponse: The xlsx workbook

    Raises:
        HTTPException: 404 if the report does not exist (or expired)
    """
    path = exporter.resolve_report(filename)
    if path is None:
        raise HTTPException(status_code=404, detail="Report not found")

    return FileResponse(path, media_type=XLSX_MEDIA_TYPE, filename=path.name)

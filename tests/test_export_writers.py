"""Tests for the xlsx report writer and exporter."""

from __future__ import annotations

import asyncio

import pytest
from openpyxl import load_workbook

from conftest import make_settings
from core.progress import ProgressHub
from core.types import EventKind, ReportRow
from utils.export_writers import XlsxReportExporter, sanitize_filename, write_report_workbook


ROWS = [
    ReportRow(term="towel", product_count=120, monthly_frequency=5400),
    ReportRow(term="bath mat", product_count=45, monthly_frequency=900),
]


def test_workbook_layout(tmp_path) -> None:
    path = write_report_workbook(ROWS, tmp_path / "report.xlsx")

    workbook = load_workbook(path)
    ws = workbook["data"]
    assert workbook.sheetnames == ["data"]
    assert [cell.value for cell in ws[1]] == ["Term", "Product count", "Monthly frequency"]
    assert [cell.value for cell in ws[2]] == ["towel", 120, 5400]
    assert [cell.value for cell in ws[3]] == ["bath mat", 45, 900]
    assert ws.column_dimensions["A"].width == 50
    assert ws.column_dimensions["B"].width == 30
    assert ws.column_dimensions["C"].width == 30
    assert ws.freeze_panes == "A2"
    assert ws["A1"].font.bold


def test_sanitize_filename_keeps_unicode_words() -> None:
    assert sanitize_filename("Ванная_analysis_1700000000000") == "Ванная_analysis_1700000000000"
    assert sanitize_filename("Bags / Backpacks") == "Bags_Backpacks"
    assert sanitize_filename("../../etc") == "etc"
    assert sanitize_filename("///") == "report"


@pytest.mark.asyncio
async def test_export_writes_file_in_output_dir(tmp_path) -> None:
    exporter = XlsxReportExporter(ProgressHub(), make_settings(output_dir=str(tmp_path)))

    path = await exporter.export(ROWS, "Vannaya_analysis_1")

    assert path == tmp_path / "Vannaya_analysis_1.xlsx"
    assert path.is_file()
    assert exporter.resolve_report("Vannaya_analysis_1.xlsx") == path


@pytest.mark.asyncio
async def test_export_without_rows_writes_nothing(tmp_path) -> None:
    exporter = XlsxReportExporter(ProgressHub(), make_settings(output_dir=str(tmp_path)))

    assert await exporter.export([], "empty") is None
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_deliver_announces_report_and_deletes_it_later(tmp_path) -> None:
    hub = ProgressHub()
    exporter = XlsxReportExporter(
        hub, make_settings(output_dir=str(tmp_path), report_retention_seconds=0)
    )
    path = await exporter.export(ROWS, "report")

    await exporter.deliver(path, 3)

    (event,) = hub.history(3)
    assert event.kind is EventKind.REPORT
    assert event.payload["filename"] == "report.xlsx"
    assert event.payload["size_bytes"] == path.stat().st_size
    assert event.payload["caption"].startswith("📊 ")

    for _ in range(10):
        if not path.exists():
            break
        await asyncio.sleep(0.01)
    assert not path.exists()


@pytest.mark.asyncio
async def test_deliver_missing_file_raises(tmp_path) -> None:
    exporter = XlsxReportExporter(ProgressHub(), make_settings(output_dir=str(tmp_path)))

    with pytest.raises(FileNotFoundError):
        await exporter.deliver(tmp_path / "missing.xlsx", 1)


@pytest.mark.asyncio
async def test_aclose_cancels_pending_cleanup(tmp_path) -> None:
    exporter = XlsxReportExporter(
        ProgressHub(), make_settings(output_dir=str(tmp_path), report_retention_seconds=60)
    )
    path = await exporter.export(ROWS, "kept")
    await exporter.deliver(path, 1)

    await exporter.aclose()

    assert path.exists()


def test_resolve_report_rejects_unsafe_names(tmp_path) -> None:
    exporter = XlsxReportExporter(ProgressHub(), make_settings(output_dir=str(tmp_path)))
    (tmp_path / "notes.txt").write_text("x")

    assert exporter.resolve_report("../secret.xlsx") is None
    assert exporter.resolve_report("notes.txt") is None
    assert exporter.resolve_report("absent.xlsx") is None

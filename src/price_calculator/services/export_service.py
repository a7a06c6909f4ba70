"""
Export renderers for a single calculation and for the price history.

Excel files are built with openpyxl (the history sheet goes through a pandas
DataFrame first), PDFs with reportlab. Outputs are write-only documents
returned as bytes.
"""
import io
import logging
import re
from datetime import datetime
from typing import Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..engine.margin import margin_label
from ..engine.models import PriceCalculation, Product, ProfitMargin, Region
from .history_service import HistoryEntry, history_frame

logger = logging.getLogger(__name__)

MONTHS = (
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
)

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")

HISTORY_COLUMNS = [
    "Tanggal", "Produk", "Satuan", "Region", "Pelanggan", "Harga Region",
    "Detail Diskon", "Total Diskon", "Harga Nett", "Margin", "Tipe Margin",
    "Harga Final", "Catatan",
]

# Points per column on landscape A4 with half-inch margins
HISTORY_PDF_WIDTHS = [54, 74, 36, 50, 58, 56, 92, 54, 56, 52, 50, 56, 68]


def format_rupiah(amount: float) -> str:
    """Rupiah with id-ID digit grouping: Rp 1.050.000."""
    sign = "-" if amount < 0 else ""
    return f"{sign}Rp {abs(amount):,.0f}".replace(",", ".")


def format_date_id(value: Optional[datetime] = None, with_time: bool = False, short: bool = False) -> str:
    """Indonesian date, e.g. "5 Maret 2025" or "5 Mar 2025 14:30"."""
    value = value or datetime.now()
    month = MONTHS[value.month - 1]
    if short:
        month = month[:3]
    text = f"{value.day} {month} {value.year}"
    if with_time:
        text += value.strftime(" %H:%M")
    return text


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None


def _safe_name(text: str) -> str:
    return re.sub(r"\s+", "_", text.strip())


def calculation_filename(product: Product, extension: str, today: Optional[datetime] = None) -> str:
    stamp = (today or datetime.now()).strftime("%Y-%m-%d")
    return f"Laporan_Harga_{_safe_name(product.name)}_{stamp}.{extension}"


def history_filename(extension: str, today: Optional[datetime] = None) -> str:
    stamp = (today or datetime.now()).strftime("%Y-%m-%d")
    return f"Riwayat_Harga_{stamp}.{extension}"


def calculation_rows(product: Product, region: Region, calculation: PriceCalculation,
                     margin: ProfitMargin) -> list[tuple[str, str]]:
    """Label/value pairs shared by the Excel and PDF calculation reports."""
    rows = [
        ("INFORMASI PRODUK", ""),
        ("Nama Produk", product.name),
        ("Kategori", product.category or "-"),
        ("Satuan", product.unit),
        ("Region", region.name),
        ("", ""),
        ("RINCIAN HARGA", ""),
        ("Harga Dasar", format_rupiah(calculation.base_price)),
        ("Harga Pricelist", format_rupiah(calculation.region_price)),
        ("", ""),
        ("POTONGAN/DISKON", ""),
    ]
    if calculation.discounts:
        rows.extend((line.label, f"-{format_rupiah(line.amount)}") for line in calculation.discounts)
    else:
        rows.append(("Tidak ada diskon", ""))
    rows.extend([
        ("Total Potongan", f"-{format_rupiah(calculation.total_discount)}"),
        ("", ""),
        ("Harga Nett", format_rupiah(calculation.net_price)),
        ("", ""),
        ("MARGIN KEUNTUNGAN", ""),
        ("Tipe Pembayaran", margin_label(margin)),
        ("Margin", f"+{format_rupiah(calculation.margin_amount)}"),
        ("", ""),
        ("HARGA JUAL FINAL", format_rupiah(calculation.final_price)),
    ])
    return rows


SECTION_LABELS = {"INFORMASI PRODUK", "RINCIAN HARGA", "POTONGAN/DISKON", "MARGIN KEUNTUNGAN"}


def _workbook_bytes(wb: Workbook) -> bytes:
    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def _autosize(ws):
    for column in ws.columns:
        width = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
        ws.column_dimensions[get_column_letter(column[0].column)].width = min(width + 2, 50)


def calculation_to_excel(product: Product, region: Region, calculation: PriceCalculation,
                         margin: ProfitMargin) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Laporan Harga"

    ws.append(["LAPORAN HARGA JUAL"])
    ws["A1"].font = Font(bold=True, size=14)
    ws.append(["Tanggal", format_date_id()])
    ws.append([])

    for label, value in calculation_rows(product, region, calculation, margin):
        ws.append([label, value])
        row = ws[ws.max_row]
        if label in SECTION_LABELS:
            for cell in row:
                cell.fill = HEADER_FILL
                cell.font = HEADER_FONT
        elif label == "HARGA JUAL FINAL":
            row[0].font = Font(bold=True, size=12)
            row[1].font = Font(bold=True, size=12)
        row[1].alignment = Alignment(horizontal="right")

    _autosize(ws)
    return _workbook_bytes(wb)


def _pdf_styles():
    styles = getSampleStyleSheet()
    title = ParagraphStyle(
        "ReportTitle",
        parent=styles["Title"],
        fontSize=18,
        textColor=colors.HexColor("#1E293B"),
        spaceAfter=12,
    )
    return title, styles["Normal"]


def _build_pdf(story, pagesize) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=pagesize,
        leftMargin=0.5 * inch,
        rightMargin=0.5 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
    )
    doc.build(story)
    return buf.getvalue()


def calculation_to_pdf(product: Product, region: Region, calculation: PriceCalculation,
                       margin: ProfitMargin) -> bytes:
    title_style, normal = _pdf_styles()
    story = [
        Paragraph("<b>LAPORAN HARGA JUAL</b>", title_style),
        Paragraph(f"Tanggal: {format_date_id()}", normal),
        Spacer(1, 0.2 * inch),
    ]

    rows = [[label, value] for label, value in calculation_rows(product, region, calculation, margin)]
    table = Table(rows, colWidths=[3.5 * inch, 3 * inch])
    style = [
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
    ]
    for i, (label, _) in enumerate(rows):
        if label in SECTION_LABELS:
            style += [
                ("BACKGROUND", (0, i), (-1, i), colors.HexColor("#366092")),
                ("TEXTCOLOR", (0, i), (-1, i), colors.whitesmoke),
                ("FONTNAME", (0, i), (-1, i), "Helvetica-Bold"),
            ]
        elif label in ("Harga Nett", "HARGA JUAL FINAL"):
            style.append(("FONTNAME", (0, i), (-1, i), "Helvetica-Bold"))
            style.append(("LINEABOVE", (0, i), (-1, i), 1, colors.grey))
    table.setStyle(TableStyle(style))
    story.append(table)
    return _build_pdf(story, A4)


def history_table(entries: list[HistoryEntry]) -> pd.DataFrame:
    """History rendered as display strings, one column per report field."""
    df = history_frame(entries)
    if df.empty:
        return pd.DataFrame(columns=HISTORY_COLUMNS)

    def when(value):
        parsed = _parse_timestamp(value)
        return format_date_id(parsed, with_time=True, short=True) if parsed else value

    def discount_details(lines):
        return "; ".join(f"{line.label}: {format_rupiah(line.amount)}" for line in lines) or "-"

    return pd.DataFrame({
        "Tanggal": df["created_at"].map(when),
        "Produk": df["product_name"],
        "Satuan": df["product_unit"],
        "Region": df["region_name"],
        "Pelanggan": df["customer"].fillna("-"),
        "Harga Region": df["region_price"].map(format_rupiah),
        "Detail Diskon": df["discounts"].map(discount_details),
        "Total Diskon": df["total_discount"].map(format_rupiah),
        "Harga Nett": df["net_price"].map(format_rupiah),
        "Margin": df["margin_amount"].map(format_rupiah),
        "Tipe Margin": df["margin_type"],
        "Harga Final": df["final_price"].map(format_rupiah),
        "Catatan": df["notes"].fillna("-"),
    })


def history_to_excel(entries: list[HistoryEntry]) -> bytes:
    table = history_table(entries)
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        table.to_excel(writer, sheet_name="Riwayat Harga", index=False, startrow=3)
        ws = writer.sheets["Riwayat Harga"]
        ws["A1"] = "RIWAYAT KALKULASI HARGA"
        ws["A1"].font = Font(bold=True, size=14)
        ws["A2"] = "Tanggal Ekspor:"
        ws["B2"] = format_date_id(with_time=True)
        ws["A3"] = "Total Data:"
        ws["B3"] = len(table)
        for cell in ws[4]:
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.alignment = Alignment(horizontal="center", vertical="center")
        _autosize(ws)
    logger.info("History exported to Excel: %d rows", len(table))
    return output.getvalue()


def history_to_pdf(entries: list[HistoryEntry]) -> bytes:
    title_style, normal = _pdf_styles()
    cell_style = ParagraphStyle("Cell", parent=normal, fontSize=7, leading=9)
    table = history_table(entries)

    story = [
        Paragraph("<b>RIWAYAT KALKULASI HARGA</b>", title_style),
        Paragraph(f"Tanggal Ekspor: {format_date_id(with_time=True)}", normal),
        Paragraph(f"Total Data: {len(table)}", normal),
        Spacer(1, 0.2 * inch),
    ]
    data = [HISTORY_COLUMNS]
    for values in table.itertuples(index=False):
        data.append([Paragraph(str(v), cell_style) for v in values])

    pdf_table = Table(data, colWidths=HISTORY_PDF_WIDTHS, repeatRows=1)
    pdf_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#366092")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 7),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F8FAFC")]),
    ]))
    story.append(pdf_table)
    return _build_pdf(story, landscape(A4))

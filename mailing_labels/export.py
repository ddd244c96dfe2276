from __future__ import annotations
import io
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence, Union

import pandas as pd
from openpyxl.utils import get_column_letter
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from .layout import POINTS_PER_INCH, PlacedText, layout_label, uses_stacked_layout
from .models import NAME_FORMATS, LabelCustomization, LabelPosition, LabelTemplate, MailingLabelData
from .templates import get_template

logger = logging.getLogger(__name__)

EXCEL_HEADERS = ["Name", "Address 1", "Address 2", "City", "State", "ZIP"]
EXCEL_COLUMN_WIDTHS = [30, 30, 20, 20, 8, 12]
SHEET_NAME = "Mailing Labels"

Target = Union[str, Path, BinaryIO]


def default_filename(ext: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"mailing-labels-{today.isoformat()}.{ext.lstrip('.')}"


def _check_name_format(name_format: str) -> str:
    if name_format not in NAME_FORMATS:
        raise ValueError(f"Unknown name format: {name_format}")
    return name_format


def label_rows(labels: Sequence[MailingLabelData], name_format: str = "office") -> List[List[str]]:
    _check_name_format(name_format)
    return [
        [lab.display_name(name_format), lab.address1, lab.address2, lab.city, lab.state, lab.zip]
        for lab in labels
    ]


def export_excel(labels: Sequence[MailingLabelData], target: Target, name_format: str = "office") -> int:
    """Write one worksheet of label rows. Returns the number of data rows written."""
    rows = label_rows(labels, name_format)
    df = pd.DataFrame(rows, columns=EXCEL_HEADERS)
    with pd.ExcelWriter(target, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
        ws = writer.sheets[SHEET_NAME]
        for idx, width in enumerate(EXCEL_COLUMN_WIDTHS, start=1):
            ws.column_dimensions[get_column_letter(idx)].width = width
    logger.info("Exported %d mailing labels to Excel", len(rows))
    return len(rows)


def label_position(index: int, template: LabelTemplate) -> LabelPosition:
    """Top-left corner of label `index`, in inches from the top-left of its page."""
    if index < 0:
        raise ValueError("index must be >= 0")
    page, slot = divmod(index, template.per_page)
    row, col = divmod(slot, template.columns)
    return LabelPosition(
        page=page,
        row=row,
        col=col,
        x=template.margin_left + col * template.cell_width,
        y=template.margin_top + row * template.cell_height,
    )


def page_count(n_labels: int, template: LabelTemplate) -> int:
    return -(-n_labels // template.per_page) if n_labels else 0


def resolve_customization(customization: Optional[LabelCustomization], show_to_label: bool = False) -> LabelCustomization:
    custom = customization or LabelCustomization()
    if show_to_label and not custom.show_to_label:
        custom = replace(custom, show_to_label=True)
    return custom


@dataclass
class PreviewCell:
    row: int
    col: int
    x: float
    y: float
    lines: List[str] = field(default_factory=list)
    from_lines: List[str] = field(default_factory=list)
    branding: str = ""
    align: str = "center"
    font_size: float = 0.0
    stacked: bool = False

    @property
    def empty(self) -> bool:
        return not self.lines


@dataclass
class PreviewPage:
    number: int
    cells: List[PreviewCell] = field(default_factory=list)


def preview_pages(
    labels: Sequence[MailingLabelData],
    template_code: str,
    name_format: str = "office",
    show_to_label: bool = False,
    customization: Optional[LabelCustomization] = None,
) -> List[PreviewPage]:
    """Full sheet grids for the print preview; unused slots on the last page are empty cells."""
    _check_name_format(name_format)
    template = get_template(template_code)
    custom = resolve_customization(customization, show_to_label)
    pages: List[PreviewPage] = []
    for page_no in range(page_count(len(labels), template)):
        page = PreviewPage(number=page_no + 1)
        for slot in range(template.per_page):
            index = page_no * template.per_page + slot
            pos = label_position(index, template)
            cell = PreviewCell(row=pos.row, col=pos.col, x=pos.x, y=pos.y)
            if index < len(labels):
                placed = layout_label(labels[index], template, name_format, custom)
                to_block = [p for p in placed if p.block == "to"]
                cell.lines = [p.text for p in to_block]
                cell.from_lines = [p.text for p in placed if p.block == "from"]
                cell.branding = next((p.text for p in placed if p.block == "branding"), "")
                cell.align = custom.to_alignment
                cell.font_size = to_block[0].size if to_block else 0.0
                cell.stacked = bool(cell.from_lines) and uses_stacked_layout(template, custom)
            page.cells.append(cell)
        pages.append(page)
    return pages


def _draw_text(c: canvas.Canvas, item: PlacedText, left: float, top: float) -> None:
    x = left + item.x
    # reportlab's origin is bottom-left
    y = top - item.y
    c.setFont(item.font, item.size)
    if item.align == "left":
        c.drawString(x, y, item.text)
    elif item.align == "right":
        c.drawRightString(x, y, item.text)
    else:
        c.drawCentredString(x, y, item.text)


def export_pdf(
    labels: Sequence[MailingLabelData],
    target: Target,
    template_code: str = "5160",
    name_format: str = "office",
    show_to_label: bool = False,
    customization: Optional[LabelCustomization] = None,
) -> int:
    """Render labels onto Avery sheets. Returns the number of labels drawn."""
    _check_name_format(name_format)
    template = get_template(template_code)
    custom = resolve_customization(customization, show_to_label)
    page_width, page_height = letter
    c = canvas.Canvas(target if not isinstance(target, Path) else str(target), pagesize=letter)
    c.setTitle("Mailing Labels")

    drawn = 0
    current_page = 0
    for index, label in enumerate(labels):
        pos = label_position(index, template)
        if pos.page != current_page:
            c.showPage()
            current_page = pos.page
        left = pos.x * POINTS_PER_INCH
        top = page_height - pos.y * POINTS_PER_INCH
        for item in layout_label(label, template, name_format, custom):
            _draw_text(c, item, left, top)
        drawn += 1
    c.showPage()
    c.save()
    logger.info("Rendered %d labels on %d page(s) using %s", drawn,
                page_count(drawn, template) or 1, template.name)
    return drawn


def excel_bytes(labels: Sequence[MailingLabelData], name_format: str = "office") -> bytes:
    buf = io.BytesIO()
    export_excel(labels, buf, name_format)
    return buf.getvalue()


def pdf_bytes(labels: Sequence[MailingLabelData], template_code: str = "5160",
              name_format: str = "office", show_to_label: bool = False,
              customization: Optional[LabelCustomization] = None) -> bytes:
    buf = io.BytesIO()
    export_pdf(labels, buf, template_code, name_format, show_to_label, customization)
    return buf.getvalue()

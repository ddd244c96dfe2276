"""
Placement of the text blocks inside one label, shared by the PDF renderer and
the print preview.

Blocks, top to bottom: the optional return address ("From:"), the recipient
block ("To:"), and an optional branding footer. In the split layout the return
address sits in a top corner and the recipient block is centred over the whole
label; in the stacked layout the recipient block starts below the return
address. All coordinates are points from the label's top-left corner, `y` being
the text baseline.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from reportlab.pdfbase.pdfmetrics import stringWidth

from .address_parser import parse_address
from .models import LabelCustomization, LabelTemplate, MailingLabelData

POINTS_PER_INCH = 72.0
LINE_SPACING = {"compact": 1.15, "normal": 1.3, "relaxed": 1.55}
# labels at least this tall stack the return address above the recipient in auto mode
STACKED_MIN_HEIGHT = 2.0
LARGE_LABEL_HEIGHT = 2.5
FROM_WIDTH_RATIO = 0.45


@dataclass(frozen=True)
class PlacedText:
    text: str
    x: float
    y: float
    font: str
    size: float
    align: str
    block: str


def font_size_for(template: LabelTemplate, multiplier: float = 1.0) -> float:
    height_pt = template.label_height * POINTS_PER_INCH
    if height_pt < 72:
        base = 8
    elif height_pt < 108:
        base = 10
    elif height_pt < 180:
        base = 12
    else:
        base = 14
    return max(6.0, min(24.0, base * multiplier))


def truncate_text(text: str, max_width: float, font: str, size: float) -> str:
    if stringWidth(text, font, size) <= max_width:
        return text
    truncated = text
    while truncated and stringWidth(truncated + "...", font, size) > max_width:
        truncated = truncated[:-1]
    return truncated + "..."


def label_lines(label: MailingLabelData, name_format: str = "office", show_to_label: bool = False) -> List[str]:
    lines = ["To:"] if show_to_label else []
    lines += [label.display_name(name_format), label.address1, label.address2, label.city_line()]
    return [line for line in lines if line and line.strip()]


def default_return_address(clinic_name: Optional[str], clinic_address: Optional[str]) -> str:
    """Clinic name plus its parsed address as up to three return-address lines."""
    parsed = parse_address(clinic_address)
    street = " ".join(p for p in (parsed.address1, parsed.address2) if p)
    city = MailingLabelData("", "", city=parsed.city, state=parsed.state, zip=parsed.zip).city_line()
    lines = [(clinic_name or "").strip(), street, city]
    return "\n".join(line for line in lines if line)


def uses_stacked_layout(template: LabelTemplate, custom: LabelCustomization) -> bool:
    if custom.layout_mode == "stacked":
        return True
    if custom.layout_mode == "split":
        return False
    return custom.has_return_address and template.label_height >= STACKED_MIN_HEIGHT


def _anchor_x(align: str, width: float, padding: float) -> float:
    if align == "left":
        return padding
    if align == "right":
        return width - padding
    return width / 2


def layout_label(
    label: MailingLabelData,
    template: LabelTemplate,
    name_format: str = "office",
    custom: Optional[LabelCustomization] = None,
) -> List[PlacedText]:
    custom = custom or LabelCustomization()
    width = template.label_width * POINTS_PER_INCH
    height = template.label_height * POINTS_PER_INCH
    padding = (0.1 if template.label_height >= LARGE_LABEL_HEIGHT else 0.05) * POINTS_PER_INCH
    content_width = width - 2 * padding
    spacing = LINE_SPACING[custom.line_spacing]
    size = font_size_for(template, custom.font_size_multiplier)
    small = size * 0.75 * custom.from_font_size_multiplier
    placed: List[PlacedText] = []

    top = padding
    return_lines = custom.return_lines()
    if return_lines:
        from_lines = (["From:"] if custom.show_from_label else []) + return_lines
        align = "left" if custom.from_position == "top-left" else "right"
        x = _anchor_x(align, width, padding)
        y = padding + small
        for i, line in enumerate(from_lines):
            font = "Helvetica-Bold" if custom.show_from_label and i == 0 else "Helvetica"
            text = truncate_text(line, content_width * FROM_WIDTH_RATIO, font, small)
            placed.append(PlacedText(text, x, y, font, small, align, "from"))
            y += small * spacing
        if uses_stacked_layout(template, custom):
            top = padding + len(from_lines) * small * spacing + padding / 2

    bottom = height - padding
    branding = custom.branding
    if branding:
        brand_size = small * 0.9
        text = truncate_text(branding, content_width, "Helvetica-Bold", brand_size)
        placed.append(PlacedText(text, width / 2, height - padding - 2, "Helvetica-Bold", brand_size, "center", "branding"))
        bottom -= brand_size * spacing

    lines = label_lines(label, name_format, custom.show_to_label)
    line_height = size * spacing
    block = len(lines) * line_height
    baseline = top + max(0.0, (bottom - top - block) / 2) + size
    x = _anchor_x(custom.to_alignment, width, padding)
    # the name line (and "To:" prefix) is bold
    bold_lines = 2 if custom.show_to_label else 1
    for i, line in enumerate(lines):
        font = "Helvetica-Bold" if i < bold_lines else "Helvetica"
        placed.append(PlacedText(truncate_text(line, content_width, font, size), x, baseline, font, size,
                                 custom.to_alignment, "to"))
        baseline += line_height
    return placed

import io
import re
from datetime import date

import pandas as pd
import pytest
from openpyxl import load_workbook
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from mailing_labels.errors import UnknownTemplateError
from mailing_labels.export import (
    EXCEL_HEADERS,
    SHEET_NAME,
    default_filename,
    excel_bytes,
    export_excel,
    export_pdf,
    label_position,
    label_rows,
    page_count,
    pdf_bytes,
    preview_pages,
)
from mailing_labels.layout import font_size_for, label_lines, truncate_text
from mailing_labels.models import LabelCustomization, MailingLabelData
from mailing_labels.templates import AVERY_TEMPLATES, DEFAULT_TEMPLATE, get_template, list_templates


def _labels(n):
    return [
        MailingLabelData(
            office_name=f"Office {i}",
            contact_name=f"Dr. Person {i}" if i % 2 else "",
            address1=f"{i} Main St",
            address2="Suite 1" if i % 3 == 0 else "",
            city="Irvine",
            state="CA",
            zip="92618",
        )
        for i in range(n)
    ]


def _pdf_pages(data: bytes) -> int:
    return len(re.findall(rb"/Type /Page(?!s)", data))


class TestTemplates:
    def test_presets(self):
        assert {t.code for t in list_templates()} == {"5160", "5161", "5163", "5167"}
        assert get_template(DEFAULT_TEMPLATE).per_page == 30
        assert AVERY_TEMPLATES["5161"].per_page == 20
        assert AVERY_TEMPLATES["5163"].per_page == 10
        assert AVERY_TEMPLATES["5167"].per_page == 80

    def test_vendor_prefix_accepted(self):
        assert get_template("avery-5163").code == "5163"

    def test_unknown(self):
        with pytest.raises(UnknownTemplateError) as exc:
            get_template("9999")
        assert "9999" in str(exc.value)
        assert isinstance(exc.value, KeyError)

    def test_every_sheet_fits_on_letter(self):
        for t in list_templates():
            right = t.margin_left + t.columns * t.label_width + (t.columns - 1) * t.gap_x
            bottom = t.margin_top + t.rows * t.label_height + (t.rows - 1) * t.gap_y
            assert right <= 8.5
            assert bottom <= 11.0


class TestGrid:
    def test_first_label(self):
        pos = label_position(0, get_template("5160"))
        assert (pos.page, pos.row, pos.col) == (0, 0, 0)
        assert pos.x == pytest.approx(0.1875)
        assert pos.y == pytest.approx(0.5)

    def test_last_slot_on_page(self):
        pos = label_position(29, get_template("5160"))
        assert (pos.page, pos.row, pos.col) == (0, 9, 2)
        assert pos.x == pytest.approx(0.1875 + 2 * 2.75)
        assert pos.y == pytest.approx(0.5 + 9 * 1.0)

    def test_wraps_to_next_page(self):
        first = label_position(30, get_template("5160"))
        assert (first.page, first.row, first.col) == (1, 0, 0)
        assert (first.x, first.y) == pytest.approx((0.1875, 0.5))
        pos = label_position(31, get_template("5160"))
        assert (pos.page, pos.row, pos.col) == (1, 0, 1)
        assert pos.x == pytest.approx(0.1875 + 2.75)

    @pytest.mark.parametrize("code", ["5160", "5161", "5163", "5167"])
    def test_slots_are_unique_per_page(self, code):
        t = get_template(code)
        seen = {(p.row, p.col) for p in (label_position(i, t) for i in range(t.per_page))}
        assert len(seen) == t.per_page

    def test_negative_index(self):
        with pytest.raises(ValueError):
            label_position(-1, get_template("5160"))

    @pytest.mark.parametrize("n,pages", [(0, 0), (1, 1), (30, 1), (31, 2), (61, 3)])
    def test_page_count(self, n, pages):
        assert page_count(n, get_template("5160")) == pages

    def test_font_sizes(self):
        assert font_size_for(get_template("5167")) == 8
        assert font_size_for(get_template("5160")) == 10
        assert font_size_for(get_template("5163")) == 12


class TestLines:
    def test_lines_skip_empty_address2(self):
        lab = _labels(2)[1]
        assert label_lines(lab) == ["Office 1", "1 Main St", "Irvine, CA 92618"]

    def test_contact_format_and_to_prefix(self):
        lab = _labels(2)[1]
        assert label_lines(lab, "contact", show_to_label=True) == [
            "To:", "Dr. Person 1", "1 Main St", "Irvine, CA 92618",
        ]

    def test_contact_format_falls_back_to_office(self):
        assert label_lines(_labels(1)[0], "contact")[0] == "Office 0"

    def test_truncate(self):
        text = "Very Long Office Name " * 10
        out = truncate_text(text, 100, "Helvetica", 10)
        assert out.endswith("...")
        assert stringWidth(out, "Helvetica", 10) <= 100
        assert truncate_text("Short", 100, "Helvetica", 10) == "Short"


class TestExcel:
    def test_rows_and_headers(self, tmp_path):
        path = tmp_path / "labels.xlsx"
        assert export_excel(_labels(4), path, "contact") == 4
        df = pd.read_excel(path, sheet_name=SHEET_NAME, dtype=str, keep_default_na=False)
        assert list(df.columns) == EXCEL_HEADERS
        assert len(df) == 4
        assert df.iloc[0].tolist() == ["Office 0", "0 Main St", "Suite 1", "Irvine", "CA", "92618"]
        assert df.iloc[1]["Name"] == "Dr. Person 1"

    def test_column_widths(self):
        wb = load_workbook(io.BytesIO(excel_bytes(_labels(1))))
        ws = wb[SHEET_NAME]
        assert ws.column_dimensions["A"].width == 30
        assert ws.column_dimensions["E"].width == 8
        assert ws.column_dimensions["F"].width == 12

    def test_zip_keeps_leading_zero(self):
        lab = MailingLabelData("Office", "", "1 Elm St", "", "Boston", "MA", "02108")
        df = pd.read_excel(io.BytesIO(excel_bytes([lab])), sheet_name=SHEET_NAME, dtype=str)
        assert df.iloc[0]["ZIP"] == "02108"

    def test_unknown_name_format(self):
        with pytest.raises(ValueError):
            label_rows(_labels(1), "nickname")


class TestPdf:
    def test_pdf_bytes(self):
        data = pdf_bytes(_labels(3))
        assert data.startswith(b"%PDF")
        assert _pdf_pages(data) == 1

    def test_page_count_matches_grid(self, tmp_path):
        path = tmp_path / "labels.pdf"
        assert export_pdf(_labels(31), path, "5160") == 31
        assert _pdf_pages(path.read_bytes()) == 2

    def test_small_sheet_template(self):
        assert _pdf_pages(pdf_bytes(_labels(25), "5163", "contact", True)) == 3

    def test_unknown_template(self):
        with pytest.raises(UnknownTemplateError):
            pdf_bytes(_labels(1), "1234")

    def test_return_address_and_branding_are_drawn(self, monkeypatch):
        custom = LabelCustomization(show_return_address=True, return_address="Harbor Lab\n9 Dock Rd",
                                    show_branding=True, branding_text="Thank you", line_spacing="compact",
                                    to_alignment="right", layout_mode="stacked")
        drawn = []
        for method, align in (("drawString", "left"), ("drawRightString", "right"), ("drawCentredString", "centre")):
            monkeypatch.setattr(canvas.Canvas, method,
                                lambda self, x, y, text, *a, _align=align, **kw: drawn.append((_align, text)))
        export_pdf(_labels(1), io.BytesIO(), "5160", customization=custom)
        texts = {text for _, text in drawn}
        assert {"From:", "Harbor Lab", "9 Dock Rd", "Thank you", "Office 0"} <= texts
        assert ("right", "Office 0") in drawn
        assert ("centre", "Thank you") in drawn
        assert ("left", "Harbor Lab") in drawn

    def test_customized_pdf_pages(self):
        custom = LabelCustomization(show_return_address=True, return_address="Harbor Lab",
                                    font_size_multiplier=2.0)
        assert _pdf_pages(pdf_bytes(_labels(11), "5163", customization=custom)) == 2


class TestPreview:
    def test_last_page_padded_with_empty_cells(self):
        pages = preview_pages(_labels(31), "5160")
        assert [p.number for p in pages] == [1, 2]
        assert all(len(p.cells) == 30 for p in pages)
        last = pages[1].cells
        assert not last[0].empty
        assert last[0].lines[0] == "Office 30"
        assert all(c.empty for c in last[1:])

    def test_cells_follow_grid(self):
        cell = preview_pages(_labels(2), "5161")[0].cells[1]
        assert (cell.row, cell.col) == (0, 1)
        assert cell.x == pytest.approx(0.15625 + 4.1875)

    def test_no_labels(self):
        assert preview_pages([], "5160") == []

    def test_customized_cells(self):
        custom = LabelCustomization(show_return_address=True, return_address="Harbor Lab\n9 Dock Rd",
                                    show_branding=True, branding_text="Thank you", to_alignment="left",
                                    font_size_multiplier=1.2)
        cell = preview_pages(_labels(2), "5163", customization=custom)[0].cells[1]
        assert cell.from_lines == ["From:", "Harbor Lab", "9 Dock Rd"]
        assert cell.branding == "Thank you"
        assert cell.align == "left"
        assert cell.font_size == pytest.approx(14.4)
        assert cell.stacked is True
        assert cell.lines == ["Office 1", "1 Main St", "Irvine, CA 92618"]

    def test_short_labels_split_and_to_prefix(self):
        custom = LabelCustomization(show_return_address=True, return_address="Harbor Lab")
        cell = preview_pages(_labels(1), "5160", show_to_label=True, customization=custom)[0].cells[0]
        assert cell.stacked is False
        assert cell.lines[0] == "To:"
        assert cell.from_lines == ["From:", "Harbor Lab"]


def test_default_filename():
    assert default_filename("xlsx", date(2024, 1, 2)) == "mailing-labels-2024-01-02.xlsx"
    assert default_filename(".pdf", date(2024, 1, 2)) == "mailing-labels-2024-01-02.pdf"

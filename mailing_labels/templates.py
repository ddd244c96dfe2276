from __future__ import annotations
from typing import Dict, List

from .errors import UnknownTemplateError
from .models import LabelTemplate

DEFAULT_TEMPLATE = "5160"

# US Letter sheets, inches.
AVERY_TEMPLATES: Dict[str, LabelTemplate] = {
    "5160": LabelTemplate(
        code="5160", name='Avery 5160 (1" x 2-5/8")', columns=3, rows=10,
        label_width=2.625, label_height=1.0, margin_top=0.5, margin_left=0.1875, gap_x=0.125,
    ),
    "5161": LabelTemplate(
        code="5161", name='Avery 5161 (1" x 4")', columns=2, rows=10,
        label_width=4.0, label_height=1.0, margin_top=0.5, margin_left=0.15625, gap_x=0.1875,
    ),
    "5163": LabelTemplate(
        code="5163", name='Avery 5163 (2" x 4")', columns=2, rows=5,
        label_width=4.0, label_height=2.0, margin_top=0.5, margin_left=0.15625, gap_x=0.1875,
    ),
    "5167": LabelTemplate(
        code="5167", name='Avery 5167 (1/2" x 1-3/4")', columns=4, rows=20,
        label_width=1.75, label_height=0.5, margin_top=0.5, margin_left=0.3125, gap_x=0.28125,
    ),
}


def get_template(code: str) -> LabelTemplate:
    key = str(code or "").lower().replace("avery-", "").replace("avery", "").strip()
    try:
        return AVERY_TEMPLATES[key]
    except KeyError:
        raise UnknownTemplateError(code) from None


def list_templates() -> List[LabelTemplate]:
    return list(AVERY_TEMPLATES.values())

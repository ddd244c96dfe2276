from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

TIERS = ("VIP", "Warm", "Cold", "Dormant")
SOURCES = ("partner", "discovered")
SOURCE_FILTERS = ("all", "partner", "discovered")
NAME_FORMATS = ("office", "contact")
LINE_SPACINGS = ("compact", "normal", "relaxed")
ALIGNMENTS = ("left", "center", "right")
FROM_POSITIONS = ("top-left", "top-right")
LAYOUT_MODES = ("auto", "stacked", "split")

LABEL_FIELDS = ("office_name", "contact_name", "address1", "address2", "city", "state", "zip")


@dataclass
class RawOfficeRecord:
    id: str
    name: str
    address: Optional[str] = None
    tier: Optional[str] = None
    source: str = "partner"


@dataclass(frozen=True)
class ParsedAddress:
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""

    def is_empty(self) -> bool:
        return not (self.address1 or self.city or self.zip)


@dataclass(frozen=True)
class MailingLabelData:
    office_name: str
    contact_name: str
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    office_id: str = ""

    def display_name(self, name_format: str = "office") -> str:
        if name_format == "contact":
            return self.contact_name or self.office_name
        return self.office_name

    def city_line(self) -> str:
        sep = ", " if self.city and self.state else ""
        return f"{self.city}{sep}{self.state} {self.zip}".strip()


@dataclass
class LabelFilters:
    tiers: FrozenSet[str] = frozenset(TIERS)
    search: str = ""
    source: str = "all"
    include_discovered: bool = False
    log_parse_errors: bool = False

    def __post_init__(self) -> None:
        self.tiers = frozenset(self.tiers)
        if self.source not in SOURCE_FILTERS:
            raise ValueError(f"Unknown source filter: {self.source}")


@dataclass
class CorrectionCandidate:
    office_id: str
    office_name: str
    original: Optional[str]
    corrected: str
    confidence: Optional[float] = None
    success: bool = True
    error: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.success and bool(self.corrected) and self.corrected != self.original


@dataclass
class ApplyResult:
    updated: int
    total: int
    errors: list = field(default_factory=list)

    @property
    def failed(self) -> int:
        return max(0, self.total - self.updated)


@dataclass(frozen=True)
class LabelTemplate:
    """Physical sheet geometry, all dimensions in inches."""
    code: str
    name: str
    columns: int
    rows: int
    label_width: float
    label_height: float
    margin_top: float
    margin_left: float
    gap_x: float = 0.0
    gap_y: float = 0.0

    @property
    def per_page(self) -> int:
        return self.columns * self.rows

    @property
    def cell_width(self) -> float:
        return self.label_width + self.gap_x

    @property
    def cell_height(self) -> float:
        return self.label_height + self.gap_y


@dataclass(frozen=True)
class LabelPosition:
    page: int
    row: int
    col: int
    x: float
    y: float


@dataclass
class LabelEdit:
    """Saved per-office overrides; None means the built value is kept."""
    office_id: str
    office_name: Optional[str] = None
    contact_name: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None

    def overrides(self) -> Dict[str, str]:
        return {f: getattr(self, f) for f in LABEL_FIELDS if getattr(self, f) is not None}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, float(value)))


@dataclass(frozen=True)
class LabelCustomization:
    show_to_label: bool = False
    show_return_address: bool = False
    return_address: str = ""
    show_from_label: bool = True
    from_position: str = "top-left"
    show_branding: bool = False
    branding_text: str = ""
    font_size_multiplier: float = 1.0
    from_font_size_multiplier: float = 1.0
    line_spacing: str = "normal"
    to_alignment: str = "center"
    layout_mode: str = "auto"

    def __post_init__(self) -> None:
        for name, allowed in (
            ("line_spacing", LINE_SPACINGS),
            ("to_alignment", ALIGNMENTS),
            ("from_position", FROM_POSITIONS),
            ("layout_mode", LAYOUT_MODES),
        ):
            if getattr(self, name) not in allowed:
                raise ValueError(f"Unknown {name}: {getattr(self, name)}")
        object.__setattr__(self, "font_size_multiplier", _clamp(self.font_size_multiplier, 0.5, 2.0))
        object.__setattr__(self, "from_font_size_multiplier", _clamp(self.from_font_size_multiplier, 0.5, 1.5))

    def return_lines(self) -> List[str]:
        if not self.show_return_address:
            return []
        lines = [line.strip() for line in (self.return_address or "").splitlines()]
        return [line for line in lines if line][:3]

    @property
    def has_return_address(self) -> bool:
        return bool(self.return_lines())

    @property
    def branding(self) -> str:
        return self.branding_text.strip() if self.show_branding else ""

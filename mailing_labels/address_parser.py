from __future__ import annotations
import re
from typing import Callable, List, Optional

from .models import ParsedAddress

"""
Free-text US address -> ParsedAddress.

The parser is an ordered list of independent matchers. Each matcher receives
the cleaned string plus its comma segments and returns a ParsedAddress or None;
the first non-None result wins. The last matcher always succeeds, so parsing
never raises and never drops the input text.
"""

_COUNTRY_SUFFIX_RE = re.compile(r",\s*(?:United States|USA)\s*$", re.IGNORECASE)
_STRICT_STATE_ZIP_RE = re.compile(r"^([A-Z]{2})\s+(\d{5}(?:-\d{4})?)$")
_EMBEDDED_STATE_ZIP_RE = re.compile(r"(?<![A-Za-z])([A-Z]{2})\s+(\d{5}(?:-\d{4})?)(?![\d-])")
_SUITE_RE = re.compile(
    r"^(.*?)\s+(?:(Suite|Unit|Apt|Ste|Building|Bldg)\b\.?|(#))\s*(.+)$",
    re.IGNORECASE,
)

Matcher = Callable[[str, List[str]], Optional[ParsedAddress]]


def clean_address(raw: Optional[str]) -> str:
    if raw is None:
        return ""
    text = str(raw).strip()
    return _COUNTRY_SUFFIX_RE.sub("", text).strip()


def split_segments(text: str) -> List[str]:
    return [p.strip() for p in text.split(",")]


def split_suite(street: str) -> tuple[str, str]:
    """Split '123 Main St Suite 100' into ('123 Main St', 'Suite 100').

    Only the first marker is used. '#' is kept literally ('#100'); word markers
    are capitalized ('ste 4' -> 'Ste 4').
    """
    street = street.strip()
    m = _SUITE_RE.match(street)
    if not m:
        return street, ""
    head = m.group(1).strip().rstrip(",").strip()
    if not head:
        return street, ""
    word, hash_mark, value = m.group(2), m.group(3), m.group(4).strip()
    if hash_mark:
        return head, f"#{value}"
    return head, f"{word.capitalize()} {value}"


def _match_single_segment(cleaned: str, parts: List[str]) -> Optional[ParsedAddress]:
    if len(parts) < 2:
        return ParsedAddress(address1=cleaned)
    return None


def _match_trailing_state_zip(cleaned: str, parts: List[str]) -> Optional[ParsedAddress]:
    m = _STRICT_STATE_ZIP_RE.match(parts[-1])
    if not m:
        return None
    street = ", ".join(p for p in parts[:-2] if p)
    address1, address2 = split_suite(street) if street else ("", "")
    return ParsedAddress(
        address1=address1,
        address2=address2,
        city=parts[-2],
        state=m.group(1),
        zip=m.group(2),
    )


def _match_embedded_state_zip(cleaned: str, parts: List[str]) -> Optional[ParsedAddress]:
    m = _EMBEDDED_STATE_ZIP_RE.search(cleaned)
    if not m:
        return None
    prefix = cleaned[: m.start()].rstrip().rstrip(",").rstrip()
    if "," in prefix:
        street, city = prefix.rsplit(",", 1)
    else:
        street, city = "", prefix
    street = street.strip().rstrip(",").strip()
    address1, address2 = split_suite(street) if street else ("", "")
    return ParsedAddress(
        address1=address1,
        address2=address2,
        city=city.strip(),
        state=m.group(1),
        zip=m.group(2),
    )


def _match_unstructured(cleaned: str, parts: List[str]) -> Optional[ParsedAddress]:
    return ParsedAddress(address1=cleaned)


MATCHERS: List[Matcher] = [
    _match_single_segment,
    _match_trailing_state_zip,
    _match_embedded_state_zip,
    _match_unstructured,
]


def parse_address(raw: Optional[str]) -> ParsedAddress:
    cleaned = clean_address(raw)
    if not cleaned:
        return ParsedAddress()
    parts = split_segments(cleaned)
    for matcher in MATCHERS:
        result = matcher(cleaned, parts)
        if result is not None:
            return result
    return ParsedAddress(address1=cleaned)

from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Mapping, Optional

from .address_parser import parse_address
from .contact_name import extract_contact
from .models import LabelEdit, LabelFilters, MailingLabelData, RawOfficeRecord

logger = logging.getLogger(__name__)


@dataclass
class LabelSet:
    labels: List[MailingLabelData] = field(default_factory=list)
    parse_errors: List[str] = field(default_factory=list)


def matches_search(record: RawOfficeRecord, search: str) -> bool:
    term = (search or "").strip().lower()
    if not term:
        return True
    if term in (record.name or "").lower():
        return True
    return term in (record.address or "").lower()


def partner_passes(record: RawOfficeRecord, filters: LabelFilters) -> bool:
    return record.tier in filters.tiers and matches_search(record, filters.search)


def wants_partners(filters: LabelFilters) -> bool:
    return filters.source in ("all", "partner")


def wants_discovered(filters: LabelFilters) -> bool:
    return filters.source == "discovered" or (filters.source == "all" and filters.include_discovered)


def select_records(records: Iterable[RawOfficeRecord], filters: LabelFilters) -> List[RawOfficeRecord]:
    """Records passing the filters; partner offices first, then discovered, store order within each."""
    records = list(records)
    selected: List[RawOfficeRecord] = []
    if wants_partners(filters):
        selected.extend(r for r in records if r.source == "partner" and partner_passes(r, filters))
    if wants_discovered(filters):
        selected.extend(
            r for r in records if r.source == "discovered" and matches_search(r, filters.search)
        )
    return selected


def build_label(record: RawOfficeRecord) -> MailingLabelData:
    parsed = parse_address(record.address)
    return MailingLabelData(
        office_name=record.name or "",
        contact_name=extract_contact(record.name),
        address1=parsed.address1,
        address2=parsed.address2,
        city=parsed.city,
        state=parsed.state,
        zip=parsed.zip,
        office_id=str(record.id),
    )


def apply_edit(label: MailingLabelData, edit: Optional[LabelEdit]) -> MailingLabelData:
    if edit is None:
        return label
    overrides = edit.overrides()
    return replace(label, **overrides) if overrides else label


def build_label_set(
    records: Iterable[RawOfficeRecord],
    filters: Optional[LabelFilters] = None,
    edits: Optional[Mapping[str, LabelEdit]] = None,
) -> LabelSet:
    """Labels for the filtered records, with saved per-office edits laid over the parsed values."""
    filters = filters or LabelFilters()
    edits = edits or {}
    out = LabelSet()
    for record in select_records(records, filters):
        label = build_label(record)
        if not (label.address1 or label.city or label.zip):
            out.parse_errors.append(f'{record.name}: no address components - "{record.address}"')
        out.labels.append(apply_edit(label, edits.get(str(record.id))))

    if out.parse_errors and filters.log_parse_errors:
        logger.warning("Address parsing errors (%d): %s", len(out.parse_errors), out.parse_errors)
    return out


def build_labels(
    records: Iterable[RawOfficeRecord],
    filters: Optional[LabelFilters] = None,
    edits: Optional[Mapping[str, LabelEdit]] = None,
) -> List[MailingLabelData]:
    return build_label_set(records, filters, edits).labels

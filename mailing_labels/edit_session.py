from __future__ import annotations
import logging
from dataclasses import replace
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .errors import EditSessionError
from .models import LABEL_FIELDS, MailingLabelData

logger = logging.getLogger(__name__)

Changes = Dict[str, Dict[str, str]]


class SessionState(str, Enum):
    CLEAN = "clean"
    EDITING = "editing"
    DIRTY = "dirty"


def row_changes(row: MailingLabelData, reference: MailingLabelData) -> Dict[str, str]:
    return {f: getattr(row, f) for f in LABEL_FIELDS if getattr(row, f) != getattr(reference, f)}


def changes_by_office(rows: Sequence[MailingLabelData], reference: Sequence[MailingLabelData]) -> Changes:
    """Field-level differences per office id; rows without an office id are not attributable."""
    by_id = {r.office_id: r for r in reference if r.office_id}
    out: Changes = {}
    for row in rows:
        ref = by_id.get(row.office_id) if row.office_id else None
        if ref is None:
            continue
        diff = row_changes(row, ref)
        if diff:
            out[row.office_id] = diff
    return out


def apply_changes(rows: Sequence[MailingLabelData], changes: Changes) -> List[MailingLabelData]:
    return [replace(r, **changes[r.office_id]) if r.office_id in changes else r for r in rows]


class EditSessionController:
    """Holds the editable label table.

    `baseline` is the last value derived from upstream records, `working` is
    what gets displayed and exported. Once an edit is saved the session is
    dirty and `refresh` no longer touches `working` until `reset`.
    """

    def __init__(self, baseline: Sequence[MailingLabelData] = ()):
        self.baseline: List[MailingLabelData] = list(baseline)
        self.working: List[MailingLabelData] = list(self.baseline)
        self.dirty = False
        self.draft: Optional[List[MailingLabelData]] = None
        self.refresh_count = 0

    @property
    def editing(self) -> bool:
        return self.draft is not None

    @property
    def state(self) -> SessionState:
        if self.editing:
            return SessionState.EDITING
        return SessionState.DIRTY if self.dirty else SessionState.CLEAN

    @property
    def rows(self) -> List[MailingLabelData]:
        return list(self.draft) if self.draft is not None else list(self.working)

    def refresh(self, new_baseline: Sequence[MailingLabelData]) -> bool:
        """Take a freshly built baseline. Returns True when `working` was replaced.

        While editing from a clean session the unsaved draft edits are carried
        over onto the new rows by office id.
        """
        new_baseline = list(new_baseline)
        if new_baseline == self.baseline:
            return False
        self.baseline = new_baseline
        if self.dirty:
            logger.debug("Session dirty, keeping %d edited rows", len(self.working))
            return False
        if self.draft is not None:
            pending = changes_by_office(self.draft, self.working)
            self.draft = apply_changes(new_baseline, pending)
        self.refresh_count += 1
        self.working = list(new_baseline)
        return True

    def begin_edit(self) -> None:
        if self.draft is None:
            self.draft = list(self.working)

    def edit_cell(self, index: int, field_name: str, value: str) -> MailingLabelData:
        if self.draft is None:
            raise EditSessionError("Not in edit mode")
        if field_name not in LABEL_FIELDS:
            raise EditSessionError(f"Unknown field: {field_name}")
        if not 0 <= index < len(self.draft):
            raise EditSessionError(f"Row {index} out of range")
        row = replace(self.draft[index], **{field_name: "" if value is None else str(value)})
        self.draft[index] = row
        return row

    def save(self) -> Changes:
        """Commit the draft. Returns the per-office changes made in this edit pass."""
        if self.draft is None:
            raise EditSessionError("Not in edit mode")
        changed = changes_by_office(self.draft, self.working)
        self.working = self.draft
        self.draft = None
        self.dirty = True
        return changed

    def cancel(self) -> None:
        self.draft = None
        if not self.dirty:
            self.working = list(self.baseline)

    def reset(self) -> None:
        self.draft = None
        self.dirty = False
        self.working = list(self.baseline)

    def edited_offices(self) -> Changes:
        return changes_by_office(self.working, self.baseline)

    def revert(self, office_id: str) -> bool:
        """Put one office's row back to its baseline value. Returns False if nothing changed."""
        if self.draft is not None:
            raise EditSessionError("Finish or cancel editing first")
        original = {r.office_id: r for r in self.baseline if r.office_id}.get(office_id)
        if original is None:
            return False
        reverted = [original if r.office_id == office_id else r for r in self.working]
        if reverted == self.working:
            return False
        self.working = reverted
        if self.working == self.baseline:
            self.dirty = False
        return True

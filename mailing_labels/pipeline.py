from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .builder import LabelSet, build_label_set
from .config import Config
from .correction import AddressCorrectionWorkflow, CorrectionSession
from .db import ExcelConnection, connect, delete_label_edit, init_db, list_label_edits, list_offices, upsert_label_edits
from .edit_session import Changes, EditSessionController
from .errors import EditSessionError
from .export import default_filename, export_excel, export_pdf, preview_pages, PreviewPage
from .geocoder import CorrectionClient, CorrectionServiceClient, GoogleGeocoder, LocalCorrectionClient
from .models import ApplyResult, CorrectionCandidate, LabelCustomization, LabelEdit, LabelFilters, MailingLabelData, RawOfficeRecord

logger = logging.getLogger(__name__)


def make_correction_client(cfg: Config, conn: ExcelConnection) -> CorrectionClient:
    opts = cfg.correction
    if cfg.correction_mode == "remote":
        return CorrectionServiceClient(
            base_url=opts.get("base_url"),
            timeout=float(opts.get("timeout", 60)),
        )
    return LocalCorrectionClient(conn, GoogleGeocoder(), delay=float(opts.get("geocode_delay", 0.1)))


class MailingLabelPipeline:
    """Store -> builder -> edit session -> export, with the correction workflow feeding back into the store."""

    def __init__(self, cfg: Config, conn: Optional[ExcelConnection] = None,
                 client: Optional[CorrectionClient] = None,
                 session: Optional[CorrectionSession] = None):
        self.cfg = cfg
        self.conn = conn or connect(cfg.db_path)
        if conn is None:
            init_db(self.conn)
        self.filters = LabelFilters(tiers=frozenset(cfg.default_tiers))
        self.last_build = LabelSet()
        self.session = EditSessionController()
        self.correction = AddressCorrectionWorkflow(
            client or make_correction_client(cfg, self.conn),
            session or CorrectionSession(),
        )
        self.refresh()

    def records(self) -> List[RawOfficeRecord]:
        return list_offices(self.conn)

    def refresh(self) -> bool:
        """Rebuild the baseline from the store; working rows follow unless the session is dirty."""
        self.last_build = build_label_set(self.records(), self.filters, list_label_edits(self.conn))
        return self.session.refresh(self.last_build.labels)

    def set_filters(self, filters: LabelFilters) -> bool:
        self.filters = filters
        return self.refresh()

    def save_edits(self) -> Changes:
        """Commit the edit draft and persist what changed, keyed by office id."""
        changes = self.session.save()
        n = upsert_label_edits(self.conn, changes)
        if n:
            logger.info("Saved label edits for %d offices", n)
            self.refresh()
        return changes

    def reset_edits(self) -> None:
        """Drop every saved edit and go back to the labels built from the store."""
        for office_id in list(list_label_edits(self.conn)):
            delete_label_edit(self.conn, office_id, save=False)
        self.conn.save()
        self.session.reset()
        self.refresh()

    def saved_edits(self) -> Dict[str, LabelEdit]:
        return list_label_edits(self.conn)

    def revert_office(self, office_id: str) -> bool:
        """Drop the saved edit for one office and show its row as built from the store."""
        if self.session.editing:
            raise EditSessionError("Finish or cancel editing first")
        removed = delete_label_edit(self.conn, office_id)
        self.refresh()
        reverted = self.session.revert(office_id)
        return removed or reverted

    @property
    def labels(self) -> List[MailingLabelData]:
        return self.session.working

    def summary(self) -> Dict[str, Any]:
        return {
            "count": len(self.session.rows),
            "state": self.session.state.value,
            "dirty": self.session.dirty,
            "parse_errors": list(self.last_build.parse_errors),
        }

    def export_excel(self, out_dir: str | Path, name_format: Optional[str] = None) -> Path:
        path = Path(out_dir) / default_filename("xlsx")
        export_excel(self.labels, path, name_format or self.cfg.name_format)
        return path

    def export_pdf(self, out_dir: str | Path, template: Optional[str] = None,
                   name_format: Optional[str] = None, show_to_label: Optional[bool] = None,
                   customization: Optional[LabelCustomization] = None) -> Path:
        path = Path(out_dir) / default_filename("pdf")
        custom = customization or self.cfg.label_customization(show_to_label=show_to_label)
        export_pdf(
            self.labels,
            path,
            template or self.cfg.template,
            name_format or self.cfg.name_format,
            custom.show_to_label,
            custom,
        )
        return path

    def preview(self, template: Optional[str] = None, name_format: Optional[str] = None,
                show_to_label: Optional[bool] = None,
                customization: Optional[LabelCustomization] = None) -> List[PreviewPage]:
        custom = customization or self.cfg.label_customization(show_to_label=show_to_label)
        return preview_pages(
            self.labels,
            template or self.cfg.template,
            name_format or self.cfg.name_format,
            custom.show_to_label,
            custom,
        )

    def request_corrections(self) -> Optional[List[CorrectionCandidate]]:
        return self.correction.request(self.records(), self.filters)

    def apply_corrections(self, selected_ids: Optional[List[str]] = None) -> ApplyResult:
        result = self.correction.apply(selected_ids)
        # the store changed underneath; reload it and re-derive the baseline
        if isinstance(self.correction.client, CorrectionServiceClient):
            self.conn = connect(self.cfg.db_path)
        self.refresh()
        return result

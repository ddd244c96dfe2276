from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
import dotenv
dotenv.load_dotenv()

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel

from mailing_labels.config import Config, load_config
from mailing_labels.errors import (
    CorrectionAlreadyApplied,
    CorrectionError,
    CorrectionFailed,
    CorrectionInProgress,
    CorrectionServiceError,
    EditSessionError,
    NothingToCorrect,
    UnknownTemplateError,
)
from mailing_labels.export import default_filename, excel_bytes, pdf_bytes
from mailing_labels.geocoder import GoogleGeocoder, OfficeAddressCorrector, apply_address_updates
from mailing_labels.models import LabelCustomization, LabelFilters, TIERS
from mailing_labels.pipeline import MailingLabelPipeline
from mailing_labels.templates import list_templates
from mailing_labels.utils import setup_logging, to_jsonable

ROOT = Path(__file__).resolve().parent
DATA_DIR = ROOT / "data"

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class CellEdit(BaseModel):
    field: str
    value: str = ""


class ApplyRequest(BaseModel):
    selected_ids: Optional[List[str]] = None


class CorrectOfficesRequest(BaseModel):
    officeIds: List[str]


class AddressUpdate(BaseModel):
    id: str
    address: str


class ApplyCorrectionsRequest(BaseModel):
    updates: List[AddressUpdate]


def label_options(
    show_to: Optional[bool] = None,
    show_return_address: Optional[bool] = None,
    return_address: Optional[str] = None,
    show_from_label: Optional[bool] = None,
    from_position: Optional[str] = None,
    show_branding: Optional[bool] = None,
    branding_text: Optional[str] = None,
    font_size_multiplier: Optional[float] = None,
    from_font_size_multiplier: Optional[float] = None,
    line_spacing: Optional[str] = None,
    to_alignment: Optional[str] = None,
    layout_mode: Optional[str] = None,
) -> Dict[str, Any]:
    """Label customization query parameters; unset ones fall back to the config."""
    return {
        "show_to_label": show_to,
        "show_return_address": show_return_address,
        "return_address": return_address,
        "show_from_label": show_from_label,
        "from_position": from_position,
        "show_branding": show_branding,
        "branding_text": branding_text,
        "font_size_multiplier": font_size_multiplier,
        "from_font_size_multiplier": from_font_size_multiplier,
        "line_spacing": line_spacing,
        "to_alignment": to_alignment,
        "layout_mode": layout_mode,
    }


def _workflow_error(exc: CorrectionError) -> HTTPException:
    if isinstance(exc, NothingToCorrect):
        return HTTPException(status_code=422, detail={"reason": exc.reason.value, "message": str(exc)})
    if isinstance(exc, (CorrectionAlreadyApplied, CorrectionInProgress)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, CorrectionFailed):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))


def create_app(cfg: Optional[Config] = None, pipeline: Optional[MailingLabelPipeline] = None) -> FastAPI:
    cfg = cfg or (pipeline.cfg if pipeline else load_config(DATA_DIR / "config.default.json"))
    setup_logging(cfg.log_level)
    pipe = pipeline or MailingLabelPipeline(cfg)
    service_key = os.getenv("CORRECTION_API_KEY", "")

    app = FastAPI(title="Mailing Label Service")
    app.state.pipeline = pipe

    def _customization(options: Dict[str, Any]) -> LabelCustomization:
        try:
            return cfg.label_customization(**options)
        except (TypeError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    def _labels_payload():
        out = pipe.summary()
        out["rows"] = to_jsonable(pipe.session.rows)
        return out

    def _correction_payload():
        wf = pipe.correction
        return {
            "state": wf.state.value,
            "progress": wf.progress,
            "needs_update": wf.needs_update,
            "error": wf.error,
            "session_corrected": wf.session.corrected,
            "selected_ids": wf.selected_ids,
            "candidates": [dict(to_jsonable(c), changed=c.changed) for c in wf.candidates],
            "result": None if wf.result is None else dict(to_jsonable(wf.result), failed=wf.result.failed),
        }

    @app.get("/labels")
    def get_labels(
        tiers: List[str] = Query(default=list(TIERS)),
        search: str = "",
        source: str = "all",
        include_discovered: bool = False,
        log_parse_errors: bool = False,
    ):
        try:
            filters = LabelFilters(
                tiers=frozenset(tiers),
                search=search,
                source=source,
                include_discovered=include_discovered,
                log_parse_errors=log_parse_errors,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        pipe.set_filters(filters)
        return _labels_payload()

    @app.post("/labels/edit")
    def begin_edit():
        pipe.session.begin_edit()
        return _labels_payload()

    @app.put("/labels/{index}")
    def edit_cell(index: int, payload: CellEdit):
        try:
            row = pipe.session.edit_cell(index, payload.field, payload.value)
        except EditSessionError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return to_jsonable(row)

    @app.post("/labels/save")
    def save_edits():
        try:
            pipe.save_edits()
        except EditSessionError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return _labels_payload()

    @app.post("/labels/cancel")
    def cancel_edits():
        pipe.session.cancel()
        return _labels_payload()

    @app.post("/labels/reset")
    def reset_edits():
        pipe.reset_edits()
        return _labels_payload()

    @app.get("/labels/edits")
    def list_edits():
        return {"saved": {k: e.overrides() for k, e in pipe.saved_edits().items()},
                "session": pipe.session.edited_offices()}

    @app.delete("/labels/edits/{office_id}")
    def revert_office(office_id: str):
        try:
            reverted = pipe.revert_office(office_id)
        except EditSessionError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        if not reverted:
            raise HTTPException(status_code=404, detail=f"No edits for office {office_id}")
        return _labels_payload()

    @app.get("/templates")
    def templates():
        return [dict(to_jsonable(t), per_page=t.per_page) for t in list_templates()]

    @app.get("/export/excel")
    def export_excel(name_format: str = cfg.name_format):
        if not pipe.labels:
            raise HTTPException(status_code=422, detail="No data to export")
        try:
            content = excel_bytes(pipe.labels, name_format)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        filename = default_filename("xlsx")
        return Response(content, media_type=XLSX_MEDIA_TYPE,
                        headers={"Content-Disposition": f'attachment; filename="{filename}"'})

    @app.get("/export/pdf")
    def export_pdf(template: str = cfg.template, name_format: str = cfg.name_format,
                   options: Dict[str, Any] = Depends(label_options)):
        if not pipe.labels:
            raise HTTPException(status_code=422, detail="No data to export")
        custom = _customization(options)
        try:
            content = pdf_bytes(pipe.labels, template, name_format, custom.show_to_label, custom)
        except (UnknownTemplateError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        filename = default_filename("pdf")
        return Response(content, media_type="application/pdf",
                        headers={"Content-Disposition": f'attachment; filename="{filename}"'})

    @app.get("/preview")
    def preview(template: str = cfg.template, name_format: str = cfg.name_format,
                options: Dict[str, Any] = Depends(label_options)):
        custom = _customization(options)
        try:
            pages = pipe.preview(template, name_format, customization=custom)
        except (UnknownTemplateError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return {"labels": len(pipe.labels), "pages": to_jsonable(pages)}

    @app.get("/corrections")
    def correction_status():
        return _correction_payload()

    @app.post("/corrections/request")
    def request_corrections():
        try:
            candidates = pipe.request_corrections()
        except CorrectionError as exc:
            raise _workflow_error(exc)
        out = _correction_payload()
        out["discarded"] = candidates is None
        return out

    @app.post("/corrections/toggle/{office_id}")
    def toggle_correction(office_id: str):
        try:
            pipe.correction.toggle(office_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"No candidate for office {office_id}")
        except CorrectionError as exc:
            raise _workflow_error(exc)
        return _correction_payload()

    @app.post("/corrections/apply")
    def apply_corrections(payload: ApplyRequest):
        try:
            pipe.apply_corrections(payload.selected_ids)
        except CorrectionError as exc:
            raise _workflow_error(exc)
        return _correction_payload()

    @app.post("/corrections/dismiss")
    def dismiss_corrections():
        try:
            pipe.correction.dismiss()
        except CorrectionError as exc:
            raise _workflow_error(exc)
        return _correction_payload()

    @app.post("/corrections/reset-session")
    def reset_correction_session():
        try:
            pipe.correction.reset_session()
        except CorrectionError as exc:
            raise _workflow_error(exc)
        return _correction_payload()

    def _check_bearer(authorization: Optional[str]) -> None:
        if not service_key:
            return
        if authorization != f"Bearer {service_key}":
            raise HTTPException(status_code=401, detail="Unauthorized")

    @app.post("/correct-office-addresses")
    def correct_office_addresses(payload: CorrectOfficesRequest, authorization: Optional[str] = Header(default=None)):
        _check_bearer(authorization)
        corrector = OfficeAddressCorrector(pipe.conn, GoogleGeocoder(),
                                           delay=float(cfg.correction.get("geocode_delay", 0.1)))
        try:
            resp = corrector.correct(payload.officeIds)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except LookupError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except CorrectionServiceError as exc:
            raise HTTPException(status_code=500, detail=str(exc))
        return {
            "success": True,
            "processed": len(resp.results),
            "needsUpdate": resp.needs_update,
            "results": [r.to_json() for r in resp.results],
        }

    @app.post("/apply-address-corrections")
    def apply_address_corrections(payload: ApplyCorrectionsRequest, authorization: Optional[str] = Header(default=None)):
        _check_bearer(authorization)
        try:
            result = apply_address_updates(pipe.conn, [u.model_dump() for u in payload.updates])
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        pipe.refresh()
        out = {"success": True, "updated": result.updated, "total": result.total}
        if result.errors:
            out["errors"] = result.errors
        return out

    return app


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("APP_HOST", "0.0.0.0")
    port = int(os.getenv("APP_PORT", "8008"))
    uvicorn.run(create_app(), host=host, port=port)

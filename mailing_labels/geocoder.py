from __future__ import annotations
import json
import logging
import os
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .db import get_offices, update_office_address
from .errors import CorrectionAuthError, CorrectionServiceError
from .models import ApplyResult

logger = logging.getLogger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


@dataclass
class CorrectionResult:
    id: str
    original: Optional[str]
    corrected: str
    success: bool = True
    error: Optional[str] = None
    confidence: Optional[float] = None
    components: Dict[str, str] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.success and self.corrected != self.original

    def to_json(self) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "original": self.original,
            "corrected": self.corrected,
            "success": self.success,
            "changed": self.changed,
            "components": self.components,
        }
        if self.error:
            out["error"] = self.error
        if self.confidence is not None:
            out["confidence"] = self.confidence
        return out


@dataclass
class CorrectionResponse:
    results: List[CorrectionResult]
    needs_update: int


class CorrectionClient(Protocol):
    def request_corrections(self, office_ids: Sequence[str]) -> CorrectionResponse: ...

    def apply_corrections(self, updates: Sequence[Dict[str, str]]) -> ApplyResult: ...


def parse_correction_response(data: Dict[str, Any]) -> CorrectionResponse:
    results: List[CorrectionResult] = []
    for item in data.get("results") or []:
        original = item.get("original")
        results.append(
            CorrectionResult(
                id=str(item["id"]),
                original=original,
                corrected=item.get("corrected") or (original or ""),
                success=bool(item.get("success", True)),
                error=item.get("error"),
                confidence=item.get("confidence"),
                components=dict(item.get("components") or {}),
            )
        )
    needs_update = data.get("needsUpdate")
    if needs_update is None:
        needs_update = sum(1 for r in results if r.changed)
    return CorrectionResponse(results=results, needs_update=int(needs_update))


def parse_apply_response(data: Dict[str, Any]) -> ApplyResult:
    return ApplyResult(
        updated=int(data.get("updated", 0)),
        total=int(data.get("total", 0)),
        errors=list(data.get("errors") or []),
    )


class CorrectionServiceClient:
    """HTTP client for the correct/apply collaborator endpoints."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None, timeout: float = 60.0) -> None:
        self.base_url = (base_url or os.getenv("CORRECTION_SERVICE_URL", "http://127.0.0.1:8008")).rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("CORRECTION_API_KEY", "")
        self.timeout = timeout

    def request_corrections(self, office_ids: Sequence[str]) -> CorrectionResponse:
        data = self._post("correct-office-addresses", {"officeIds": list(office_ids)})
        try:
            return parse_correction_response(data)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise CorrectionServiceError(f"correct-office-addresses: malformed response ({exc!r})") from exc

    def apply_corrections(self, updates: Sequence[Dict[str, str]]) -> ApplyResult:
        data = self._post("apply-address-corrections", {"updates": list(updates)})
        try:
            return parse_apply_response(data)
        except (TypeError, ValueError, AttributeError) as exc:
            raise CorrectionServiceError(f"apply-address-corrections: malformed response ({exc!r})") from exc

    def _post(self, endpoint: str, payload: dict) -> dict:
        if not self.api_key:
            raise CorrectionAuthError("Not authenticated: CORRECTION_API_KEY is not set")
        url = f"{self.base_url}/{endpoint}"
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        req = urllib.request.Request(url, data=body, method="POST")
        req.add_header("Content-Type", "application/json")
        req.add_header("Authorization", f"Bearer {self.api_key}")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                out = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            if exc.code in (401, 403):
                raise CorrectionAuthError(f"{endpoint}: unauthorized ({exc.code})") from exc
            raise CorrectionServiceError(f"{endpoint} failed: HTTP {exc.code}") from exc
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise CorrectionServiceError(f"{endpoint} failed: {exc}") from exc
        if isinstance(out, dict) and out.get("success") is False:
            raise CorrectionServiceError(out.get("error") or f"{endpoint} failed")
        return out


class GoogleGeocoder:
    def __init__(self, api_key: Optional[str] = None, timeout: float = 15.0) -> None:
        self.api_key = api_key if api_key is not None else os.getenv("GOOGLE_MAPS_API_KEY", "")
        self.timeout = timeout

    def geocode(self, address: str) -> Dict[str, Any]:
        if not self.api_key:
            raise CorrectionServiceError("Google Maps API key not configured")
        query = urllib.parse.urlencode({"address": address, "key": self.api_key})
        with urllib.request.urlopen(f"{GOOGLE_GEOCODE_URL}?{query}", timeout=self.timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))


_COMPONENT_KEYS = {
    "street_number": "long_name",
    "route": "long_name",
    "locality": "long_name",
    "administrative_area_level_1": "short_name",
    "postal_code": "long_name",
    "country": "short_name",
}


def extract_components(result: Dict[str, Any]) -> Dict[str, str]:
    components: Dict[str, str] = {}
    for comp in result.get("address_components") or []:
        for kind in comp.get("types") or []:
            if kind in _COMPONENT_KEYS and kind not in components:
                components[kind] = comp.get(_COMPONENT_KEYS[kind], "")
                break
    return components


class OfficeAddressCorrector:
    """Server side of the correction request: geocode each stored office address."""

    def __init__(self, conn, geocoder: GoogleGeocoder, delay: float = 0.1) -> None:
        self.conn = conn
        self.geocoder = geocoder
        self.delay = delay

    def correct(self, office_ids: Sequence[str]) -> CorrectionResponse:
        if not office_ids:
            raise ValueError("officeIds must be a non-empty array")
        offices = [o for o in get_offices(self.conn, office_ids) if o.source == "partner"]
        if not offices:
            raise LookupError("No offices found")

        results: List[CorrectionResult] = []
        for i, office in enumerate(offices):
            if not office.address:
                results.append(CorrectionResult(office.id, None, "", success=False, error="No address to correct"))
                continue
            if i and self.delay:
                time.sleep(self.delay)
            results.append(self._correct_one(office.id, office.address))

        needs_update = sum(1 for r in results if r.changed)
        logger.info("Processed %d offices, %d need updates", len(offices), needs_update)
        return CorrectionResponse(results=results, needs_update=needs_update)

    def _correct_one(self, office_id: str, address: str) -> CorrectionResult:
        try:
            data = self.geocoder.geocode(address)
        except (OSError, ValueError) as exc:
            logger.exception("Geocoding office %s failed", office_id)
            return CorrectionResult(office_id, address, address, success=False, error=str(exc))

        status = data.get("status")
        results = data.get("results") or []
        if status != "OK" or not results:
            return CorrectionResult(office_id, address, address, success=False,
                                    error=f"Geocoding failed: {status}")
        best = results[0]
        return CorrectionResult(
            office_id,
            address,
            best.get("formatted_address") or address,
            components=extract_components(best),
        )


def apply_address_updates(conn, updates: Sequence[Dict[str, str]]) -> ApplyResult:
    """Server side of the apply call: write each approved address back to the store."""
    if not updates:
        raise ValueError("updates must be a non-empty array")
    updated = 0
    errors: List[Dict[str, str]] = []
    for upd in updates:
        office_id = str(upd.get("id", ""))
        address = upd.get("address")
        if not office_id or not address:
            errors.append({"id": office_id, "error": "id and address are required"})
            continue
        if update_office_address(conn, office_id, address, save=False):
            updated += 1
        else:
            errors.append({"id": office_id, "error": "Office not found"})
    if updated:
        conn.save()
    logger.info("Updated %d of %d addresses", updated, len(updates))
    return ApplyResult(updated=updated, total=len(updates), errors=errors)


class LocalCorrectionClient:
    """In-process collaborator: same contract as CorrectionServiceClient, backed by the store."""

    def __init__(self, conn, geocoder: Optional[GoogleGeocoder] = None, delay: float = 0.1) -> None:
        self.conn = conn
        self.corrector = OfficeAddressCorrector(conn, geocoder or GoogleGeocoder(), delay=delay)

    def request_corrections(self, office_ids: Sequence[str]) -> CorrectionResponse:
        try:
            return self.corrector.correct(office_ids)
        except (ValueError, LookupError, OSError) as exc:
            raise CorrectionServiceError(str(exc)) from exc

    def apply_corrections(self, updates: Sequence[Dict[str, str]]) -> ApplyResult:
        try:
            return apply_address_updates(self.conn, updates)
        except (ValueError, OSError) as exc:
            raise CorrectionServiceError(str(exc)) from exc

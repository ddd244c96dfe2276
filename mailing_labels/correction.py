from __future__ import annotations
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from .builder import matches_search
from .errors import (
    CorrectionAlreadyApplied,
    CorrectionError,
    CorrectionFailed,
    CorrectionInProgress,
    EmptyReason,
    NothingToCorrect,
)
from .geocoder import CorrectionClient
from .models import ApplyResult, CorrectionCandidate, LabelFilters, RawOfficeRecord

logger = logging.getLogger(__name__)


class CorrectionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    REVIEWING = "reviewing"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CorrectionSession:
    """At most one applied correction run per session; reset() is the explicit rearm."""
    corrected: bool = False

    def reset(self) -> None:
        self.corrected = False


def select_offices(records: Iterable[RawOfficeRecord], filters: LabelFilters) -> List[RawOfficeRecord]:
    """Partner offices with an address that pass the tier and search filters.

    Raises NothingToCorrect with the precise reason when the subset is empty.
    """
    partners = [r for r in records if r.source == "partner"]
    if not partners:
        raise NothingToCorrect(EmptyReason.NO_OFFICES)
    with_address = [r for r in partners if r.address and r.address.strip()]
    if not with_address:
        raise NothingToCorrect(EmptyReason.NO_ADDRESSES)
    selected = [
        r for r in with_address
        if r.tier in filters.tiers and matches_search(r, filters.search)
    ]
    if not selected:
        raise NothingToCorrect(EmptyReason.FILTERED_OUT)
    return selected


class AddressCorrectionWorkflow:
    """Idle -> Requesting -> Reviewing -> Applying -> Done | Failed."""

    def __init__(self, client: CorrectionClient, session: Optional[CorrectionSession] = None) -> None:
        self.client = client
        self.session = session if session is not None else CorrectionSession()
        self.state = CorrectionState.IDLE
        self.candidates: List[CorrectionCandidate] = []
        self.selected: Set[str] = set()
        self.needs_update = 0
        self.progress = 0.0
        self.error: Optional[str] = None
        self.result: Optional[ApplyResult] = None
        self._run_id = 0
        self._lock = threading.Lock()

    @property
    def selected_ids(self) -> List[str]:
        return [c.office_id for c in self.candidates if c.office_id in self.selected]

    @property
    def changed_candidates(self) -> List[CorrectionCandidate]:
        return [c for c in self.candidates if c.changed]

    def _begin(self, target: CorrectionState, allowed: Iterable[CorrectionState]) -> int:
        with self._lock:
            if self.session.corrected:
                raise CorrectionAlreadyApplied()
            if self.state in (CorrectionState.REQUESTING, CorrectionState.APPLYING):
                raise CorrectionInProgress(self.state.value)
            if self.state not in allowed:
                raise CorrectionError(f"Cannot start {target.value} from {self.state.value}")
            self.state = target
            self.error = None
            self._run_id += 1
            return self._run_id

    def _check_not_running(self) -> None:
        with self._lock:
            if self.state in (CorrectionState.REQUESTING, CorrectionState.APPLYING):
                raise CorrectionInProgress(self.state.value)

    def _fail(self, run_id: int, exc: Exception) -> bool:
        with self._lock:
            if run_id != self._run_id:
                return False
            self.state = CorrectionState.FAILED
            self.error = str(exc)
            self.progress = 0.0
            return True

    def request(self, records: Iterable[RawOfficeRecord], filters: LabelFilters) -> Optional[List[CorrectionCandidate]]:
        """Ask the collaborator for corrections of the filtered partner offices.

        Returns the candidates, or None when the run was dismissed before the
        response arrived (the late response is discarded).
        """
        if self.session.corrected:
            raise CorrectionAlreadyApplied()
        self._check_not_running()
        offices = select_offices(records, filters)
        names: Dict[str, str] = {o.id: o.name for o in offices}

        run_id = self._begin(
            CorrectionState.REQUESTING,
            (CorrectionState.IDLE, CorrectionState.REVIEWING, CorrectionState.FAILED, CorrectionState.DONE),
        )
        self.progress = 0.0
        self.candidates = []
        self.selected = set()
        logger.info("Requesting address corrections for %d offices", len(offices))
        try:
            response = self.client.request_corrections(list(names))
            candidates = [
                CorrectionCandidate(
                    office_id=r.id,
                    office_name=names.get(r.id, "Unknown Office"),
                    original=r.original,
                    corrected=r.corrected,
                    confidence=r.confidence,
                    success=r.success,
                    error=r.error,
                )
                for r in response.results
            ]
            needs_update = int(response.needs_update)
        except Exception as exc:
            # any failure ends the run; the state never stays in requesting
            logger.exception("Address correction request failed")
            if not self._fail(run_id, exc):
                return None
            raise CorrectionFailed(f"Correction failed: {exc}") from exc

        with self._lock:
            if run_id != self._run_id or self.state != CorrectionState.REQUESTING:
                logger.info("Discarding correction response for dismissed run %d", run_id)
                return None
            self.candidates = candidates
            self.selected = {c.office_id for c in candidates if c.changed}
            self.needs_update = needs_update
            self.progress = 100.0
            self.state = CorrectionState.REVIEWING
        logger.info("Found %d addresses that can be improved", self.needs_update)
        return list(self.candidates)

    def toggle(self, office_id: str) -> bool:
        self._require_review()
        if office_id not in {c.office_id for c in self.candidates}:
            raise KeyError(office_id)
        if office_id in self.selected:
            self.selected.discard(office_id)
            return False
        self.selected.add(office_id)
        return True

    def select_all(self) -> None:
        self._require_review()
        self.selected = {c.office_id for c in self.changed_candidates}

    def deselect_all(self) -> None:
        self._require_review()
        self.selected = set()

    def _require_review(self) -> None:
        if self.state in (CorrectionState.REQUESTING, CorrectionState.APPLYING):
            raise CorrectionInProgress(self.state.value)
        if self.state not in (CorrectionState.REVIEWING, CorrectionState.FAILED) or not self.candidates:
            raise CorrectionError("No corrections under review")

    def apply(self, selected_ids: Optional[Iterable[str]] = None) -> ApplyResult:
        if self.session.corrected:
            raise CorrectionAlreadyApplied()
        self._require_review()
        if selected_ids is not None:
            self.selected = set(selected_ids)
        updates = [
            {"id": c.office_id, "address": c.corrected}
            for c in self.candidates
            if c.office_id in self.selected and c.corrected
        ]
        if not updates:
            raise CorrectionError("No corrections selected")

        run_id = self._begin(
            CorrectionState.APPLYING,
            (CorrectionState.REVIEWING, CorrectionState.FAILED),
        )
        logger.info("Applying %d address corrections", len(updates))
        try:
            result = self.client.apply_corrections(updates)
            failed = result.failed
        except Exception as exc:
            logger.exception("Applying address corrections failed")
            self._fail(run_id, exc)
            raise CorrectionFailed(f"Update failed: {exc}") from exc

        with self._lock:
            self.result = result
            self.state = CorrectionState.DONE
            self.session.corrected = True
            self.candidates = []
            self.selected = set()
        if failed:
            logger.warning("Updated %d of %d addresses (%d failed)", result.updated, result.total, result.failed)
        else:
            logger.info("Updated %d of %d addresses", result.updated, result.total)
        return result

    def dismiss(self) -> None:
        """Close the review: drop candidates, and orphan any in-flight request."""
        with self._lock:
            if self.state == CorrectionState.APPLYING:
                raise CorrectionInProgress(self.state.value)
            if self.state == CorrectionState.DONE:
                return
            self._run_id += 1
            self.state = CorrectionState.IDLE
            self.candidates = []
            self.selected = set()
            self.progress = 0.0
            self.error = None

    def reset_session(self) -> None:
        with self._lock:
            if self.state in (CorrectionState.REQUESTING, CorrectionState.APPLYING):
                raise CorrectionInProgress(self.state.value)
            self.session.reset()
            self.state = CorrectionState.IDLE
            self.candidates = []
            self.selected = set()
            self.result = None
            self.error = None
            self.progress = 0.0

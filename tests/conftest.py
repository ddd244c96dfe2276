import pytest

from mailing_labels.config import Config
from mailing_labels.db import connect, init_db, upsert_offices
from mailing_labels.geocoder import CorrectionResponse, CorrectionResult
from mailing_labels.models import ApplyResult, RawOfficeRecord


@pytest.fixture
def offices():
    return [
        RawOfficeRecord("o1", "Bright Smiles: Dr. Jane Alvarez", "123 Main St, Suite 200, Irvine, CA 92618", "VIP", "partner"),
        RawOfficeRecord("o2", "John Carter, DDS", "456 Oak Ave, Austin, TX 78701-1234", "Warm", "partner"),
        RawOfficeRecord("o3", "Sunrise Family Dental", "789 Pine Rd", "Cold", "partner"),
        RawOfficeRecord("o4", "Jane Smith", None, "Dormant", "partner"),
        RawOfficeRecord("d1", "Lakeside Orthodontics", "10 Lake Dr, Seattle, WA 98101", None, "discovered"),
    ]


class FakeCorrectionClient:
    """Records calls; returns canned responses or raises the configured error."""

    def __init__(self, corrections=None, fail_request=None, fail_apply=None, updated=None):
        self.corrections = corrections or {}
        self.fail_request = fail_request
        self.fail_apply = fail_apply
        self.updated = updated
        self.request_calls = []
        self.apply_calls = []

    def request_corrections(self, office_ids):
        self.request_calls.append(list(office_ids))
        if self.fail_request:
            raise self.fail_request
        results = []
        for oid in office_ids:
            original, corrected = self.corrections.get(oid, ("", ""))
            results.append(CorrectionResult(oid, original, corrected or original))
        return CorrectionResponse(results=results, needs_update=sum(1 for r in results if r.changed))

    def apply_corrections(self, updates):
        self.apply_calls.append(list(updates))
        if self.fail_apply:
            raise self.fail_apply
        updated = len(updates) if self.updated is None else self.updated
        return ApplyResult(updated=updated, total=len(updates))


@pytest.fixture
def fake_client():
    return FakeCorrectionClient


@pytest.fixture
def cfg(tmp_path):
    return Config(db_path=str(tmp_path / "offices.xlsx"))


@pytest.fixture
def conn(cfg, offices):
    c = connect(cfg.db_path)
    init_db(c)
    upsert_offices(c, offices)
    return c

import pytest

from mailing_labels.edit_session import EditSessionController, SessionState
from mailing_labels.errors import EditSessionError
from mailing_labels.models import MailingLabelData


def _label(name, city="Irvine"):
    return MailingLabelData(office_name=name, contact_name=name, address1="1 Main St", city=city, state="CA", zip="92618")


@pytest.fixture
def session():
    return EditSessionController([_label("A"), _label("B")])


class TestEditing:
    def test_starts_clean(self, session):
        assert session.state == SessionState.CLEAN
        assert session.rows == session.baseline

    def test_edit_requires_edit_mode(self, session):
        with pytest.raises(EditSessionError):
            session.edit_cell(0, "city", "Austin")
        with pytest.raises(EditSessionError):
            session.save()

    def test_draft_is_invisible_until_saved(self, session):
        session.begin_edit()
        session.edit_cell(0, "city", "Austin")
        assert session.state == SessionState.EDITING
        assert session.rows[0].city == "Austin"
        assert session.working[0].city == "Irvine"

    def test_save_marks_dirty(self, session):
        session.begin_edit()
        session.edit_cell(1, "office_name", "Renamed")
        session.save()
        assert session.state == SessionState.DIRTY
        assert session.working[1].office_name == "Renamed"

    def test_cancel_on_clean_restores_baseline(self, session):
        session.begin_edit()
        session.edit_cell(0, "city", "Austin")
        session.cancel()
        assert session.state == SessionState.CLEAN
        assert session.working == session.baseline

    def test_cancel_on_dirty_keeps_saved_edits(self, session):
        session.begin_edit()
        session.edit_cell(0, "city", "Austin")
        session.save()
        session.begin_edit()
        session.edit_cell(0, "city", "Denver")
        session.cancel()
        assert session.working[0].city == "Austin"
        assert session.state == SessionState.DIRTY

    def test_bad_cell_rejected(self, session):
        session.begin_edit()
        with pytest.raises(EditSessionError):
            session.edit_cell(0, "country", "US")
        with pytest.raises(EditSessionError):
            session.edit_cell(5, "city", "Austin")


class TestRefresh:
    def test_clean_session_follows_upstream(self, session):
        assert session.refresh([_label("C")]) is True
        assert session.working == [_label("C")]
        assert session.refresh_count == 1

    def test_structurally_equal_baseline_does_nothing(self, session):
        assert session.refresh([_label("A"), _label("B")]) is False
        assert session.refresh_count == 0

    def test_dirty_session_survives_upstream_changes(self, session):
        session.begin_edit()
        session.edit_cell(0, "city", "Austin")
        session.save()
        edited = list(session.working)
        assert session.refresh([_label("C")]) is False
        assert session.working == edited
        assert session.baseline == [_label("C")]

    def test_reset_returns_to_latest_baseline(self, session):
        session.begin_edit()
        session.edit_cell(0, "city", "Austin")
        session.save()
        session.refresh([_label("C")])
        session.reset()
        assert session.state == SessionState.CLEAN
        assert session.working == [_label("C")]
        assert session.refresh([_label("D")]) is True


def _office(office_id, city="Irvine"):
    return MailingLabelData(office_name=f"Office {office_id}", contact_name="", address1="1 Main St",
                            city=city, state="CA", zip="92618", office_id=office_id)


@pytest.fixture
def offices_session():
    return EditSessionController([_office("a"), _office("b")])


class TestOfficeKeyedEdits:
    def test_save_returns_changes_by_office(self, offices_session):
        offices_session.begin_edit()
        offices_session.edit_cell(1, "city", "Austin")
        offices_session.edit_cell(1, "state", "TX")
        assert offices_session.save() == {"b": {"city": "Austin", "state": "TX"}}
        offices_session.begin_edit()
        offices_session.edit_cell(0, "zip", "02108")
        assert offices_session.save() == {"a": {"zip": "02108"}}
        assert offices_session.edited_offices() == {
            "a": {"zip": "02108"},
            "b": {"city": "Austin", "state": "TX"},
        }

    def test_refresh_while_editing_rebases_draft(self, offices_session):
        offices_session.begin_edit()
        offices_session.edit_cell(0, "city", "Austin")
        upstream = [_office("c", "Denver"), _office("a", "Tustin"), _office("b", "Irvine")]
        assert offices_session.refresh(upstream) is True
        assert offices_session.state == SessionState.EDITING
        assert [r.office_id for r in offices_session.rows] == ["c", "a", "b"]
        assert offices_session.rows[1].city == "Austin"
        assert offices_session.rows[0].city == "Denver"
        assert offices_session.save() == {"a": {"city": "Austin"}}
        assert offices_session.working[1].city == "Austin"

    def test_cancel_after_rebase_shows_new_baseline(self, offices_session):
        offices_session.begin_edit()
        offices_session.edit_cell(0, "city", "Austin")
        offices_session.refresh([_office("b")])
        assert offices_session.rows == [_office("b")]
        offices_session.cancel()
        assert offices_session.working == [_office("b")]

    def test_revert_one_office(self, offices_session):
        offices_session.begin_edit()
        offices_session.edit_cell(0, "city", "Austin")
        offices_session.edit_cell(1, "city", "Miami")
        offices_session.save()
        assert offices_session.revert("a") is True
        assert offices_session.working[0] == _office("a")
        assert offices_session.state == SessionState.DIRTY
        assert offices_session.revert("b") is True
        assert offices_session.state == SessionState.CLEAN
        assert offices_session.revert("b") is False
        assert offices_session.revert("zz") is False

    def test_revert_refused_while_editing(self, offices_session):
        offices_session.begin_edit()
        with pytest.raises(EditSessionError):
            offices_session.revert("a")

"""
Tests for the load → apply → write-back service layer (service.py).
"""
import logging

import pytest
from factories import make_subject

from curriculum_map.errors import (
    AuthError,
    IllegalTransitionError,
    NotFoundError,
    ValidationError,
)
from curriculum_map.models import PeriodType, SubjectInput, SubjectStatus, ThemeId


@pytest.fixture
def guide(service, alice):
    return service.create_guide("Computer Engineering", "UNAM")


@pytest.fixture
def pair(service, guide):
    a = service.add_subject(guide.id, SubjectInput("Programming I", 4, 1))
    b = service.add_subject(guide.id, SubjectInput("Programming II", 3, 2, [a.id]))
    return guide.id, a.id, b.id


class TestCreateGuide:
    def test_defaults(self, service, alice, store):
        guide = service.create_guide("Plan", " UBA ", "quarter")
        stored = store.get_by_id(guide.id)
        assert stored.owner_id == alice.uid
        assert stored.institution == "UBA"
        assert stored.period_type == PeriodType.QUARTER
        assert stored.subjects == []
        assert not stored.is_public
        assert stored.theme == ThemeId.DEFAULT

    def test_default_theme_from_service(self, store, auth, alice):
        from curriculum_map.service import GuideService
        svc = GuideService(store, auth, default_theme=ThemeId.PURPLE)
        assert svc.create_guide("Plan", "").theme == ThemeId.PURPLE

    def test_requires_sign_in(self, service):
        with pytest.raises(AuthError) as exc:
            service.create_guide("Plan", "UBA")
        assert exc.value.code == "not_signed_in"

    def test_empty_name(self, service, alice):
        with pytest.raises(ValidationError):
            service.create_guide("  ", "UBA")

    def test_bad_period_type(self, service, alice):
        with pytest.raises(ValidationError) as exc:
            service.create_guide("Plan", "UBA", "decade")
        assert exc.value.code == "invalid_period_type"

    def test_list_my_guides(self, service, guide):
        assert [g.id for g in service.list_my_guides()] == [guide.id]


class TestMutations:
    def test_add_subject_persists(self, service, store, pair):
        guide_id, a_id, b_id = pair
        stored = store.get_by_id(guide_id)
        assert [s.id for s in stored.subjects] == [a_id, b_id]
        assert stored.subject_by_id(b_id).status == SubjectStatus.BLOCKED

    def test_change_status_persists_propagation(self, service, store, pair):
        guide_id, a_id, b_id = pair
        service.change_status(guide_id, a_id, "approved", 90)
        stored = store.get_by_id(guide_id)
        assert stored.subject_by_id(a_id).score == 90
        assert stored.subject_by_id(b_id).status == SubjectStatus.AVAILABLE

    def test_failed_engine_call_writes_nothing(self, service, store, pair):
        guide_id, a_id, b_id = pair
        before = store.get_by_id(guide_id).model_dump()
        with pytest.raises(ValidationError):
            service.change_status(guide_id, a_id, "approved", 150)
        with pytest.raises(IllegalTransitionError):
            service.change_status(guide_id, b_id, "approved", 90)
        assert store.get_by_id(guide_id).model_dump() == before

    def test_set_theme(self, service, store, guide):
        service.set_theme(guide.id, "ocean")
        assert store.get_by_id(guide.id).theme == ThemeId.OCEAN

    def test_toggle_and_set_visibility(self, service, store, guide):
        assert service.toggle_visibility(guide.id).is_public
        assert store.get_by_id(guide.id).is_public
        service.set_visibility(guide.id, False)
        assert not store.get_by_id(guide.id).is_public

    def test_missing_guide(self, service, alice):
        with pytest.raises(NotFoundError):
            service.set_theme("nope", "ocean")


class TestOwnership:
    def test_other_user_cannot_mutate(self, service, auth, guide):
        auth.sign_up("bob@example.com", "hunter22")
        with pytest.raises(AuthError) as exc:
            service.set_theme(guide.id, "forest")
        assert exc.value.code == "not_owner"

    def test_other_user_cannot_open_private_guide(self, service, auth, guide):
        auth.sign_up("bob@example.com", "hunter22")
        with pytest.raises(AuthError):
            service.open_guide(guide.id)

    def test_public_guide_readable_without_sign_in(self, service, auth, guide):
        service.set_visibility(guide.id, True)
        auth.sign_out()
        assert service.open_guide(guide.id).id == guide.id

    def test_public_guide_still_not_writable_by_others(self, service, auth, guide):
        service.set_visibility(guide.id, True)
        auth.sign_up("bob@example.com", "hunter22")
        with pytest.raises(AuthError):
            service.toggle_visibility(guide.id)


class TestIntegrityOnLoad:
    def test_warnings_logged(self, service, store, guide, caplog):
        store.update(guide.id, {"subjects": [
            make_subject("a", status=SubjectStatus.BLOCKED),
        ]})
        with caplog.at_level(logging.WARNING, logger="curriculum_map.service"):
            service.open_guide(guide.id)
        assert "GI-06" in caplog.text


class TestExport:
    def test_export_pdf(self, service, pair):
        guide_id, a_id, _ = pair
        service.change_status(guide_id, a_id, "approved", 90)
        data = service.export_pdf(guide_id)
        assert data[:4] == b"%PDF"

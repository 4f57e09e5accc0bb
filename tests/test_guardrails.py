"""
Tests for the guide integrity checks (guardrails.py).
Run: python -m pytest tests/ -v
"""
from factories import make_chain_guide, make_guide, make_subject

from curriculum_map.guardrails import GuardrailLevel, GuideGuardrails, _find_cycle
from curriculum_map.models import SubjectStatus


class TestCleanGuide:
    def setup_method(self):
        self.guard = GuideGuardrails()

    def test_fresh_chain_passes(self):
        result = self.guard.check(make_chain_guide())
        assert result.passed
        assert result.violations == []
        assert result.summary() == "All integrity checks passed."

    def test_check_does_not_mutate(self):
        guide = make_guide([make_subject("a", status=SubjectStatus.BLOCKED)])
        before = guide.model_dump()
        self.guard.check(guide)
        assert guide.model_dump() == before


class TestBlockingChecks:
    def setup_method(self):
        self.guard = GuideGuardrails()

    def test_gi01_duplicate_id(self):
        result = self.guard.check(make_guide([make_subject("a"), make_subject("a")]))
        assert "GI-01" in result.codes
        assert result.blocked
        assert not result.passed

    def test_gi02_dangling_prerequisite(self):
        result = self.guard.check(make_guide([
            make_subject("a", period=2, prerequisites=["ghost"]),
        ]))
        assert "GI-02" in result.codes
        assert result.blocked

    def test_gi03_cycle(self):
        result = self.guard.check(make_guide([
            make_subject("a", period=1, prerequisites=["b"]),
            make_subject("b", period=2, prerequisites=["a"]),
        ]))
        cycle = [v for v in result.violations if v.code == "GI-03"]
        assert cycle and cycle[0].level == GuardrailLevel.BLOCK

    def test_gi04_approved_without_score(self):
        result = self.guard.check(make_guide([
            make_subject("a", status=SubjectStatus.APPROVED),
        ]))
        assert "GI-04" in result.codes

    def test_gi04_score_on_non_approved(self):
        result = self.guard.check(make_guide([
            make_subject("a", status=SubjectStatus.AVAILABLE, score=70),
        ]))
        assert "GI-04" in result.codes


class TestWarningChecks:
    def setup_method(self):
        self.guard = GuideGuardrails()

    def test_gi05_prerequisite_not_earlier(self):
        result = self.guard.check(make_guide([
            make_subject("a", period=2),
            make_subject("b", period=2, prerequisites=["a"]),
        ]))
        assert [v.code for v in result.warnings] == ["GI-05"]
        assert result.passed

    def test_gi06_blocked_without_prerequisites(self):
        result = self.guard.check(make_guide([
            make_subject("a", status=SubjectStatus.BLOCKED),
        ]))
        assert "GI-06" in result.codes
        assert result.warnings[0].subject_id == "a"

    def test_gi07_unlocked_with_pending_prerequisite(self):
        guide = make_chain_guide()
        guide.subject_by_id("B").status = SubjectStatus.AVAILABLE
        result = self.guard.check(guide)
        assert "GI-07" in result.codes
        assert result.passed
        assert "WARN [GI-07]" in result.summary()


class TestFindCycle:
    def test_acyclic(self):
        assert _find_cycle({"a": [], "b": ["a"], "c": ["b", "a"]}) == []

    def test_self_loop(self):
        assert _find_cycle({"a": ["a"]}) == ["a", "a"]

    def test_ignores_unknown_nodes(self):
        assert _find_cycle({"a": ["zz"]}) == []

"""
guide_engine.py – Subject status state machine & guide metrics
===============================================================
Owns the rules that govern a guide's subject list:

  GuideEngine
    • add_subject        appends a subject; starts `available` when it has no
                         prerequisites, otherwise `blocked`.
    • change_status      applies one transition from the table below, then
                         re-evaluates the subjects that depend on it.
    • compute_progress / compute_weighted_average
                         credit-weighted progress % and grade average.
    • set_visibility / toggle_visibility / set_theme
                         plain field updates on the guide.

Transition table
----------------
  available   → in_progress | approved (score required)
  in_progress → available   | approved (score required)
  approved    → available   (score cleared)
  blocked     → —           (unlocked only through propagation)

Propagation
-----------
After a transition every direct dependent of the changed subject is
re-evaluated against the post-change statuses: it becomes available when
all of its prerequisites are approved and blocked otherwise, losing any
score either way.  In SINGLE_HOP mode (default) that is the
whole cascade, so a chain A → B → C needs one call per edge.  TRANSITIVE
mode keeps walking breadth-first through dependents whose status changed.

The engine is pure and synchronous.  Every operation validates fully before
it mutates, so a rejected call leaves the guide exactly as it was.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional

from curriculum_map.errors import (
    IllegalTransitionError,
    NotFoundError,
    ValidationError,
)
from curriculum_map.models import (
    Guide,
    PropagationMode,
    Subject,
    SubjectInput,
    SubjectStatus,
    parse_theme,
)

logger = logging.getLogger(__name__)


_TRANSITIONS: dict[SubjectStatus, frozenset[SubjectStatus]] = {
    SubjectStatus.AVAILABLE:   frozenset({SubjectStatus.IN_PROGRESS, SubjectStatus.APPROVED}),
    SubjectStatus.IN_PROGRESS: frozenset({SubjectStatus.AVAILABLE, SubjectStatus.APPROVED}),
    SubjectStatus.APPROVED:    frozenset({SubjectStatus.AVAILABLE}),
    SubjectStatus.BLOCKED:     frozenset(),
}


def allowed_transitions(status: SubjectStatus) -> frozenset[SubjectStatus]:
    """Statuses a subject in *status* may be moved to directly."""
    return _TRANSITIONS[SubjectStatus(status)]


def _time_token() -> str:
    """Millisecond timestamp id."""
    return str(time.time_ns() // 1_000_000)


def _positive_int(value, field_name: str, code: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(
            code, f"{field_name.capitalize()} must be a positive integer (got {value!r}).",
            field=field_name,
        )
    return value


def _validate_score(score) -> float:
    if score is None or score == "":
        raise ValidationError(
            "invalid_score", "A score between 0 and 100 is required to approve a subject.",
            field="score",
        )
    if isinstance(score, bool):
        raise ValidationError("invalid_score", f"Score {score!r} is not a number.", field="score")
    try:
        value = float(score)
    except (TypeError, ValueError):
        raise ValidationError(
            "invalid_score", f"Score {score!r} is not a number.", field="score",
        ) from None
    if math.isnan(value) or not 0.0 <= value <= 100.0:
        raise ValidationError(
            "invalid_score", f"Score {score} is outside the range 0–100.", field="score",
        )
    return value


def _parse_status(status) -> SubjectStatus:
    try:
        return SubjectStatus(status)
    except ValueError:
        raise ValidationError(
            "invalid_status", f"'{status}' is not a subject status.", field="status",
        ) from None


# ─── Output model ─────────────────────────────────────────────────────────────

@dataclass
class GuideSummary:
    """Derived view state for one guide."""
    progress_pct:      float
    weighted_average:  float
    total_credits:     int
    approved_credits:  int
    subject_count:     int
    max_period:        int
    status_counts:     dict[SubjectStatus, int] = field(default_factory=dict)


# ─── Engine ───────────────────────────────────────────────────────────────────

class GuideEngine:
    """
    Applies validated mutations to an in-memory Guide.
    The caller loads the guide beforehand and persists the result afterwards.
    """

    def __init__(
        self,
        propagation: PropagationMode = PropagationMode.SINGLE_HOP,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.propagation = PropagationMode(propagation)
        self._id_factory = id_factory or _time_token

    # ── Subjects ──────────────────────────────────────────────────────────────

    def add_subject(self, guide: Guide, data: SubjectInput) -> Subject:
        name = (data.name or "").strip()
        if not name:
            raise ValidationError("empty_name", "Subject name must not be empty.", field="name")
        credits = _positive_int(data.credits, "credits", "non_positive_credits")
        period  = _positive_int(data.period, "period", "non_positive_period")

        prerequisites = list(dict.fromkeys(data.prerequisites or []))
        for prereq_id in prerequisites:
            prereq = guide.subject_by_id(prereq_id)
            if prereq is None:
                raise ValidationError(
                    "unknown_prerequisite",
                    f"Prerequisite '{prereq_id}' does not exist in this guide.",
                    field="prerequisites",
                )
            if prereq.period >= period:
                raise ValidationError(
                    "prerequisite_period",
                    f"Prerequisite '{prereq.name}' (period {prereq.period}) must be "
                    f"planned before period {period}.",
                    field="prerequisites",
                )

        # Only the presence of prerequisites matters here, not their status.
        status = SubjectStatus.BLOCKED if prerequisites else SubjectStatus.AVAILABLE
        subject = Subject(
            id            = self._next_id(guide),
            name          = name,
            credits       = credits,
            period        = period,
            prerequisites = prerequisites,
            status        = status,
        )
        guide.subjects.append(subject)
        logger.debug("Added subject %s (%s) to guide %s as %s",
                     subject.id, subject.name, guide.id, status.value)
        return subject

    def change_status(
        self,
        guide: Guide,
        subject_id: str,
        new_status,
        score=None,
    ) -> list[Subject]:
        subject = guide.subject_by_id(subject_id)
        if subject is None:
            raise NotFoundError(
                "unknown_subject", f"Subject '{subject_id}' is not part of this guide.",
                field="subject_id",
            )
        target = _parse_status(new_status)
        if target not in _TRANSITIONS[subject.status]:
            raise IllegalTransitionError(subject.status.value, target.value)
        new_score = _validate_score(score) if target == SubjectStatus.APPROVED else None

        logger.debug("Subject %s: %s → %s", subject.id, subject.status.value, target.value)
        subject.status = target
        subject.score  = new_score
        self._propagate(guide, subject.id)
        return guide.subjects

    def _propagate(self, guide: Guide, changed_id: str) -> None:
        queue = deque([changed_id])
        seen  = {changed_id}
        while queue:
            source = queue.popleft()
            # Eligibility is judged against the statuses as they stood
            # before this round of re-evaluation.
            snapshot = {s.id: s.status for s in guide.subjects}
            for dep in self.dependents_of(guide, source):
                before = dep.status
                if all(snapshot.get(p) == SubjectStatus.APPROVED for p in dep.prerequisites):
                    dep.status = SubjectStatus.AVAILABLE
                else:
                    dep.status = SubjectStatus.BLOCKED
                dep.score = None
                if dep.status == before:
                    continue
                logger.debug("Propagated %s → %s: %s → %s",
                             source, dep.id, before.value, dep.status.value)
                if self.propagation == PropagationMode.TRANSITIVE and dep.id not in seen:
                    seen.add(dep.id)
                    queue.append(dep.id)

    def _next_id(self, guide: Guide) -> str:
        taken = {s.id for s in guide.subjects}
        candidate = self._id_factory()
        if candidate not in taken:
            return candidate
        n = 1
        while f"{candidate}-{n}" in taken:
            n += 1
        return f"{candidate}-{n}"

    # ── Queries ───────────────────────────────────────────────────────────────

    @staticmethod
    def dependents_of(guide: Guide, subject_id: str) -> list[Subject]:
        return [
            s for s in guide.subjects
            if subject_id in s.prerequisites and s.id != subject_id
        ]

    @staticmethod
    def eligible(guide: Guide, subject: Subject) -> bool:
        """True when every prerequisite of *subject* is approved."""
        for prereq_id in subject.prerequisites:
            prereq = guide.subject_by_id(prereq_id)
            if prereq is None or prereq.status != SubjectStatus.APPROVED:
                return False
        return True

    # ── Metrics ───────────────────────────────────────────────────────────────

    @staticmethod
    def compute_progress(guide: Guide) -> float:
        """Approved credits as a percentage of all credits (1 dp)."""
        total = sum(s.credits for s in guide.subjects)
        if not total:
            return 0.0
        approved = sum(s.credits for s in guide.subjects if s.is_approved)
        return round(approved / total * 100, 1)

    @staticmethod
    def compute_weighted_average(guide: Guide) -> float:
        """Credit-weighted mean score of approved subjects (2 dp)."""
        graded = [s for s in guide.subjects if s.is_approved and s.score is not None]
        credits = sum(s.credits for s in graded)
        if not credits:
            return 0.0
        return round(sum(s.score * s.credits for s in graded) / credits, 2)

    def summary(self, guide: Guide) -> GuideSummary:
        counts = {status: 0 for status in SubjectStatus}
        for s in guide.subjects:
            counts[s.status] += 1
        return GuideSummary(
            progress_pct     = self.compute_progress(guide),
            weighted_average = self.compute_weighted_average(guide),
            total_credits    = sum(s.credits for s in guide.subjects),
            approved_credits = sum(s.credits for s in guide.subjects if s.is_approved),
            subject_count    = len(guide.subjects),
            max_period       = max((s.period for s in guide.subjects), default=0),
            status_counts    = counts,
        )

    # ── Guide fields ──────────────────────────────────────────────────────────

    @staticmethod
    def set_visibility(guide: Guide, is_public: bool) -> None:
        guide.is_public = bool(is_public)

    @staticmethod
    def toggle_visibility(guide: Guide) -> bool:
        guide.is_public = not guide.is_public
        return guide.is_public

    @staticmethod
    def set_theme(guide: Guide, theme_id) -> None:
        guide.theme = parse_theme(theme_id)

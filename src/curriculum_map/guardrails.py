"""
guardrails.py – Integrity checks for stored guide documents
===========================================================
Guides are written back wholesale with last-write-wins semantics, so a
document read from storage may have been produced by another client.  These
checks report what is wrong with a guide without ever changing it.

Guardrail levels
----------------
BLOCK   – The document breaks a data-integrity rule.
WARN    – Unusual but recoverable state.
INFO    – Advisory note.

Guards implemented
------------------
  GI-01  Subject ids are unique within the guide                    [BLOCK]
  GI-02  Every prerequisite references a subject of the guide      [BLOCK]
  GI-03  Prerequisite graph has no cycles                          [BLOCK]
  GI-04  Approved ⇔ score present (score only on approved)         [BLOCK]
  GI-05  Prerequisites are planned in an earlier period             [WARN]
  GI-06  A subject without prerequisites is never blocked           [WARN]
  GI-07  Unlocked subject whose prerequisites are not all approved  [WARN]
         (expected transiently under single-hop propagation)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from curriculum_map.models import Guide, SubjectStatus


# ─── Enums & data models ─────────────────────────────────────────────────────

class GuardrailLevel(str, Enum):
    BLOCK = "BLOCK"
    WARN  = "WARN"
    INFO  = "INFO"


@dataclass
class GuardrailViolation:
    code:       str
    level:      GuardrailLevel
    message:    str
    subject_id: str = ""   # which subject triggered the violation


@dataclass
class GuardrailResult:
    passed:     bool
    violations: list[GuardrailViolation] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return any(v.level == GuardrailLevel.BLOCK for v in self.violations)

    @property
    def warnings(self) -> list[GuardrailViolation]:
        return [v for v in self.violations if v.level == GuardrailLevel.WARN]

    @property
    def codes(self) -> set[str]:
        return {v.code for v in self.violations}

    def summary(self) -> str:
        if not self.violations:
            return "All integrity checks passed."
        return "\n".join(f"{v.level.value} [{v.code}] {v.message}" for v in self.violations)


# ─── Checks ───────────────────────────────────────────────────────────────────

def _find_cycle(graph: dict[str, list[str]]) -> list[str]:
    """Return one prerequisite cycle as a list of ids, or [] if acyclic."""
    WHITE, GREY, BLACK = 0, 1, 2
    colour = {node: WHITE for node in graph}
    path: list[str] = []

    def _visit(node: str) -> list[str]:
        colour[node] = GREY
        path.append(node)
        for nxt in graph.get(node, []):
            if nxt not in colour:
                continue  # dangling, reported by GI-02
            if colour[nxt] == GREY:
                return path[path.index(nxt):] + [nxt]
            if colour[nxt] == WHITE:
                found = _visit(nxt)
                if found:
                    return found
        path.pop()
        colour[node] = BLACK
        return []

    for node in graph:
        if colour[node] == WHITE:
            found = _visit(node)
            if found:
                return found
    return []


class GuideGuardrails:
    """GI-01 – GI-07: Validates a Guide document as loaded from storage."""

    def check(self, guide: Guide) -> GuardrailResult:
        violations: list[GuardrailViolation] = []
        by_id = {}

        # GI-01 Unique ids
        for s in guide.subjects:
            if s.id in by_id:
                violations.append(GuardrailViolation(
                    code="GI-01", level=GuardrailLevel.BLOCK, subject_id=s.id,
                    message=f"Subject id '{s.id}' is used more than once.",
                ))
            by_id.setdefault(s.id, s)

        for s in guide.subjects:
            # GI-02 Dangling prerequisites
            for p in s.prerequisites:
                if p not in by_id:
                    violations.append(GuardrailViolation(
                        code="GI-02", level=GuardrailLevel.BLOCK, subject_id=s.id,
                        message=f"'{s.name}' lists unknown prerequisite '{p}'.",
                    ))

            # GI-04 Score ⇔ approved
            if s.status == SubjectStatus.APPROVED and s.score is None:
                violations.append(GuardrailViolation(
                    code="GI-04", level=GuardrailLevel.BLOCK, subject_id=s.id,
                    message=f"'{s.name}' is approved but has no score.",
                ))
            elif s.status != SubjectStatus.APPROVED and s.score is not None:
                violations.append(GuardrailViolation(
                    code="GI-04", level=GuardrailLevel.BLOCK, subject_id=s.id,
                    message=f"'{s.name}' carries a score but is {s.status.value}.",
                ))

            # GI-05 Period ordering
            for p in s.prerequisites:
                prereq = by_id.get(p)
                if prereq is not None and prereq.period >= s.period:
                    violations.append(GuardrailViolation(
                        code="GI-05", level=GuardrailLevel.WARN, subject_id=s.id,
                        message=(
                            f"Prerequisite '{prereq.name}' (period {prereq.period}) is not "
                            f"before '{s.name}' (period {s.period})."
                        ),
                    ))

            # GI-06 / GI-07 Status vs prerequisites
            if not s.prerequisites and s.status == SubjectStatus.BLOCKED:
                violations.append(GuardrailViolation(
                    code="GI-06", level=GuardrailLevel.WARN, subject_id=s.id,
                    message=f"'{s.name}' has no prerequisites but is blocked.",
                ))
            elif s.prerequisites and s.status != SubjectStatus.BLOCKED:
                pending = [
                    p for p in s.prerequisites
                    if p in by_id and by_id[p].status != SubjectStatus.APPROVED
                ]
                if pending:
                    violations.append(GuardrailViolation(
                        code="GI-07", level=GuardrailLevel.WARN, subject_id=s.id,
                        message=(
                            f"'{s.name}' is {s.status.value} while "
                            f"{len(pending)} prerequisite(s) are not approved."
                        ),
                    ))

        # GI-03 Cycles
        cycle = _find_cycle({s.id: list(s.prerequisites) for s in by_id.values()})
        if cycle:
            violations.append(GuardrailViolation(
                code="GI-03", level=GuardrailLevel.BLOCK, subject_id=cycle[0],
                message="Prerequisite cycle: " + " → ".join(cycle),
            ))

        return GuardrailResult(
            passed=not any(v.level == GuardrailLevel.BLOCK for v in violations),
            violations=violations,
        )

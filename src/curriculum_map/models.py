"""
Data models for the curriculum map package.

Guides are the persisted aggregate; subjects live embedded inside them and
are never stored or addressed on their own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from curriculum_map.errors import ValidationError


# ─── Enumerations ────────────────────────────────────────────────────────────

class SubjectStatus(str, Enum):
    """Where a subject sits in the student's progression."""
    BLOCKED     = "blocked"      # at least one prerequisite not yet approved
    AVAILABLE   = "available"    # can be taken
    IN_PROGRESS = "in_progress"  # currently being taken
    APPROVED    = "approved"     # passed, carries a score


class PeriodType(str, Enum):
    """Term granularity of a guide. Display label only."""
    SEMESTER  = "semester"
    QUARTER   = "quarter"
    TRIMESTER = "trimester"
    BIMESTER  = "bimester"


class ThemeId(str, Enum):
    DEFAULT = "default"
    OCEAN   = "ocean"
    FOREST  = "forest"
    SUNSET  = "sunset"
    PURPLE  = "purple"


class PropagationMode(str, Enum):
    """How far a status change re-evaluates dependent subjects."""
    SINGLE_HOP = "single_hop"  # direct dependents only
    TRANSITIVE = "transitive"  # keep going while dependents change


class SearchField(str, Enum):
    """Attribute matched by the public guide search."""
    INSTITUTION = "institution"
    NAME        = "name"
    COUNTRY     = "country"


PERIOD_LABELS: dict[PeriodType, str] = {
    PeriodType.SEMESTER:  "Semester",
    PeriodType.QUARTER:   "Quarter",
    PeriodType.TRIMESTER: "Trimester",
    PeriodType.BIMESTER:  "Bimester",
}


# ─── Theme registry ──────────────────────────────────────────────────────────

# primary: header/footer band and subject cards; accent: table stripes.
THEMES: dict[ThemeId, dict] = {
    ThemeId.DEFAULT: {"name": "Classic Blue",  "primary": "#337AB7", "accent": "#DBEAFE"},
    ThemeId.OCEAN:   {"name": "Deep Ocean",    "primary": "#0E7490", "accent": "#CFFAFE"},
    ThemeId.FOREST:  {"name": "Green Forest",  "primary": "#16A34A", "accent": "#DCFCE7"},
    ThemeId.SUNSET:  {"name": "Sunset",        "primary": "#F97316", "accent": "#FFEDD5"},
    ThemeId.PURPLE:  {"name": "Royal Purple",  "primary": "#9333EA", "accent": "#F3E8FF"},
}


def parse_theme(theme_id) -> ThemeId:
    """Coerce *theme_id* into a ThemeId, raising ValidationError if unknown."""
    try:
        return ThemeId(theme_id)
    except ValueError:
        known = ", ".join(t.value for t in ThemeId)
        raise ValidationError(
            "unknown_theme",
            f"Theme '{theme_id}' is not one of: {known}.",
            field="theme",
        ) from None


def get_theme(theme_id) -> dict:
    """Return the registry entry for *theme_id*."""
    return THEMES[parse_theme(theme_id)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─── Stored documents ────────────────────────────────────────────────────────

class Subject(BaseModel):
    """One course within a guide."""
    id:            str
    name:          str = Field(min_length=1)
    credits:       int = Field(gt=0, description="Weight in aggregate calculations")
    period:        int = Field(gt=0, description="Term index the subject is planned in")
    prerequisites: list[str] = Field(default_factory=list)
    status:        SubjectStatus = SubjectStatus.BLOCKED
    score:         Optional[float] = Field(default=None, ge=0.0, le=100.0)

    @field_validator("prerequisites")
    @classmethod
    def _dedupe_prerequisites(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @property
    def is_approved(self) -> bool:
        return self.status == SubjectStatus.APPROVED


class Guide(BaseModel):
    """
    A user's curriculum map — the root persisted aggregate.
    The subject list is one unit: storage replaces it wholesale.
    """
    id:          Optional[str] = None
    owner_id:    str
    name:        str
    institution: str = ""
    period_type: PeriodType = PeriodType.SEMESTER
    is_public:   bool = False
    theme:       ThemeId = ThemeId.DEFAULT
    subjects:    list[Subject] = Field(default_factory=list)
    created_at:  datetime = Field(default_factory=_utcnow)

    # ── Derived helpers ──────────────────────────────────────────────────────

    def subject_by_id(self, subject_id: str) -> Optional[Subject]:
        return next((s for s in self.subjects if s.id == subject_id), None)

    def periods(self) -> list[int]:
        return sorted({s.period for s in self.subjects})

    def subjects_in_period(self, period: int) -> list[Subject]:
        return [s for s in self.subjects if s.period == period]

    @property
    def period_label(self) -> str:
        return PERIOD_LABELS[self.period_type]


# ─── Inputs & identities ─────────────────────────────────────────────────────

@dataclass
class SubjectInput:
    """Fields supplied by the user when adding a subject."""
    name:          str
    credits:       int
    period:        int
    prerequisites: list[str] = field(default_factory=list)


@dataclass
class Identity:
    """A signed-in user as issued by AuthService."""
    uid:          str
    email:        str
    display_name: Optional[str] = None
    country:      Optional[str] = None  # ISO 3166 alpha-2, e.g. "MX"

    @property
    def label(self) -> str:
        """Name shown on exports: display name, falling back to the email."""
        return self.display_name or self.email

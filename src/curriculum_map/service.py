"""
service.py — Load → apply → write-back orchestration
====================================================
GuideService is the caller the engine expects: for every mutation it

  1. loads the full guide document from the GuideStore,
  2. checks the signed-in identity owns it,
  3. applies one GuideEngine operation in memory,
  4. writes the changed field(s) back wholesale.

If step 3 raises nothing is written.  Store failures propagate unchanged.
There is no version check between steps 1 and 4: concurrent writers on the
same guide resolve as last-write-wins.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from curriculum_map.auth import AuthService
from curriculum_map.database import GuideStore
from curriculum_map.errors import AuthError, ValidationError
from curriculum_map.exporter import DocumentExporter
from curriculum_map.guardrails import GuardrailResult, GuideGuardrails
from curriculum_map.guide_engine import GuideEngine
from curriculum_map.models import (
    Guide,
    Identity,
    PeriodType,
    Subject,
    SubjectInput,
    ThemeId,
)

logger = logging.getLogger(__name__)


class GuideService:
    def __init__(
        self,
        store: GuideStore,
        auth: AuthService,
        engine: Optional[GuideEngine] = None,
        exporter: Optional[DocumentExporter] = None,
        default_theme: ThemeId = ThemeId.DEFAULT,
    ):
        self.store    = store
        self.auth     = auth
        self.engine   = engine or GuideEngine()
        self.exporter = exporter or DocumentExporter(self.engine)
        self.default_theme = default_theme
        self.guardrails = GuideGuardrails()

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _load_owned(self, guide_id: str) -> tuple[Identity, Guide]:
        identity = self.auth.require_identity()
        guide = self.open_guide(guide_id)
        if guide.owner_id != identity.uid:
            raise AuthError("not_owner", "Only the owner can change this guide.",
                            field="guide_id")
        return identity, guide

    def check_integrity(self, guide: Guide) -> GuardrailResult:
        result = self.guardrails.check(guide)
        for v in result.violations:
            logger.warning("Guide %s integrity [%s] %s", guide.id, v.code, v.message)
        return result

    # ── Reads ─────────────────────────────────────────────────────────────────

    def open_guide(self, guide_id: str) -> Guide:
        """Load a guide the caller may view: their own, or any public guide."""
        guide = self.store.get_by_id(guide_id)
        if not guide.is_public:
            identity = self.auth.require_identity()
            if guide.owner_id != identity.uid:
                raise AuthError("not_owner", "This guide is private.", field="guide_id")
        self.check_integrity(guide)
        return guide

    def list_my_guides(self) -> list[Guide]:
        identity = self.auth.require_identity()
        return self.store.query_by_owner(identity.uid)

    # ── Mutations ─────────────────────────────────────────────────────────────

    def create_guide(
        self,
        name: str,
        institution: str,
        period_type: PeriodType = PeriodType.SEMESTER,
    ) -> Guide:
        identity = self.auth.require_identity()
        name = (name or "").strip()
        if not name:
            raise ValidationError("empty_name", "Guide name must not be empty.", field="name")
        try:
            period_type = PeriodType(period_type)
        except ValueError:
            raise ValidationError("invalid_period_type",
                                  f"'{period_type}' is not a period type.",
                                  field="period_type") from None
        guide = Guide(
            owner_id    = identity.uid,
            name        = name,
            institution = (institution or "").strip(),
            period_type = period_type,
            theme       = self.default_theme,
            created_at  = datetime.now(timezone.utc),
        )
        self.store.create(guide)
        logger.info("Created guide %s for %s", guide.id, identity.uid)
        return guide

    def add_subject(self, guide_id: str, data: SubjectInput) -> Subject:
        _, guide = self._load_owned(guide_id)
        subject = self.engine.add_subject(guide, data)
        self.store.update(guide_id, {"subjects": guide.subjects})
        logger.info("Guide %s: added subject %s", guide_id, subject.id)
        return subject

    def change_status(self, guide_id: str, subject_id: str, new_status, score=None) -> Guide:
        _, guide = self._load_owned(guide_id)
        self.engine.change_status(guide, subject_id, new_status, score)
        self.store.update(guide_id, {"subjects": guide.subjects})
        logger.info("Guide %s: subject %s → %s", guide_id, subject_id, new_status)
        return guide

    def set_theme(self, guide_id: str, theme_id) -> Guide:
        _, guide = self._load_owned(guide_id)
        self.engine.set_theme(guide, theme_id)
        self.store.update(guide_id, {"theme": guide.theme})
        return guide

    def set_visibility(self, guide_id: str, is_public: bool) -> Guide:
        _, guide = self._load_owned(guide_id)
        self.engine.set_visibility(guide, is_public)
        self.store.update(guide_id, {"is_public": guide.is_public})
        return guide

    def toggle_visibility(self, guide_id: str) -> Guide:
        _, guide = self._load_owned(guide_id)
        self.engine.toggle_visibility(guide)
        self.store.update(guide_id, {"is_public": guide.is_public})
        logger.info("Guide %s is now %s", guide_id, "public" if guide.is_public else "private")
        return guide

    # ── Export ────────────────────────────────────────────────────────────────

    def export_pdf(self, guide_id: str) -> bytes:
        identity = self.auth.require_identity()
        guide = self.open_guide(guide_id)
        return self.exporter.export(guide, guide.theme, identity.label)

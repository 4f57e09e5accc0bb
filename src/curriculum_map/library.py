"""
library.py — Public guide listing, search and cloning
=====================================================
Published guides can be browsed by any signed-in user, searched by
institution, guide name or the owner's country, and cloned into the
caller's own (private) collection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from curriculum_map.auth import AuthService
from curriculum_map.database import GuideStore
from curriculum_map.errors import AuthError, ValidationError
from curriculum_map.models import Guide, Identity, SearchField

logger = logging.getLogger(__name__)


# ISO 3166 alpha-2 → display name for the countries offered at sign up.
COUNTRY_NAMES: dict[str, str] = {
    "AR": "Argentina",
    "BO": "Bolivia",
    "BR": "Brazil",
    "CL": "Chile",
    "CO": "Colombia",
    "CR": "Costa Rica",
    "CU": "Cuba",
    "DO": "Dominican Republic",
    "EC": "Ecuador",
    "SV": "El Salvador",
    "GT": "Guatemala",
    "HN": "Honduras",
    "MX": "Mexico",
    "NI": "Nicaragua",
    "PA": "Panama",
    "PY": "Paraguay",
    "PE": "Peru",
    "PR": "Puerto Rico",
    "UY": "Uruguay",
    "VE": "Venezuela",
}


def country_name(code: Optional[str]) -> str:
    return COUNTRY_NAMES.get((code or "").upper(), "")


@dataclass
class PublicGuide:
    """A published guide together with its owner's country code."""
    guide:         Guide
    owner_country: Optional[str] = None

    @property
    def country_label(self) -> str:
        return country_name(self.owner_country) or "Unknown"


def list_public_guides(store: GuideStore, auth: AuthService) -> list[PublicGuide]:
    items = []
    owners: dict[str, Optional[Identity]] = {}
    for guide in store.query_public():
        if guide.owner_id not in owners:
            owners[guide.owner_id] = auth.get_identity(guide.owner_id)
        owner = owners[guide.owner_id]
        items.append(PublicGuide(guide=guide, owner_country=owner.country if owner else None))
    return items


def filter_public_guides(
    items: list[PublicGuide],
    term: str,
    field: SearchField = SearchField.INSTITUTION,
) -> list[PublicGuide]:
    """Case-insensitive substring match on the chosen field."""
    try:
        field = SearchField(field)
    except ValueError:
        raise ValidationError("invalid_search_field", f"Cannot search by '{field}'.",
                              field="field") from None
    needle = (term or "").strip().lower()
    if not needle:
        return list(items)

    def _value(item: PublicGuide) -> str:
        if field == SearchField.INSTITUTION:
            return item.guide.institution
        if field == SearchField.NAME:
            return item.guide.name
        return country_name(item.owner_country)

    return [item for item in items if needle in _value(item).lower()]


def clone_guide(store: GuideStore, guide_id: str, identity: Identity) -> Guide:
    """Copy a public guide (or one of the caller's own) into the caller's collection."""
    source = store.get_by_id(guide_id)
    if not source.is_public and source.owner_id != identity.uid:
        raise AuthError("not_owner", "Only public guides can be cloned.", field="guide_id")

    clone = source.model_copy(deep=True, update={
        "id":         None,
        "owner_id":   identity.uid,
        "is_public":  False,
        "name":       f"{source.name} (Copy)",
        "created_at": datetime.now(timezone.utc),
    })
    store.create(clone)
    logger.info("Cloned guide %s → %s for %s", guide_id, clone.id, identity.uid)
    return clone

"""
curriculum_map — Academic curriculum maps with prerequisite tracking
=====================================================================
Package containing the guide engine, data models, configuration, and
persistence utilities for building and tracking curriculum maps.

Module map
----------
  models.py        Shared enums, pydantic Guide/Subject models, theme registry.
  errors.py        Typed error taxonomy raised across the package.
  config.py        Settings loaded from .env.
  guide_engine.py  Status state machine, unlock propagation, progress metrics.
  guardrails.py    Integrity checks for guide documents loaded from storage.
  database.py      SQLite GuideStore (single guides table, JSON subjects).
  auth.py          AuthService: sign up / sign in against the users table.
  service.py       Load → apply → write-back orchestration per identity.
  library.py       Public guide listing, search, and cloning.
  exporter.py      Period-grouped PDF export (reportlab).
  cli.py           Terminal front end (argparse + rich).

Mutation flow
-------------
  GuideStore.get_by_id → GuideGuardrails.check → GuideEngine.<operation>
  → GuideStore.update(subjects / theme / is_public)
"""
__version__ = "0.1.0"

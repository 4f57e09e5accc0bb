"""
Shared pytest fixtures for the curriculum map test suite.
Every store fixture uses a throwaway SQLite file under tmp_path.
Factory helpers live in tests/factories.py so they can be imported
directly by test modules as well as being used here.
"""
import sys
import os

_tests_dir = os.path.dirname(__file__)
_src_dir   = os.path.join(_tests_dir, "..", "src")
for _p in (_tests_dir, _src_dir):
    if _p not in sys.path:
        sys.path.insert(0, _p)


import pytest

from factories import counting_ids, make_chain_guide, make_pair_guide

from curriculum_map.auth import AuthService
from curriculum_map.database import GuideStore, UserStore, init_db
from curriculum_map.guide_engine import GuideEngine
from curriculum_map.models import PropagationMode
from curriculum_map.service import GuideService


# ─── pytest fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    return GuideEngine(id_factory=counting_ids())


@pytest.fixture
def transitive_engine():
    return GuideEngine(propagation=PropagationMode.TRANSITIVE, id_factory=counting_ids())


@pytest.fixture
def pair_guide():
    return make_pair_guide()


@pytest.fixture
def chain_guide():
    return make_chain_guide()


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "curriculum.db"
    init_db(path)
    return path


@pytest.fixture
def store(db_path):
    return GuideStore(db_path)


@pytest.fixture
def auth(db_path):
    return AuthService(UserStore(db_path), min_password_length=6)


@pytest.fixture
def service(store, auth):
    return GuideService(store, auth, engine=GuideEngine(id_factory=counting_ids()))


@pytest.fixture
def alice(auth):
    """Signed-in account; the AuthService keeps it as the current identity."""
    return auth.sign_up("alice@example.com", "secret123", "secret123",
                        display_name="Alice", country="MX")

"""
Shared fixtures: the bundled catalog, character manager factories, a fully
built level 1 high-elf wizard and a FastAPI TestClient.
"""
import os

# Keep test runs from writing session log files
os.environ.setdefault("LOG_TO_FILE", "false")

import random

import pytest
from fastapi.testclient import TestClient

from character.factory import create_character_manager, new_character_manager
from character.models import Character, ClassEntry
from config.settings import DEFAULT_CATALOG_PATH
from fastapi_core.session_registry import cleanup_all_sessions
from fastapi_core.shared_services import (
    CATALOG_SERVICE, clear_shared_services, register_shared_service,
)
from gamedata.catalog import Catalog


WIZARD_ABILITY_SCORES = {'str': 8, 'dex': 14, 'con': 14, 'int': 15, 'wis': 12, 'cha': 10}

# Every required choice of a level 1 high-elf wizard sage, in an order that
# respects collision filtering and follow-ups: (choice id, selected, item_selections)
WIZARD_PICKS = [
    ('spell|subrace|phb:high-elf|1|cantrip', ['phb:fire-bolt'], None),
    ('language|subrace|phb:high-elf|1|extra-language', ['phb:dwarvish'], None),
    ('language|background|phb:sage|1|languages', ['phb:giant', 'phb:gnomish'], None),
    ('proficiency|class|phb:wizard|1|skills', ['phb:investigation', 'phb:insight'], None),
    ('spell|class|phb:wizard|1|cantrips', ['phb:light', 'phb:mage-hand', 'phb:ray-of-frost'], None),
    ('spell|class|phb:wizard|1|spellbook',
     ['phb:magic-missile', 'phb:shield', 'phb:sleep', 'phb:mage-armor', 'phb:detect-magic', 'phb:find-familiar'],
     None),
    ('equipment_mode|class|phb:wizard|1|starting-equipment', ['equipment'], None),
    ('equipment|class|phb:wizard|1|weapon', ['a'], None),
    ('equipment|class|phb:wizard|1|focus', ['b'], {'b': ['phb:crystal']}),
    ('equipment|class|phb:wizard|1|pack', ['a'], None),
]


@pytest.fixture(scope="session")
def catalog():
    """The bundled content catalog, loaded once"""
    return Catalog.load(DEFAULT_CATALOG_PATH)


@pytest.fixture
def make_manager(catalog):
    """Factory for a fresh character through the same path the API uses"""
    def _make(public_id='test-character', rng=None, **initial):
        return new_character_manager(public_id, catalog, rng=rng or random.Random(1234), **initial)
    return _make


@pytest.fixture
def manager_for(catalog):
    """
    Factory for a manager around a hand-built character, for states that
    would take many steps to reach (higher levels, multiclass rows).
    """
    def _build(*class_entries, public_id='built-character', rng=None, **fields):
        entries = []
        for index, item in enumerate(class_entries):
            if isinstance(item, ClassEntry):
                entries.append(item)
            else:
                slug, level = item
                entries.append(ClassEntry(class_slug=slug, level=level, is_primary=index == 0))
        character = Character(public_id=public_id, class_entries=entries, **fields)
        return create_character_manager(character, catalog, rng=rng or random.Random(1234))
    return _build


def resolve_all(manager, picks):
    resolver = manager.get_manager('resolver')
    for choice_id, selected, item_selections in picks:
        resolver.resolve(choice_id, selected, item_selections)


@pytest.fixture
def complete_wizard(make_manager):
    """Level 1 high-elf wizard sage with every required choice resolved"""
    manager = make_manager(
        'complete-wizard', name='Elara', race_slug='phb:high-elf',
        class_slug='phb:wizard', background_slug='phb:sage',
    )
    manager.get_manager('ability').set_ability_scores(WIZARD_ABILITY_SCORES)
    manager.get_manager('identity').set_alignment('neutral-good')
    resolve_all(manager, WIZARD_PICKS)
    return manager


@pytest.fixture
def client(catalog):
    """TestClient with the catalog pre-registered and sessions cleared afterwards"""
    from fastapi_server import app

    register_shared_service(CATALOG_SERVICE, catalog)
    with TestClient(app) as test_client:
        yield test_client
    cleanup_all_sessions()
    clear_shared_services()

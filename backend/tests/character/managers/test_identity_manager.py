"""
Tests for IdentityManager: name, alignment, background and the dead flag.
"""
import pytest

from character.events import EventType
from fastapi_core.exceptions import InvalidSelectionError


class TestNameAndAlignment:
    def test_name_is_stripped(self, make_manager):
        manager = make_manager()
        assert manager.get_manager('identity').set_name('  Ada  ') == 'Ada'
        assert manager.character.name == 'Ada'

    def test_name_too_long(self, make_manager):
        with pytest.raises(InvalidSelectionError):
            make_manager().get_manager('identity').set_name('x' * 121)

    def test_unknown_alignment(self, make_manager):
        manager = make_manager()
        with pytest.raises(InvalidSelectionError) as exc_info:
            manager.get_manager('identity').set_alignment('chaotic-awesome')
        assert exc_info.value.invalid_values == ['chaotic-awesome']
        assert manager.character.alignment is None

    def test_dead_flag(self, complete_wizard):
        identity = complete_wizard.get_manager('identity')
        identity.set_dead(True)
        assert identity.get_identity() == {
            'name': 'Elara', 'alignment': 'neutral-good', 'backgroundSlug': 'phb:sage', 'isDead': True,
        }
        # Dead characters stay complete
        assert complete_wizard.get_manager('completion').is_complete()


class TestBackground:
    def test_set_background(self, make_manager):
        manager = make_manager()
        manager.get_manager('identity').set_background('phb:sage')
        events = manager.get_event_history(EventType.BACKGROUND_CHANGED)
        assert [(e.old_slug, e.new_slug) for e in events] == [(None, 'phb:sage')]
        assert 'language|background|phb:sage|1|languages' in [c.id for c in manager.character.pending_choices]

    def test_unknown_background(self, make_manager):
        with pytest.raises(InvalidSelectionError):
            make_manager().get_manager('identity').set_background('phb:pirate')

    def test_same_background_is_a_no_op(self, make_manager):
        manager = make_manager(background_slug='phb:sage')
        version = manager.character.version
        manager.get_manager('identity').set_background('phb:sage')
        assert manager.character.version == version

    def test_clear_background(self, complete_wizard):
        complete_wizard.get_manager('identity').set_background(None)
        character = complete_wizard.character
        assert [g for g in character.grants if g.source == 'background'] == []
        assert 'language|background|phb:sage|1|languages' not in character.selections
        assert complete_wizard.get_manager('completion').missing_fields() == ['background']

"""
Tests for RaceManager: race and subrace selection, subrace slugs selecting
their parent race, and the grants each level contributes.
"""
import pytest

from character.events import EventType
from fastapi_core.exceptions import InvalidSelectionError


def grant_sources(manager, kind='ability_bonus'):
    return sorted((g.slug, g.source, g.value) for g in manager.character.grants if g.kind == kind)


class TestSetRace:
    def test_subrace_slug_selects_parent(self, make_manager):
        manager = make_manager()
        info = manager.get_manager('race').set_race('phb:high-elf')
        assert info == {
            'raceSlug': 'phb:elf',
            'raceName': 'Elf',
            'subraceSlug': 'phb:high-elf',
            'subraceName': 'High Elf',
            'size': 'medium',
            'speed': 30,
            'availableSubraces': ['phb:high-elf', 'phb:wood-elf'],
            'subraceRequired': True,
        }
        assert grant_sources(manager) == [('dex', 'race', 2), ('int', 'subrace', 1)]

    def test_emits_race_then_subrace(self, make_manager):
        manager = make_manager()
        manager.get_manager('race').set_race('phb:wood-elf')
        events = [e for e in manager.get_event_history()
                  if e.event_type in (EventType.RACE_CHANGED, EventType.SUBRACE_CHANGED)]
        assert [(e.slot, e.new_slug) for e in events] == [('race', 'phb:elf'), ('subrace', 'phb:wood-elf')]

    def test_unknown_race(self, make_manager):
        manager = make_manager()
        with pytest.raises(InvalidSelectionError) as exc_info:
            manager.get_manager('race').set_race('phb:tiefling')
        assert exc_info.value.field == 'raceSlug'
        assert manager.character.race_slug is None

    def test_parent_slug_keeps_current_subrace(self, make_manager):
        manager = make_manager(race_slug='phb:high-elf')
        version = manager.character.version
        manager.get_manager('race').set_race('phb:elf')
        assert manager.character.subrace_slug == 'phb:high-elf'
        assert manager.character.version == version

    def test_clear_race(self, make_manager):
        manager = make_manager(race_slug='phb:hill-dwarf')
        manager.get_manager('race').set_race(None)
        character = manager.character
        assert (character.race_slug, character.subrace_slug, character.size) == (None, None, None)
        assert character.grants == []
        assert character.pending_choices == []

    def test_speed_follows_race(self, make_manager):
        manager = make_manager(race_slug='phb:mountain-dwarf')
        assert manager.get_manager('race').get_race_info()['speed'] == 25


class TestSetSubrace:
    def test_switch_subrace(self, make_manager):
        manager = make_manager(race_slug='phb:high-elf')
        manager.get_manager('race').set_subrace('phb:wood-elf')
        assert grant_sources(manager) == [('dex', 'race', 2), ('wis', 'subrace', 1)]
        assert 'spell|subrace|phb:high-elf|1|cantrip' not in [c.id for c in manager.character.pending_choices]

    def test_subrace_of_another_race(self, make_manager):
        manager = make_manager(race_slug='phb:elf')
        with pytest.raises(InvalidSelectionError, match='not a subrace of phb:elf'):
            manager.get_manager('race').set_subrace('phb:hill-dwarf')

    def test_subrace_without_race(self, make_manager):
        with pytest.raises(InvalidSelectionError):
            make_manager().get_manager('race').set_subrace('phb:high-elf')

    def test_clear_subrace(self, make_manager):
        manager = make_manager(race_slug='phb:high-elf')
        manager.get_manager('race').set_subrace(None)
        assert manager.character.race_slug == 'phb:elf'
        assert grant_sources(manager) == [('dex', 'race', 2)]
        assert 'subrace' in manager.get_manager('completion').missing_fields()

    def test_same_subrace_is_a_no_op(self, make_manager):
        manager = make_manager(race_slug='phb:high-elf')
        version = manager.character.version
        manager.get_manager('race').set_subrace('phb:high-elf')
        assert manager.character.version == version

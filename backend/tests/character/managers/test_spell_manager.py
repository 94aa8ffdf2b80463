"""
Tests for SpellManager: caster level for single and multiclass casters,
spell slots, pact magic and spell save DCs.
"""
import pytest

from character.models import ClassEntry
from character.managers.spell_manager import SPELL_SLOT_TABLE


def spellcasting(manager_for, *entries, **fields):
    return manager_for(*entries, **fields).get_manager('spell')


class TestSingleClassCasters:
    @pytest.mark.parametrize('level,expected', [(1, 1), (5, 5), (20, 20)])
    def test_full_caster(self, manager_for, level, expected):
        assert spellcasting(manager_for, ('phb:wizard', level)).get_caster_level() == expected

    @pytest.mark.parametrize('level,expected', [(1, 0), (2, 1), (3, 2), (5, 3)])
    def test_half_caster_rounds_up(self, manager_for, level, expected):
        assert spellcasting(manager_for, ('phb:ranger', level)).get_caster_level() == expected

    def test_third_caster_through_subclass(self, manager_for):
        spells = spellcasting(manager_for, ClassEntry('phb:fighter', level=3, subclass_slug='phb:eldritch-knight',
                                                      is_primary=True))
        assert spells.get_caster_level() == 1
        assert spells.get_spell_slots() == {1: 2}

    def test_non_caster(self, manager_for):
        spells = spellcasting(manager_for, ('phb:fighter', 5))
        assert spells.get_caster_level() == 0
        assert spells.get_spell_slots() == {}
        assert spells.get_pact_magic() is None

    def test_wizard_slots(self, manager_for):
        assert spellcasting(manager_for, ('phb:wizard', 1)).get_spell_slots() == {1: 2}
        assert spellcasting(manager_for, ('phb:wizard', 5)).get_spell_slots() == {1: 4, 2: 3, 3: 2}

    def test_slot_table_covers_every_level(self):
        assert sorted(SPELL_SLOT_TABLE) == list(range(1, 21))


class TestMulticlassCasters:
    def test_full_plus_half(self, manager_for):
        spells = spellcasting(manager_for, ('phb:wizard', 3), ('phb:ranger', 4))
        assert spells.get_caster_level() == 3 + 2

    def test_half_casters_round_down_each(self, manager_for):
        spells = spellcasting(manager_for, ('phb:paladin', 3), ('phb:ranger', 3))
        assert spells.get_caster_level() == 2
        assert spells.get_spell_slots() == {1: 3}

    def test_half_caster_below_two_adds_nothing(self, manager_for):
        spells = spellcasting(manager_for, ('phb:wizard', 2), ('phb:ranger', 1))
        assert spells.get_caster_level() == 2


class TestPactMagic:
    def test_warlock_alone(self, manager_for):
        spells = spellcasting(manager_for, ('phb:warlock', 3))
        assert spells.get_caster_level() == 0
        assert spells.get_pact_magic() == {'classSlug': 'phb:warlock', 'slots': 2, 'slotLevel': 2}

    def test_pact_slots_stay_separate(self, manager_for):
        spells = spellcasting(manager_for, ('phb:wizard', 2), ('phb:warlock', 1))
        assert spells.get_caster_level() == 2
        assert spells.get_spell_slots() == {1: 3}
        assert spells.get_pact_magic()['slots'] == 1


class TestSpellcastingSummary:
    def test_complete_wizard(self, complete_wizard):
        summary = complete_wizard.get_manager('spell').get_spellcasting()
        assert summary['casterLevel'] == 1
        assert summary['spellSlots'] == {1: 2}
        assert summary['pactMagic'] is None
        assert summary['classes'] == [{
            'classSlug': 'phb:wizard', 'level': 1, 'progression': 'full', 'ability': 'int',
            'spellSaveDc': 13, 'spellAttackBonus': 5,
        }]
        assert summary['knownSpells'][0] == 'phb:fire-bolt'
        assert len(summary['knownSpells']) == 10

    def test_dc_unknown_without_scores(self, manager_for):
        classes = spellcasting(manager_for, ('phb:cleric', 1)).get_spellcasting_classes()
        assert classes[0]['spellSaveDc'] is None

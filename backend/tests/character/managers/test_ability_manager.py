"""
Tests for AbilityManager: base scores, racial and chosen bonuses,
modifiers and the proficiency bonus.
"""
import pytest

from fastapi_core.exceptions import InvalidSelectionError


class TestBaseScores:
    def test_partial_update_keeps_other_scores(self, make_manager):
        ability = make_manager().get_manager('ability')
        ability.set_ability_scores({'str': 15})
        scores = ability.set_ability_scores({'dex': 12})
        assert scores['str'] == 15
        assert scores['dex'] == 12
        assert scores['cha'] is None

    def test_unknown_ability(self, make_manager):
        with pytest.raises(InvalidSelectionError) as exc_info:
            make_manager().get_manager('ability').set_ability_scores({'luck': 10})
        assert exc_info.value.invalid_values == ['luck']

    @pytest.mark.parametrize('value', [0, 31, True, '12'])
    def test_out_of_range(self, make_manager, value):
        manager = make_manager()
        with pytest.raises(InvalidSelectionError):
            manager.get_manager('ability').set_ability_scores({'str': 10, 'dex': value})
        assert manager.character.ability_scores['str'] is None


class TestEffectiveScores:
    def test_racial_bonuses(self, make_manager):
        manager = make_manager(race_slug='phb:human')
        ability = manager.get_manager('ability')
        ability.set_ability_scores({'str': 8, 'dex': 14})
        effective = ability.get_effective_scores()
        assert (effective['str'], effective['dex'], effective['con']) == (9, 15, None)

    def test_bonus_cap(self, make_manager):
        ability = make_manager(race_slug='phb:human').get_manager('ability')
        ability.set_ability_scores({'str': 20, 'dex': 22})
        effective = ability.get_effective_scores()
        assert effective['str'] == 20
        assert effective['dex'] == 22

    def test_chosen_bonus(self, make_manager):
        manager = make_manager(race_slug='tce:custom-lineage')
        manager.get_manager('ability').set_ability_scores({'dex': 14})
        manager.get_manager('resolver').resolve('ability_score|race|tce:custom-lineage|1|ability-bonus', ['dex'])
        assert manager.get_manager('ability').get_bonuses()['dex'] == 2
        assert manager.get_manager('ability').get_effective_score('dex') == 16

    def test_unset_score_reads_as_zero(self, make_manager):
        assert make_manager().get_manager('ability').get_effective_score('wis') == 0

    @pytest.mark.parametrize('score,modifier', [(1, -5), (8, -1), (10, 0), (15, 2), (20, 5), (None, None)])
    def test_modifier(self, make_manager, score, modifier):
        assert make_manager().get_manager('ability').modifier(score) == modifier


class TestProficiencyBonus:
    @pytest.mark.parametrize('level,bonus', [(1, 2), (4, 2), (5, 3), (9, 4), (13, 5), (17, 6), (20, 6)])
    def test_by_total_level(self, manager_for, level, bonus):
        assert manager_for(('phb:fighter', level)).get_manager('ability').get_proficiency_bonus() == bonus

    def test_no_class(self, make_manager):
        assert make_manager().get_manager('ability').get_proficiency_bonus() == 2

"""
Tests for ClassManager: first class and multiclass gates, class replacement,
subclasses, hit points and the level-up flow.
"""
import pytest

from character.events import EventType
from character.models import ClassEntry
from fastapi_core.exceptions import (
    AlreadyCompleteStateError, InvalidSelectionError, NotFoundError, PrerequisiteNotMetError,
)

BASE_SCORES = {'str': 10, 'dex': 10, 'con': 10, 'int': 15, 'wis': 10, 'cha': 10}


@pytest.fixture
def wizard(make_manager):
    manager = make_manager('wizard', class_slug='phb:wizard')
    manager.get_manager('ability').set_ability_scores(BASE_SCORES)
    return manager


class TestAddClass:
    def test_first_class_is_primary(self, make_manager):
        manager = make_manager()
        result = manager.get_manager('class').add_class('phb:wizard')
        assert result == {
            'classSlug': 'phb:wizard', 'level': 1, 'subclassSlug': None,
            'isPrimary': True, 'totalLevel': 1,
        }
        assert len(manager.get_event_history(EventType.CLASS_ADDED)) == 1

    def test_first_class_has_no_gate(self, make_manager):
        manager = make_manager()
        manager.get_manager('ability').set_ability_scores({'int': 3})
        manager.get_manager('class').add_class('phb:wizard')
        assert manager.character.class_entries[0].class_slug == 'phb:wizard'

    def test_unknown_class(self, make_manager):
        with pytest.raises(InvalidSelectionError):
            make_manager().get_manager('class').add_class('phb:bard')

    def test_same_class_twice(self, wizard):
        with pytest.raises(InvalidSelectionError, match='already has'):
            wizard.get_manager('class').add_class('phb:wizard')

    def test_multiclass_gate_blocks(self, wizard):
        version = wizard.character.version
        with pytest.raises(PrerequisiteNotMetError) as exc_info:
            wizard.get_manager('class').add_class('phb:fighter')

        unmet = exc_info.value.unmet
        assert unmet == [{
            'classSlug': 'phb:fighter', 'rule': 'any_of',
            'requirements': {'str': 13, 'dex': 13}, 'actual': {'str': 10, 'dex': 10},
        }]
        assert exc_info.value.to_dict()['unmet_requirements'] == unmet
        assert len(wizard.character.class_entries) == 1
        assert wizard.character.version == version

    def test_multiclass_gate_passes(self, wizard):
        wizard.get_manager('ability').set_ability_scores({'str': 13})
        result = wizard.get_manager('class').add_class('phb:fighter')
        assert result['isPrimary'] is False
        assert result['totalLevel'] == 2

    def test_gate_uses_effective_scores(self, make_manager):
        manager = make_manager(race_slug='phb:human', class_slug='phb:wizard')
        manager.get_manager('ability').set_ability_scores(dict(BASE_SCORES, str=12))
        manager.get_manager('class').add_class('phb:fighter')
        assert manager.character.get_class_entry('phb:fighter') is not None

    def test_existing_class_gate_checked(self, make_manager):
        manager = make_manager(class_slug='phb:wizard')
        manager.get_manager('ability').set_ability_scores(dict(BASE_SCORES, int=10, str=14))
        with pytest.raises(PrerequisiteNotMetError) as exc_info:
            manager.get_manager('class').add_class('phb:fighter')
        assert [entry['classSlug'] for entry in exc_info.value.unmet] == ['phb:wizard']
        assert exc_info.value.unmet[0]['rule'] == 'all_of'

    def test_force_bypasses_gate(self, wizard):
        wizard.get_manager('class').add_class('phb:fighter', force=True)
        assert wizard.character.get_class_entry('phb:fighter').is_primary is False

    def test_multiclass_adds_hit_point_choice(self, wizard):
        wizard.get_manager('class').add_class('phb:fighter', force=True)
        pending = [c.id for c in wizard.character.pending_choices]
        assert 'hit_points|class|phb:fighter|1|hit-points' in pending
        assert 'proficiency|class|phb:fighter|1|skills' not in pending

    def test_level_cap(self, manager_for):
        manager = manager_for(('phb:fighter', 20))
        with pytest.raises(AlreadyCompleteStateError):
            manager.get_manager('class').add_class('phb:wizard', force=True)


class TestReplaceAndSubclass:
    def test_replace_keeps_level(self, manager_for):
        manager = manager_for(('phb:fighter', 2))
        result = manager.get_manager('class').replace_class('phb:fighter', 'phb:rogue')
        assert result['classSlug'] == 'phb:rogue'
        assert result['level'] == 2
        assert result['isPrimary'] is True
        assert len(manager.get_event_history(EventType.CLASS_CHANGED)) == 1

    def test_replace_same_class_is_a_no_op(self, wizard):
        version = wizard.character.version
        wizard.get_manager('class').replace_class('phb:wizard', 'phb:wizard')
        assert wizard.character.version == version

    def test_replace_missing_class(self, wizard):
        with pytest.raises(NotFoundError):
            wizard.get_manager('class').replace_class('phb:fighter', 'phb:rogue')

    def test_replace_in_multiclass_is_gated(self, wizard):
        wizard.get_manager('class').add_class('phb:fighter', force=True)
        with pytest.raises(PrerequisiteNotMetError):
            wizard.get_manager('class').replace_class('phb:fighter', 'phb:rogue')

    def test_subclass_too_early(self, wizard):
        with pytest.raises(InvalidSelectionError, match='level 2'):
            wizard.get_manager('class').set_subclass('phb:wizard', 'phb:school-of-evocation')

    def test_subclass_of_other_class(self, manager_for):
        manager = manager_for(('phb:wizard', 2))
        with pytest.raises(InvalidSelectionError, match='not a subclass'):
            manager.get_manager('class').set_subclass('phb:wizard', 'phb:champion')

    def test_set_subclass(self, manager_for):
        manager = manager_for(('phb:wizard', 2))
        result = manager.get_manager('class').set_subclass('phb:wizard', 'phb:school-of-evocation')
        assert result['subclassSlug'] == 'phb:school-of-evocation'
        assert 'subclass|class|phb:wizard|2|subclass' not in [c.id for c in manager.character.pending_choices]


class TestHitPoints:
    def test_level_one_uses_full_die_plus_con(self, complete_wizard):
        hit_points = complete_wizard.get_manager('class').get_hit_points()
        assert hit_points == {'max': 8, 'levelsResolved': 1, 'levelsPending': 0, 'constitutionModifier': 2}

    def test_con_modifier_applies_per_level(self, manager_for):
        manager = manager_for(('phb:fighter', 3))
        manager.get_manager('ability').set_ability_scores({'con': 14})
        resolver = manager.get_manager('resolver')
        resolver.resolve('hit_points|class|phb:fighter|2|hit-points', ['average'])
        hit_points = manager.get_manager('class').get_hit_points()
        assert hit_points['max'] == (10 + 2) + (6 + 2)
        assert hit_points['levelsPending'] == 1

    def test_each_level_gains_at_least_one(self, manager_for):
        manager = manager_for(('phb:wizard', 1))
        manager.get_manager('ability').set_ability_scores({'con': 1})
        assert manager.get_manager('class').get_hit_points()['max'] == 1


class TestLevelUp:
    def test_incomplete_character_cannot_level(self, wizard):
        with pytest.raises(AlreadyCompleteStateError) as exc_info:
            wizard.get_manager('class').level_up('phb:wizard')
        assert exc_info.value.status_code == 409
        assert 'pending_choices' in exc_info.value.details['missing']
        assert wizard.character.class_entries[0].level == 1

    def test_unknown_class_entry(self, complete_wizard):
        with pytest.raises(NotFoundError):
            complete_wizard.get_manager('class').level_up('phb:fighter')

    def test_level_up_opens_new_choices(self, complete_wizard):
        result = complete_wizard.get_manager('class').level_up('phb:wizard')

        assert result['classSlug'] == 'phb:wizard'
        assert result['newLevel'] == 2
        assert result['totalLevel'] == 2
        assert result['featuresGained'] == ['Arcane Tradition']
        assert result['pendingChoices'] == 3
        assert result['state'] == 'hit_points_pending'
        assert result['steps'] == [
            'hit_points_pending', 'feature_choices_pending', 'spell_choices_pending', 'complete',
        ]
        pending = {c.id for c in complete_wizard.character.pending_choices}
        assert pending == {
            'hit_points|class|phb:wizard|2|hit-points',
            'subclass|class|phb:wizard|2|subclass',
            'spell|class|phb:wizard|2|spellbook',
        }
        events = complete_wizard.get_event_history(EventType.LEVEL_GAINED)
        assert events[-1].new_level == 2

    def test_proficiency_bonus_follows_total_level(self, complete_wizard):
        ability = complete_wizard.get_manager('ability')
        assert ability.get_proficiency_bonus() == 2
        complete_wizard.character.class_entries[0].level = 5
        assert ability.get_proficiency_bonus() == 3

    def test_wizard_state_walks_to_complete(self, complete_wizard):
        class_manager = complete_wizard.get_manager('class')
        resolver = complete_wizard.get_manager('resolver')
        class_manager.level_up('phb:wizard')

        resolver.resolve('hit_points|class|phb:wizard|2|hit-points', ['average'])
        assert class_manager.level_up_state()['state'] == 'feature_choices_pending'

        resolver.resolve('subclass|class|phb:wizard|2|subclass', ['phb:school-of-evocation'])
        state = class_manager.level_up_state()
        assert state['state'] == 'spell_choices_pending'
        assert state['pending'] == ['spell|class|phb:wizard|2|spellbook']

        resolver.resolve('spell|class|phb:wizard|2|spellbook', ['phb:burning-hands', 'phb:thunderwave'])
        state = class_manager.level_up_state()
        assert state['state'] == 'complete'
        assert state['classLevel'] == 2
        assert complete_wizard.get_manager('completion').is_complete()

    def test_not_started_state(self, wizard):
        assert wizard.get_manager('class').level_up_state() == {
            'state': 'not_started', 'steps': [], 'classSlug': None, 'classLevel': None, 'pending': [],
        }

    def test_multiclass_state_starts_with_class_choice(self, complete_wizard):
        class_manager = complete_wizard.get_manager('class')
        class_manager.level_up('phb:wizard')
        class_manager.add_class('phb:fighter', force=True)
        assert class_manager.level_up_state()['steps'][0] == 'class_chosen'

    def test_level_up_second_class(self, complete_wizard):
        complete_wizard.get_manager('ability').set_ability_scores({'str': 13})
        class_manager = complete_wizard.get_manager('class')
        class_manager.add_class('phb:fighter')
        resolver = complete_wizard.get_manager('resolver')
        resolver.resolve('hit_points|class|phb:fighter|1|hit-points', ['average'])
        resolver.resolve('optional_feature|class|phb:fighter|1|fighting-style', ['phb:defense'])

        result = class_manager.level_up('phb:fighter')

        assert result['newLevel'] == 2
        assert result['totalLevel'] == 3
        assert result['featuresGained'] == ['Action Surge']
        assert result['steps'][0] == 'class_chosen'
        assert complete_wizard.get_manager('ability').get_proficiency_bonus() == 2

    def test_features(self, manager_for):
        manager = manager_for(ClassEntry('phb:fighter', level=3, subclass_slug='phb:champion', is_primary=True))
        names = [f['name'] for f in manager.get_manager('class').get_features()]
        assert names == ['Fighting Style', 'Second Wind', 'Action Surge', 'Martial Archetype', 'Improved Critical']

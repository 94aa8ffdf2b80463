from .ability_manager import AbilityManager
from .cascade_invalidator import CascadeInvalidator
from .choice_registry import ChoiceRegistry
from .choice_resolver import ChoiceResolver
from .class_manager import ClassManager, LevelUpState
from .completion_validator import CompletionValidator
from .identity_manager import IdentityManager
from .race_manager import RaceManager
from .spell_manager import SpellManager

__all__ = [
    'AbilityManager',
    'CascadeInvalidator',
    'ChoiceRegistry',
    'ChoiceResolver',
    'ClassManager',
    'CompletionValidator',
    'IdentityManager',
    'LevelUpState',
    'RaceManager',
    'SpellManager',
]

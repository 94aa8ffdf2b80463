"""
Central registry for all character managers.
Defines the standard set of managers and their registration order.
"""

from typing import Optional, Type, List, Tuple
from .managers import (
    AbilityManager,
    CascadeInvalidator,
    ChoiceResolver,
    ClassManager,
    CompletionValidator,
    IdentityManager,
    RaceManager,
    SpellManager,
)

# Define all managers and their registration order
MANAGER_REGISTRY: List[Tuple[str, Type]] = [
    # Needed by every mutation: settles grants and selections on commit
    ('cascade', CascadeInvalidator),

    # Root selections
    ('ability', AbilityManager),       # Emits ABILITY_CHANGED
    ('identity', IdentityManager),     # Name, alignment, background
    ('race', RaceManager),             # Emits RACE_CHANGED / SUBRACE_CHANGED
    ('class', ClassManager),           # Emits CLASS_*, LEVEL_GAINED

    # Choices and derived views
    ('resolver', ChoiceResolver),      # Emits CHOICE_RESOLVED / CHOICE_UNDONE
    ('spell', SpellManager),
    ('completion', CompletionValidator),
]


def get_all_manager_specs() -> List[Tuple[str, Type]]:
    """
    Get every manager entry to register.

    Returns:
        List of (name, class) tuples in proper registration order
    """
    return MANAGER_REGISTRY.copy()


def get_manager_names() -> List[str]:
    return [name for name, _ in MANAGER_REGISTRY]


def get_manager_class(name: str) -> Optional[Type]:
    """
    Get the manager class for a given name.

    Returns:
        Manager class or None if not found
    """
    for mgr_name, mgr_class in MANAGER_REGISTRY:
        if mgr_name == name:
            return mgr_class
    return None

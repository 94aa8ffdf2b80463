"""
Factory functions for creating properly configured CharacterManager instances.
"""

import random
from typing import Optional

from loguru import logger

from .character_manager import CharacterManager
from .events import EventData, EventType
from .manager_registry import get_all_manager_specs
from .models import Character
from gamedata.catalog import Catalog


def create_character_manager(
    character: Character,
    catalog: Catalog,
    rng: Optional[random.Random] = None,
) -> CharacterManager:
    """
    Factory function that creates a fully-configured CharacterManager with all managers registered.

    Args:
        character: Character to manage
        catalog: Content catalog the character is built from
        rng: Optional random source for rolled hit points

    Returns:
        CharacterManager instance with all managers registered and pending choices computed
    """
    manager = CharacterManager(character, catalog, rng=rng)

    for name, manager_class in get_all_manager_specs():
        manager.register_manager(name, manager_class)

    manager.refresh()
    logger.debug(f"Created CharacterManager with {len(manager.get_all_managers())} managers registered")
    return manager


def new_character_manager(
    public_id: str,
    catalog: Catalog,
    name: str = '',
    race_slug: Optional[str] = None,
    class_slug: Optional[str] = None,
    background_slug: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> CharacterManager:
    """
    Create a character shell, optionally with race, class and background.

    All initial selections apply in one transaction: an invalid slug leaves
    nothing half-built.
    """
    manager = create_character_manager(Character(public_id=public_id), catalog, rng=rng)
    with manager.transaction('create_character', public_id=public_id):
        if name:
            manager.get_manager('identity').set_name(name)
        if race_slug:
            manager.get_manager('race').set_race(race_slug)
        if class_slug:
            manager.get_manager('class').add_class(class_slug)
        if background_slug:
            manager.get_manager('identity').set_background(background_slug)
        manager.emit(EventData(event_type=EventType.CHARACTER_CREATED, source_manager='factory'))
    logger.info(f"Created character {public_id}")
    return manager

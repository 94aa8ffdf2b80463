"""
Race Manager - handles race and subrace selection and racial properties
"""

from typing import Any, Dict, Optional

from loguru import logger

from ..events import EventType, SourceChangedEvent
from fastapi_core.exceptions import InvalidSelectionError


class RaceManager:
    """Sets race and subrace, cascading away whatever the previous value provided"""

    def __init__(self, character_manager):
        """
        Initialize the RaceManager

        Args:
            character_manager: Reference to parent CharacterManager
        """
        self.character_manager = character_manager

    @property
    def character(self):
        return self.character_manager.character

    @property
    def catalog(self):
        return self.character_manager.catalog

    def set_race(self, slug: Optional[str]) -> Dict[str, Any]:
        """
        Set the race. A subrace slug selects its parent race plus the subrace;
        None clears both.

        Raises:
            InvalidSelectionError: Slug is neither a race nor a subrace
        """
        race_slug, subrace_slug = slug, None
        if slug is not None:
            subrace = self.catalog.get_subrace(slug)
            if subrace:
                race_slug, subrace_slug = subrace.race, subrace.slug
            elif self.catalog.get_race(slug) is None:
                raise InvalidSelectionError(f"Unknown race: {slug}", field='raceSlug', invalid_values=[slug])

        character = self.character
        if race_slug == character.race_slug and (subrace_slug is None or subrace_slug == character.subrace_slug):
            return self.get_race_info()

        with self.character_manager.transaction('set_race', race=race_slug, subrace=subrace_slug):
            old_race = character.race_slug
            if old_race != race_slug:
                if old_race:
                    self.character_manager.get_manager('cascade').invalidate('race', old_race)
                character.race_slug = race_slug
                self.character_manager.emit(SourceChangedEvent(
                    event_type=EventType.RACE_CHANGED, source_manager='RaceManager',
                    slot='race', old_slug=old_race, new_slug=race_slug,
                ))
                logger.info(f"Race of {character.public_id}: {old_race} -> {race_slug}")
            if subrace_slug:
                self._change_subrace(subrace_slug)
        return self.get_race_info()

    def set_subrace(self, subrace_slug: Optional[str]) -> Dict[str, Any]:
        """
        Raises:
            InvalidSelectionError: No race set, or subrace belongs to another race
        """
        character = self.character
        if subrace_slug is not None:
            subrace = self.catalog.get_subrace(subrace_slug)
            if subrace is None or subrace.race != character.race_slug:
                raise InvalidSelectionError(
                    f"{subrace_slug} is not a subrace of {character.race_slug}",
                    field='subraceSlug', invalid_values=[subrace_slug],
                )
        if subrace_slug == character.subrace_slug:
            return self.get_race_info()

        with self.character_manager.transaction('set_subrace', subrace=subrace_slug):
            self._change_subrace(subrace_slug)
        return self.get_race_info()

    def _change_subrace(self, subrace_slug: Optional[str]):
        character = self.character
        old_subrace = character.subrace_slug
        if old_subrace == subrace_slug:
            return
        if old_subrace:
            self.character_manager.get_manager('cascade').invalidate('subrace', old_subrace)
        character.subrace_slug = subrace_slug
        self.character_manager.emit(SourceChangedEvent(
            event_type=EventType.SUBRACE_CHANGED, source_manager='RaceManager',
            slot='subrace', old_slug=old_subrace, new_slug=subrace_slug,
        ))

    def get_race_info(self) -> Dict[str, Any]:
        character = self.character
        race = self.catalog.get_race(character.race_slug)
        subrace = self.catalog.get_subrace(character.subrace_slug)
        return {
            'raceSlug': character.race_slug,
            'raceName': race.name if race else None,
            'subraceSlug': character.subrace_slug,
            'subraceName': subrace.name if subrace else None,
            'size': character.size,
            'speed': race.speed if race else None,
            'availableSubraces': list(race.subraces) if race else [],
            'subraceRequired': bool(race and race.subrace_required),
        }

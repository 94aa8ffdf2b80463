"""Identity Manager - handles character identity data (name, alignment, background, death)."""

from typing import Any, Dict, Optional

from loguru import logger

from ..events import EventData, EventType, SourceChangedEvent
from fastapi_core.exceptions import InvalidSelectionError

ALIGNMENTS = (
    'lawful-good', 'neutral-good', 'chaotic-good',
    'lawful-neutral', 'neutral', 'chaotic-neutral',
    'lawful-evil', 'neutral-evil', 'chaotic-evil',
)

MAX_NAME_LENGTH = 120


class IdentityManager:
    """Manages character identity, background and alignment."""

    def __init__(self, character_manager):
        """Initialize IdentityManager with parent CharacterManager."""
        self.character_manager = character_manager

    @property
    def character(self):
        return self.character_manager.character

    def set_name(self, name: str) -> str:
        name = (name or '').strip()
        if len(name) > MAX_NAME_LENGTH:
            raise InvalidSelectionError(f"Name longer than {MAX_NAME_LENGTH} characters", field='name')
        with self.character_manager.transaction('set_name', name=name):
            self.character.name = name
            self._identity_changed()
        return name

    def set_alignment(self, alignment: Optional[str]) -> Optional[str]:
        """Set one of the nine alignments, or clear it with None."""
        if alignment is not None and alignment not in ALIGNMENTS:
            raise InvalidSelectionError(
                f"Unknown alignment: {alignment}", field='alignment', invalid_values=[alignment],
            )
        with self.character_manager.transaction('set_alignment', alignment=alignment):
            self.character.alignment = alignment
            self._identity_changed()
        return alignment

    def set_dead(self, is_dead: bool) -> bool:
        with self.character_manager.transaction('set_dead', is_dead=is_dead):
            self.character.is_dead = bool(is_dead)
            self._identity_changed()
        return self.character.is_dead

    def set_background(self, background_slug: Optional[str]) -> Optional[str]:
        """
        Change the background. Only background-sourced grants and choices are
        cleared; race and class state are untouched.
        """
        catalog = self.character_manager.catalog
        if background_slug is not None and catalog.get_background(background_slug) is None:
            raise InvalidSelectionError(
                f"Unknown background: {background_slug}", field='backgroundSlug', invalid_values=[background_slug],
            )
        character = self.character
        old_background = character.background_slug
        if old_background == background_slug:
            return background_slug

        with self.character_manager.transaction('set_background', background=background_slug):
            if old_background:
                self.character_manager.get_manager('cascade').invalidate('background', old_background)
            character.background_slug = background_slug
            self.character_manager.emit(SourceChangedEvent(
                event_type=EventType.BACKGROUND_CHANGED, source_manager='IdentityManager',
                slot='background', old_slug=old_background, new_slug=background_slug,
            ))
        logger.info(f"Background of {character.public_id}: {old_background} -> {background_slug}")
        return background_slug

    def get_identity(self) -> Dict[str, Any]:
        character = self.character
        return {
            'name': character.name,
            'alignment': character.alignment,
            'backgroundSlug': character.background_slug,
            'isDead': character.is_dead,
        }

    def _identity_changed(self):
        self.character_manager.emit(EventData(
            event_type=EventType.IDENTITY_CHANGED, source_manager='IdentityManager',
        ))

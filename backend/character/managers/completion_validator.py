"""Completion Validator - answers whether a character is usable."""

from typing import Any, Dict, List

from character.models import ABILITY_NAMES

PLACEHOLDER_NAMES = {'', 'unnamed character', 'new character'}


class CompletionValidator:
    """Side-effect-free readiness check; never mutates the character"""

    def __init__(self, character_manager):
        self.character_manager = character_manager

    def missing_fields(self) -> List[str]:
        character = self.character_manager.character
        catalog = self.character_manager.catalog
        missing = []

        if not character.race_slug:
            missing.append('race')
        else:
            race = catalog.get_race(character.race_slug)
            if race and race.subrace_required and not character.subrace_slug:
                missing.append('subrace')
        if not character.class_entries:
            missing.append('class')
        if not character.background_slug:
            missing.append('background')

        scores = [character.ability_scores.get(ability) for ability in ABILITY_NAMES]
        if any(not isinstance(score, int) or score <= 0 for score in scores):
            missing.append('ability_scores')

        if (character.name or '').strip().lower() in PLACEHOLDER_NAMES:
            missing.append('name')
        if not character.alignment:
            missing.append('alignment')

        pending = self.character_manager.registry.pending(character)
        if any(choice.required for choice in pending):
            missing.append('pending_choices')
        return missing

    def is_complete(self) -> bool:
        return not self.missing_fields()

    def validate(self) -> Dict[str, Any]:
        missing = self.missing_fields()
        return {'isComplete': not missing, 'missing': missing}

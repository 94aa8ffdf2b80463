"""
Ability Manager - base ability scores, racial and choice bonuses, modifiers
"""

from typing import Dict, Optional

from loguru import logger

from ..events import EventData, EventType
from ..models import ABILITY_NAMES, GrantKind
from fastapi_core.exceptions import InvalidSelectionError

MIN_SCORE = 1
MAX_SCORE = 30
# Bonuses cannot push a score past this unless the base already exceeds it
BONUS_CAP = 20


class AbilityManager:
    """Reads and writes the six ability scores"""

    def __init__(self, character_manager):
        self.character_manager = character_manager

    @property
    def character(self):
        return self.character_manager.character

    def set_ability_scores(self, scores: Dict[str, int]) -> Dict[str, Optional[int]]:
        """
        Set base scores; abilities not present in `scores` keep their value.

        Raises:
            InvalidSelectionError: Unknown ability or score outside 1-30
        """
        unknown = [name for name in scores if name not in ABILITY_NAMES]
        if unknown:
            raise InvalidSelectionError(
                f"Unknown abilities: {', '.join(unknown)}", field='abilityScores', invalid_values=unknown,
            )
        for name, value in scores.items():
            if not isinstance(value, int) or isinstance(value, bool) or not MIN_SCORE <= value <= MAX_SCORE:
                raise InvalidSelectionError(
                    f"{name} must be an integer between {MIN_SCORE} and {MAX_SCORE}",
                    field=f'abilityScores.{name}',
                )

        with self.character_manager.transaction('set_ability_scores', scores=dict(scores)):
            self.character.ability_scores.update(scores)
            self.character_manager.emit(EventData(
                event_type=EventType.ABILITY_CHANGED, source_manager='AbilityManager',
            ))
        logger.info(f"Ability scores for {self.character.public_id}: {self.character.ability_scores}")
        return dict(self.character.ability_scores)

    def get_bonuses(self) -> Dict[str, int]:
        bonuses = {name: 0 for name in ABILITY_NAMES}
        for grant in self.character.grants_of_kind(GrantKind.ABILITY_BONUS.value):
            if grant.slug in bonuses:
                bonuses[grant.slug] += grant.value or 0
        return bonuses

    def get_effective_scores(self) -> Dict[str, Optional[int]]:
        bonuses = self.get_bonuses()
        effective = {}
        for name in ABILITY_NAMES:
            base = self.character.ability_scores.get(name)
            if base is None:
                effective[name] = None
                continue
            effective[name] = min(base + bonuses[name], max(BONUS_CAP, base))
        return effective

    def get_effective_score(self, name: str) -> int:
        """Effective score, 0 while the base score is unset"""
        return self.get_effective_scores().get(name) or 0

    @staticmethod
    def modifier(score: Optional[int]) -> Optional[int]:
        if score is None:
            return None
        return (score - 10) // 2

    def get_modifiers(self) -> Dict[str, Optional[int]]:
        return {name: self.modifier(score) for name, score in self.get_effective_scores().items()}

    def get_proficiency_bonus(self) -> int:
        level = max(self.character.total_level, 1)
        return 2 + (level - 1) // 4

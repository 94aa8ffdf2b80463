"""
Class Manager - handles class selection, multiclassing, subclasses and level progression
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger

from ..events import EventType, LevelGainedEvent, SourceChangedEvent
from ..models import MAX_LEVEL, ChoiceType, ClassEntry, GrantKind
from fastapi_core.exceptions import (
    AlreadyCompleteStateError, InvalidSelectionError, NotFoundError, PrerequisiteNotMetError,
)


class LevelUpState(str, Enum):
    """Steps of the level-up wizard, in the order they are visited"""
    NOT_STARTED = 'not_started'
    CLASS_CHOSEN = 'class_chosen'
    HIT_POINTS_PENDING = 'hit_points_pending'
    ASI_OR_FEAT_PENDING = 'asi_or_feat_pending'
    FEATURE_CHOICES_PENDING = 'feature_choices_pending'
    SPELL_CHOICES_PENDING = 'spell_choices_pending'
    LANGUAGE_CHOICES_PENDING = 'language_choices_pending'
    PROFICIENCY_CHOICES_PENDING = 'proficiency_choices_pending'
    COMPLETE = 'complete'


# Which wizard step a pending choice type belongs to
LEVEL_UP_STEPS = {
    ChoiceType.HIT_POINTS.value: LevelUpState.HIT_POINTS_PENDING,
    ChoiceType.ASI_OR_FEAT.value: LevelUpState.ASI_OR_FEAT_PENDING,
    ChoiceType.ABILITY_SCORE.value: LevelUpState.ASI_OR_FEAT_PENDING,
    ChoiceType.FEAT.value: LevelUpState.ASI_OR_FEAT_PENDING,
    ChoiceType.SUBCLASS.value: LevelUpState.FEATURE_CHOICES_PENDING,
    ChoiceType.OPTIONAL_FEATURE.value: LevelUpState.FEATURE_CHOICES_PENDING,
    ChoiceType.EXPERTISE.value: LevelUpState.FEATURE_CHOICES_PENDING,
    ChoiceType.EQUIPMENT.value: LevelUpState.FEATURE_CHOICES_PENDING,
    ChoiceType.EQUIPMENT_MODE.value: LevelUpState.FEATURE_CHOICES_PENDING,
    ChoiceType.SIZE.value: LevelUpState.FEATURE_CHOICES_PENDING,
    ChoiceType.SPELL.value: LevelUpState.SPELL_CHOICES_PENDING,
    ChoiceType.SPELL_SWAP.value: LevelUpState.SPELL_CHOICES_PENDING,
    ChoiceType.LANGUAGE.value: LevelUpState.LANGUAGE_CHOICES_PENDING,
    ChoiceType.PROFICIENCY.value: LevelUpState.PROFICIENCY_CHOICES_PENDING,
}

STEP_ORDER = list(LevelUpState)


class ClassManager:
    """Manages character classes and progression"""

    def __init__(self, character_manager):
        """
        Initialize the ClassManager

        Args:
            character_manager: Reference to the parent CharacterManager
        """
        self.character_manager = character_manager

    @property
    def character(self):
        return self.character_manager.character

    @property
    def catalog(self):
        return self.character_manager.catalog

    def _require_class(self, class_slug: str):
        class_def = self.catalog.get_class(class_slug)
        if class_def is None:
            raise InvalidSelectionError(f"Unknown class: {class_slug}", field='classSlug',
                                        invalid_values=[class_slug])
        return class_def

    def _require_entry(self, class_slug: str) -> ClassEntry:
        entry = self.character.get_class_entry(class_slug)
        if entry is None:
            raise NotFoundError(f"Character has no {class_slug} class", {'class_slug': class_slug})
        return entry

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_class_summary(self) -> List[Dict[str, Any]]:
        summary = []
        for entry in self.character.class_entries:
            class_def = self.catalog.get_class(entry.class_slug)
            summary.append({
                'classSlug': entry.class_slug,
                'name': class_def.name if class_def else entry.class_slug,
                'level': entry.level,
                'subclassSlug': entry.subclass_slug,
                'isPrimary': entry.is_primary,
                'hitDie': class_def.hit_die if class_def else None,
            })
        return summary

    def features_at(self, class_slug: str, level: int, subclass_slug: Optional[str] = None) -> List[str]:
        """Feature names a class (and its subclass) gains at one class level"""
        features = []
        class_def = self.catalog.get_class(class_slug)
        if class_def:
            features.extend(class_def.features.get(level, []))
        subclass = self.catalog.get_subclass(subclass_slug)
        if subclass:
            features.extend(subclass.features.get(level, []))
        return features

    def get_features(self) -> List[Dict[str, Any]]:
        """Every class feature the character has, by class and level"""
        features = []
        for entry in self.character.class_entries:
            for level in range(1, entry.level + 1):
                for name in self.features_at(entry.class_slug, level, entry.subclass_slug):
                    features.append({'classSlug': entry.class_slug, 'level': level, 'name': name})
        return features

    def get_hit_points(self) -> Dict[str, Any]:
        """
        Maximum hit points: every resolved hit die plus the Constitution
        modifier, applied at each level (level 1 included), at least 1 per level.
        """
        ability_manager = self.character_manager.get_manager('ability')
        con_mod = ability_manager.modifier(ability_manager.get_effective_scores()['con']) or 0
        rolls = [g.value or 0 for g in self.character.grants_of_kind(GrantKind.HIT_POINTS.value)]
        maximum = sum(max(1, roll + con_mod) for roll in rolls)
        return {
            'max': maximum,
            'levelsResolved': len(rolls),
            'levelsPending': max(self.character.total_level - len(rolls), 0),
            'constitutionModifier': con_mod,
        }

    def check_multiclass_prerequisites(self, class_slugs: List[str]) -> List[Dict[str, Any]]:
        """
        Multiclass ability gates for each listed class, evaluated on effective scores.

        Returns:
            One entry per unmet requirement; empty when all hold
        """
        ability_manager = self.character_manager.get_manager('ability')
        unmet = []
        for class_slug in class_slugs:
            class_def = self.catalog.get_class(class_slug)
            if class_def is None:
                continue
            gate = class_def.multiclass_prerequisites
            for ability, minimum in gate.all_of.items():
                actual = ability_manager.get_effective_score(ability)
                if actual < minimum:
                    unmet.append({
                        'classSlug': class_slug, 'rule': 'all_of',
                        'requirements': {ability: minimum}, 'actual': {ability: actual},
                    })
            if gate.any_of:
                actual = {ability: ability_manager.get_effective_score(ability) for ability in gate.any_of}
                if not any(actual[a] >= minimum for a, minimum in gate.any_of.items()):
                    unmet.append({
                        'classSlug': class_slug, 'rule': 'any_of',
                        'requirements': dict(gate.any_of), 'actual': actual,
                    })
        return unmet

    # ------------------------------------------------------------------
    # Class selection
    # ------------------------------------------------------------------

    def add_class(self, class_slug: str, force: bool = False) -> Dict[str, Any]:
        """
        Attach a class at level 1. The first class becomes the primary one;
        any later class is a multiclass and must satisfy the prerequisites of
        the new class and of every class already taken unless `force`.

        Raises:
            InvalidSelectionError: Unknown class, or class already taken
            PrerequisiteNotMetError: Multiclass gate failed
            AlreadyCompleteStateError: Total level already at the maximum
        """
        self._require_class(class_slug)
        character = self.character
        if character.get_class_entry(class_slug):
            raise InvalidSelectionError(f"Character already has {class_slug}", field='classSlug',
                                        invalid_values=[class_slug])
        if character.total_level >= MAX_LEVEL:
            raise AlreadyCompleteStateError(f"Character is already level {MAX_LEVEL}")

        is_primary = not character.class_entries
        if not is_primary and not force:
            gated = [class_slug] + [entry.class_slug for entry in character.class_entries]
            unmet = self.check_multiclass_prerequisites(gated)
            if unmet:
                raise PrerequisiteNotMetError(class_slug, unmet)

        with self.character_manager.transaction('add_class', class_slug=class_slug, force=force):
            entry = ClassEntry(class_slug=class_slug, level=1, is_primary=is_primary)
            character.class_entries.append(entry)
            self.character_manager.emit(SourceChangedEvent(
                event_type=EventType.CLASS_ADDED, source_manager='ClassManager',
                slot='class', new_slug=class_slug,
            ))
        logger.info(f"Added class {class_slug} to {character.public_id} (primary={is_primary}, force={force})")
        return self._entry_result(class_slug)

    def replace_class(self, old_slug: str, new_slug: str, force: bool = False) -> Dict[str, Any]:
        """
        Swap one class for another, keeping its level and primary flag.
        Everything the old class and its subclass provided is cascaded away.
        """
        self._require_class(new_slug)
        entry = self._require_entry(old_slug)
        if old_slug == new_slug:
            return self._entry_result(old_slug)
        if self.character.get_class_entry(new_slug):
            raise InvalidSelectionError(f"Character already has {new_slug}", field='classSlug',
                                        invalid_values=[new_slug])

        if len(self.character.class_entries) > 1 and not force:
            gated = [new_slug] + [e.class_slug for e in self.character.class_entries if e.class_slug != old_slug]
            unmet = self.check_multiclass_prerequisites(gated)
            if unmet:
                raise PrerequisiteNotMetError(new_slug, unmet)

        with self.character_manager.transaction('replace_class', old=old_slug, new=new_slug):
            # Re-fetch inside the transaction; the snapshot is what gets restored on failure
            entry = self._require_entry(old_slug)
            self.character_manager.get_manager('cascade').invalidate('class', old_slug, entry)
            entry.class_slug = new_slug
            if self.character.level_up_class == old_slug:
                self.character.level_up_class = None
            self.character_manager.emit(SourceChangedEvent(
                event_type=EventType.CLASS_CHANGED, source_manager='ClassManager',
                slot='class', old_slug=old_slug, new_slug=new_slug,
            ))
        logger.info(f"Replaced class {old_slug} with {new_slug} on {self.character.public_id}")
        return self._entry_result(new_slug)

    def set_subclass(self, class_slug: str, subclass_slug: str) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: Character does not have the class
            InvalidSelectionError: Subclass unknown, of another class, or not yet available
        """
        entry = self._require_entry(class_slug)
        subclass = self.catalog.get_subclass(subclass_slug)
        if subclass is None or subclass.class_slug != class_slug:
            raise InvalidSelectionError(
                f"{subclass_slug} is not a subclass of {class_slug}",
                field='subclassSlug', invalid_values=[subclass_slug],
            )
        class_def = self.catalog.get_class(class_slug)
        if class_def and entry.level < class_def.subclass_level:
            raise InvalidSelectionError(
                f"{class_slug} chooses a subclass at level {class_def.subclass_level}",
                field='subclassSlug',
            )
        if entry.subclass_slug == subclass_slug:
            return self._entry_result(class_slug)

        with self.character_manager.transaction('set_subclass', class_slug=class_slug, subclass=subclass_slug):
            entry = self._require_entry(class_slug)
            old_subclass = entry.subclass_slug
            if old_subclass:
                self.character_manager.get_manager('cascade').invalidate('subclass', old_subclass, entry)
            entry.subclass_slug = subclass_slug
            self.character_manager.emit(SourceChangedEvent(
                event_type=EventType.SUBCLASS_CHANGED, source_manager='ClassManager',
                slot='subclass', old_slug=old_subclass, new_slug=subclass_slug,
            ))
        return self._entry_result(class_slug)

    def _entry_result(self, class_slug: str) -> Dict[str, Any]:
        entry = self.character.get_class_entry(class_slug)
        return {
            'classSlug': entry.class_slug,
            'level': entry.level,
            'subclassSlug': entry.subclass_slug,
            'isPrimary': entry.is_primary,
            'totalLevel': self.character.total_level,
        }

    # ------------------------------------------------------------------
    # Level up
    # ------------------------------------------------------------------

    def level_up(self, class_slug: str) -> Dict[str, Any]:
        """
        Add one level to a class the character already has.

        The level and its fixed grants apply immediately; the choices the new
        level asks for are left pending, so an abandoned wizard keeps the
        level with choices outstanding.

        Raises:
            NotFoundError: Character does not have the class
            AlreadyCompleteStateError: Character not complete, or already level 20
        """
        entry = self._require_entry(class_slug)
        completion = self.character_manager.get_manager('completion').validate()
        if not completion['isComplete']:
            raise AlreadyCompleteStateError(
                "Character must be complete before leveling up",
                {'missing': completion['missing']},
            )
        if self.character.total_level >= MAX_LEVEL or entry.level >= MAX_LEVEL:
            raise AlreadyCompleteStateError(f"Character is already level {MAX_LEVEL}")

        with self.character_manager.transaction('level_up', class_slug=class_slug):
            entry = self._require_entry(class_slug)
            entry.level += 1
            self.character.level_up_class = class_slug
            self.character_manager.emit(LevelGainedEvent(
                event_type=EventType.LEVEL_GAINED, source_manager='ClassManager',
                class_slug=class_slug, new_level=entry.level, total_level=self.character.total_level,
            ))

        entry = self.character.get_class_entry(class_slug)
        logger.info(f"{self.character.public_id} reached {class_slug} level {entry.level}")
        state = self.level_up_state()
        return {
            'classSlug': class_slug,
            'newLevel': entry.level,
            'totalLevel': self.character.total_level,
            'featuresGained': self.features_at(class_slug, entry.level, entry.subclass_slug),
            'pendingChoices': len(self.character.pending_choices),
            'state': state['state'],
            'steps': state['steps'],
        }

    def level_up_state(self) -> Dict[str, Any]:
        """
        Where the level-up wizard stands.

        Since a character must be complete to level, every required choice
        pending now was opened by the latest level-up. Steps with no pending
        choice are skipped.
        """
        character = self.character
        if not character.level_up_class or not character.get_class_entry(character.level_up_class):
            return {'state': LevelUpState.NOT_STARTED.value, 'steps': [], 'classSlug': None, 'classLevel': None, 'pending': []}

        required = [c for c in character.pending_choices if c.required]
        open_steps = {LEVEL_UP_STEPS.get(c.type, LevelUpState.FEATURE_CHOICES_PENDING) for c in required}

        steps = []
        if len(character.class_entries) > 1:
            steps.append(LevelUpState.CLASS_CHOSEN)
        steps.extend(step for step in STEP_ORDER if step in open_steps)
        steps.append(LevelUpState.COMPLETE)

        current = next((step for step in STEP_ORDER if step in open_steps), LevelUpState.COMPLETE)
        entry = character.get_class_entry(character.level_up_class)
        return {
            'state': current.value,
            'steps': [step.value for step in steps],
            'classSlug': entry.class_slug,
            'classLevel': entry.level,
            'pending': [c.id for c in required],
        }

"""
Choice Resolver - validates and commits a selection against one pending choice.

Validation runs in a fixed order: the choice must exist and still be
pending, every value must be a legal option, the number of values must fit
the choice's commit policy, and type-specific rules must hold (category
equipment needs its item picks, a spell swap needs its replacement). Only
then are grants written, tagged with the choice's provenance and id.
"""

from collections import Counter
from typing import Any, Dict, List, Optional

from loguru import logger

from character.events import ChoiceEvent, EventType
from character.models import ChoiceType, CommitPolicy, Grant, GrantKind, PendingChoice
from fastapi_core.exceptions import (
    ChoiceNotFoundException, InvalidSelectionError, NotSupportedError,
)
from .choice_registry import ChoiceContext, average_hit_die

UNDOABLE_TYPES = frozenset(t.value for t in (
    ChoiceType.PROFICIENCY, ChoiceType.LANGUAGE, ChoiceType.SPELL, ChoiceType.EXPERTISE,
    ChoiceType.OPTIONAL_FEATURE, ChoiceType.FEAT, ChoiceType.ABILITY_SCORE, ChoiceType.EQUIPMENT,
    ChoiceType.EQUIPMENT_MODE, ChoiceType.SIZE, ChoiceType.ASI_OR_FEAT,
))

# Choice types whose selected values become grants of one kind, one grant per value
SIMPLE_GRANT_KINDS = {
    ChoiceType.PROFICIENCY.value: GrantKind.PROFICIENCY.value,
    ChoiceType.EXPERTISE.value: GrantKind.EXPERTISE.value,
    ChoiceType.LANGUAGE.value: GrantKind.LANGUAGE.value,
    ChoiceType.SPELL.value: GrantKind.SPELL.value,
    ChoiceType.OPTIONAL_FEATURE.value: GrantKind.FEATURE.value,
    ChoiceType.FEAT.value: GrantKind.FEAT.value,
}

SPELL_SWAP_KEY = 'replacement'


class ChoiceResolver:
    """Commits and undoes selections on generated choices"""

    def __init__(self, character_manager):
        self.character_manager = character_manager

    @property
    def character(self):
        return self.character_manager.character

    @property
    def registry(self):
        return self.character_manager.registry

    def _find(self, choice_id: str) -> ChoiceContext:
        context = self.registry.find(self.character, choice_id)
        if context is None:
            raise ChoiceNotFoundException(choice_id)
        return context

    def get_options(self, choice_id: str) -> Dict[str, Any]:
        """Concrete options for a choice, including deferred ones"""
        context = self._find(choice_id)
        return {
            'choiceId': choice_id,
            'options': self.registry.resolve_options(self.character, context),
            'choice': context.choice,
        }

    # ------------------------------------------------------------------
    # Resolve
    # ------------------------------------------------------------------

    def resolve(self, choice_id: str, selected: List[str],
                item_selections: Optional[Dict[str, List[str]]] = None) -> Dict[str, Any]:
        """
        Commit a selection for one choice.

        Args:
            choice_id: Composite choice id
            selected: Full selection; cumulative choices resend earlier values too
            item_selections: Item picks for category equipment options and spell swaps

        Returns:
            Dict with the choice after the change and whether anything changed

        Raises:
            ChoiceNotFoundException: Unknown choice, or already satisfied with a different payload
            InvalidSelectionError: Illegal values, wrong count or missing item picks
        """
        item_selections = item_selections or {}
        with self.character_manager.transaction('resolve_choice', choice_id=choice_id, selected=selected):
            context = self._find(choice_id)
            choice = context.choice

            if choice.is_satisfied:
                if self._same_payload(choice, selected, item_selections):
                    logger.debug(f"Choice {choice_id} already resolved with identical payload")
                    return {'choice': choice, 'changed': False}
                raise ChoiceNotFoundException(choice_id, f"Choice {choice_id} is no longer pending")

            self._validate(context, selected, item_selections)
            self._apply(context, selected, item_selections)

            self.character_manager.emit(ChoiceEvent(
                event_type=EventType.CHOICE_RESOLVED,
                source_manager='ChoiceResolver',
                choice_id=choice_id,
                selected=list(selected),
            ))
            logger.info(f"Resolved {choice_id} on {self.character.public_id}: {selected}")

        resolved = self._find(choice_id).choice
        return {'choice': resolved, 'changed': True}

    def _same_payload(self, choice: PendingChoice, selected: List[str],
                      item_selections: Dict[str, List[str]]) -> bool:
        if Counter(choice.selected) != Counter(selected):
            return False
        if not item_selections:
            return True
        stored = self.character.item_selections.get(choice.id, {})
        return {k: sorted(v) for k, v in stored.items()} == {k: sorted(v) for k, v in item_selections.items()}

    def _validate(self, context: ChoiceContext, selected: List[str], item_selections: Dict[str, List[str]]):
        choice = context.choice
        if not isinstance(selected, list) or not all(isinstance(v, str) for v in selected):
            raise InvalidSelectionError("selected must be a list of strings", field='selected')

        options = self.registry.resolve_options(self.character, context)
        invalid = [value for value in selected if value not in options]
        if invalid:
            raise InvalidSelectionError(
                f"Values not allowed for {choice.id}: {', '.join(invalid)}",
                field='selected', invalid_values=invalid,
            )
        if not choice.allow_duplicates and len(set(selected)) != len(selected):
            duplicates = [v for v, n in Counter(selected).items() if n > 1]
            raise InvalidSelectionError(
                f"Duplicate values not allowed for {choice.id}",
                field='selected', invalid_values=duplicates,
            )

        if choice.commit_policy == CommitPolicy.CUMULATIVE:
            if not selected or len(selected) > choice.quantity:
                raise InvalidSelectionError(
                    f"Choice {choice.id} accepts 1 to {choice.quantity} values, got {len(selected)}",
                    field='selected',
                )
            missing_prior = Counter(choice.selected) - Counter(selected)
            if missing_prior:
                raise InvalidSelectionError(
                    f"Choice {choice.id} is cumulative; resubmit earlier selections too "
                    f"(missing: {', '.join(missing_prior.elements())})",
                    field='selected', invalid_values=list(missing_prior.elements()),
                )
        elif len(selected) != choice.quantity:
            raise InvalidSelectionError(
                f"Choice {choice.id} needs exactly {choice.quantity} values, got {len(selected)}",
                field='selected',
            )

        if choice.type == ChoiceType.EQUIPMENT.value:
            self._validate_equipment(context, selected, item_selections)
        elif choice.type == ChoiceType.SPELL_SWAP.value:
            self._validate_spell_swap(context, item_selections)

    def _validate_equipment(self, context: ChoiceContext, selected: List[str],
                            item_selections: Dict[str, List[str]]):
        catalog = self.character_manager.catalog
        for key in selected:
            option = context.template.equipment_options[key]
            if not option.is_category:
                continue
            picks = item_selections.get(key) or []
            if not picks:
                raise InvalidSelectionError(
                    f"Option {key} ({option.label}) needs item_selections for category {option.category}",
                    field='item_selections',
                )
            if len(picks) != option.category_quantity:
                raise InvalidSelectionError(
                    f"Option {key} needs {option.category_quantity} item(s) from {option.category}",
                    field='item_selections',
                )
            allowed = catalog.resolve_options(f'items:{option.category}')
            wrong = [slug for slug in picks if slug not in allowed]
            if wrong:
                raise InvalidSelectionError(
                    f"Items not in category {option.category}: {', '.join(wrong)}",
                    field='item_selections', invalid_values=wrong,
                )

    def _validate_spell_swap(self, context: ChoiceContext, item_selections: Dict[str, List[str]]):
        replacement = item_selections.get(SPELL_SWAP_KEY) or []
        if len(replacement) != 1:
            raise InvalidSelectionError(
                f"Spell swap needs exactly one spell in item_selections['{SPELL_SWAP_KEY}']",
                field='item_selections',
            )
        allowed = self.swap_candidates(context)
        if replacement[0] not in allowed:
            raise InvalidSelectionError(
                f"{replacement[0]} cannot replace a known spell here",
                field='item_selections', invalid_values=replacement,
            )

    def swap_candidates(self, context: ChoiceContext) -> List[str]:
        """Class spells of level 1 and up the character does not know yet"""
        catalog = self.character_manager.catalog
        class_slug = context.source.slug
        known = set(self.registry.known_spells(self.character))
        return [
            spell.slug for spell in catalog.entries('spells')
            if spell.level >= 1 and class_slug in spell.classes and spell.slug not in known
        ]

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def _apply(self, context: ChoiceContext, selected: List[str], item_selections: Dict[str, List[str]]):
        character = self.character
        choice = context.choice

        if choice.type == ChoiceType.SUBCLASS.value:
            self.character_manager.get_manager('class').set_subclass(choice.source_slug, selected[0])
            return

        character.remove_grants(lambda g: g.choice_id == choice.id)
        character.selections[choice.id] = list(selected)
        if item_selections:
            character.item_selections[choice.id] = {k: list(v) for k, v in item_selections.items()}
        else:
            character.item_selections.pop(choice.id, None)

        for grant in self._grants_for(context, selected, item_selections):
            character.grants.append(grant)

    def _grants_for(self, context: ChoiceContext, selected: List[str],
                    item_selections: Dict[str, List[str]]) -> List[Grant]:
        choice = context.choice

        def grant(kind: str, slug: str, value: Optional[int] = None) -> Grant:
            return Grant(kind=kind, slug=slug, source=choice.source, source_slug=choice.source_slug,
                         choice_id=choice.id, value=value)

        if choice.type in SIMPLE_GRANT_KINDS:
            return [grant(SIMPLE_GRANT_KINDS[choice.type], value) for value in selected]

        if choice.type == ChoiceType.ABILITY_SCORE.value:
            return [grant(GrantKind.ABILITY_BONUS.value, ability, context.template.bonus) for ability in selected]

        if choice.type == ChoiceType.EQUIPMENT.value:
            grants = []
            for key in selected:
                option = context.template.equipment_options[key]
                for item in option.items:
                    grants.append(grant(GrantKind.EQUIPMENT.value, item.slug, item.quantity))
                if option.is_category:
                    for slug in item_selections.get(key, []):
                        grants.append(grant(GrantKind.EQUIPMENT.value, slug, 1))
            return grants

        if choice.type == ChoiceType.HIT_POINTS.value:
            hit_die = context.source.definition.hit_die
            if selected[0] == 'roll':
                result = self.character_manager.rng.randint(1, hit_die)
            else:
                result = average_hit_die(hit_die)
            return [grant(GrantKind.HIT_POINTS.value, choice.source_slug, result)]

        if choice.type == ChoiceType.SPELL_SWAP.value:
            return [
                grant(GrantKind.SPELL_REMOVED.value, selected[0]),
                grant(GrantKind.SPELL.value, item_selections[SPELL_SWAP_KEY][0]),
            ]

        # equipment_mode, size and asi_or_feat act through follow-ups or derived state
        return []

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------

    def undo(self, choice_id: str) -> Dict[str, Any]:
        """
        Revert a resolved choice: its grants and follow-ups go, the choice
        comes back with nothing selected.

        Raises:
            ChoiceNotFoundException: Unknown choice
            NotSupportedError: The choice type cannot be undone
        """
        with self.character_manager.transaction('undo_choice', choice_id=choice_id):
            context = self._find(choice_id)
            choice = context.choice
            if choice.type not in UNDOABLE_TYPES:
                raise NotSupportedError(f"Choices of type {choice.type} cannot be undone")

            if choice.id not in self.character.selections:
                return {'choice': choice, 'changed': False}

            removed = self.character_manager.get_manager('cascade').clear_selection(choice.id)
            self.character_manager.emit(ChoiceEvent(
                event_type=EventType.CHOICE_UNDONE,
                source_manager='ChoiceResolver',
                choice_id=choice_id,
            ))
            logger.info(f"Undid {choice_id} on {self.character.public_id} ({removed} grants removed)")

        return {'choice': self._find(choice_id).choice, 'changed': True}

"""
Cascade Invalidator - removes everything downstream of a replaced root selection.

Which slots depend on which is declared once in CASCADE_TABLE. Removal is
always by exact provenance: a grant or selection is cleared only when its
(source, source_slug) matches the slot value being replaced, so the same
proficiency granted by another source survives.

After a cascade (and after any other committed change) `settle()` brings the
stored state back in line with the registry: fixed grants are re-synced with
the attached sources and selections for choices that no longer exist are
swept, together with the grants they produced. Both steps repeat until
nothing changes, since removing a feat can orphan that feat's own choices.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from loguru import logger

from character.events import CascadeEvent, EventType
from character.models import ChoiceId, ClassEntry, SourceKind

MAX_SETTLE_PASSES = 10


@dataclass(frozen=True)
class CascadeRule:
    """How one root selection slot is stored and which slots hang off it"""
    source: str
    # Attribute holding the slot's slug, on the character or on its class entry
    field: str
    on_class_entry: bool = False
    dependents: Tuple[str, ...] = ()


CASCADE_TABLE: Dict[str, CascadeRule] = {
    'race': CascadeRule(SourceKind.RACE.value, 'race_slug', dependents=('subrace',)),
    'subrace': CascadeRule(SourceKind.SUBRACE.value, 'subrace_slug'),
    'class': CascadeRule(SourceKind.CLASS.value, 'class_slug', on_class_entry=True, dependents=('subclass',)),
    'subclass': CascadeRule(SourceKind.SUBCLASS.value, 'subclass_slug', on_class_entry=True),
    'background': CascadeRule(SourceKind.BACKGROUND.value, 'background_slug'),
}


class CascadeInvalidator:
    """Deletes provenance-matched grants and selections, then settles the state"""

    def __init__(self, character_manager):
        self.character_manager = character_manager

    @property
    def character(self):
        return self.character_manager.character

    @property
    def registry(self):
        return self.character_manager.registry

    def invalidate(self, slot: str, slug: str, entry: Optional[ClassEntry] = None) -> Dict[str, int]:
        """
        Clear everything a slot value provided, including dependent slots.

        The slot's own field is left for the caller to overwrite; dependent
        slot fields are reset to None here.

        Args:
            slot: Key of CASCADE_TABLE
            slug: The value being replaced
            entry: Class entry the slot lives on, for class and subclass

        Returns:
            Counts of removed grants and selections
        """
        rule = CASCADE_TABLE[slot]
        if rule.on_class_entry and entry is None:
            raise ValueError(f"Cascade for {slot} needs the class entry")

        character = self.character
        removed_grants = character.remove_grants(
            lambda g: g.source == rule.source and g.source_slug == slug
        )
        removed_selections = self._drop_selections(
            lambda cid: cid.source == rule.source and cid.source_slug == slug
        )
        counts = {'grants': len(removed_grants), 'selections': len(removed_selections)}

        for dependent in rule.dependents:
            dependent_rule = CASCADE_TABLE[dependent]
            holder = entry if dependent_rule.on_class_entry else character
            dependent_slug = getattr(holder, dependent_rule.field)
            if dependent_slug:
                nested = self.invalidate(dependent, dependent_slug, entry)
                counts['grants'] += nested['grants']
                counts['selections'] += nested['selections']
                setattr(holder, dependent_rule.field, None)

        logger.info(
            f"Cascade {slot}={slug} on {character.public_id}: "
            f"removed {counts['grants']} grants, {counts['selections']} selections"
        )
        self.character_manager.emit(CascadeEvent(
            event_type=EventType.CASCADE_APPLIED,
            source_manager='CascadeInvalidator',
            slot=slot,
            removed_grants=counts['grants'],
            removed_selections=counts['selections'],
        ))
        return counts

    def _drop_selections(self, matches) -> List[str]:
        character = self.character
        dropped = []
        for choice_id in list(character.selections):
            if matches(ChoiceId.decode(choice_id)):
                dropped.append(choice_id)
        for choice_id in dropped:
            self.clear_selection(choice_id)
        return dropped

    def clear_selection(self, choice_id: str) -> int:
        """Forget a choice's selection and remove the grants it produced"""
        character = self.character
        character.selections.pop(choice_id, None)
        character.item_selections.pop(choice_id, None)
        return len(character.remove_grants(lambda g: g.choice_id == choice_id))

    # ------------------------------------------------------------------
    # Settling
    # ------------------------------------------------------------------

    def sync_fixed_grants(self) -> Tuple[int, int]:
        """Make the choice-free grants match what the attached sources apply"""
        character = self.character
        expected = self.registry.expected_fixed_grants(character)
        budget = Counter(_grant_key(g) for g in expected)

        kept = []
        removed = 0
        for grant in character.grants:
            if grant.choice_id is not None:
                kept.append(grant)
                continue
            key = _grant_key(grant)
            if budget[key] > 0:
                budget[key] -= 1
                kept.append(grant)
            else:
                removed += 1

        added = 0
        for grant in expected:
            key = _grant_key(grant)
            if budget[key] > 0:
                budget[key] -= 1
                kept.append(grant)
                added += 1

        character.grants = kept
        return added, removed

    def sweep_orphans(self) -> int:
        """Drop selections (and their grants) for choices the registry no longer produces"""
        character = self.character
        live_ids = {choice.id for choice in self.registry.generate(character)}
        swept = 0
        for choice_id in list(character.selections):
            if choice_id not in live_ids:
                self.clear_selection(choice_id)
                swept += 1
        for choice_id in list(character.item_selections):
            if choice_id not in character.selections:
                character.item_selections.pop(choice_id)
        stray = character.remove_grants(
            lambda g: g.choice_id is not None and g.choice_id not in character.selections
        )
        return swept + len(stray)

    def settle(self) -> Dict[str, int]:
        totals = {'added': 0, 'removed': 0, 'swept': 0}
        for _ in range(MAX_SETTLE_PASSES):
            added, removed = self.sync_fixed_grants()
            swept = self.sweep_orphans()
            totals['added'] += added
            totals['removed'] += removed
            totals['swept'] += swept
            if not (added or removed or swept):
                return totals
        raise RuntimeError(f"Character {self.character.public_id} did not settle after {MAX_SETTLE_PASSES} passes")


def _grant_key(grant) -> Tuple:
    return (grant.kind, grant.slug, grant.source, grant.source_slug, grant.value)

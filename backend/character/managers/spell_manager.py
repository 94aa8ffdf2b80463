"""
Spell Manager - caster level, spell slots, pact magic and known spells

Single-class casters use their own progression (half and third casters
round up once they have spellcasting); multiclass casters add full levels,
half of half-caster levels and a third of third-caster levels, rounded
down, and read the combined level off the shared slot table. Pact magic
never merges with the shared table and is reported on its own.
"""

from typing import Any, Dict, List, Optional, Tuple

from ..models import ClassEntry

# Spell slots per spell level (index 0 = 1st level) for a combined caster level
SPELL_SLOT_TABLE: Dict[int, List[int]] = {
    1: [2],
    2: [3],
    3: [4, 2],
    4: [4, 3],
    5: [4, 3, 2],
    6: [4, 3, 3],
    7: [4, 3, 3, 1],
    8: [4, 3, 3, 2],
    9: [4, 3, 3, 3, 1],
    10: [4, 3, 3, 3, 2],
    11: [4, 3, 3, 3, 2, 1],
    12: [4, 3, 3, 3, 2, 1],
    13: [4, 3, 3, 3, 2, 1, 1],
    14: [4, 3, 3, 3, 2, 1, 1],
    15: [4, 3, 3, 3, 2, 1, 1, 1],
    16: [4, 3, 3, 3, 2, 1, 1, 1],
    17: [4, 3, 3, 3, 2, 1, 1, 1, 1],
    18: [4, 3, 3, 3, 3, 1, 1, 1, 1],
    19: [4, 3, 3, 3, 3, 2, 1, 1, 1],
    20: [4, 3, 3, 3, 3, 2, 2, 1, 1],
}

# Warlock level -> (slot count, slot level)
PACT_SLOT_TABLE: Dict[int, Tuple[int, int]] = {
    1: (1, 1), 2: (2, 1), 3: (2, 2), 4: (2, 2), 5: (2, 3), 6: (2, 3),
    7: (2, 4), 8: (2, 4), 9: (2, 5), 10: (2, 5),
    **{level: (3, 5) for level in range(11, 17)},
    **{level: (4, 5) for level in range(17, 21)},
}

PROGRESSION_DIVISORS = {'full': 1, 'half': 2, 'third': 3}


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


class SpellManager:
    """Aggregates spellcasting across class entries"""

    def __init__(self, character_manager):
        self.character_manager = character_manager

    @property
    def character(self):
        return self.character_manager.character

    def _spellcasting_for(self, entry: ClassEntry):
        """The class's own spellcasting, or its subclass's when the class has none"""
        catalog = self.character_manager.catalog
        class_def = catalog.get_class(entry.class_slug)
        if class_def and class_def.spellcasting:
            return class_def.spellcasting
        subclass = catalog.get_subclass(entry.subclass_slug)
        if subclass and subclass.spellcasting:
            return subclass.spellcasting
        return None

    def get_caster_level(self) -> int:
        casters = []
        for entry in self.character.class_entries:
            spellcasting = self._spellcasting_for(entry)
            if spellcasting and spellcasting.progression in PROGRESSION_DIVISORS:
                casters.append((entry.level, PROGRESSION_DIVISORS[spellcasting.progression]))

        if not casters:
            return 0
        if len(casters) == 1:
            level, divisor = casters[0]
            # Half and third casters only gain spellcasting at class level 2 and 3
            if level < divisor:
                return 0
            return _ceil_div(level, divisor)
        return sum(level // divisor for level, divisor in casters)

    def get_spell_slots(self) -> Dict[int, int]:
        slots = SPELL_SLOT_TABLE.get(self.get_caster_level(), [])
        return {spell_level: count for spell_level, count in enumerate(slots, start=1)}

    def get_pact_magic(self) -> Optional[Dict[str, Any]]:
        for entry in self.character.class_entries:
            spellcasting = self._spellcasting_for(entry)
            if spellcasting and spellcasting.progression == 'pact':
                slots, slot_level = PACT_SLOT_TABLE[min(entry.level, 20)]
                return {'classSlug': entry.class_slug, 'slots': slots, 'slotLevel': slot_level}
        return None

    def get_spellcasting_classes(self) -> List[Dict[str, Any]]:
        ability_manager = self.character_manager.get_manager('ability')
        proficiency = ability_manager.get_proficiency_bonus()
        modifiers = ability_manager.get_modifiers()
        result = []
        for entry in self.character.class_entries:
            spellcasting = self._spellcasting_for(entry)
            if not spellcasting:
                continue
            modifier = modifiers.get(spellcasting.ability)
            result.append({
                'classSlug': entry.class_slug,
                'level': entry.level,
                'progression': spellcasting.progression,
                'ability': spellcasting.ability,
                'spellSaveDc': None if modifier is None else 8 + proficiency + modifier,
                'spellAttackBonus': None if modifier is None else proficiency + modifier,
            })
        return result

    def get_known_spells(self) -> List[str]:
        return self.character_manager.registry.known_spells(self.character)

    def get_spellcasting(self) -> Dict[str, Any]:
        return {
            'casterLevel': self.get_caster_level(),
            'spellSlots': self.get_spell_slots(),
            'pactMagic': self.get_pact_magic(),
            'classes': self.get_spellcasting_classes(),
            'knownSpells': self.get_known_spells(),
        }

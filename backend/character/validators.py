"""
Reference integrity validation

Checks that every slug a character stores still resolves in a catalog, e.g.
after content has been reimported. This answers a different question from
the completion validator (is the data intact vs. is the character finished)
and never changes the character.
"""
from typing import Any, Dict, List

from gamedata.catalog import GRANT_KIND_TABLES, Catalog
from .models import Character


class ReferenceIntegrityValidator:
    """Finds stored slug references that no longer resolve"""

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    def validate_character(self, character: Character) -> Dict[str, Any]:
        """
        Returns:
            {'valid': bool, 'danglingReferences': [{'field': ..., 'slug': ...}]}
        """
        dangling: List[Dict[str, str]] = []

        def check(field: str, table: str, slug):
            if slug and not self.catalog.exists(table, slug):
                dangling.append({'field': field, 'slug': slug})

        check('race', 'races', character.race_slug)
        check('subrace', 'subraces', character.subrace_slug)
        check('background', 'backgrounds', character.background_slug)
        for index, entry in enumerate(character.class_entries):
            check(f'classes[{index}].class', 'classes', entry.class_slug)
            check(f'classes[{index}].subclass', 'subclasses', entry.subclass_slug)

        for index, grant in enumerate(character.grants):
            table = GRANT_KIND_TABLES.get(grant.kind)
            if table:
                check(f'grants[{index}].{grant.kind}', table, grant.slug)

        for choice_id, picks in character.item_selections.items():
            for option, slugs in picks.items():
                # Spell swap replacements live here too
                table = 'spells' if choice_id.startswith('spell_swap|') else 'items'
                for slug in slugs:
                    check(f'item_selections[{choice_id}].{option}', table, slug)

        return {'valid': not dangling, 'danglingReferences': dangling}

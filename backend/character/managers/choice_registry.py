"""
Choice Registry - enumerates every decision a character's sources ask for.

The registry is a pure function of the character's current state and the
content catalog: it walks race, subrace, class entries (and their
subclasses), background and taken feats, instantiates each source's choice
templates that the relevant level has reached, and returns them as
PendingChoice records. Nothing here mutates the character; the character
manager stores the unsatisfied subset after every committed change.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional
from urllib.parse import quote

from loguru import logger

from character.models import (
    ABILITY_NAMES, Character, ChoiceId, ChoiceType, ClassEntry, Grant,
    GrantKind, PendingChoice, SourceKind,
)
from gamedata.catalog import Catalog, ChoiceTemplate, SourceDefinition


HIT_POINT_OPTIONS = ['average', 'roll']
ASI_OR_FEAT_OPTIONS = ['asi', 'feat']

# Follow-up templates of the automatic ability score improvement choice
ASI_FOLLOW_UPS = {
    'asi': [ChoiceTemplate(
        type=ChoiceType.ABILITY_SCORE.value, group='asi-bonus', quantity=2,
        options=list(ABILITY_NAMES), allow_duplicates=True,
    )],
    'feat': [ChoiceTemplate(type=ChoiceType.FEAT.value, group='asi-feat', options_ref='feats')],
}

# Choice types whose options drop what the character already holds, and the grant kind checked
COLLISION_GRANT_KINDS = {
    ChoiceType.PROFICIENCY.value: GrantKind.PROFICIENCY.value,
    ChoiceType.LANGUAGE.value: GrantKind.LANGUAGE.value,
    ChoiceType.EXPERTISE.value: GrantKind.EXPERTISE.value,
    ChoiceType.SPELL.value: GrantKind.SPELL.value,
    ChoiceType.FEAT.value: GrantKind.FEAT.value,
}


def average_hit_die(hit_die: int) -> int:
    """Fixed hit point gain for a die: half the die rounded up (d6 -> 4, d10 -> 6)"""
    return hit_die // 2 + 1


def options_endpoint(public_id: str, choice_id: str) -> str:
    return f"/api/characters/{quote(public_id, safe='')}/choices/{quote(choice_id, safe='')}/options"


def feat_copy_suffix(grant: Grant) -> str:
    """
    Group suffix for the choices of one copy of a repeatable feat, named
    after the choice (or fixed source) that granted that copy, e.g.
    "@class.phb:fighter.4.asi-feat". Removing one copy leaves the ids of
    the other copies unchanged.
    """
    if grant.choice_id:
        origin = ChoiceId.decode(grant.choice_id)
        return f'@{origin.source}.{origin.source_slug}.{origin.level}.{origin.group}'
    return f'@{grant.source}.{grant.source_slug}'


@dataclass
class SourceContext:
    """One attached source as seen by the registry"""
    kind: str
    definition: SourceDefinition
    reach: int
    entry: Optional[ClassEntry] = None
    # Tells copies of a repeatable feat apart, see feat_copy_suffix
    suffix: str = ''

    @property
    def slug(self) -> str:
        return self.definition.slug


class ChoiceContext(NamedTuple):
    """A generated choice together with the template and source it came from"""
    choice: PendingChoice
    template: ChoiceTemplate
    source: SourceContext


class ChoiceRegistry:
    """Computes the full set of choices implied by a character's sources"""

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def sources(self, character: Character) -> List[SourceContext]:
        """Attached sources in display order; unknown slugs are skipped"""
        base_reach = max(character.total_level, 1)
        found: List[SourceContext] = []

        race = self.catalog.get_race(character.race_slug)
        if race:
            found.append(SourceContext(SourceKind.RACE.value, race, base_reach))
        subrace = self.catalog.get_subrace(character.subrace_slug)
        if subrace:
            found.append(SourceContext(SourceKind.SUBRACE.value, subrace, base_reach))

        for entry in character.class_entries:
            class_def = self.catalog.get_class(entry.class_slug)
            if class_def is None:
                logger.debug(f"Skipping unknown class {entry.class_slug} on {character.public_id}")
                continue
            found.append(SourceContext(SourceKind.CLASS.value, class_def, entry.level, entry))
            subclass = self.catalog.get_subclass(entry.subclass_slug)
            if subclass:
                found.append(SourceContext(SourceKind.SUBCLASS.value, subclass, entry.level, entry))

        background = self.catalog.get_background(character.background_slug)
        if background:
            found.append(SourceContext(SourceKind.BACKGROUND.value, background, base_reach))

        for grant in character.grants_of_kind(GrantKind.FEAT.value):
            feat = self.catalog.get_feat(grant.slug)
            if feat is None:
                continue
            suffix = feat_copy_suffix(grant) if feat.repeatable else ''
            found.append(SourceContext(SourceKind.FEAT.value, feat, base_reach, suffix=suffix))

        return found

    def expected_fixed_grants(self, character: Character) -> List[Grant]:
        """Every grant the attached sources apply without a choice"""
        grants: List[Grant] = []
        for source in self.sources(character):
            fixed = source.definition.grants
            if source.kind == SourceKind.CLASS.value:
                if source.entry.is_primary:
                    # The first character level always takes the full hit die
                    grants.append(Grant(
                        kind=GrantKind.HIT_POINTS.value, slug=source.slug,
                        source=source.kind, source_slug=source.slug,
                        value=source.definition.hit_die,
                    ))
                else:
                    fixed = source.definition.multiclass_grants
            for fixed_grant in fixed:
                if fixed_grant.level > source.reach:
                    continue
                grants.append(Grant(
                    kind=fixed_grant.kind, slug=fixed_grant.slug,
                    source=source.kind, source_slug=source.slug,
                    value=fixed_grant.value,
                ))
        return grants

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def walk(self, character: Character) -> List[ChoiceContext]:
        """Every choice the current state implies, satisfied or not"""
        generated: List[ChoiceContext] = []
        for source in self.sources(character):
            for template in self._templates_for(source):
                if template.level > source.reach:
                    continue
                self._instantiate(character, source, template, template.level, generated)
        return generated

    def generate(self, character: Character) -> List[PendingChoice]:
        return [context.choice for context in self.walk(character)]

    def pending(self, character: Character) -> List[PendingChoice]:
        """Choices that still need selections"""
        return [choice for choice in self.generate(character) if not choice.is_satisfied]

    def find(self, character: Character, choice_id: str) -> Optional[ChoiceContext]:
        for context in self.walk(character):
            if context.choice.id == choice_id:
                return context
        return None

    def _templates_for(self, source: SourceContext) -> List[ChoiceTemplate]:
        templates = list(source.definition.choices)
        if source.kind != SourceKind.CLASS.value:
            return templates

        is_primary = source.entry.is_primary
        templates = [
            t for t in templates
            if not (t.primary_only and not is_primary) and not (t.multiclass_only and is_primary)
        ]
        class_def = source.definition
        for level in range(1, source.entry.level + 1):
            if is_primary and level == 1:
                continue
            templates.append(ChoiceTemplate(
                type=ChoiceType.HIT_POINTS.value, group='hit-points',
                level=level, options=list(HIT_POINT_OPTIONS),
            ))
        subclass_options = [s.slug for s in self.catalog.subclasses_for(class_def.slug)]
        if subclass_options:
            templates.append(ChoiceTemplate(
                type=ChoiceType.SUBCLASS.value, group='subclass',
                level=class_def.subclass_level, options=subclass_options,
            ))
        for level in class_def.asi_levels:
            templates.append(ChoiceTemplate(
                type=ChoiceType.ASI_OR_FEAT.value, group='asi', level=level,
                options=list(ASI_OR_FEAT_OPTIONS), follow_ups=ASI_FOLLOW_UPS,
            ))
        # Stable sort keeps catalog order within a level
        return sorted(templates, key=lambda t: t.level)

    def _instantiate(self, character: Character, source: SourceContext, template: ChoiceTemplate,
                     level: int, out: List[ChoiceContext], parent_id: Optional[str] = None):
        choice_id = ChoiceId(template.type, source.kind, source.slug, level, template.group + source.suffix).encode()

        if template.type == ChoiceType.SUBCLASS.value:
            subclass_slug = source.entry.subclass_slug if source.entry else None
            selected = [subclass_slug] if subclass_slug else []
        else:
            selected = list(character.selections.get(choice_id, []))

        choice = PendingChoice(
            id=choice_id,
            type=template.type,
            source=source.kind,
            source_slug=source.slug,
            level=level,
            group=template.group + source.suffix,
            quantity=template.quantity,
            selected=selected,
            required=template.required,
            allow_duplicates=template.allow_duplicates,
            metadata=self._metadata(source, template, parent_id),
        )
        if template.options_ref is None:
            choice.options = self.filter_options(character, choice, template.inline_options())
        else:
            choice.options_endpoint = options_endpoint(character.public_id, choice_id)
        out.append(ChoiceContext(choice, template, source))

        for value in dict.fromkeys(selected):
            for follow_up in template.follow_ups.get(value, []):
                self._instantiate(character, source, follow_up, level, out, parent_id=choice_id)

    def _metadata(self, source: SourceContext, template: ChoiceTemplate, parent_id: Optional[str]) -> Dict:
        metadata: Dict = {}
        if parent_id:
            metadata['parentChoiceId'] = parent_id
        if template.type == ChoiceType.ABILITY_SCORE.value:
            metadata['bonus'] = template.bonus
        elif template.type == ChoiceType.HIT_POINTS.value:
            hit_die = source.definition.hit_die
            metadata['hitDie'] = hit_die
            metadata['average'] = average_hit_die(hit_die)
        elif template.equipment_options:
            metadata['equipmentOptions'] = {
                key: {
                    'label': option.label,
                    'items': [{'slug': i.slug, 'quantity': i.quantity} for i in option.items],
                    'isCategory': option.is_category,
                    'category': option.category,
                    'categoryQuantity': option.category_quantity,
                }
                for key, option in template.equipment_options.items()
            }
        return metadata

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    def resolve_options(self, character: Character, context: ChoiceContext) -> List[str]:
        """Concrete, collision-filtered option list for a generated choice"""
        template = context.template
        if template.options_ref is None:
            return self.filter_options(character, context.choice, template.inline_options())
        raw = self._expand_ref(character, template.options_ref)
        return self.filter_options(character, context.choice, raw)

    def _expand_ref(self, character: Character, ref: str) -> List[str]:
        if ref == 'proficient_skills':
            held = set(character.grant_slugs(GrantKind.PROFICIENCY.value))
            return [slug for slug in self.catalog.resolve_options('skills') if slug in held]
        if ref.startswith('known_spells:'):
            class_slug = ref[len('known_spells:'):]
            return [
                slug for slug in self.known_spells(character)
                if class_slug in getattr(self.catalog.get('spells', slug), 'classes', [])
            ]
        return self.catalog.resolve_options(ref)

    def filter_options(self, character: Character, choice: PendingChoice, options: List[str]) -> List[str]:
        """Drop options the character already holds through anything other than this choice"""
        grant_kind = COLLISION_GRANT_KINDS.get(choice.type)
        if grant_kind is None:
            return list(options)

        if grant_kind == GrantKind.SPELL.value:
            held = set(self.known_spells(character, exclude_choice=choice.id))
        else:
            held = {g.slug for g in character.grants if g.kind == grant_kind and g.choice_id != choice.id}
        if grant_kind == GrantKind.FEAT.value:
            held = {slug for slug in held if not getattr(self.catalog.get_feat(slug), 'repeatable', False)}

        kept = set(choice.selected)
        return [option for option in options if option in kept or option not in held]

    @staticmethod
    def known_spells(character: Character, exclude_choice: Optional[str] = None) -> List[str]:
        """Spell grants minus spell_removed grants, in grant order"""
        learned = [g.slug for g in character.grants
                   if g.kind == GrantKind.SPELL.value and (exclude_choice is None or g.choice_id != exclude_choice)]
        removed = Counter(character.grant_slugs(GrantKind.SPELL_REMOVED.value))
        known = []
        for slug in learned:
            if removed[slug]:
                removed[slug] -= 1
                continue
            known.append(slug)
        return known

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    @staticmethod
    def summarize(choices: List[PendingChoice]) -> Dict:
        return {
            'totalPending': len(choices),
            'requiredPending': sum(1 for c in choices if c.required),
            'byType': dict(Counter(c.type for c in choices)),
            'bySource': dict(Counter(c.source for c in choices)),
        }

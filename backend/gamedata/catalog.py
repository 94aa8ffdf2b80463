"""
Content catalog - races, classes, backgrounds, feats and the option lists
their choices draw from.

Loaded once from JSON at start-up and treated as immutable. Replacing
content means loading a new Catalog and registering it as the shared
catalog; characters keep their stored slugs and can be checked against the
new content with the reference integrity validator.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CatalogModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra='forbid')


class FixedGrant(CatalogModel):
    """A grant applied as soon as its source is attached (and its level reached)"""
    kind: str
    slug: str
    level: int = 1
    value: Optional[int] = None


class EquipmentItemRef(CatalogModel):
    slug: str
    quantity: int = 1


class EquipmentOption(CatalogModel):
    """One lettered option of an equipment choice"""
    label: str
    items: List[EquipmentItemRef] = Field(default_factory=list)
    is_category: bool = False
    category: Optional[str] = None
    category_quantity: int = 1

    @model_validator(mode='after')
    def _category_needs_name(self):
        if self.is_category and not self.category:
            raise ValueError(f"Equipment option {self.label!r} is a category option without a category")
        return self


class ChoiceTemplate(CatalogModel):
    """Static description of a choice a source asks for"""
    type: str
    group: str = 'default'
    quantity: int = 1
    level: int = 1
    options: Optional[List[str]] = None
    options_ref: Optional[str] = None
    required: bool = True
    primary_only: bool = False
    multiclass_only: bool = False
    allow_duplicates: bool = False
    # Ability bonus per selection for ability_score choices
    bonus: int = 1
    equipment_options: Dict[str, EquipmentOption] = Field(default_factory=dict)
    follow_ups: Dict[str, List['ChoiceTemplate']] = Field(default_factory=dict)

    @model_validator(mode='after')
    def _options_source(self):
        if self.options is None and self.options_ref is None and not self.equipment_options:
            raise ValueError(f"Choice template {self.type}/{self.group} has no options")
        if self.quantity < 1:
            raise ValueError(f"Choice template {self.type}/{self.group} needs a positive quantity")
        return self

    def inline_options(self) -> Optional[List[str]]:
        if self.options is not None:
            return list(self.options)
        if self.equipment_options:
            return list(self.equipment_options.keys())
        return None


ChoiceTemplate.model_rebuild()


class Spellcasting(CatalogModel):
    progression: str
    ability: str

    @field_validator('progression')
    @classmethod
    def _known_progression(cls, value: str) -> str:
        if value not in ('full', 'half', 'third', 'pact'):
            raise ValueError(f"Unknown spellcasting progression: {value}")
        return value


class SourceDefinition(CatalogModel):
    """Common shape of everything that grants things or asks for choices"""
    slug: str
    name: str
    grants: List[FixedGrant] = Field(default_factory=list)
    choices: List[ChoiceTemplate] = Field(default_factory=list)


class RaceDefinition(SourceDefinition):
    size: Optional[str] = 'medium'
    speed: int = 30
    subraces: List[str] = Field(default_factory=list)
    subrace_required: bool = False


class SubraceDefinition(SourceDefinition):
    race: str


class MulticlassPrerequisites(CatalogModel):
    all_of: Dict[str, int] = Field(default_factory=dict)
    any_of: Dict[str, int] = Field(default_factory=dict)


class ClassDefinition(SourceDefinition):
    hit_die: int
    subclass_level: int = 3
    asi_levels: List[int] = Field(default_factory=lambda: [4, 8, 12, 16, 19])
    multiclass_prerequisites: MulticlassPrerequisites = Field(default_factory=MulticlassPrerequisites)
    multiclass_grants: List[FixedGrant] = Field(default_factory=list)
    features: Dict[int, List[str]] = Field(default_factory=dict)
    spellcasting: Optional[Spellcasting] = None
    starting_gold: int = 0


class SubclassDefinition(SourceDefinition):
    class_slug: str
    features: Dict[int, List[str]] = Field(default_factory=dict)
    spellcasting: Optional[Spellcasting] = None


class BackgroundDefinition(SourceDefinition):
    pass


class FeatDefinition(SourceDefinition):
    repeatable: bool = False


class ProficiencyDefinition(CatalogModel):
    slug: str
    name: str
    type: str
    ability: Optional[str] = None


class LanguageDefinition(CatalogModel):
    slug: str
    name: str
    exotic: bool = False


class SpellDefinition(CatalogModel):
    slug: str
    name: str
    level: int
    classes: List[str] = Field(default_factory=list)


class ItemDefinition(CatalogModel):
    slug: str
    name: str
    categories: List[str] = Field(default_factory=list)


class OptionalFeatureDefinition(CatalogModel):
    slug: str
    name: str
    kind: str


SOURCE_TABLES = {
    'race': 'races',
    'subrace': 'subraces',
    'class': 'classes',
    'subclass': 'subclasses',
    'background': 'backgrounds',
    'feat': 'feats',
}

# Grant kinds whose slugs must resolve to catalog entries, and the table each lives in
GRANT_KIND_TABLES = {
    'proficiency': 'proficiencies',
    'expertise': 'proficiencies',
    'language': 'languages',
    'spell': 'spells',
    'spell_removed': 'spells',
    'equipment': 'items',
    'feat': 'feats',
}


class Catalog:
    """Immutable, slug-indexed content store"""

    TABLES = {
        'races': RaceDefinition,
        'subraces': SubraceDefinition,
        'classes': ClassDefinition,
        'subclasses': SubclassDefinition,
        'backgrounds': BackgroundDefinition,
        'feats': FeatDefinition,
        'proficiencies': ProficiencyDefinition,
        'languages': LanguageDefinition,
        'spells': SpellDefinition,
        'items': ItemDefinition,
        'optional_features': OptionalFeatureDefinition,
    }

    def __init__(self, data: Dict[str, List[Dict[str, Any]]], name: str = 'catalog'):
        self.name = name
        self._tables: Dict[str, Dict[str, Any]] = {}
        for table, model in self.TABLES.items():
            rows = data.get(table, [])
            entries = {}
            for row in rows:
                entry = model.model_validate(row)
                if entry.slug in entries:
                    raise ValueError(f"Duplicate slug {entry.slug!r} in {table}")
                entries[entry.slug] = entry
            self._tables[table] = entries
        self._check_links()
        logger.info(f"Catalog {name!r} loaded: " + ", ".join(
            f"{len(entries)} {table}" for table, entries in self._tables.items()
        ))

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'Catalog':
        path = Path(path)
        logger.info(f"Loading content catalog from {path}")
        with path.open('r', encoding='utf-8') as fh:
            data = json.load(fh)
        return cls(data, name=path.stem)

    def _check_links(self):
        for subrace in self._tables['subraces'].values():
            race = self._tables['races'].get(subrace.race)
            if race is None:
                raise ValueError(f"Subrace {subrace.slug} references unknown race {subrace.race}")
            if subrace.slug not in race.subraces:
                raise ValueError(f"Race {race.slug} does not list subrace {subrace.slug}")
        for subclass in self._tables['subclasses'].values():
            if subclass.class_slug not in self._tables['classes']:
                raise ValueError(f"Subclass {subclass.slug} references unknown class {subclass.class_slug}")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def table(self, table: str) -> Dict[str, Any]:
        if table not in self._tables:
            raise KeyError(f"Unknown catalog table: {table}")
        return self._tables[table]

    def entries(self, table: str) -> List[Any]:
        return list(self.table(table).values())

    def get(self, table: str, slug: Optional[str]):
        if slug is None:
            return None
        return self.table(table).get(slug)

    def exists(self, table: str, slug: Optional[str]) -> bool:
        return self.get(table, slug) is not None

    def get_race(self, slug: Optional[str]) -> Optional[RaceDefinition]:
        return self.get('races', slug)

    def get_subrace(self, slug: Optional[str]) -> Optional[SubraceDefinition]:
        return self.get('subraces', slug)

    def get_class(self, slug: Optional[str]) -> Optional[ClassDefinition]:
        return self.get('classes', slug)

    def get_subclass(self, slug: Optional[str]) -> Optional[SubclassDefinition]:
        return self.get('subclasses', slug)

    def get_background(self, slug: Optional[str]) -> Optional[BackgroundDefinition]:
        return self.get('backgrounds', slug)

    def get_feat(self, slug: Optional[str]) -> Optional[FeatDefinition]:
        return self.get('feats', slug)

    def get_source(self, source: str, slug: Optional[str]) -> Optional[SourceDefinition]:
        table = SOURCE_TABLES.get(source)
        if table is None:
            raise KeyError(f"Unknown source kind: {source}")
        return self.get(table, slug)

    def subclasses_for(self, class_slug: str) -> List[SubclassDefinition]:
        return [s for s in self._tables['subclasses'].values() if s.class_slug == class_slug]

    # ------------------------------------------------------------------
    # Deferred option lists
    # ------------------------------------------------------------------

    def resolve_options(self, ref: str) -> List[str]:
        """
        Expand a static option reference into concrete slugs.

        Supported refs: skills, tools, languages, feats,
        spells:<class>:<level>, items:<category>, optional_features:<kind>,
        subclasses:<class>.
        """
        kind, _, arg = ref.partition(':')
        if kind == 'skills':
            return [p.slug for p in self._tables['proficiencies'].values() if p.type == 'skill']
        if kind == 'tools':
            return [p.slug for p in self._tables['proficiencies'].values() if p.type == 'tool']
        if kind == 'languages':
            return list(self._tables['languages'].keys())
        if kind == 'feats':
            return list(self._tables['feats'].keys())
        if kind == 'spells':
            # arg is "<class slug>:<spell level>"; class slugs contain ':' themselves
            class_slug, _, level = arg.rpartition(':')
            if not class_slug or not level.isdigit():
                raise ValueError(f"Malformed spell option reference: {ref}")
            spell_level = int(level)
            return [
                s.slug for s in self._tables['spells'].values()
                if s.level == spell_level and class_slug in s.classes
            ]
        if kind == 'items':
            return [i.slug for i in self._tables['items'].values() if arg in i.categories]
        if kind == 'optional_features':
            return [f.slug for f in self._tables['optional_features'].values() if f.kind == arg]
        if kind == 'subclasses':
            return [s.slug for s in self.subclasses_for(arg)]
        raise ValueError(f"Unknown option reference: {ref}")

    def describe(self) -> Dict[str, int]:
        return {table: len(entries) for table, entries in self._tables.items()}

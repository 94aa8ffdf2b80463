"""
Character domain model

Plain dataclasses for the aggregate root (Character), its class entries,
provenance-tagged grants and pending choices.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


ABILITY_NAMES = ('str', 'dex', 'con', 'int', 'wis', 'cha')
MAX_LEVEL = 20
CHOICE_ID_SEPARATOR = '|'


class SourceKind(str, Enum):
    """Where a grant or choice comes from"""
    RACE = 'race'
    SUBRACE = 'subrace'
    CLASS = 'class'
    SUBCLASS = 'subclass'
    BACKGROUND = 'background'
    FEAT = 'feat'


class ChoiceType(str, Enum):
    PROFICIENCY = 'proficiency'
    LANGUAGE = 'language'
    SPELL = 'spell'
    EQUIPMENT = 'equipment'
    EQUIPMENT_MODE = 'equipment_mode'
    SIZE = 'size'
    ABILITY_SCORE = 'ability_score'
    OPTIONAL_FEATURE = 'optional_feature'
    FEAT = 'feat'
    SUBCLASS = 'subclass'
    HIT_POINTS = 'hit_points'
    ASI_OR_FEAT = 'asi_or_feat'
    EXPERTISE = 'expertise'
    SPELL_SWAP = 'spell_swap'


class CommitPolicy(str, Enum):
    """How a resubmission relates to what was already selected"""
    REPLACE = 'replace'
    CUMULATIVE = 'cumulative'


COMMIT_POLICIES: Dict[ChoiceType, CommitPolicy] = {
    choice_type: CommitPolicy.REPLACE for choice_type in ChoiceType
}
COMMIT_POLICIES[ChoiceType.ABILITY_SCORE] = CommitPolicy.CUMULATIVE


class GrantKind(str, Enum):
    PROFICIENCY = 'proficiency'
    EXPERTISE = 'expertise'
    LANGUAGE = 'language'
    SPELL = 'spell'
    SPELL_REMOVED = 'spell_removed'
    EQUIPMENT = 'equipment'
    FEAT = 'feat'
    FEATURE = 'feature'
    ABILITY_BONUS = 'ability_bonus'
    HIT_POINTS = 'hit_points'


@dataclass(frozen=True)
class ChoiceId:
    """Composite choice identifier: type|source|sourceSlug|level|group"""
    type: str
    source: str
    source_slug: str
    level: int
    group: str

    def encode(self) -> str:
        parts = [self.type, self.source, self.source_slug, str(self.level), self.group]
        for part in parts:
            if CHOICE_ID_SEPARATOR in part:
                raise ValueError(f"Choice id part {part!r} contains '{CHOICE_ID_SEPARATOR}'")
        return CHOICE_ID_SEPARATOR.join(parts)

    @classmethod
    def decode(cls, value: str) -> 'ChoiceId':
        parts = value.split(CHOICE_ID_SEPARATOR)
        if len(parts) != 5:
            raise ValueError(f"Malformed choice id: {value!r}")
        choice_type, source, source_slug, level, group = parts
        try:
            level_number = int(level)
        except ValueError:
            raise ValueError(f"Malformed choice id level: {value!r}")
        return cls(choice_type, source, source_slug, level_number, group)


@dataclass
class Grant:
    """A durable effect on the character, tagged with its provenance"""
    kind: str
    slug: str
    source: str
    source_slug: str
    choice_id: Optional[str] = None
    value: Optional[int] = None

    @property
    def provenance(self) -> Tuple[str, str]:
        return (self.source, self.source_slug)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PendingChoice:
    """One undecided decision"""
    id: str
    type: str
    source: str
    source_slug: str
    level: int
    group: str
    quantity: int
    selected: List[str] = field(default_factory=list)
    options: Optional[List[str]] = None
    options_endpoint: Optional[str] = None
    required: bool = True
    allow_duplicates: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_satisfied(self) -> bool:
        return len(self.selected) == self.quantity

    @property
    def remaining(self) -> int:
        return self.quantity - len(self.selected)

    @property
    def commit_policy(self) -> CommitPolicy:
        return COMMIT_POLICIES[ChoiceType(self.type)]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['remaining'] = self.remaining
        return data


@dataclass
class ClassEntry:
    """One class membership row of a (possibly multiclass) character"""
    class_slug: str
    level: int = 1
    subclass_slug: Optional[str] = None
    is_primary: bool = False


@dataclass
class Character:
    """Aggregate root for a character being built"""
    public_id: str
    name: str = ''
    alignment: Optional[str] = None
    ability_scores: Dict[str, Optional[int]] = field(
        default_factory=lambda: {ability: None for ability in ABILITY_NAMES}
    )
    race_slug: Optional[str] = None
    subrace_slug: Optional[str] = None
    background_slug: Optional[str] = None
    class_entries: List[ClassEntry] = field(default_factory=list)
    size: Optional[str] = None
    gold: int = 0
    is_dead: bool = False
    grants: List[Grant] = field(default_factory=list)
    selections: Dict[str, List[str]] = field(default_factory=dict)
    item_selections: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)
    pending_choices: List[PendingChoice] = field(default_factory=list)
    # Class most recently leveled, for the level-up wizard state
    level_up_class: Optional[str] = None
    version: int = 0

    @property
    def total_level(self) -> int:
        return sum(entry.level for entry in self.class_entries)

    @property
    def primary_class(self) -> Optional[ClassEntry]:
        for entry in self.class_entries:
            if entry.is_primary:
                return entry
        return None

    def get_class_entry(self, class_slug: str) -> Optional[ClassEntry]:
        for entry in self.class_entries:
            if entry.class_slug == class_slug:
                return entry
        return None

    def grants_of_kind(self, kind: str) -> List[Grant]:
        return [g for g in self.grants if g.kind == kind]

    def grant_slugs(self, kind: str) -> List[str]:
        return [g.slug for g in self.grants if g.kind == kind]

    def remove_grants(self, predicate) -> List[Grant]:
        """Remove every grant matching predicate, returning the removed ones"""
        removed = [g for g in self.grants if predicate(g)]
        if removed:
            self.grants = [g for g in self.grants if not predicate(g)]
        return removed

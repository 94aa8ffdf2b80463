"""
Pydantic models for the character root resource
Create/patch bodies plus the summary, state and validation views
"""

from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from .class_models import ClassEntryInfo
from .shared_models import ApiModel


class CharacterCreateRequest(ApiModel):
    """Create a character shell - every initial selection is optional"""
    public_id: Optional[str] = Field(None, description="Opaque id; generated when omitted")
    name: str = Field('', description="Character name")
    race_slug: Optional[str] = Field(None, description="Race or subrace slug, e.g. phb:high-elf")
    class_slug: Optional[str] = Field(None, description="Primary class slug")
    background_slug: Optional[str] = Field(None, description="Background slug")

    @field_validator('public_id')
    @classmethod
    def _public_id_is_safe(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and (not value.strip() or '/' in value):
            raise ValueError("publicId must be non-empty and may not contain '/'")
        return value


class CharacterUpdateRequest(ApiModel):
    """
    Partial update - only fields present in the body are applied.

    Race and background changes cascade: grants and selections that came
    from the old value are removed before the new value's are added.
    """
    race_slug: Optional[str] = None
    subrace_slug: Optional[str] = None
    background_slug: Optional[str] = None
    ability_scores: Optional[Dict[str, int]] = None
    name: Optional[str] = None
    alignment: Optional[str] = None
    is_dead: Optional[bool] = None


class HitPointsInfo(ApiModel):
    max: int
    levels_resolved: int
    levels_pending: int
    constitution_modifier: int


class CharacterSummary(ApiModel):
    """Matches CharacterManager.get_character_summary()"""
    public_id: str
    name: str
    alignment: Optional[str] = None
    is_dead: bool = False
    race: Optional[str] = None
    subrace: Optional[str] = None
    background: Optional[str] = None
    size: Optional[str] = None
    gold: int = 0
    total_level: int = 0
    proficiency_bonus: int
    ability_scores: Dict[str, Optional[int]]
    effective_ability_scores: Dict[str, Optional[int]]
    ability_modifiers: Dict[str, Optional[int]]
    classes: List[ClassEntryInfo] = Field(default_factory=list)
    hit_points: HitPointsInfo
    is_complete: bool
    missing: List[str] = Field(default_factory=list)
    pending_choice_count: int = 0
    version: int


class GrantInfo(ApiModel):
    kind: str
    slug: str
    source: str
    source_slug: str
    choice_id: Optional[str] = None
    value: Optional[int] = None


class CharacterState(CharacterSummary):
    """Summary plus every grant - matches get_character_state()"""
    grants: List[GrantInfo] = Field(default_factory=list)
    known_spells: List[str] = Field(default_factory=list)


class DanglingReference(ApiModel):
    field: str
    slug: str


class CharacterValidationResponse(ApiModel):
    """Reference integrity against the loaded catalog, separate from completion"""
    valid: bool
    dangling_references: List[DanglingReference] = Field(default_factory=list)


class SpellcastingClassInfo(ApiModel):
    class_slug: str
    level: int
    progression: str
    ability: str
    spell_save_dc: Optional[int] = None
    spell_attack_bonus: Optional[int] = None


class SpellcastingResponse(ApiModel):
    """Matches SpellManager.get_spellcasting()"""
    caster_level: int
    spell_slots: Dict[int, int] = Field(default_factory=dict)
    pact_magic: Optional[Dict[str, Any]] = None
    classes: List[SpellcastingClassInfo] = Field(default_factory=list)
    known_spells: List[str] = Field(default_factory=list)


class CharacterDeleteResponse(ApiModel):
    public_id: str
    closed: bool

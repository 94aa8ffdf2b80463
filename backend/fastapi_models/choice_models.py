"""
Pydantic models for pending choices and their resolution
"""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field

from character.models import PendingChoice
from .shared_models import ApiModel


class PendingChoiceInfo(ApiModel):
    id: str
    type: str
    source: str
    source_slug: str
    level: int
    group: str
    quantity: int
    remaining: int
    selected: List[str] = Field(default_factory=list)
    options: Optional[List[str]] = None
    options_endpoint: Optional[str] = None
    required: bool = True
    allow_duplicates: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_choice(cls, choice: PendingChoice) -> 'PendingChoiceInfo':
        return cls(**choice.to_dict())


class PendingChoicesSummary(ApiModel):
    total_pending: int = 0
    required_pending: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_source: Dict[str, int] = Field(default_factory=dict)


class PendingChoicesResponse(ApiModel):
    choices: List[PendingChoiceInfo] = Field(default_factory=list)
    summary: PendingChoicesSummary


class ChoiceOptionsResponse(ApiModel):
    """Concrete options of one choice, deferred references expanded"""
    choice_id: str
    options: List[str] = Field(default_factory=list)
    choice: PendingChoiceInfo


class ResolveChoiceRequest(ApiModel):
    """
    Selection for one choice.

    Cumulative choices (ability_score) take the full list every time,
    earlier picks included. item_selections maps an equipment option letter
    to the items picked for it; spell swaps put the new spell under
    'replacement'.
    """
    selected: List[str] = Field(..., description="Full selection for the choice")
    item_selections: Dict[str, List[str]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices('item_selections', 'itemSelections'),
    )


class ChoiceResolutionResponse(ApiModel):
    choice: PendingChoiceInfo
    changed: bool
    pending_choice_count: int
    is_complete: bool
    version: int

"""
Level-Up Models - Pydantic models for level-up workflow
"""

from typing import List, Optional

from pydantic import Field

from .shared_models import ApiModel


class LevelUpResponse(ApiModel):
    class_slug: str = Field(description="Class that gained the level")
    new_level: int = Field(description="New level in this specific class")
    total_level: int = Field(description="New total character level")
    features_gained: List[str] = Field(default_factory=list, description="Features unlocked at the new level")
    pending_choices: int = Field(description="Pending choices after the level-up")
    state: str = Field(description="Current level-up wizard state")
    steps: List[str] = Field(default_factory=list, description="Wizard steps for this level-up")


class LevelUpStateResponse(ApiModel):
    state: str
    steps: List[str] = Field(default_factory=list)
    class_slug: Optional[str] = None
    class_level: Optional[int] = None
    pending: List[str] = Field(default_factory=list, description="Required choice ids still open")

"""
Pydantic models for ClassManager
Handles class attachment, replacement, subclasses and multiclass gates
"""

from typing import Optional

from pydantic import Field

from .shared_models import ApiModel


class ClassAddRequest(ApiModel):
    """Attach a class - force skips the multiclass ability score gates"""
    class_slug: str = Field(..., description="Class slug, e.g. phb:fighter")
    force: bool = Field(False, description="Skip multiclass prerequisites")


class ClassReplaceRequest(ApiModel):
    """Replace the class named in the path with another one"""
    class_slug: str = Field(..., description="New class slug")
    force: bool = Field(False, description="Skip multiclass prerequisites")


class SubclassRequest(ApiModel):
    subclass_slug: str = Field(..., description="Subclass slug belonging to the class")


class ClassEntryInfo(ApiModel):
    """One class row - matches get_class_summary() output"""
    class_slug: str
    name: str
    level: int
    subclass_slug: Optional[str] = None
    is_primary: bool = False
    hit_die: Optional[int] = None


class ClassChangeResponse(ApiModel):
    """Result of add/replace/subclass operations"""
    class_slug: str
    level: int
    subclass_slug: Optional[str] = None
    is_primary: bool = False
    total_level: int
    pending_choice_count: int = 0
    version: int

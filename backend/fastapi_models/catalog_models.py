"""
Pydantic models for content catalog listings
"""

from typing import Any, Dict, List

from pydantic import Field

from .shared_models import ApiModel


class CatalogListResponse(ApiModel):
    kind: str
    count: int
    entries: List[Dict[str, Any]] = Field(default_factory=list)


class CatalogReloadResponse(ApiModel):
    name: str
    tables: Dict[str, int] = Field(default_factory=dict)

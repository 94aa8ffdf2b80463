"""
Shared/base models used across all routers
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for request/response bodies: snake_case in Python, camelCase on the wire"""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class ErrorResponse(BaseModel):
    """Body of every error response - extra keys depend on the error"""
    model_config = ConfigDict(extra='allow')

    error: str = Field(..., description="Machine readable error code")
    detail: Any = Field(..., description="Human readable message")


class HealthResponse(BaseModel):
    status: str = "healthy"
    service: str = "character-builder-api"


class SystemInfo(ApiModel):
    name: str
    version: str
    backend: str = "FastAPI"
    python_version: str
    catalog: Optional[Dict[str, int]] = None
    active_sessions: int = 0


class SessionInfo(ApiModel):
    public_id: str
    name: str
    version: int
    created_at: float
    last_access: float


class ActiveSessionsList(ApiModel):
    sessions: List[SessionInfo] = Field(default_factory=list)
    total_active_sessions: int = 0

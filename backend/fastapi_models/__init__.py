"""
FastAPI Pydantic models organized by resource
Each model file corresponds to a router and the manager behind it
"""

# Shared/base models used across all routers
from .shared_models import (
    ApiModel,
    ErrorResponse,
    HealthResponse,
    SystemInfo,
    SessionInfo,
    ActiveSessionsList,
)

# Character root
from .character_models import (
    CharacterCreateRequest,
    CharacterUpdateRequest,
    CharacterSummary,
    CharacterState,
    CharacterValidationResponse,
    CharacterDeleteResponse,
    DanglingReference,
    GrantInfo,
    HitPointsInfo,
    SpellcastingResponse,
    SpellcastingClassInfo,
)

# Classes
from .class_models import (
    ClassAddRequest,
    ClassReplaceRequest,
    SubclassRequest,
    ClassEntryInfo,
    ClassChangeResponse,
)

# Choices
from .choice_models import (
    PendingChoiceInfo,
    PendingChoicesSummary,
    PendingChoicesResponse,
    ChoiceOptionsResponse,
    ResolveChoiceRequest,
    ChoiceResolutionResponse,
)

# Level-up
from .levelup_models import (
    LevelUpResponse,
    LevelUpStateResponse,
)

# Catalog
from .catalog_models import (
    CatalogListResponse,
    CatalogReloadResponse,
)

__all__ = [
    'ApiModel', 'ErrorResponse', 'HealthResponse', 'SystemInfo', 'SessionInfo', 'ActiveSessionsList',
    'CharacterCreateRequest', 'CharacterUpdateRequest', 'CharacterSummary', 'CharacterState',
    'CharacterValidationResponse', 'CharacterDeleteResponse', 'DanglingReference',
    'GrantInfo', 'HitPointsInfo', 'SpellcastingResponse', 'SpellcastingClassInfo',
    'ClassAddRequest', 'ClassReplaceRequest', 'SubclassRequest', 'ClassEntryInfo', 'ClassChangeResponse',
    'PendingChoiceInfo', 'PendingChoicesSummary', 'PendingChoicesResponse', 'ChoiceOptionsResponse',
    'ResolveChoiceRequest', 'ChoiceResolutionResponse',
    'LevelUpResponse', 'LevelUpStateResponse',
    'CatalogListResponse', 'CatalogReloadResponse',
]

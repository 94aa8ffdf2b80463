"""
Lightweight FastAPI dependencies on top of the session registry

Routers take the session (not the manager) and hold its lock for the whole
request with `session.locked(expected_version)`, so every read and write of
one character is serialized.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header
from loguru import logger

from fastapi_core.exceptions import InvalidSelectionError, SystemNotReadyException
from fastapi_core.session_registry import CharacterSession, get_character_session
from fastapi_core.shared_services import get_shared_catalog
from gamedata.catalog import Catalog


def get_session(character_id: str) -> CharacterSession:
    """
    Raises:
        CharacterNotFoundException: No session with this id
    """
    return get_character_session(character_id)


def get_expected_version(if_match: Annotated[Optional[str], Header()] = None) -> Optional[int]:
    """
    Parse an If-Match header into a character version.

    Accepts `3`, `"3"` and `W/"3"`; `*` or no header means no version check.
    """
    if if_match is None:
        return None
    value = if_match.strip()
    if value == '*' or not value:
        return None
    if value.startswith('W/'):
        value = value[2:]
    value = value.strip('"')
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Unparseable If-Match header: {if_match!r}")
        raise InvalidSelectionError(f"If-Match must be a character version, got {if_match!r}",
                                    field='If-Match', invalid_values=[if_match])


def get_catalog() -> Catalog:
    """
    Raises:
        SystemNotReadyException: Catalog not loaded yet
    """
    catalog = get_shared_catalog()
    if catalog is None:
        logger.info("Request received but content catalog not loaded")
        raise SystemNotReadyException()
    return catalog


def etag(version: int) -> str:
    return f'"{version}"'


# FastAPI dependency annotations
CharacterSessionDep = Annotated[CharacterSession, Depends(get_session)]
ExpectedVersionDep = Annotated[Optional[int], Depends(get_expected_version)]
CatalogDep = Annotated[Catalog, Depends(get_catalog)]

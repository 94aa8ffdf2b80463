"""
Classes router - class attachment, replacement, subclasses and level-up
"""

from fastapi import APIRouter, status
from loguru import logger

from fastapi_models import (
    ClassAddRequest,
    ClassChangeResponse,
    ClassReplaceRequest,
    LevelUpResponse,
    LevelUpStateResponse,
    SubclassRequest,
)
from .dependencies import CharacterSessionDep, ExpectedVersionDep

router = APIRouter()


def _class_change_response(manager, result) -> ClassChangeResponse:
    character = manager.character
    return ClassChangeResponse.model_validate({
        **result,
        'pendingChoiceCount': len(character.pending_choices),
        'version': character.version,
    })


@router.post("/characters/{character_id}/classes", response_model=ClassChangeResponse,
             status_code=status.HTTP_201_CREATED)
def add_class(
    request: ClassAddRequest,
    character_session: CharacterSessionDep,
    expected_version: ExpectedVersionDep,
):
    """
    Attach a class at level 1.

    - **classSlug**: class to add
    - **force**: skip the multiclass ability score prerequisites

    Without force, a failed gate returns 422 listing each unmet requirement.
    """
    with character_session.locked(expected_version) as manager:
        result = manager.get_manager('class').add_class(request.class_slug, force=request.force)
        return _class_change_response(manager, result)


@router.put("/characters/{character_id}/classes/{class_slug}", response_model=ClassChangeResponse)
def replace_class(
    class_slug: str,
    request: ClassReplaceRequest,
    character_session: CharacterSessionDep,
    expected_version: ExpectedVersionDep,
):
    """
    Replace a class with another one at the same level.

    Everything the old class and its subclass granted or asked for is
    removed before the new class applies.
    """
    with character_session.locked(expected_version) as manager:
        result = manager.get_manager('class').replace_class(class_slug, request.class_slug, force=request.force)
        return _class_change_response(manager, result)


@router.put("/characters/{character_id}/classes/{class_slug}/subclass", response_model=ClassChangeResponse)
def set_subclass(
    class_slug: str,
    request: SubclassRequest,
    character_session: CharacterSessionDep,
    expected_version: ExpectedVersionDep,
):
    """Set or change the subclass of a class the character has"""
    with character_session.locked(expected_version) as manager:
        result = manager.get_manager('class').set_subclass(class_slug, request.subclass_slug)
        return _class_change_response(manager, result)


@router.post("/characters/{character_id}/classes/{class_slug}/level-up", response_model=LevelUpResponse)
def level_up(
    class_slug: str,
    character_session: CharacterSessionDep,
    expected_version: ExpectedVersionDep,
):
    """
    Add one level to a class the character has.

    The character must be complete. The level applies immediately and the
    choices it opens are returned as a pending count; resolve them through
    the choices endpoints.
    """
    with character_session.locked(expected_version) as manager:
        result = manager.get_manager('class').level_up(class_slug)
    logger.info(f"Level-up on {character_session.public_id}: {class_slug} -> {result['newLevel']}")
    return LevelUpResponse.model_validate(result)


@router.get("/characters/{character_id}/level-up", response_model=LevelUpStateResponse)
def get_level_up_state(character_session: CharacterSessionDep):
    """Current level-up wizard state derived from the open choices"""
    with character_session.locked() as manager:
        state = manager.get_manager('class').level_up_state()
    return LevelUpStateResponse.model_validate(state)

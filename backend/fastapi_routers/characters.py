"""
Characters router - character shell, partial updates, summary and validation
"""

from fastapi import APIRouter, Response, status
from loguru import logger

from character.validators import ReferenceIntegrityValidator
from fastapi_core.session_registry import (
    close_character_session, create_character_session, get_active_sessions,
)
from fastapi_models import (
    ActiveSessionsList,
    CharacterCreateRequest,
    CharacterDeleteResponse,
    CharacterState,
    CharacterSummary,
    CharacterUpdateRequest,
    CharacterValidationResponse,
    SpellcastingResponse,
)
from .dependencies import CatalogDep, CharacterSessionDep, ExpectedVersionDep, etag

router = APIRouter()


@router.get("/characters", response_model=ActiveSessionsList)
def list_characters():
    """List the characters held in memory"""
    sessions = get_active_sessions()
    return ActiveSessionsList(
        sessions=[{'public_id': public_id, **info} for public_id, info in sessions.items()],
        total_active_sessions=len(sessions),
    )


@router.post("/characters", response_model=CharacterState, status_code=status.HTTP_201_CREATED)
def create_character(request: CharacterCreateRequest, response: Response):
    """
    Create a character shell.

    - **publicId**: optional opaque id (generated when omitted)
    - **raceSlug** / **classSlug** / **backgroundSlug**: optional initial selections

    Initial selections apply atomically; an unknown slug creates nothing.
    """
    session = create_character_session(
        request.public_id,
        name=request.name,
        race_slug=request.race_slug,
        class_slug=request.class_slug,
        background_slug=request.background_slug,
    )
    with session.locked() as manager:
        state = manager.get_character_state()
    response.headers["ETag"] = etag(state['version'])
    return CharacterState.model_validate(state)


@router.get("/characters/{character_id}", response_model=CharacterState)
def get_character(character_session: CharacterSessionDep, response: Response):
    """Full character view including completion status (isComplete, missing)"""
    with character_session.locked() as manager:
        state = manager.get_character_state()
    response.headers["ETag"] = etag(state['version'])
    return CharacterState.model_validate(state)


@router.patch("/characters/{character_id}", response_model=CharacterState)
def update_character(
    request: CharacterUpdateRequest,
    character_session: CharacterSessionDep,
    expected_version: ExpectedVersionDep,
    response: Response,
):
    """
    Partial update of race, subrace, background, ability scores, name,
    alignment and the dead flag. Only fields present in the body are applied,
    all in one transaction; an explicit null clears a slot.
    """
    fields = request.model_fields_set
    with character_session.locked(expected_version) as manager:
        with manager.transaction('update_character', fields=sorted(fields)):
            if 'race_slug' in fields:
                manager.get_manager('race').set_race(request.race_slug)
            if 'subrace_slug' in fields:
                manager.get_manager('race').set_subrace(request.subrace_slug)
            if 'background_slug' in fields:
                manager.get_manager('identity').set_background(request.background_slug)
            if 'ability_scores' in fields and request.ability_scores is not None:
                manager.get_manager('ability').set_ability_scores(request.ability_scores)
            if 'name' in fields:
                manager.get_manager('identity').set_name(request.name or '')
            if 'alignment' in fields:
                manager.get_manager('identity').set_alignment(request.alignment)
            if 'is_dead' in fields and request.is_dead is not None:
                manager.get_manager('identity').set_dead(request.is_dead)
        state = manager.get_character_state()
    logger.debug(f"Updated {sorted(fields)} on character {character_session.public_id}")
    response.headers["ETag"] = etag(state['version'])
    return CharacterState.model_validate(state)


@router.delete("/characters/{character_id}", response_model=CharacterDeleteResponse)
def delete_character(character_session: CharacterSessionDep, expected_version: ExpectedVersionDep):
    """Close the character's session; the character is discarded"""
    with character_session.locked(expected_version):
        closed = close_character_session(character_session.public_id)
    return CharacterDeleteResponse(public_id=character_session.public_id, closed=closed)


@router.get("/characters/{character_id}/summary", response_model=CharacterSummary)
def get_character_summary(character_session: CharacterSessionDep, response: Response):
    """Character summary with completion status"""
    with character_session.locked() as manager:
        summary = manager.get_character_summary()
    response.headers["ETag"] = etag(summary['version'])
    return CharacterSummary.model_validate(summary)


@router.get("/characters/{character_id}/validate", response_model=CharacterValidationResponse)
def validate_character(character_session: CharacterSessionDep, catalog: CatalogDep):
    """
    Check every stored slug against the currently loaded catalog.

    This is reference integrity, not completion: a valid character can
    still have pending choices, and a complete one can reference content
    removed by a catalog reload.
    """
    with character_session.locked() as manager:
        report = ReferenceIntegrityValidator(catalog).validate_character(manager.character)
    if not report['valid']:
        logger.warning(f"Character {character_session.public_id} has "
                       f"{len(report['danglingReferences'])} dangling references")
    return CharacterValidationResponse.model_validate(report)


@router.get("/characters/{character_id}/spellcasting", response_model=SpellcastingResponse)
def get_spellcasting(character_session: CharacterSessionDep):
    """Caster level, spell slots, pact magic and known spells across all classes"""
    with character_session.locked() as manager:
        spellcasting = manager.get_manager('spell').get_spellcasting()
    return SpellcastingResponse.model_validate(spellcasting)

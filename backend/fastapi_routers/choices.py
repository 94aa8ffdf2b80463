"""
Choices router - pending choice snapshot, option lookup, resolve and undo

Choice ids contain '|' and ':' and must be percent-encoded in the path;
every pending choice carries its own ready-made optionsEndpoint.
"""

from typing import Optional

from fastapi import APIRouter, Query
from loguru import logger

from fastapi_models import (
    ChoiceOptionsResponse,
    ChoiceResolutionResponse,
    PendingChoiceInfo,
    PendingChoicesResponse,
    ResolveChoiceRequest,
)
from .dependencies import CharacterSessionDep, ExpectedVersionDep

router = APIRouter()


def _resolution_response(manager, result) -> ChoiceResolutionResponse:
    character = manager.character
    return ChoiceResolutionResponse(
        choice=PendingChoiceInfo.from_choice(result['choice']),
        changed=result['changed'],
        pending_choice_count=len(character.pending_choices),
        is_complete=manager.get_manager('completion').is_complete(),
        version=character.version,
    )


@router.get("/characters/{character_id}/pending-choices", response_model=PendingChoicesResponse)
def get_pending_choices(
    character_session: CharacterSessionDep,
    type: Optional[str] = Query(None, description="Only choices of this type"),
    source: Optional[str] = Query(None, description="Only choices from this source kind"),
):
    """
    Every unresolved choice with a summary aggregate
    (totalPending, requiredPending, byType, bySource).
    """
    with character_session.locked() as manager:
        choices = list(manager.character.pending_choices)
        if type:
            choices = [c for c in choices if c.type == type]
        if source:
            choices = [c for c in choices if c.source == source]
        summary = manager.registry.summarize(choices)
        return PendingChoicesResponse(
            choices=[PendingChoiceInfo.from_choice(c) for c in choices],
            summary=summary,
        )


@router.get("/characters/{character_id}/choices/{choice_id}/options", response_model=ChoiceOptionsResponse)
def get_choice_options(choice_id: str, character_session: CharacterSessionDep):
    """
    Concrete options for one choice, with deferred option references
    expanded and options the character already holds filtered out.
    """
    with character_session.locked() as manager:
        result = manager.get_manager('resolver').get_options(choice_id)
        return ChoiceOptionsResponse(
            choice_id=result['choiceId'],
            options=result['options'],
            choice=PendingChoiceInfo.from_choice(result['choice']),
        )


@router.post("/characters/{character_id}/choices/{choice_id}", response_model=ChoiceResolutionResponse)
def resolve_choice(
    choice_id: str,
    request: ResolveChoiceRequest,
    character_session: CharacterSessionDep,
    expected_version: ExpectedVersionDep,
):
    """
    Resolve one choice.

    - **selected**: the full selection (cumulative choices resend earlier picks)
    - **item_selections**: items for category equipment options, or the
      replacement spell of a spell swap under `replacement`

    Resubmitting an identical payload for a resolved choice is a no-op.
    """
    with character_session.locked(expected_version) as manager:
        result = manager.get_manager('resolver').resolve(choice_id, request.selected, request.item_selections)
        if result['changed']:
            logger.debug(f"Choice {choice_id} resolved on {character_session.public_id}")
        return _resolution_response(manager, result)


@router.delete("/characters/{character_id}/choices/{choice_id}", response_model=ChoiceResolutionResponse)
def undo_choice(
    choice_id: str,
    character_session: CharacterSessionDep,
    expected_version: ExpectedVersionDep,
):
    """
    Clear a choice's selection and everything it granted.

    Only supported for choice types that can be reopened; others return 405.
    """
    with character_session.locked(expected_version) as manager:
        result = manager.get_manager('resolver').undo(choice_id)
        return _resolution_response(manager, result)

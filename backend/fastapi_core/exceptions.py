"""
Custom exceptions for the character builder API.

Every domain failure raised by the managers is one of these; the FastAPI app
registers handlers that turn them into structured JSON responses.
"""

from typing import Any, Dict, List, Optional

from fastapi import status


class CharacterBuilderException(Exception):
    """Base exception for all character builder errors"""

    error_code = "character_builder_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Response body for the exception handler"""
        return {
            "error": self.error_code,
            "detail": self.message,
            **self.details,
        }


class NotFoundError(CharacterBuilderException):
    """Unknown character, class entry, choice or catalog entry"""

    error_code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class CharacterNotFoundException(NotFoundError):
    """Raised when a character session does not exist"""

    error_code = "character_not_found"

    def __init__(self, character_id: str):
        super().__init__(f"Character {character_id} not found", {"character_id": character_id})
        self.character_id = character_id


class ChoiceNotFoundException(NotFoundError):
    """Raised when a choice id is unknown or no longer pending"""

    error_code = "choice_not_found"

    def __init__(self, choice_id: str, message: Optional[str] = None):
        super().__init__(message or f"Choice {choice_id} not found", {"choice_id": choice_id})
        self.choice_id = choice_id


class InvalidSelectionError(CharacterBuilderException):
    """Option not in the allowed set, wrong cardinality, or bad field value"""

    error_code = "invalid_selection"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None,
                 invalid_values: Optional[List[Any]] = None):
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
        if invalid_values:
            details["invalid_values"] = list(invalid_values)
        super().__init__(message, details)
        self.field = field
        self.invalid_values = list(invalid_values or [])


class PrerequisiteNotMetError(CharacterBuilderException):
    """Multiclass ability-score gate failed"""

    error_code = "prerequisite_not_met"
    status_code = 422

    def __init__(self, class_slug: str, unmet: List[Dict[str, Any]]):
        super().__init__(
            f"Multiclass prerequisites not met for {class_slug}",
            {"class_slug": class_slug, "unmet_requirements": unmet},
        )
        self.class_slug = class_slug
        self.unmet = unmet


class AlreadyCompleteStateError(CharacterBuilderException):
    """Operation not allowed in the character's current state (e.g. level-up)"""

    error_code = "invalid_state"
    status_code = status.HTTP_409_CONFLICT


class NotSupportedError(CharacterBuilderException):
    """Operation is not supported for this choice type"""

    error_code = "not_supported"
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED


class ConflictError(CharacterBuilderException):
    """Concurrent mutation detected on the same character"""

    error_code = "conflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, character_id: str, message: Optional[str] = None,
                 current_version: Optional[int] = None):
        details: Dict[str, Any] = {"character_id": character_id}
        if current_version is not None:
            details["current_version"] = current_version
        super().__init__(message or f"Character {character_id} is being modified by another request", details)
        self.character_id = character_id
        self.current_version = current_version


class SystemNotReadyException(CharacterBuilderException):
    """Raised while the content catalog is still loading"""

    error_code = "system_not_ready"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Content catalog is not loaded yet"):
        super().__init__(message)

"""
Event system for character management
Provides pub/sub pattern for communication between managers
"""

import time
from typing import Dict, List, Callable, Optional
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger


class EventType(Enum):
    """Standard event types for character building"""
    CHARACTER_CREATED = 'character_created'
    RACE_CHANGED = 'race_changed'
    SUBRACE_CHANGED = 'subrace_changed'
    BACKGROUND_CHANGED = 'background_changed'
    CLASS_CHANGED = 'class_changed'
    CLASS_ADDED = 'class_added'  # For multiclassing
    SUBCLASS_CHANGED = 'subclass_changed'
    LEVEL_GAINED = 'level_gained'
    CHOICE_RESOLVED = 'choice_resolved'
    CHOICE_UNDONE = 'choice_undone'
    ABILITY_CHANGED = 'ability_changed'
    IDENTITY_CHANGED = 'identity_changed'
    CASCADE_APPLIED = 'cascade_applied'


@dataclass
class EventData:
    """Base class for event data"""
    event_type: EventType
    source_manager: str
    timestamp: float = field(default_factory=time.time)

    def validate(self) -> bool:
        return True


@dataclass
class SourceChangedEvent(EventData):
    """A root selection slot (race, subrace, class, background) changed value"""
    slot: str = ''
    old_slug: Optional[str] = None
    new_slug: Optional[str] = None

    def validate(self) -> bool:
        return bool(self.slot) and self.old_slug != self.new_slug


@dataclass
class ChoiceEvent(EventData):
    """A pending choice was resolved or undone"""
    choice_id: str = ''
    selected: List[str] = field(default_factory=list)

    def validate(self) -> bool:
        return bool(self.choice_id)


@dataclass
class LevelGainedEvent(EventData):
    """Data for level up events"""
    class_slug: str = ''
    new_level: int = 0
    total_level: int = 0

    def __post_init__(self):
        self.event_type = EventType.LEVEL_GAINED


@dataclass
class CascadeEvent(EventData):
    """Summary of what a cascade removed; logged, never returned to clients"""
    slot: str = ''
    removed_grants: int = 0
    removed_selections: int = 0

    def __post_init__(self):
        self.event_type = EventType.CASCADE_APPLIED


class EventEmitter:
    """Base class for objects that can emit and listen to events"""

    def __init__(self):
        self._observers: Dict[EventType, List[Callable[[EventData], None]]] = {}
        self._event_history: List[EventData] = []

    def on(self, event_type: EventType, callback: Callable[[EventData], None]):
        """
        Register a callback for an event type

        Args:
            event_type: The type of event to listen for
            callback: Function to call when event is emitted
        """
        self._observers.setdefault(event_type, []).append(callback)
        logger.debug(f"Registered callback for {event_type.value}")

    def off(self, event_type: EventType, callback: Callable[[EventData], None]):
        """Unregister a callback for an event type"""
        callbacks = self._observers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)
            logger.debug(f"Unregistered callback for {event_type.value}")

    def emit(self, event_data: EventData):
        """
        Emit an event to all registered observers.

        Observers run synchronously inside the caller's transaction, so an
        observer that raises aborts the whole mutation.
        """
        if not event_data.validate():
            logger.error(f"Invalid event data for {event_data.event_type}")
            return

        self._event_history.append(event_data)
        callbacks = self._observers.get(event_data.event_type, [])
        if callbacks:
            logger.debug(f"Emitting {event_data.event_type.value} from {event_data.source_manager}")
        for callback in list(callbacks):
            callback(event_data)

    def get_event_history(self, event_type: Optional[EventType] = None) -> List[EventData]:
        """
        Get history of emitted events

        Args:
            event_type: Optional filter by event type

        Returns:
            List of event data
        """
        if event_type:
            return [e for e in self._event_history if e.event_type == event_type]
        return self._event_history.copy()

    def clear_event_history(self):
        """Clear the event history"""
        self._event_history.clear()

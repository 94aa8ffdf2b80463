"""
CharacterManager - hub owning one Character, the content catalog and the
subsystem managers that operate on them.

Every mutation runs inside a Transaction: the character is snapshotted
before the change and restored if anything raises, so a choice, cascade or
level-up either commits in full or not at all. A committed change settles
the stored state against the registry, refreshes the pending choices and
bumps the character's version.
"""

import copy
import random
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Type

from loguru import logger

from .events import EventEmitter
from .managers.choice_registry import ChoiceRegistry
from .models import Character, ChoiceType, SourceKind
from gamedata.catalog import Catalog


@dataclass
class Transaction:
    """Represents a set of character changes that can be committed or rolled back"""
    id: str
    manager: 'CharacterManager'
    original_state: Character
    changes: List[Dict[str, Any]]
    timestamp: float

    def __init__(self, manager: 'CharacterManager'):
        self.id = f"txn_{int(time.time() * 1000)}"
        self.manager = manager
        self.original_state = copy.deepcopy(manager.character)
        self.changes = []
        self.timestamp = time.time()

    def add_change(self, change_type: str, details: Dict[str, Any]):
        """Record a change in this transaction"""
        self.changes.append({
            'type': change_type,
            'details': details,
            'timestamp': time.time()
        })

    def rollback(self):
        """Restore character to state before transaction"""
        logger.info(f"Rolling back transaction {self.id}")
        self.manager.character = self.original_state

    def commit(self) -> Dict[str, Any]:
        """Finalize the transaction and return summary"""
        logger.debug(f"Committing transaction {self.id} with {len(self.changes)} changes")
        return {
            'transaction_id': self.id,
            'changes': self.changes,
            'duration': time.time() - self.timestamp
        }


class CharacterManager(EventEmitter):
    """
    Character hub

    Managers are registered by name and receive this object; they always
    reach the character through `character_manager.character` because a
    rollback swaps in the snapshot.
    """

    def __init__(self, character: Character, catalog: Catalog, rng: Optional[random.Random] = None):
        """
        Args:
            character: The character being built
            catalog: Immutable content catalog
            rng: Random source for rolled hit points (seedable in tests)
        """
        super().__init__()
        if not isinstance(character, Character):
            raise ValueError(f"character must be a Character, got {type(character)}")

        self.character = character
        self.catalog = catalog
        self.rng = rng or random.Random()
        self.registry = ChoiceRegistry(catalog)

        self._managers: Dict[str, Any] = {}
        self._manager_classes: Dict[str, Type] = {}
        self._manager_hooks: Dict[str, Dict[str, Optional[Callable]]] = {}

        self._current_transaction: Optional[Transaction] = None
        self._transaction_history: List[Transaction] = []

        logger.debug(f"CharacterManager initialized for {character.public_id}")

    # ------------------------------------------------------------------
    # Manager registration
    # ------------------------------------------------------------------

    def register_manager(self, name: str, manager_class: Type,
                         on_register: Optional[Callable] = None,
                         on_unregister: Optional[Callable] = None):
        """
        Register a subsystem manager with optional lifecycle hooks

        Args:
            name: Manager name (e.g., 'class', 'resolver')
            manager_class: Manager class to instantiate
            on_register: Optional callback to call after registration
            on_unregister: Optional callback to call before unregistration
        """
        if not callable(manager_class):
            raise ValueError(f"Manager class {name} is not callable")

        try:
            manager_instance = manager_class(self)
        except Exception as e:
            logger.error(f"Failed to create {name} manager: {e}")
            raise RuntimeError(f"Could not create {name} manager: {e}") from e

        self._manager_classes[name] = manager_class
        self._manager_hooks[name] = {
            'on_register': on_register,
            'on_unregister': on_unregister
        }
        self._managers[name] = manager_instance
        if on_register:
            on_register(manager_instance)
        logger.debug(f"Registered {name} manager")

    def get_manager(self, name: str):
        """
        Get a registered manager by name.

        Returns:
            Manager instance or None if not registered
        """
        return self._managers.get(name)

    def unregister_manager(self, name: str):
        if name not in self._managers:
            logger.warning(f"Attempted to unregister non-existent manager: {name}")
            return

        on_unregister = self._manager_hooks.get(name, {}).get('on_unregister')
        if on_unregister:
            on_unregister(self._managers[name])

        del self._managers[name]
        del self._manager_classes[name]
        self._manager_hooks.pop(name, None)
        logger.debug(f"Unregistered {name} manager")

    def get_all_managers(self) -> Dict[str, Any]:
        return self._managers.copy()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def begin_transaction(self) -> Transaction:
        """Start a new transaction for atomic changes"""
        if self._current_transaction:
            raise RuntimeError("Transaction already in progress")

        self._current_transaction = Transaction(self)
        logger.debug(f"Started transaction {self._current_transaction.id}")
        return self._current_transaction

    def commit_transaction(self) -> Dict[str, Any]:
        """Settle the character and commit the current transaction"""
        if not self._current_transaction:
            raise RuntimeError("No transaction in progress")

        transaction = self._current_transaction
        self.refresh()
        if self.character != transaction.original_state:
            self.character.version = transaction.original_state.version + 1

        result = transaction.commit()
        self._transaction_history.append(transaction)
        self._current_transaction = None
        return result

    def rollback_transaction(self):
        """Rollback the current transaction"""
        if not self._current_transaction:
            raise RuntimeError("No transaction in progress")

        self._current_transaction.rollback()
        self._current_transaction = None

    @contextmanager
    def transaction(self, change_type: str, **details) -> Iterator[Transaction]:
        """
        Run a block atomically.

        Nested use joins the transaction already in progress; only the
        outermost block commits or rolls back.
        """
        if self._current_transaction:
            self._current_transaction.add_change(change_type, details)
            yield self._current_transaction
            return

        transaction = self.begin_transaction()
        transaction.add_change(change_type, details)
        try:
            yield transaction
            self.commit_transaction()
        except Exception:
            self.rollback_transaction()
            raise

    def get_transaction_history(self) -> List[Dict[str, Any]]:
        return [
            {
                'id': txn.id,
                'timestamp': txn.timestamp,
                'changes': txn.changes,
                'change_count': len(txn.changes)
            }
            for txn in self._transaction_history
        ]

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def refresh(self):
        """Settle grants and selections, then recompute derived state and pending choices"""
        self.get_manager('cascade').settle()

        character = self.character
        choices = self.registry.generate(character)

        size = None
        race = self.catalog.get_race(character.race_slug)
        if race:
            size = race.size
        gold = 0
        for choice in choices:
            if not choice.is_satisfied:
                continue
            if choice.type == ChoiceType.SIZE.value:
                size = choice.selected[0]
            elif choice.type == ChoiceType.EQUIPMENT_MODE.value and choice.source == SourceKind.CLASS.value:
                if choice.selected == ['gold']:
                    class_def = self.catalog.get_class(choice.source_slug)
                    gold += class_def.starting_gold if class_def else 0
        character.size = size
        character.gold = gold
        character.pending_choices = [choice for choice in choices if not choice.is_satisfied]

    def get_character_summary(self) -> Dict[str, Any]:
        """Summary of the character aggregated from the managers"""
        character = self.character
        ability_manager = self.get_manager('ability')
        class_manager = self.get_manager('class')
        completion = self.get_manager('completion').validate()

        return {
            'publicId': character.public_id,
            'name': character.name,
            'alignment': character.alignment,
            'isDead': character.is_dead,
            'race': character.race_slug,
            'subrace': character.subrace_slug,
            'background': character.background_slug,
            'size': character.size,
            'gold': character.gold,
            'totalLevel': character.total_level,
            'proficiencyBonus': ability_manager.get_proficiency_bonus(),
            'abilityScores': dict(character.ability_scores),
            'effectiveAbilityScores': ability_manager.get_effective_scores(),
            'abilityModifiers': ability_manager.get_modifiers(),
            'classes': class_manager.get_class_summary(),
            'hitPoints': class_manager.get_hit_points(),
            'isComplete': completion['isComplete'],
            'missing': completion['missing'],
            'pendingChoiceCount': len(character.pending_choices),
            'version': character.version,
        }

    def get_character_state(self) -> Dict[str, Any]:
        """Summary plus every grant, for the full character view"""
        state = self.get_character_summary()
        state['grants'] = [grant.to_dict() for grant in self.character.grants]
        state['knownSpells'] = self.registry.known_spells(self.character)
        return state

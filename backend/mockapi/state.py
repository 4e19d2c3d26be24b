"""Subscribable, persisted single-record state containers."""
from __future__ import annotations

import logging
from typing import Any, Callable, ClassVar, Generic, Mapping, TypeVar, Union

from pydantic import BaseModel

from .persistence import PersistenceAdapter

logger = logging.getLogger(__name__)

StateT = TypeVar("StateT", bound=BaseModel)
Listener = Callable[[StateT, StateT], None]
Update = Union[Mapping[str, Any], Callable[[StateT], Mapping[str, Any]]]


class StateContainer(Generic[StateT]):
    """Holds one record, persists every change and notifies subscribers.

    Subclasses name their ``storage_key`` and ``state_model``. Listeners are
    called with ``(new_state, previous_state)`` after the change has been
    applied and persisted.
    """

    storage_key: ClassVar[str]
    state_model: ClassVar[type[BaseModel]]
    version: ClassVar[int] = 1

    def __init__(self, storage: PersistenceAdapter) -> None:
        self._storage = storage
        self._listeners: list[Listener] = []
        self._state: StateT = self._rehydrate()

    def _defaults(self) -> StateT:
        return self.state_model()

    def _rehydrate(self) -> StateT:
        try:
            payload = self._storage.load(self.storage_key)
        except ValueError:
            logger.warning("Discarding unreadable persisted state %s", self.storage_key)
            return self._defaults()
        if payload is None:
            return self._defaults()
        if not isinstance(payload, dict) or payload.get("version") != self.version:
            logger.warning(
                "Persisted state %s has an unexpected version; using defaults",
                self.storage_key,
            )
            return self._defaults()
        try:
            return self.state_model.model_validate(payload.get("state") or {})
        except ValueError:
            logger.warning("Discarding malformed persisted state %s", self.storage_key)
            return self._defaults()

    def _persist(self) -> None:
        self._storage.save(
            self.storage_key,
            {"state": self._state.model_dump(mode="json"), "version": self.version},
        )

    def _on_change(self, state: StateT, previous: StateT) -> None:
        """Hook for side effects that must happen together with the change."""

    def get(self) -> StateT:
        return self._state.model_copy(deep=True)

    def set(self, update: Update) -> StateT:
        previous = self._state
        changes = update(previous) if callable(update) else update
        self._state = self.state_model.model_validate(
            {**previous.model_dump(), **dict(changes)}
        )
        self._on_change(self._state, previous)
        self._persist()
        self._notify(previous)
        return self.get()

    def reset(self) -> StateT:
        previous = self._state
        self._state = self._defaults()
        self._storage.remove(self.storage_key)
        self._on_change(self._state, previous)
        self._notify(previous)
        return self.get()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, previous: StateT) -> None:
        for listener in list(self._listeners):
            listener(self.get(), previous.model_copy(deep=True))

"""
Application state machine gating capture, reset and the detection loop.
"""
from __future__ import annotations
import logging
from typing import Callable, Dict, FrozenSet, List

from core.models import AppState

logger = logging.getLogger(__name__)

# States in which the detection loop keeps re-arming itself.
DETECTION_STATES: FrozenSet[AppState] = frozenset({AppState.IDLE, AppState.CAPTURING, AppState.SUCCESS})
# States from which a capture may start.
CAPTURE_STATES: FrozenSet[AppState] = frozenset({AppState.IDLE, AppState.CAPTURING, AppState.SUCCESS, AppState.ERROR})
# States from which reset returns to IDLE.
RESET_STATES: FrozenSet[AppState] = frozenset({AppState.SUCCESS, AppState.ERROR})

TRANSITIONS: Dict[AppState, FrozenSet[AppState]] = {
    AppState.LOADING_MODEL: frozenset({AppState.IDLE}),
    AppState.IDLE: frozenset({AppState.CAPTURING, AppState.ANALYZING}),
    AppState.CAPTURING: frozenset({AppState.ANALYZING}),
    AppState.ANALYZING: frozenset({AppState.SUCCESS, AppState.ERROR}),
    AppState.SUCCESS: frozenset({AppState.ANALYZING, AppState.IDLE}),
    AppState.ERROR: frozenset({AppState.ANALYZING, AppState.IDLE}),
}

Listener = Callable[[AppState, AppState], None]


class InvalidTransition(RuntimeError):
    def __init__(self, current: AppState, target: AppState):
        super().__init__(f"Cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


class StateMachine:
    """Single process-wide AppState; starts at LOADING_MODEL."""
    def __init__(self, initial: AppState = AppState.LOADING_MODEL):
        self._state = initial
        self._listeners: List[Listener] = []

    @property
    def state(self) -> AppState:
        return self._state

    def can(self, target: AppState) -> bool:
        return target in TRANSITIONS[self._state]

    def transition(self, target: AppState) -> None:
        if not self.can(target):
            raise InvalidTransition(self._state, target)
        previous, self._state = self._state, target
        logger.debug(f"[state] {previous.value} -> {target.value}")
        for listener in list(self._listeners):
            listener(previous, target)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with (previous, current); returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe

    @property
    def detection_allowed(self) -> bool:
        return self._state in DETECTION_STATES

    @property
    def capture_allowed(self) -> bool:
        return self._state in CAPTURE_STATES

    @property
    def reset_allowed(self) -> bool:
        return self._state in RESET_STATES

"""Submission lifecycle state machine.

Tracks one user-initiated submission through its lifecycle and enforces
valid transitions.
"""

from __future__ import annotations

from collections.abc import Callable

from photobooth.models import UploadState

StateListener = Callable[[UploadState, UploadState], None]


class UploadStateMachine:
    """Finite state machine for a single submission.

    Valid transitions::

        IDLE        -> VALIDATING
        VALIDATING  -> UPLOADING | ERROR
        UPLOADING   -> PROCESSING | ERROR
        PROCESSING  -> SUCCESS | ERROR
        ERROR       -> UPLOADING  (explicit retry)
        SUCCESS     -> (terminal until reset)

    :meth:`reset` returns to ``IDLE`` from any state that is not in flight.

    Parameters
    ----------
    listener:
        Optional callback invoked as ``listener(old, new)`` after every
        state change, including resets.
    """

    VALID_TRANSITIONS: dict[UploadState, set[UploadState]] = {
        UploadState.IDLE: {UploadState.VALIDATING},
        UploadState.VALIDATING: {UploadState.UPLOADING, UploadState.ERROR},
        UploadState.UPLOADING: {UploadState.PROCESSING, UploadState.ERROR},
        UploadState.PROCESSING: {UploadState.SUCCESS, UploadState.ERROR},
        UploadState.ERROR: {UploadState.UPLOADING},
        UploadState.SUCCESS: set(),
    }

    IN_FLIGHT: frozenset[UploadState] = frozenset({
        UploadState.VALIDATING,
        UploadState.UPLOADING,
        UploadState.PROCESSING,
    })

    def __init__(self, listener: StateListener | None = None) -> None:
        self.state: UploadState = UploadState.IDLE
        self.history: list[UploadState] = [UploadState.IDLE]
        self._listener = listener

    @property
    def in_flight(self) -> bool:
        return self.state in self.IN_FLIGHT

    def transition(self, new_state: UploadState) -> None:
        """Attempt to transition to *new_state*.

        Raises
        ------
        ValueError
            If the transition from the current state to *new_state* is
            not valid.
        """
        allowed = self.VALID_TRANSITIONS.get(self.state, set())

        if new_state not in allowed:
            raise ValueError(
                f"Invalid state transition: {self.state.value} -> {new_state.value}. "
                f"Allowed transitions from {self.state.value}: "
                f"{{{', '.join(sorted(s.value for s in allowed))}}}"
            )

        self._set(new_state)

    def reset(self) -> None:
        """Return to ``IDLE``.

        Raises
        ------
        ValueError
            If a submission is in flight; there is no mid-flight
            cancellation.
        """
        if self.in_flight:
            raise ValueError(
                f"Cannot reset while a submission is in flight "
                f"(state: {self.state.value})"
            )
        self.history = []
        self._set(UploadState.IDLE)

    def _set(self, new_state: UploadState) -> None:
        old = self.state
        self.state = new_state
        self.history.append(new_state)
        if self._listener is not None:
            self._listener(old, new_state)

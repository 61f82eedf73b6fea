"""Tests for ingest/state.py."""

from __future__ import annotations

import pytest

from photobooth.ingest.state import UploadStateMachine
from photobooth.models import UploadState

S = UploadState


def _drive(machine: UploadStateMachine, *states: UploadState) -> None:
    for state in states:
        machine.transition(state)


class TestTransitions:
    def test_initial_state(self):
        machine = UploadStateMachine()
        assert machine.state is S.IDLE
        assert machine.history == [S.IDLE]

    def test_happy_path(self):
        machine = UploadStateMachine()
        _drive(machine, S.VALIDATING, S.UPLOADING, S.PROCESSING, S.SUCCESS)
        assert machine.history == [S.IDLE, S.VALIDATING, S.UPLOADING, S.PROCESSING, S.SUCCESS]

    @pytest.mark.parametrize(
        "path",
        [
            (S.VALIDATING, S.ERROR),
            (S.VALIDATING, S.UPLOADING, S.ERROR),
            (S.VALIDATING, S.UPLOADING, S.PROCESSING, S.ERROR),
        ],
    )
    def test_error_reachable_from_each_in_flight_state(self, path):
        machine = UploadStateMachine()
        _drive(machine, *path)
        assert machine.state is S.ERROR

    def test_retry_from_error(self):
        machine = UploadStateMachine()
        _drive(machine, S.VALIDATING, S.ERROR, S.UPLOADING)
        assert machine.state is S.UPLOADING

    @pytest.mark.parametrize(
        ("setup", "target"),
        [
            ((), S.UPLOADING),
            ((), S.SUCCESS),
            ((S.VALIDATING,), S.PROCESSING),
            ((S.VALIDATING, S.UPLOADING), S.SUCCESS),
            ((S.VALIDATING, S.UPLOADING, S.PROCESSING, S.SUCCESS), S.UPLOADING),
            ((S.VALIDATING, S.ERROR), S.VALIDATING),
        ],
    )
    def test_invalid_transitions_raise(self, setup, target):
        machine = UploadStateMachine()
        _drive(machine, *setup)
        before = machine.state
        with pytest.raises(ValueError, match="Invalid state transition"):
            machine.transition(target)
        assert machine.state is before

    def test_error_message_lists_allowed(self):
        machine = UploadStateMachine()
        with pytest.raises(ValueError, match=r"\{validating\}"):
            machine.transition(S.SUCCESS)


class TestReset:
    @pytest.mark.parametrize(
        "path",
        [(), (S.VALIDATING, S.ERROR), (S.VALIDATING, S.UPLOADING, S.PROCESSING, S.SUCCESS)],
    )
    def test_reset_from_resting_states(self, path):
        machine = UploadStateMachine()
        _drive(machine, *path)
        machine.reset()
        assert machine.state is S.IDLE
        assert machine.history == [S.IDLE]

    @pytest.mark.parametrize(
        "path",
        [(S.VALIDATING,), (S.VALIDATING, S.UPLOADING), (S.VALIDATING, S.UPLOADING, S.PROCESSING)],
    )
    def test_reset_refused_in_flight(self, path):
        machine = UploadStateMachine()
        _drive(machine, *path)
        assert machine.in_flight
        with pytest.raises(ValueError, match="in flight"):
            machine.reset()
        assert machine.state is path[-1]


class TestListener:
    def test_listener_receives_old_and_new(self):
        events: list[tuple[UploadState, UploadState]] = []
        machine = UploadStateMachine(listener=lambda old, new: events.append((old, new)))
        _drive(machine, S.VALIDATING, S.ERROR)
        machine.reset()
        assert events == [
            (S.IDLE, S.VALIDATING),
            (S.VALIDATING, S.ERROR),
            (S.ERROR, S.IDLE),
        ]

    def test_listener_not_called_on_rejected_transition(self):
        events: list = []
        machine = UploadStateMachine(listener=lambda old, new: events.append(new))
        with pytest.raises(ValueError):
            machine.transition(S.SUCCESS)
        assert events == []

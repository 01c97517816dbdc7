"""
Tests for the wash session transition graph - app/state_machine/states.py

Property tests drive random action sequences through the graph and through
WashSessionStateManager.validate on transient sessions (no database).
"""
import pytest
from hypothesis import given, settings as h_settings
from hypothesis.strategies import lists, sampled_from

from app.core.exceptions import StateTransitionError
from app.db.models.wash_session import WashSession, WashSessionStatus
from app.state_machine.manager import WashSessionStateManager
from app.state_machine.states import (
    STATE_TIMESTAMP_FIELDS,
    TERMINAL_STATES,
    WASH_SESSION_TRANSITIONS,
    TransitionAction,
    allowed_actions,
    is_terminal,
    next_state,
)

ACTIONS = sampled_from(list(TransitionAction))
ACTION_SEQUENCES = lists(ACTIONS, min_size=1, max_size=15)

HAPPY_PATH = [
    (TransitionAction.AUTHORIZE, WashSessionStatus.AUTHORIZED),
    (TransitionAction.START, WashSessionStatus.IN_PROGRESS),
    (TransitionAction.COMPLETE, WashSessionStatus.COMPLETED),
    (TransitionAction.LOCK, WashSessionStatus.LOCKED),
]


def _edges() -> set[tuple[WashSessionStatus, WashSessionStatus]]:
    return {
        (source, target)
        for source, edges in WASH_SESSION_TRANSITIONS.items()
        for target in edges.values()
    }


class TestTransitionTable:

    @pytest.mark.unit
    def test_every_status_has_an_entry(self) -> None:
        assert set(WASH_SESSION_TRANSITIONS) == set(WashSessionStatus)

    @pytest.mark.unit
    def test_happy_path(self) -> None:
        status = WashSessionStatus.CREATED
        for action, expected in HAPPY_PATH:
            status = next_state(status, action)
            assert status == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("source", [WashSessionStatus.CREATED, WashSessionStatus.AUTHORIZED])
    def test_reject_allowed_before_work_starts(self, source: WashSessionStatus) -> None:
        assert next_state(source, TransitionAction.REJECT) == WashSessionStatus.REJECTED

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "source",
        [WashSessionStatus.IN_PROGRESS, WashSessionStatus.COMPLETED, WashSessionStatus.LOCKED],
    )
    def test_reject_not_allowed_once_started(self, source: WashSessionStatus) -> None:
        assert next_state(source, TransitionAction.REJECT) is None

    @pytest.mark.unit
    def test_terminal_states(self) -> None:
        assert TERMINAL_STATES == {WashSessionStatus.LOCKED, WashSessionStatus.REJECTED}
        for status in TERMINAL_STATES:
            assert is_terminal(status)
            assert allowed_actions(status) == []

    @pytest.mark.unit
    def test_complete_only_from_in_progress(self) -> None:
        sources = [
            source for source, edges in WASH_SESSION_TRANSITIONS.items()
            if WashSessionStatus.COMPLETED in edges.values()
        ]
        assert sources == [WashSessionStatus.IN_PROGRESS]

    @pytest.mark.unit
    def test_every_non_initial_state_has_a_timestamp(self) -> None:
        targets = {target for _, target in _edges()}
        assert targets == set(STATE_TIMESTAMP_FIELDS)

    @pytest.mark.unit
    def test_accepts_raw_values(self) -> None:
        assert next_state("created", "authorize") == WashSessionStatus.AUTHORIZED


class TestTransitionProperties:

    @pytest.mark.unit
    @given(actions=ACTION_SEQUENCES)
    @h_settings(max_examples=300)
    def test_observed_sequences_are_paths_in_the_graph(self, actions) -> None:
        edges = _edges()
        observed = [WashSessionStatus.CREATED]
        for action in actions:
            target = next_state(observed[-1], action)
            if target is not None:
                observed.append(target)

        for source, target in zip(observed, observed[1:]):
            assert (source, target) in edges

        if WashSessionStatus.COMPLETED in observed:
            completed_at = observed.index(WashSessionStatus.COMPLETED)
            assert WashSessionStatus.IN_PROGRESS in observed[:completed_at]

    @pytest.mark.unit
    @given(actions=ACTION_SEQUENCES)
    @h_settings(max_examples=200)
    def test_validate_matches_table_and_never_mutates(self, actions) -> None:
        manager = WashSessionStateManager(db=None)
        session = WashSession(id=1, status=WashSessionStatus.CREATED, version=1)

        for action in actions:
            before = WashSessionStatus(session.status)
            expected = next_state(before, action)
            if expected is None:
                with pytest.raises(StateTransitionError) as exc_info:
                    manager.validate(session, action)
                assert exc_info.value.message == (
                    f"Invalid transition: session in state {before.name} cannot {action.value}"
                )
                assert exc_info.value.details["allowed_actions"] == [
                    a.value for a in WASH_SESSION_TRANSITIONS[before]
                ]
            else:
                assert manager.validate(session, action) == expected
                session.status = expected
            # validate only reads the session
            assert session.version == 1

    @pytest.mark.unit
    @given(actions=ACTION_SEQUENCES)
    def test_terminal_states_absorb(self, actions) -> None:
        for terminal in TERMINAL_STATES:
            status = terminal
            for action in actions:
                assert next_state(status, action) is None

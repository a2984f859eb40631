import pytest

from services.ai.models import (
    AttemptOutcome,
    InvalidTurnTransition,
    ProviderAttempt,
    TurnState,
    TurnTrace,
)


def test_provider_attempt_succeeded():
    assert ProviderAttempt("gemini", AttemptOutcome.SUCCESS).succeeded
    assert not ProviderAttempt("gemini", AttemptOutcome.FAILURE, "x").succeeded


def test_turn_trace_happy_path_with_fallback_and_artifact():
    trace = TurnTrace()
    for state in (
        TurnState.ROUTING,
        TurnState.PROVIDER_CALL,
        TurnState.FALLBACK_CALL,
        TurnState.FALLBACK_CALL,
        TurnState.ARTIFACT_CALL,
        TurnState.RESOLVED,
    ):
        trace.advance(state)

    assert trace.is_terminal
    assert trace.history[0] is TurnState.IDLE
    assert trace.history[-1] is TurnState.RESOLVED


def test_turn_trace_rejects_skipping_routing():
    trace = TurnTrace()
    with pytest.raises(InvalidTurnTransition):
        trace.advance(TurnState.PROVIDER_CALL)


def test_terminal_states_cannot_be_left():
    trace = TurnTrace()
    trace.advance(TurnState.ROUTING)
    trace.advance(TurnState.FAILED)

    with pytest.raises(InvalidTurnTransition, match="failed"):
        trace.advance(TurnState.PROVIDER_CALL)


def test_artifact_call_only_resolves():
    trace = TurnTrace()
    trace.advance(TurnState.ROUTING)
    trace.advance(TurnState.PROVIDER_CALL)
    trace.advance(TurnState.ARTIFACT_CALL)

    with pytest.raises(InvalidTurnTransition):
        trace.advance(TurnState.FAILED)


def test_record_attempts():
    trace = TurnTrace()
    trace.record_failure("deepseek", RuntimeError("quota"))
    trace.record_success("openrouter")

    assert [a.provider for a in trace.attempts] == ["deepseek", "openrouter"]
    assert trace.attempts[0].error == "quota"
    assert trace.attempts[1].succeeded

"""Domain models for response orchestration.

This module holds the internal, per-call contract objects used by the
`ResponseOrchestrator` and the OCR pipeline:

* ProviderAttempt  - record of one provider call used for fallback decisions.
* TurnTrace        - explicit state machine of a single user turn.
* ExtractionResponse - raw text plus stop reason from a batched OCR call.

None of these outlive the call that created them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(slots=True)
class ProviderAttempt:
    """Outcome of a single provider call within one orchestration."""

    provider: str
    outcome: AttemptOutcome
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCESS


class TurnState(str, Enum):
    IDLE = "idle"
    ROUTING = "routing"
    PROVIDER_CALL = "provider_call"
    FALLBACK_CALL = "fallback_call"
    ARTIFACT_CALL = "artifact_call"
    RESOLVED = "resolved"
    FAILED = "failed"


TERMINAL_STATES = frozenset({TurnState.RESOLVED, TurnState.FAILED})

# Stop or block reasons meaning the provider refused the content
SAFETY_REASONS = frozenset(
    {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "IMAGE_SAFETY", "OTHER_SAFETY"}
)

_ALLOWED_TRANSITIONS: dict[TurnState, frozenset[TurnState]] = {
    TurnState.IDLE: frozenset({TurnState.ROUTING}),
    TurnState.ROUTING: frozenset({TurnState.PROVIDER_CALL, TurnState.FAILED}),
    TurnState.PROVIDER_CALL: frozenset(
        {
            TurnState.FALLBACK_CALL,
            TurnState.ARTIFACT_CALL,
            TurnState.RESOLVED,
            TurnState.FAILED,
        }
    ),
    TurnState.FALLBACK_CALL: frozenset(
        {
            TurnState.FALLBACK_CALL,
            TurnState.ARTIFACT_CALL,
            TurnState.RESOLVED,
            TurnState.FAILED,
        }
    ),
    TurnState.ARTIFACT_CALL: frozenset({TurnState.RESOLVED}),
    TurnState.RESOLVED: frozenset(),
    TurnState.FAILED: frozenset(),
}


class InvalidTurnTransition(RuntimeError):
    """Raised when a turn is moved along an edge the state machine lacks."""


@dataclass
class TurnTrace:
    """State history and provider attempts of one orchestrated turn."""

    state: TurnState = TurnState.IDLE
    history: list[TurnState] = field(default_factory=lambda: [TurnState.IDLE])
    attempts: list[ProviderAttempt] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, new_state: TurnState) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTurnTransition(
                f"Cannot move turn from {self.state.value} to {new_state.value}"
            )
        logger.debug("Turn state %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)

    def record_success(self, provider: str) -> None:
        self.attempts.append(ProviderAttempt(provider, AttemptOutcome.SUCCESS))

    def record_failure(self, provider: str, error: BaseException) -> None:
        self.attempts.append(
            ProviderAttempt(provider, AttemptOutcome.FAILURE, error=str(error))
        )


@dataclass(slots=True)
class ExtractionResponse:
    """Raw transcription returned by a batched OCR call."""

    text: str
    finish_reason: str | None = None

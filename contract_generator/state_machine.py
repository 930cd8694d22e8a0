"""
Generation loop state machine
=============================

Pure transition function for the generate-compile-repair loop. No I/O:
the orchestrator feeds it events and acts on the state it returns.

    DRAFTING  --CANDIDATE_READY-->       COMPILING
    REPAIRING --CANDIDATE_READY-->       COMPILING
    COMPILING --COMPILED_CLEAN-->        SUCCESS
    COMPILING --COMPILED_WITH_ERRORS-->  REPAIRING | EXHAUSTED
    DRAFTING  --CALL_FAILED-->           DRAFTING  | EXHAUSTED
    REPAIRING --CALL_FAILED-->           REPAIRING | EXHAUSTED
"""

from enum import Enum

from .models import GenerationState


class GenerationEvent(Enum):
    CANDIDATE_READY = "candidate-ready"
    CALL_FAILED = "call-failed"
    COMPILED_CLEAN = "compiled-clean"
    COMPILED_WITH_ERRORS = "compiled-with-errors"


class InvalidTransition(RuntimeError):
    """Event not accepted in the current state"""


_FAILURES = (GenerationEvent.CALL_FAILED, GenerationEvent.COMPILED_WITH_ERRORS)


def next_state(
    state: GenerationState,
    event: GenerationEvent,
    attempt_number: int,
    max_attempts: int,
    has_candidate: bool,
) -> GenerationState:
    """
    Compute the state following ``event``.

    Args:
        state: Current state
        event: What just happened
        attempt_number: Attempt in which the event happened (1-based)
        max_attempts: Attempt budget
        has_candidate: Whether a candidate source has been produced so far

    Raises:
        InvalidTransition: terminal state, or event not valid in ``state``
    """
    if state.terminal:
        raise InvalidTransition(f"{state.name} is terminal (got {event.name})")

    if event == GenerationEvent.CANDIDATE_READY:
        if state in (GenerationState.DRAFTING, GenerationState.REPAIRING):
            return GenerationState.COMPILING

    elif event == GenerationEvent.COMPILED_CLEAN:
        if state == GenerationState.COMPILING:
            return GenerationState.SUCCESS

    elif event in _FAILURES:
        valid_from = (
            (GenerationState.COMPILING,)
            if event == GenerationEvent.COMPILED_WITH_ERRORS
            else (GenerationState.DRAFTING, GenerationState.REPAIRING)
        )
        if state in valid_from:
            if attempt_number >= max_attempts:
                return GenerationState.EXHAUSTED
            return GenerationState.REPAIRING if has_candidate else GenerationState.DRAFTING

    raise InvalidTransition(f"{event.name} is not valid in {state.name}")

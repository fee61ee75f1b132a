"""Session lifecycle as a pure transition function.

``transition`` maps the current status and an event to the next status and
the effects (pipeline stages) the engine has to run next. It has no side
effects, so the whole lifecycle can be checked without running any stage.
"""

from dataclasses import dataclass
from enum import Enum

from empforge.config import ValidationPolicy
from empforge.exceptions import InvalidTransitionError


class SessionStatus(str, Enum):
    INITIALIZING = "initializing"
    INPUT = "input"
    REASONING = "reasoning"
    CONFIGURING = "configuring"
    VALIDATING = "validating"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ERROR)

    @property
    def accepts_input(self) -> bool:
        return self in (SessionStatus.INITIALIZING, SessionStatus.INPUT)


class CreationMode(str, Enum):
    QUICK = "quick"
    STANDARD = "standard"
    ADVANCED = "advanced"


class SessionEvent(str, Enum):
    INPUT_SUBMITTED = "input_submitted"
    INTENT_UNCLEAR = "intent_unclear"
    INTENT_CLEAR = "intent_clear"
    REQUIREMENTS_DERIVED = "requirements_derived"
    CONFIG_SYNTHESIZED = "config_synthesized"
    CONFIG_OPTIMIZED = "config_optimized"
    VALIDATION_PASSED = "validation_passed"
    VALIDATION_FAILED = "validation_failed"
    REPAIR_RESOLVED = "repair_resolved"
    REPAIR_UNRESOLVED = "repair_unresolved"
    STAGE_FAILED = "stage_failed"
    TIMED_OUT = "timed_out"


class Effect(str, Enum):
    ANALYZE = "analyze"
    CLARIFY = "clarify"
    DERIVE = "derive"
    SYNTHESIZE = "synthesize"
    OPTIMIZE = "optimize"
    VALIDATE = "validate"
    REPAIR = "repair"
    HANDOFF = "handoff"


@dataclass(frozen=True)
class Transition:
    status: SessionStatus
    effects: tuple[Effect, ...] = ()


def _complete(mode: CreationMode) -> Transition:
    # advanced sessions continue in the manual editor
    if mode == CreationMode.ADVANCED:
        return Transition(SessionStatus.COMPLETED, (Effect.HANDOFF,))
    return Transition(SessionStatus.COMPLETED)


def _after_configuration(mode: CreationMode, validate: bool) -> Transition:
    if validate:
        return Transition(SessionStatus.VALIDATING, (Effect.VALIDATE,))
    return _complete(mode)


def transition(
        status: SessionStatus,
        event: SessionEvent,
        *,
        mode: CreationMode,
        validate: bool = True,
        policy: ValidationPolicy = ValidationPolicy.LENIENT,
) -> Transition:
    """Return the status and effects that follow *event* in *status*.

    Raises :class:`InvalidTransitionError` when *event* cannot happen in
    *status*.
    """
    if event in (SessionEvent.STAGE_FAILED, SessionEvent.TIMED_OUT) and not status.terminal:
        return Transition(SessionStatus.ERROR)

    match status, event:
        case (SessionStatus.INITIALIZING | SessionStatus.INPUT), SessionEvent.INPUT_SUBMITTED:
            return Transition(SessionStatus.REASONING, (Effect.ANALYZE,))
        case SessionStatus.REASONING, SessionEvent.INTENT_UNCLEAR:
            return Transition(SessionStatus.INPUT, (Effect.CLARIFY,))
        case SessionStatus.REASONING, SessionEvent.INTENT_CLEAR:
            return Transition(SessionStatus.REASONING, (Effect.DERIVE,))
        case SessionStatus.REASONING, SessionEvent.REQUIREMENTS_DERIVED:
            return Transition(SessionStatus.REASONING, (Effect.SYNTHESIZE,))
        case SessionStatus.REASONING, SessionEvent.CONFIG_SYNTHESIZED:
            if mode != CreationMode.QUICK:
                return Transition(SessionStatus.CONFIGURING, (Effect.OPTIMIZE,))
            return _after_configuration(mode, validate)
        case SessionStatus.CONFIGURING, SessionEvent.CONFIG_OPTIMIZED:
            return _after_configuration(mode, validate)
        case SessionStatus.VALIDATING, SessionEvent.VALIDATION_PASSED:
            return _complete(mode)
        case SessionStatus.VALIDATING, SessionEvent.VALIDATION_FAILED:
            return Transition(SessionStatus.VALIDATING, (Effect.REPAIR,))
        case SessionStatus.VALIDATING, SessionEvent.REPAIR_RESOLVED:
            return _complete(mode)
        case SessionStatus.VALIDATING, SessionEvent.REPAIR_UNRESOLVED:
            if policy == ValidationPolicy.STRICT:
                return Transition(SessionStatus.ERROR)
            return _complete(mode)
    raise InvalidTransitionError(status.value, event.value)
